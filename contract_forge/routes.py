"""
HTTP routes for contract generation, compilation and request analysis
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import Settings, get_settings
from .contract_helpers import interpret
from .contract_templates import get_available_templates
from .contract_utils import (
    CompilerContext,
    compile_contract,
    failure_response,
    get_available_versions,
    validate_source,
)
from .errors import (
    CompilationFailed,
    ContractNotFound,
    EngineUnavailable,
    InterpretationFailed,
    UnknownFamily,
    ValidationFailed,
)
from .generated_contracts import compile_generated_contract
from .generated_contracts import generate_contract as generate_model_contract
from .models import ContractFamily, GenerationRequest
from .pipeline import build_contract, generate_source, get_compiler_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["contracts"])


class GenerateBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    family: str
    contract_name: str = Field(alias="contractName")
    symbol: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    compile: bool = False


class CompileBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str
    contract_name: str = Field(alias="contractName")


class AnalyzeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    current_context: Optional[Dict[str, Any]] = Field(default=None, alias="currentContext")


class GenerateFromPromptBody(BaseModel):
    prompt: str = Field(min_length=1)
    context: Optional[Dict[str, Any]] = None
    compile: bool = False


def _unprocessable(problems: List[str]) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": "Validation failed", "errors": problems},
    )


def _validation_problems(error: ValidationError) -> List[str]:
    return [f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" for e in error.errors()]


async def _compile_response(awaitable) -> Any:
    """Await a compilation and translate its failures into HTTP responses."""
    try:
        artifact = await awaitable
    except ValidationFailed as e:
        return _unprocessable(e.problems)
    except (CompilationFailed, ContractNotFound) as e:
        return failure_response(e)
    except EngineUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Compilation timed out")
    return artifact.to_response()


@router.get("/contracts/templates")
async def list_templates():
    """List contract families with their optional features and constructor parameters."""
    templates = get_available_templates()
    return {"templates": templates, "total": len(templates)}


@router.post("/contracts/generate")
async def generate_contract(
    body: GenerateBody,
    context: CompilerContext = Depends(get_compiler_context),
):
    """Compose Solidity source for a request, optionally compiling it."""
    try:
        family = ContractFamily.parse(body.family)
        request = GenerationRequest(
            family=family,
            contract_name=body.contract_name,
            symbol=body.symbol,
            features=body.features,
            parameters=body.parameters,
        )
    except UnknownFamily as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValidationError as e:
        return _unprocessable(_validation_problems(e))

    try:
        composed = generate_source(request)
    except ValidationFailed as e:
        return _unprocessable(e.problems)

    response: Dict[str, Any] = {
        "success": True,
        "sourceCode": composed.source,
        "sourceName": composed.source_name,
    }
    if body.compile:
        compiled = await _compile_response(build_contract(request, context))
        if isinstance(compiled, JSONResponse):
            return compiled
        response["success"] = compiled["success"]
        response["compilation"] = compiled
    return response


@router.post("/contracts/compile")
async def compile_source(
    body: CompileBody,
    context: CompilerContext = Depends(get_compiler_context),
):
    """Validate and compile raw Solidity source."""
    logger.info("Compile request for %s (%d chars)", body.contract_name, len(body.source))
    return await _compile_response(compile_contract(context, body.source, body.contract_name))


@router.post("/ai/analyze-contract")
async def analyze_contract(
    body: AnalyzeBody,
    settings: Settings = Depends(get_settings),
):
    """Suggest a contract configuration for a plain-language request."""
    suggestion, provenance = await interpret(
        body.prompt,
        settings.model_available,
        context=body.current_context,
        settings=settings,
    )
    return {
        "success": True,
        "analysis": suggestion.model_dump(by_alias=True, mode="json"),
        "source": provenance.value,
    }


@router.post("/ai/generate-contract")
async def generate_contract_with_model(
    body: GenerateFromPromptBody,
    settings: Settings = Depends(get_settings),
    context: CompilerContext = Depends(get_compiler_context),
):
    """Have the model write a whole contract, then validate and optionally compile it."""
    if not settings.model_available:
        raise HTTPException(status_code=503, detail="Google API key not configured")

    try:
        generated = await generate_model_contract(body.prompt, body.context, settings=settings)
    except InterpretationFailed as e:
        logger.error("Model contract generation failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    report = validate_source(generated.contract_code)
    response: Dict[str, Any] = {
        "success": True,
        **generated.model_dump(by_alias=True, mode="json"),
        "validation": {"valid": report.valid, "problems": report.problems},
    }
    if body.compile:
        if report.valid:
            compiled = await _compile_response(compile_generated_contract(context, generated))
            if isinstance(compiled, JSONResponse):
                return compiled
        else:
            compiled = failure_response(ValidationFailed(report.problems))
        response["success"] = compiled["success"]
        response["compilation"] = compiled
    return response


@router.get("/contracts/compiler")
async def compiler_status(context: CompilerContext = Depends(get_compiler_context)):
    """Report the configured compiler version, whether it is loaded, and what else is installable."""
    versions = await asyncio.to_thread(get_available_versions)
    return {
        "version": context.settings.solc_version,
        "ready": context.is_ready,
        "availableVersions": versions,
    }


@router.post("/contracts/compiler/preload")
async def preload_compiler(context: CompilerContext = Depends(get_compiler_context)):
    """Load the compiler now instead of on the first compile request."""
    await context.preload()
    return {"version": context.settings.solc_version, "ready": context.is_ready}
