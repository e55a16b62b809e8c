import json
from typing import Any, Dict, List

from google.adk.agents import Agent
from pydantic import ValidationError

from .config import get_settings
from .contract_deployment import deployment_summary
from .contract_helpers import interpret
from .contract_templates import get_available_templates as list_templates
from .contract_templates import get_template
from .contract_utils import compile_contract as compile_source
from .contract_utils import failure_response, validate_source
from .errors import ContractForgeError
from .generated_contracts import compile_generated_contract, read_generated_contract
from .models import GenerationRequest
from .pipeline import build_contract, generate_source, get_compiler_context


def _error(message: str) -> Dict[str, Any]:
    return {"status": "error", "error_message": message}


def _parse_parameters(parameters_json: str) -> Dict[str, Any]:
    parameters = json.loads(parameters_json) if parameters_json else {}
    if not isinstance(parameters, dict):
        raise ValueError("parameters_json must be a JSON object")
    return parameters


def _request(
    family: str,
    contract_name: str,
    symbol: str,
    features: List[str],
    parameters_json: str,
) -> GenerationRequest:
    return GenerationRequest(
        family=family,
        contract_name=contract_name,
        symbol=symbol or None,
        features=list(features or []),
        parameters=_parse_parameters(parameters_json),
    )


def get_available_templates() -> Dict[str, Any]:
    """Return the supported contract families with their features and constructor parameters."""
    templates = list_templates()
    return {"status": "success", "data": {"templates": templates, "total_count": len(templates)}}


def select_contract_template(family: str) -> Dict[str, Any]:
    """Return the base template for a contract family, with placeholders still in place."""
    try:
        template = get_template(family)
    except ContractForgeError as e:
        return _error(str(e))

    return {
        "status": "success",
        "data": {
            "family": template.family.value,
            "template_code": template.template,
            "features": [feature.value for feature in template.features],
            "required_dependencies": ["@openzeppelin/contracts"],
        },
    }


def generate_contract_code(
    family: str,
    contract_name: str,
    features: List[str],
    symbol: str = "",
    parameters_json: str = "{}",
) -> Dict[str, Any]:
    """Compose Solidity source for a family, contract name and list of optional features."""
    try:
        composed = generate_source(_request(family, contract_name, symbol, features, parameters_json))
    except (ContractForgeError, ValidationError, ValueError) as e:
        return _error(f"Generation failed: {e}")

    return {
        "status": "success",
        "data": {
            "generated_code": composed.source,
            "source_name": composed.source_name,
            "applied_features": list(composed.request.features),
        },
    }


def validate_contract_structure(contract_code: str) -> Dict[str, Any]:
    """Run the structural pre-compilation checks on Solidity source."""
    report = validate_source(contract_code)
    return {"status": "success", "data": {"valid": report.valid, "problems": report.problems}}


async def compile_contract(contract_code: str, contract_name: str) -> Dict[str, Any]:
    """Compile Solidity source and return bytecode, ABI and gas estimate."""
    try:
        artifact = await compile_source(get_compiler_context(), contract_code, contract_name)
    except ContractForgeError as e:
        return {"status": "error", "error_message": str(e), "data": failure_response(e)}
    return {"status": "success", "data": artifact.to_response()}


async def analyze_contract_request(prompt: str) -> Dict[str, Any]:
    """Suggest a family, name, symbol and features for a plain-language contract request."""
    suggestion, provenance = await interpret(prompt, get_settings().model_available)
    return {
        "status": "success",
        "data": {
            "suggestion": suggestion.model_dump(by_alias=True, mode="json"),
            "source": provenance.value,
        },
    }


async def generate_and_compile_contract(
    family: str,
    contract_name: str,
    features: List[str],
    symbol: str = "",
    parameters_json: str = "{}",
) -> Dict[str, Any]:
    """Compose, validate and compile a contract in one step."""
    try:
        request = _request(family, contract_name, symbol, features, parameters_json)
        artifact = await build_contract(request, get_compiler_context())
    except ContractForgeError as e:
        return {"status": "error", "error_message": str(e), "data": failure_response(e)}
    except (ValidationError, ValueError) as e:
        return _error(f"Invalid request: {e}")
    return {"status": "success", "data": artifact.to_response()}


async def prepare_deployment_payload(
    family: str,
    contract_name: str,
    features: List[str],
    symbol: str = "",
    parameters_json: str = "{}",
) -> Dict[str, Any]:
    """Build and compile a contract, then return init code with encoded constructor arguments.

    parameters_json must supply every constructor argument without a default,
    such as the owner address.
    """
    try:
        request = _request(family, contract_name, symbol, features, parameters_json)
        artifact = await build_contract(request, get_compiler_context())
        summary = deployment_summary(artifact, request)
    except ContractForgeError as e:
        return {"status": "error", "error_message": str(e), "data": failure_response(e)}
    except (ValidationError, ValueError) as e:
        return _error(f"Invalid request: {e}")
    return {"status": "success", "data": summary}


async def compile_custom_contract(contract_text: str) -> Dict[str, Any]:
    """Read Solidity written outside the template catalog, check it and compile it.

    contract_text may be bare source, a reply with a solidity code block, or a
    JSON object with a contractCode field.
    """
    try:
        contract = read_generated_contract(contract_text)
    except ContractForgeError as e:
        return _error(str(e))

    details = contract.model_dump(by_alias=True, mode="json")
    try:
        artifact = await compile_generated_contract(get_compiler_context(), contract)
    except ContractForgeError as e:
        return {"status": "error", "error_message": str(e), "data": {**details, **failure_response(e)}}
    return {"status": "success", "data": {**details, "compilation": artifact.to_response()}}


root_agent = Agent(
    name="contract_forge",
    model="gemini-2.0-flash",
    description="Agent that turns token and NFT requests into compiled OpenZeppelin-based Solidity contracts.",
    instruction="""
    You help users create Solidity contracts from a fixed catalog of OpenZeppelin 5 templates.

    Contract families: fungible-token (ERC-20), non-fungible-token (ERC-721),
    multi-token (ERC-1155), governance-token (ERC-20 with votes) and custom.

    Workflow:
    1. If the request is vague, call analyze_contract_request to get a suggested family, name, symbol and features.
    2. Call get_available_templates to check which features each family supports.
    3. Call generate_contract_code to show the source, or generate_and_compile_contract to get bytecode and ABI.
    4. When the user wants to deploy, call prepare_deployment_payload with the owner address in parameters_json.
    5. When no template fits and you write the contract yourself, pass it to compile_custom_contract.

    Contract names are PascalCase. Symbols are 2 to 6 uppercase letters.
    Report compiler errors verbatim and never invent bytecode or addresses.
    """,
    tools=[
        get_available_templates,
        select_contract_template,
        generate_contract_code,
        validate_contract_structure,
        compile_contract,
        analyze_contract_request,
        generate_and_compile_contract,
        prepare_deployment_payload,
        compile_custom_contract,
    ],
)
