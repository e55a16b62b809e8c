"""End-to-end generation: compose, validate, compile."""

import logging
from functools import lru_cache
from typing import Optional

from .contract_templates import compose
from .contract_utils import CompilerContext, validate_source
from .errors import ValidationFailed
from .models import CompilerArtifact, ComposedSource, GenerationRequest

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_compiler_context() -> CompilerContext:
    """Process-wide compiler context shared by the agent tools and HTTP routes."""
    return CompilerContext()


def generate_source(request: GenerationRequest) -> ComposedSource:
    """Compose a request and check the result, raising ValidationFailed on structural problems."""
    composed = compose(request)
    report = validate_source(composed.source)
    if not report.valid:
        logger.error("Generated source for %s failed validation: %s", request.contract_name, report.problems)
        raise ValidationFailed(report.problems)
    return composed


async def build_contract(
    request: GenerationRequest,
    context: CompilerContext,
    timeout: Optional[float] = None,
) -> CompilerArtifact:
    composed = generate_source(request)
    logger.info("Compiling generated %s contract %s", request.family.value, request.contract_name)
    return await context.compile(composed.source, request.contract_name, timeout=timeout)
