# =============================================================================
# COMPILATION AND VALIDATION FUNCTIONS
# =============================================================================

import asyncio
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import solcx
from eth_utils import add_0x_prefix, remove_0x_prefix
from solcx.exceptions import SolcError
from solcx.install import get_executable

from .config import Settings, get_settings
from .errors import (
    CompilationFailed,
    ContractForgeError,
    ContractNotFound,
    EngineUnavailable,
    ValidationFailed,
)
from .library_catalog import BUNDLED_LIBRARY_ROOT, LibraryCatalog, resolve_imports
from .models import CompilerArtifact, ValidationReport

logger = logging.getLogger(__name__)

OUTPUT_SELECTION = [
    "abi",
    "evm.bytecode",
    "evm.deployedBytecode",
    "evm.methodIdentifiers",
    "evm.gasEstimates",
    "devdoc",
    "userdoc",
]

BASE_TRANSACTION_GAS = 21000
GAS_PER_BYTECODE_BYTE = 200

FALLBACK_SOLC_VERSIONS = ["0.8.20", "0.8.19", "0.8.18", "0.8.17"]

CONTRACT_DECLARATION = re.compile(r"^\s*(?:abstract\s+)?contract\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE)


# =============================================================================
# PRE-COMPILATION CHECKS
# =============================================================================

def validate_source(source: str) -> ValidationReport:
    """Cheap structural smoke test run before paying for a compiler invocation."""
    problems: List[str] = []

    if "pragma solidity" not in source:
        problems.append("Missing pragma solidity directive")

    if "contract " not in source:
        problems.append("No contract definition found")

    if source.count("{") != source.count("}"):
        problems.append("Unbalanced braces")

    if source.count("(") != source.count(")"):
        problems.append("Unbalanced parentheses")

    if not CONTRACT_DECLARATION.search(source):
        problems.append("Invalid contract declaration")

    return ValidationReport(valid=not problems, problems=problems)


def extract_contract_name(source: str) -> Optional[str]:
    match = CONTRACT_DECLARATION.search(source)
    return match.group(1) if match else None


# =============================================================================
# COMPILER INPUT AND OUTPUT
# =============================================================================

def build_standard_input(
    contract_name: str,
    source: str,
    optimizer_enabled: bool = True,
    optimizer_runs: int = 200,
    evm_version: str = "shanghai",
) -> Dict[str, Any]:
    """Build the solc standard-JSON input document for a single source file."""
    return {
        "language": "Solidity",
        "sources": {
            f"{contract_name}.sol": {"content": source},
        },
        "settings": {
            "optimizer": {"enabled": optimizer_enabled, "runs": optimizer_runs},
            "outputSelection": {"*": {"*": list(OUTPUT_SELECTION)}},
            "evmVersion": evm_version,
            "remappings": [],
        },
    }


def _diagnostic_message(diagnostic: Dict[str, Any]) -> str:
    return diagnostic.get("formattedMessage") or diagnostic.get("message") or ""


def _creation_costs(gas_estimates: Optional[Dict[str, Any]]) -> Tuple[Optional[int], Optional[int]]:
    creation = (gas_estimates or {}).get("creation") or {}
    try:
        # solc reports "infinite" when it cannot bound a cost
        return int(creation["codeDepositCost"]), int(creation["executionCost"])
    except (KeyError, TypeError, ValueError):
        return None, None


def estimate_deployment_gas(
    bytecode: Optional[str],
    deposit_cost: Optional[int] = None,
    execution_cost: Optional[int] = None,
) -> int:
    """Prefer the compiler's creation costs; otherwise approximate from the bytecode size."""
    if deposit_cost is not None and execution_cost is not None:
        return deposit_cost + execution_cost
    code = remove_0x_prefix(bytecode) if bytecode else ""
    if not code:
        return 0
    return BASE_TRANSACTION_GAS + GAS_PER_BYTECODE_BYTE * math.ceil(len(code) / 2)


def _last_declared(source: Optional[str], contracts: Dict[str, Any]) -> str:
    declared = [name for name in CONTRACT_DECLARATION.findall(source or "") if name in contracts]
    return declared[-1] if declared else list(contracts)[-1]


def parse_compiler_output(
    output: Dict[str, Any],
    source_name: str,
    contract_name: str,
    strict: bool = False,
    source: Optional[str] = None,
) -> CompilerArtifact:
    """Normalize solc standard-JSON output into a CompilerArtifact.

    Raises CompilationFailed when any diagnostic has severity "error", and
    ContractNotFound when the source file produced no contracts. When the file
    defines several contracts and none is named ``contract_name``, the last one
    declared in ``source`` is used unless ``strict`` is set. solc keys its
    output by name, so output order is only used when ``source`` declares
    none of the compiled contracts.
    """
    diagnostics = output.get("errors") or []
    fatal = [_diagnostic_message(d) for d in diagnostics if d.get("severity") == "error"]
    warnings = [_diagnostic_message(d) for d in diagnostics if d.get("severity") == "warning"]

    logger.info("Compilation completed: %d errors, %d warnings", len(fatal), len(warnings))

    if fatal:
        logger.error("Fatal compilation errors for %s: %s", contract_name, fatal)
        raise CompilationFailed(fatal, warnings)

    contracts = (output.get("contracts") or {}).get(source_name)
    if not contracts:
        raise ContractNotFound(f"Contract {contract_name} not found in compilation output")

    if contract_name in contracts:
        selected = contract_name
    elif strict:
        raise ContractNotFound(
            f"Contract {contract_name} not found in {source_name} (defined: {', '.join(contracts)})"
        )
    else:
        selected = _last_declared(source, contracts)
        logger.warning("Contract %s not found in %s, using %s", contract_name, source_name, selected)

    entry = contracts[selected]
    evm = entry.get("evm") or {}
    bytecode_info = evm.get("bytecode") or {}
    deployed_info = evm.get("deployedBytecode") or {}
    bytecode = bytecode_info.get("object") or ""
    deployed_bytecode = deployed_info.get("object") or ""
    gas_estimates = evm.get("gasEstimates") or {}

    deposit_cost, execution_cost = _creation_costs(gas_estimates)
    abi = entry.get("abi") or []

    logger.info("Bytecode length: %d, ABI entries: %d", len(bytecode), len(abi))

    return CompilerArtifact(
        contract_name=selected,
        source_name=source_name,
        bytecode=add_0x_prefix(bytecode) if bytecode else None,
        deployed_bytecode=add_0x_prefix(deployed_bytecode) if deployed_bytecode else None,
        abi=abi,
        gas_estimate=estimate_deployment_gas(bytecode, deposit_cost, execution_cost),
        deposit_cost=deposit_cost,
        execution_cost=execution_cost,
        method_identifiers=evm.get("methodIdentifiers") or {},
        gas_estimates=gas_estimates,
        link_references=bytecode_info.get("linkReferences") or {},
        deployed_link_references=deployed_info.get("linkReferences") or {},
        devdoc=entry.get("devdoc") or {},
        userdoc=entry.get("userdoc") or {},
        warnings=warnings,
    )


def failure_response(error: ContractForgeError) -> Dict[str, Any]:
    """Outbound shape for a failed validation or compilation."""
    response: Dict[str, Any] = {"success": False, "error": str(error)}
    if isinstance(error, CompilationFailed):
        response["errors"] = error.errors
        response["warnings"] = error.warnings
    elif isinstance(error, ValidationFailed):
        response["errors"] = error.problems
    else:
        response["errors"] = [str(error)]
    return response


# =============================================================================
# COMPILER ENGINE
# =============================================================================

class SolcEngine:
    """Handle on one installed solc binary, driven through py-solc-x."""

    def __init__(self, version: str, binary):
        self.version = version
        self.binary = binary

    @classmethod
    def load(cls, version: str) -> "SolcEngine":
        installed = {str(v) for v in solcx.get_installed_solc_versions()}
        if version not in installed:
            logger.info("Installing solc %s", version)
            solcx.install_solc(version)
        return cls(version, get_executable(version))

    def compile(self, document: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return solcx.compile_standard(document, solc_binary=self.binary)
        except SolcError as exc:
            # compile_standard raises on fatal diagnostics; hand them back as output
            diagnostics = getattr(exc, "error_dict", None)
            if diagnostics:
                return {"errors": diagnostics}
            return {"errors": [{"severity": "error", "message": str(exc)}]}


def get_available_versions(limit: int = 10) -> List[str]:
    try:
        versions = solcx.get_installable_solc_versions()
    except Exception as e:
        logger.warning("Could not load solc version list: %s", e)
        return list(FALLBACK_SOLC_VERSIONS)
    return [str(v) for v in versions[:limit]]


class CompilerContext:
    """Owns the lazily loaded compiler engine and compiles against it.

    The first call to ``engine()`` starts loading; concurrent callers await the
    same load. A failed load is forgotten so the next call tries again.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[LibraryCatalog] = None,
        engine_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = catalog or LibraryCatalog(root=self.settings.library_root or BUNDLED_LIBRARY_ROOT)
        self._engine_factory = engine_factory or SolcEngine.load
        self._engine = None
        self._loading: Optional[asyncio.Future] = None

    @property
    def is_ready(self) -> bool:
        return self._engine is not None

    async def engine(self):
        if self._engine is not None:
            return self._engine

        if self._loading is None:
            self._loading = asyncio.ensure_future(
                asyncio.to_thread(self._engine_factory, self.settings.solc_version)
            )
        loading = self._loading

        try:
            # shield: a cancelled caller must not cancel the load other callers share
            engine = await asyncio.shield(loading)
        except Exception as exc:
            if self._loading is loading:
                self._loading = None
            logger.warning("Failed to load solc %s: %s", self.settings.solc_version, exc)
            raise EngineUnavailable(f"Failed to load Solidity compiler: {exc}") from exc

        self._engine = engine
        self._loading = None
        return engine

    async def preload(self) -> None:
        try:
            await self.engine()
        except EngineUnavailable as e:
            logger.error("Solc preload failed: %s", e)
        else:
            logger.info("Solc preloaded successfully")

    def _compile_document(self, engine, document: Dict[str, Any]) -> Dict[str, Any]:
        document["sources"].update(resolve_imports(document["sources"], self.catalog.find_import))
        return engine.compile(document)

    async def compile(
        self,
        source: str,
        contract_name: str,
        optimizer_enabled: Optional[bool] = None,
        optimizer_runs: Optional[int] = None,
        timeout: Optional[float] = None,
        strict: Optional[bool] = None,
    ) -> CompilerArtifact:
        """Compile ``source`` as ``<contract_name>.sol`` and return its artifact."""
        engine = await self.engine()

        document = build_standard_input(
            contract_name,
            source,
            optimizer_enabled=self.settings.optimizer_enabled if optimizer_enabled is None else optimizer_enabled,
            optimizer_runs=self.settings.optimizer_runs if optimizer_runs is None else optimizer_runs,
            evm_version=self.settings.evm_version,
        )

        logger.info("Starting Solidity compilation of %s", contract_name)
        output = await asyncio.wait_for(
            asyncio.to_thread(self._compile_document, engine, document),
            timeout if timeout is not None else self.settings.compile_timeout,
        )

        return parse_compiler_output(
            output,
            f"{contract_name}.sol",
            contract_name,
            strict=self.settings.strict_contract_match if strict is None else strict,
            source=source,
        )


async def compile_contract(
    context: CompilerContext,
    source: str,
    contract_name: str,
    timeout: Optional[float] = None,
) -> CompilerArtifact:
    """Validate, then compile. Raises ValidationFailed before touching the engine."""
    report = validate_source(source)
    if not report.valid:
        raise ValidationFailed(report.problems)
    return await context.compile(source, contract_name, timeout=timeout)
