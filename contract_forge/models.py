"""Data model shared by every stage of the pipeline."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import UnknownFamily

CONTRACT_NAME_PATTERN = r"^[A-Z][a-zA-Z0-9]*$"
SYMBOL_PATTERN = r"^[A-Z]{2,6}$"

# EIP-170 limit on deployed contract code
MAX_CONTRACT_SIZE_BYTES = 24576


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ContractFamily(str, Enum):
    FUNGIBLE_TOKEN = "fungible-token"
    NON_FUNGIBLE_TOKEN = "non-fungible-token"
    MULTI_TOKEN = "multi-token"
    GOVERNANCE_TOKEN = "governance-token"
    CUSTOM = "custom"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return _FAMILY_ALIASES.get(value.strip().lower())
        return None

    @classmethod
    def parse(cls, value: Any) -> "ContractFamily":
        """Parse a family identifier, raising UnknownFamily when it is not recognized."""
        try:
            return cls(value)
        except ValueError:
            raise UnknownFamily(value) from None


_FAMILY_ALIASES = {
    "fungible-token": ContractFamily.FUNGIBLE_TOKEN,
    "erc20": ContractFamily.FUNGIBLE_TOKEN,
    "non-fungible-token": ContractFamily.NON_FUNGIBLE_TOKEN,
    "erc721": ContractFamily.NON_FUNGIBLE_TOKEN,
    "nft": ContractFamily.NON_FUNGIBLE_TOKEN,
    "multi-token": ContractFamily.MULTI_TOKEN,
    "erc1155": ContractFamily.MULTI_TOKEN,
    "governance-token": ContractFamily.GOVERNANCE_TOKEN,
    "governance": ContractFamily.GOVERNANCE_TOKEN,
    "custom": ContractFamily.CUSTOM,
}


def _coerce_family(value: Any) -> Any:
    try:
        return ContractFamily(value)
    except ValueError:
        return value


class Feature(str, Enum):
    MINTABLE = "mintable"
    BURNABLE = "burnable"
    PAUSABLE = "pausable"
    CAPPED = "capped"
    PERMIT = "permit"
    ENUMERABLE = "enumerable"
    URI_STORAGE = "uri_storage"
    ROYALTY = "royalty"
    SUPPLY = "supply"

    @classmethod
    def parse(cls, value: Any) -> Optional["Feature"]:
        """Return the matching feature, or None for identifiers outside the registry."""
        if isinstance(value, Feature):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Provenance(str, Enum):
    MODEL = "model"
    HEURISTIC = "heuristic"


# =============================================================================
# COMPOSITION RECORDS
# =============================================================================

@dataclass(frozen=True)
class FeatureFragment:
    """Code contributed by one optional feature."""

    imports: Tuple[str, ...] = ()
    inheritance: Tuple[str, ...] = ()
    state_variables: Tuple[str, ...] = ()
    constructor_calls: Tuple[str, ...] = ()
    constructor_body: Tuple[str, ...] = ()
    functions: Tuple[str, ...] = ()


class GenerationRequest(BaseModel):
    """Declarative description of the contract to synthesize."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    family: ContractFamily
    contract_name: str = Field(alias="contractName", pattern=CONTRACT_NAME_PATTERN)
    symbol: Optional[str] = Field(default=None, pattern=SYMBOL_PATTERN)
    features: List[str] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("family", mode="before")
    @classmethod
    def normalize_family(cls, value):
        return _coerce_family(value)

    @field_validator("symbol", mode="before")
    @classmethod
    def blank_symbol_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


@dataclass(frozen=True)
class ComposedSource:
    source: str
    request: GenerationRequest

    @property
    def source_name(self) -> str:
        return f"{self.request.contract_name}.sol"


@dataclass(frozen=True)
class ValidationReport:
    valid: bool
    problems: List[str] = field(default_factory=list)


# =============================================================================
# COMPILATION RECORDS
# =============================================================================

@dataclass(frozen=True)
class CompilerArtifact:
    """Normalized output of one successful compilation."""

    contract_name: str
    source_name: str
    bytecode: Optional[str]
    deployed_bytecode: Optional[str]
    abi: List[Dict[str, Any]]
    gas_estimate: int
    deposit_cost: Optional[int] = None
    execution_cost: Optional[int] = None
    method_identifiers: Dict[str, str] = field(default_factory=dict)
    gas_estimates: Dict[str, Any] = field(default_factory=dict)
    link_references: Dict[str, Any] = field(default_factory=dict)
    deployed_link_references: Dict[str, Any] = field(default_factory=dict)
    devdoc: Dict[str, Any] = field(default_factory=dict)
    userdoc: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def compilation_target(self) -> str:
        return f"{self.source_name}:{self.contract_name}"

    @property
    def size_bytes(self) -> int:
        """Deployed code size, which is what the EIP-170 limit applies to."""
        code = self.deployed_bytecode or ""
        if code.startswith("0x"):
            code = code[2:]
        return len(code) // 2

    @property
    def is_over_size_limit(self) -> bool:
        return self.size_bytes > MAX_CONTRACT_SIZE_BYTES

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "bytecode": self.bytecode,
            "abi": self.abi,
            "gasEstimate": self.gas_estimate,
            "warnings": list(self.warnings),
            "compilationTarget": self.compilation_target,
            "artifacts": {
                "contractName": self.contract_name,
                "sourceName": self.source_name,
                "abi": self.abi,
                "bytecode": self.bytecode,
                "deployedBytecode": self.deployed_bytecode,
                "linkReferences": self.link_references,
                "deployedLinkReferences": self.deployed_link_references,
                "methodIdentifiers": self.method_identifiers,
                "gasEstimates": self.gas_estimates,
                "devdoc": self.devdoc,
                "userdoc": self.userdoc,
            },
        }


# =============================================================================
# INTERPRETATION RECORDS
# =============================================================================

class AnalysisSuggestion(BaseModel):
    """Structured reading of a free-text contract request."""

    model_config = ConfigDict(populate_by_name=True)

    family: ContractFamily
    contract_name: str = Field(alias="contractName", pattern=CONTRACT_NAME_PATTERN)
    symbol: Optional[str] = None
    initial_supply: Optional[str] = Field(default=None, alias="initialSupply")
    features: List[str]
    reasoning: str = Field(min_length=1)

    @field_validator("family", mode="before")
    @classmethod
    def normalize_family(cls, value):
        return _coerce_family(value)

    @field_validator("initial_supply", mode="before")
    @classmethod
    def supply_as_text(cls, value):
        if isinstance(value, bool):
            raise ValueError("initialSupply must be a number or numeric string")
        if isinstance(value, int):
            return str(value)
        return value

    def to_request(self, parameters: Optional[Dict[str, Any]] = None) -> GenerationRequest:
        """Build the generation request this suggestion describes."""
        merged: Dict[str, Any] = {}
        if self.initial_supply is not None:
            merged["initialSupply"] = self.initial_supply
        merged.update(parameters or {})
        symbol = self.symbol if self.symbol and re.fullmatch(SYMBOL_PATTERN, self.symbol) else None
        return GenerationRequest(
            family=self.family,
            contract_name=self.contract_name,
            symbol=symbol,
            features=list(self.features),
            parameters=merged,
        )


class GeneratedContract(BaseModel):
    """Free-form Solidity written by a model, with what could be read from it."""

    model_config = ConfigDict(populate_by_name=True)

    contract_code: str = Field(alias="contractCode", min_length=1)
    contract_name: Optional[str] = Field(default=None, alias="contractName")
    symbol: Optional[str] = None
    family: ContractFamily = Field(default=ContractFamily.CUSTOM, alias="contractType")
    features: List[str] = Field(default_factory=list)
    explanation: Optional[str] = None

    @field_validator("family", mode="before")
    @classmethod
    def unknown_family_is_custom(cls, value):
        family = _coerce_family(value)
        return family if isinstance(family, ContractFamily) else ContractFamily.CUSTOM
