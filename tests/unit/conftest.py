import pytest

from contract_forge.config import Settings
from contract_forge.contract_utils import CompilerContext
from contract_forge.library_catalog import LibraryCatalog

ERC20_CONSTRUCTOR = {
    "type": "constructor",
    "stateMutability": "nonpayable",
    "inputs": [
        {"name": "name", "type": "string", "internalType": "string"},
        {"name": "symbol", "type": "string", "internalType": "string"},
        {"name": "initialSupply", "type": "uint256", "internalType": "uint256"},
        {"name": "owner", "type": "address", "internalType": "address"},
    ],
}

CREATION_CODE = "6080604052"
RUNTIME_CODE = "60806040"

SETTINGS_ENV = (
    "SOLC_VERSION",
    "EVM_VERSION",
    "OPTIMIZER_ENABLED",
    "OPTIMIZER_RUNS",
    "OPENZEPPELIN_PATH",
    "STRICT_CONTRACT_MATCH",
    "COMPILE_TIMEOUT",
    "GOOGLE_API_KEY",
    "CONTRACT_MODEL",
    "MODEL_TIMEOUT",
    "LOG_LEVEL",
)


def contract_entry(abi=None, deposit="1000", execution="2000"):
    return {
        "abi": abi if abi is not None else [ERC20_CONSTRUCTOR],
        "evm": {
            "bytecode": {"object": CREATION_CODE, "linkReferences": {}},
            "deployedBytecode": {"object": RUNTIME_CODE, "linkReferences": {}},
            "methodIdentifiers": {"mint(address,uint256)": "40c10f19"},
            "gasEstimates": {"creation": {"codeDepositCost": deposit, "executionCost": execution}},
        },
        "devdoc": {},
        "userdoc": {},
    }


class FakeEngine:
    """Stands in for a solc binary: echoes one contract per compiled source."""

    def __init__(self, errors=None):
        self.errors = errors or []
        self.documents = []

    def compile(self, document):
        self.documents.append(document)
        source_name = next(iter(document["sources"]))
        contract_name = source_name[: -len(".sol")]
        if any(e.get("severity") == "error" for e in self.errors):
            return {"errors": self.errors}
        return {
            "errors": self.errors,
            "contracts": {source_name: {contract_name: contract_entry()}},
        }


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def compiler_context(settings, fake_engine):
    return CompilerContext(
        settings=settings,
        catalog=LibraryCatalog(),
        engine_factory=lambda version: fake_engine,
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the host's configuration out of Settings() built by tests."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
