import asyncio

import pytest
from pydantic import ValidationError

from contract_forge import pipeline
from contract_forge.config import Settings
from contract_forge.errors import UnknownFamily, ValidationFailed
from contract_forge.models import (
    MAX_CONTRACT_SIZE_BYTES,
    CompilerArtifact,
    ComposedSource,
    ContractFamily,
    Feature,
    GenerationRequest,
)
from contract_forge.pipeline import build_contract, generate_source


class TestContractFamily:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("fungible-token", ContractFamily.FUNGIBLE_TOKEN),
            ("ERC20", ContractFamily.FUNGIBLE_TOKEN),
            ("nft", ContractFamily.NON_FUNGIBLE_TOKEN),
            ("erc1155", ContractFamily.MULTI_TOKEN),
            ("governance", ContractFamily.GOVERNANCE_TOKEN),
            ("custom", ContractFamily.CUSTOM),
        ],
    )
    def test_parse(self, value, expected):
        assert ContractFamily.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(UnknownFamily):
            ContractFamily.parse("staking")

    def test_feature_parse(self):
        assert Feature.parse(" URI_Storage ") is Feature.URI_STORAGE
        assert Feature.parse("ownable") is None


class TestGenerationRequest:
    def test_accepts_alias_and_field_name(self):
        by_alias = GenerationRequest.model_validate({"family": "erc20", "contractName": "Widget"})
        by_name = GenerationRequest(family="erc20", contract_name="Widget")
        assert by_alias == by_name
        assert by_alias.family is ContractFamily.FUNGIBLE_TOKEN

    @pytest.mark.parametrize("name", ["widget", "Widget Token", "Wid-get", ""])
    def test_rejects_bad_contract_names(self, name):
        with pytest.raises(ValidationError):
            GenerationRequest(family="erc20", contract_name=name)

    @pytest.mark.parametrize("symbol", ["W", "wdg", "TOOLONGX", "W1"])
    def test_rejects_bad_symbols(self, symbol):
        with pytest.raises(ValidationError):
            GenerationRequest(family="erc20", contract_name="Widget", symbol=symbol)

    def test_blank_symbol_is_absent(self):
        assert GenerationRequest(family="erc20", contract_name="Widget", symbol="  ").symbol is None

    def test_is_immutable(self):
        request = GenerationRequest(family="erc20", contract_name="Widget")
        with pytest.raises(ValidationError):
            request.contract_name = "Other"


class TestCompilerArtifact:
    def _artifact(self, deployed):
        return CompilerArtifact(
            contract_name="Widget",
            source_name="Widget.sol",
            bytecode="0x00",
            deployed_bytecode=deployed,
            abi=[],
            gas_estimate=0,
        )

    def test_size_limit(self):
        assert self._artifact("0x" + "00" * MAX_CONTRACT_SIZE_BYTES).is_over_size_limit is False
        assert self._artifact("0x" + "00" * (MAX_CONTRACT_SIZE_BYTES + 1)).is_over_size_limit is True
        assert self._artifact(None).size_bytes == 0


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SOLC_VERSION", "0.8.24")
        monkeypatch.setenv("OPTIMIZER_ENABLED", "false")
        monkeypatch.setenv("OPTIMIZER_RUNS", "1000")
        monkeypatch.setenv("STRICT_CONTRACT_MATCH", "yes")
        monkeypatch.setenv("COMPILE_TIMEOUT", "5")
        monkeypatch.setenv("GOOGLE_API_KEY", "abc")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings()

        assert settings.solc_version == "0.8.24"
        assert settings.optimizer_enabled is False
        assert settings.optimizer_runs == 1000
        assert settings.strict_contract_match is True
        assert settings.compile_timeout == 5.0
        assert settings.model_available
        assert settings.log_level == "DEBUG"

    def test_aliased_variables(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OPENZEPPELIN_PATH", str(tmp_path))
        monkeypatch.setenv("CONTRACT_MODEL", "gemini-2.5-pro")

        settings = Settings()

        assert settings.library_root == str(tmp_path)
        assert settings.model == "gemini-2.5-pro"

    def test_field_names_still_accepted(self):
        settings = Settings(library_root="vendor", model="gemini-2.5-flash", google_api_key="")
        assert settings.library_root == "vendor"
        assert settings.model == "gemini-2.5-flash"
        assert not settings.model_available

    def test_rejects_bad_values(self, monkeypatch):
        monkeypatch.setenv("OPTIMIZER_RUNS", "many")
        with pytest.raises(ValidationError):
            Settings()

    def test_defaults(self):
        settings = Settings()

        assert settings.solc_version == "0.8.20"
        assert settings.evm_version == "shanghai"
        assert settings.compile_timeout == 60.0
        assert settings.library_root is None
        assert not settings.model_available

    def test_is_immutable(self):
        with pytest.raises(ValidationError):
            Settings().solc_version = "0.8.24"


class TestPipeline:
    def test_generate_source(self):
        composed = generate_source(GenerationRequest(family="custom", contract_name="Vault", features=["pausable"]))
        assert "contract Vault is Ownable, Pausable {" in composed.source

    def test_build_contract(self, compiler_context, fake_engine):
        request = GenerationRequest(family="governance", contract_name="Council", symbol="CNCL")
        artifact = asyncio.run(build_contract(request, compiler_context))

        assert artifact.contract_name == "Council"
        assert "contract Council is ERC20, ERC20Permit, ERC20Votes, Ownable {" in (
            fake_engine.documents[0]["sources"]["Council.sol"]["content"]
        )

    def test_invalid_generated_source(self, monkeypatch):
        monkeypatch.setattr(
            pipeline, "compose", lambda request: ComposedSource(source="contract {", request=request)
        )
        with pytest.raises(ValidationFailed):
            generate_source(GenerationRequest(family="custom", contract_name="Vault"))
