import pytest
from eth_abi import encode
from eth_utils import to_checksum_address

from contract_forge.contract_deployment import (
    constructor_arguments,
    deployment_summary,
    encode_deployment_data,
)
from contract_forge.errors import ValidationFailed
from contract_forge.models import CompilerArtifact, GenerationRequest

OWNER = "0x" + "ab" * 20

ERC20_ABI = [
    {
        "type": "constructor",
        "inputs": [
            {"name": "name", "type": "string"},
            {"name": "symbol", "type": "string"},
            {"name": "initialSupply", "type": "uint256"},
            {"name": "owner", "type": "address"},
        ],
    },
    {"type": "function", "name": "mint", "inputs": [], "outputs": []},
]


def _artifact(abi=ERC20_ABI, bytecode="0x6080604052", link_references=None):
    return CompilerArtifact(
        contract_name="Widget",
        source_name="Widget.sol",
        bytecode=bytecode,
        deployed_bytecode="0x60806040",
        abi=abi,
        gas_estimate=3000,
        link_references=link_references or {},
    )


def _request(**parameters):
    return GenerationRequest(family="fungible-token", contract_name="Widget", symbol="WDG", parameters=parameters)


class TestConstructorArguments:
    def test_fills_from_request_and_defaults(self):
        arguments = constructor_arguments(ERC20_ABI, _request(owner=OWNER))
        assert arguments == ["Widget", "WDG", 1000000, to_checksum_address(OWNER)]

    def test_explicit_parameters_win(self):
        arguments = constructor_arguments(
            ERC20_ABI, _request(owner=OWNER, name="Widget Token", initialSupply="250")
        )
        assert arguments[0] == "Widget Token"
        assert arguments[2] == 250

    def test_missing_owner(self):
        with pytest.raises(ValidationFailed) as excinfo:
            constructor_arguments(ERC20_ABI, _request())
        assert excinfo.value.problems == ["Missing constructor argument: owner (address)"]

    def test_invalid_values_are_reported_together(self):
        with pytest.raises(ValidationFailed) as excinfo:
            constructor_arguments(ERC20_ABI, _request(owner="nobody", initialSupply="lots"))
        assert len(excinfo.value.problems) == 2

    def test_no_constructor(self):
        assert constructor_arguments([], _request()) == []


class TestDeploymentData:
    def test_appends_encoded_arguments(self):
        data = encode_deployment_data(_artifact(), _request(owner=OWNER))
        expected = encode(
            ["string", "string", "uint256", "address"],
            ["Widget", "WDG", 1000000, to_checksum_address(OWNER)],
        ).hex()
        assert data == "0x6080604052" + expected

    def test_without_constructor_is_plain_bytecode(self):
        assert encode_deployment_data(_artifact(abi=[]), _request()) == "0x6080604052"

    def test_requires_bytecode(self):
        with pytest.raises(ValidationFailed):
            encode_deployment_data(_artifact(bytecode=None), _request(owner=OWNER))

    def test_rejects_unlinked_libraries(self):
        artifact = _artifact(link_references={"Lib.sol": {"Lib": [{"start": 1, "length": 20}]}})
        with pytest.raises(ValidationFailed):
            encode_deployment_data(artifact, _request(owner=OWNER))

    def test_summary(self):
        summary = deployment_summary(_artifact(), _request(owner=OWNER), gas_price_gwei=10, chain_id=11155111)
        assert summary["data"].startswith("0x6080604052")
        assert summary["gas"] == 3000
        assert summary["gasPrice"] == 10 * 10**9
        assert summary["estimatedCostEth"] == "0.00003"
        assert summary["sizeBytes"] == 4
        assert summary["overSizeLimit"] is False
        assert summary["chainId"] == 11155111
