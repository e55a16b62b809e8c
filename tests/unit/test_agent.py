import asyncio

import pytest

from contract_forge import agent
from contract_forge.config import Settings

OWNER = "0x" + "12" * 20


@pytest.fixture(autouse=True)
def isolated_agent(monkeypatch, compiler_context):
    monkeypatch.setattr(agent, "get_compiler_context", lambda: compiler_context)
    monkeypatch.setattr(agent, "get_settings", lambda: Settings())


def test_root_agent_exposes_pipeline_tools():
    tool_names = {tool.__name__ for tool in agent.root_agent.tools}
    assert agent.root_agent.name == "contract_forge"
    assert {
        "get_available_templates",
        "generate_contract_code",
        "compile_contract",
        "analyze_contract_request",
        "prepare_deployment_payload",
        "compile_custom_contract",
    } <= tool_names


def test_get_available_templates():
    result = agent.get_available_templates()
    assert result["status"] == "success"
    assert result["data"]["total_count"] == 5


def test_select_contract_template():
    result = agent.select_contract_template("erc1155")
    assert result["status"] == "success"
    assert result["data"]["family"] == "multi-token"
    assert "{{CONTRACT_NAME}}" in result["data"]["template_code"]

    assert agent.select_contract_template("dex")["status"] == "error"


def test_generate_contract_code():
    result = agent.generate_contract_code("fungible-token", "Widget", ["mintable", "permit"], symbol="WDG")
    assert result["status"] == "success"
    assert "ERC20Permit(name)" in result["data"]["generated_code"]
    assert result["data"]["source_name"] == "Widget.sol"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"family": "dex", "contract_name": "Swap", "features": []},
        {"family": "fungible-token", "contract_name": "lowercase", "features": []},
        {"family": "fungible-token", "contract_name": "Widget", "features": [], "parameters_json": "[1]"},
        {"family": "fungible-token", "contract_name": "Widget", "features": [], "parameters_json": "{oops"},
    ],
)
def test_generate_contract_code_errors(kwargs):
    result = agent.generate_contract_code(**kwargs)
    assert result["status"] == "error"
    assert result["error_message"].startswith("Generation failed")


def test_validate_contract_structure():
    result = agent.validate_contract_structure("contract {")
    assert result["status"] == "success"
    assert result["data"]["valid"] is False
    assert "Unbalanced braces" in result["data"]["problems"]


def test_compile_contract():
    source = "pragma solidity ^0.8.20;\ncontract Widget {}\n"
    result = asyncio.run(agent.compile_contract(source, "Widget"))
    assert result["status"] == "success"
    assert result["data"]["bytecode"] == "0x6080604052"


def test_compile_contract_reports_validation_problems():
    result = asyncio.run(agent.compile_contract("contract {", "Broken"))
    assert result["status"] == "error"
    assert result["data"]["success"] is False
    assert "Missing pragma solidity directive" in result["data"]["errors"]


def test_analyze_contract_request():
    result = asyncio.run(agent.analyze_contract_request("Build a DAO for voting"))
    assert result["status"] == "success"
    assert result["data"]["source"] == "heuristic"
    assert result["data"]["suggestion"]["family"] == "governance-token"


def test_generate_and_compile_contract():
    result = asyncio.run(agent.generate_and_compile_contract("multi-token", "Arsenal", ["supply"]))
    assert result["status"] == "success"
    assert result["data"]["compilationTarget"] == "Arsenal.sol:Arsenal"


def test_prepare_deployment_payload():
    result = asyncio.run(
        agent.prepare_deployment_payload(
            "fungible-token", "Widget", ["mintable"], symbol="WDG", parameters_json=f'{{"owner": "{OWNER}"}}'
        )
    )
    assert result["status"] == "success"
    assert result["data"]["data"].startswith("0x6080604052")
    assert result["data"]["gas"] == 3000


def test_prepare_deployment_payload_without_owner():
    result = asyncio.run(agent.prepare_deployment_payload("fungible-token", "Widget", [], symbol="WDG"))
    assert result["status"] == "error"
    assert result["data"]["errors"] == ["Missing constructor argument: owner (address)"]


def test_compile_custom_contract_from_a_reply():
    reply = "Here is the vault:\n```solidity\npragma solidity ^0.8.20;\n\ncontract Vault {}\n```"
    result = asyncio.run(agent.compile_custom_contract(reply))
    assert result["status"] == "success"
    assert result["data"]["contractName"] == "Vault"
    assert result["data"]["contractType"] == "custom"
    assert result["data"]["compilation"]["compilationTarget"] == "Vault.sol:Vault"


def test_compile_custom_contract_from_bare_source():
    result = asyncio.run(agent.compile_custom_contract("pragma solidity ^0.8.20;\ncontract Vault {}\n"))
    assert result["status"] == "success"
    assert result["data"]["contractCode"] == "pragma solidity ^0.8.20;\ncontract Vault {}"


def test_compile_custom_contract_with_structural_problems():
    result = asyncio.run(agent.compile_custom_contract("pragma solidity ^0.8.20;\ncontract Vault {\n"))
    assert result["status"] == "error"
    assert result["data"]["contractName"] == "Vault"
    assert "Unbalanced braces" in result["data"]["errors"]


def test_compile_custom_contract_without_code():
    result = asyncio.run(agent.compile_custom_contract("No idea."))
    assert result["status"] == "error"
    assert "No contract code" in result["error_message"]
