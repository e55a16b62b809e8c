# =============================================================================
# MODEL-WRITTEN CONTRACTS
# =============================================================================
#
# Gemini can write a whole contract instead of picking from the template
# catalog. Its reply is read back into a GeneratedContract: the JSON object it
# was asked for when it complies, otherwise whatever can be pulled out of the
# prose and code blocks. The code then goes through the same validation and
# compilation as composed source.

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from google.genai import types
from pydantic import ValidationError

from .config import Settings, get_settings
from .contract_helpers import create_client, strip_code_fences
from .contract_utils import CompilerContext, compile_contract, extract_contract_name
from .errors import InterpretationFailed
from .models import CompilerArtifact, ContractFamily, GeneratedContract

logger = logging.getLogger(__name__)

DEFAULT_EXPLANATION = "Contract generated based on your requirements"

SOLIDITY_BLOCK = re.compile(r"```solidity[^\n]*\n(.*?)```", re.DOTALL | re.IGNORECASE)
PLAIN_BLOCK = re.compile(r"```[^\S\n]*\n(.*?)```", re.DOTALL)
# Unfenced source: from the license line through the last closing brace.
LICENSED_SOURCE = re.compile(r"// SPDX-License-Identifier.*\}", re.DOTALL)
JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

IDENTIFIER = r"([A-Za-z_][A-Za-z0-9_]*)"
NAME_PATTERNS = [
    re.compile(r"contract name[:\s]+" + IDENTIFIER, re.IGNORECASE),
    re.compile(r"\bname[:\s]+" + IDENTIFIER, re.IGNORECASE),
    re.compile(r'"' + IDENTIFIER + r'"\s+contract', re.IGNORECASE),
]

CODE_SYMBOL_PATTERNS = [
    re.compile(r'symbol[:\s]*"([A-Za-z0-9]+)"', re.IGNORECASE),
    # ERC20("Name", "SYM") / ERC721("Name", "SYM") base constructor call
    re.compile(r'\bERC(?:20|721)\s*\(\s*"[^"]*"\s*,\s*"([A-Za-z0-9]+)"'),
]
TEXT_SYMBOL_PATTERNS = [
    re.compile(r'(?i:symbol)[:\s]+"([A-Za-z0-9]+)"'),
    re.compile(r"(?i:symbol)[:\s]+([A-Z]{2,6})\b"),
    re.compile(r"(?i:ticker)[:\s]+([A-Z]{2,6})\b"),
]

# Checked in order against the lowercased reply; the first hit decides.
FAMILY_KEYWORDS: List[Tuple[Tuple[str, ...], ContractFamily]] = [
    (("erc721", "nft", "non-fungible"), ContractFamily.NON_FUNGIBLE_TOKEN),
    (("erc1155", "multi-token", "multi token"), ContractFamily.MULTI_TOKEN),
    (("governance", "voting", "erc20votes", "dao"), ContractFamily.GOVERNANCE_TOKEN),
    (("erc20", "token", "fungible"), ContractFamily.FUNGIBLE_TOKEN),
]

FEATURE_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("mintable", ("mintable", "mint", "minting")),
    ("burnable", ("burnable", "burn", "burning")),
    ("pausable", ("pausable", "pause", "pausing")),
    ("capped", ("capped", "maximum supply", "erc20capped")),
    ("permit", ("permit", "signature", "meta-transaction")),
    ("enumerable", ("enumerable", "enumerate", "list all tokens")),
    ("uri_storage", ("uri storage", "uristorage", "metadata", "token uri")),
    ("royalty", ("royalty", "royalties", "creator fee", "erc2981")),
    ("supply", ("erc1155supply", "supply tracking")),
    ("ownable", ("ownable", "owner", "ownership")),
]

GENERATION_INSTRUCTION = """You are an expert Solidity smart contract developer. Write complete, secure and gas-efficient contracts for the user's requirements.

Guidelines:
1. Use pragma solidity ^0.8.20
2. Build on OpenZeppelin Contracts 5.x imported from @openzeppelin/contracts/
3. Start with an SPDX MIT license line
4. Add NatSpec comments to public functions
5. Use custom errors or require messages for every failure path

Respond ONLY with a JSON object in this exact format:
{
  "contractCode": "complete solidity source",
  "contractName": "NameOfTheMainContract",
  "symbol": "token symbol if applicable",
  "contractType": "fungible-token|non-fungible-token|multi-token|governance-token|custom",
  "features": ["features used"],
  "explanation": "brief explanation of the contract"
}

Available features: ownable, mintable, burnable, pausable, capped, permit, enumerable, uri_storage, royalty, supply"""


# =============================================================================
# READING A REPLY
# =============================================================================

def extract_contract_code(text: str) -> Optional[str]:
    match = SOLIDITY_BLOCK.search(text)
    if match:
        return match.group(1).strip()

    match = PLAIN_BLOCK.search(text)
    if match:
        code = match.group(1).strip()
        if "pragma solidity" in code or "contract " in code:
            return code

    match = LICENSED_SOURCE.search(text)
    if match:
        return match.group(0).strip()

    if "pragma solidity" in text:
        return text.strip()
    return None


def _first_match(patterns: Sequence["re.Pattern[str]"], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_generated_name(text: str, code: Optional[str] = None) -> Optional[str]:
    """Name of the declared contract, else a name mentioned in the prose."""
    if code:
        name = extract_contract_name(code)
        if name:
            return name
    return _first_match(NAME_PATTERNS, text)


def extract_symbol(text: str, code: Optional[str] = None) -> Optional[str]:
    if code:
        symbol = _first_match(CODE_SYMBOL_PATTERNS, code)
        if symbol:
            return symbol
    return _first_match(TEXT_SYMBOL_PATTERNS, text)


def detect_family(text: str, code: Optional[str] = None) -> ContractFamily:
    content = f"{text} {code or ''}".lower()
    for keywords, family in FAMILY_KEYWORDS:
        if any(keyword in content for keyword in keywords):
            return family
    return ContractFamily.CUSTOM


def extract_features(text: str, code: Optional[str] = None) -> List[str]:
    """Features mentioned in the reply or visible in the code; ownable is always listed."""
    content = f"{text} {code or ''}".lower()
    features = [feature for feature, keywords in FEATURE_KEYWORDS if any(k in content for k in keywords)]
    if "ownable" not in features:
        features.append("ownable")
    return features


def _json_reply(text: str) -> Optional[Dict[str, Any]]:
    candidates = [strip_code_fences(text)]
    match = JSON_OBJECT.search(text)
    if match:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict) and "contractCode" in data:
            return data
    return None


def read_generated_contract(text: Optional[str]) -> GeneratedContract:
    """Turn a model reply into a GeneratedContract.

    A JSON object reply is schema-checked. Anything else is mined for a code
    block, name, symbol, family and features. Raises InterpretationFailed when
    no contract code can be found.
    """
    if not text or not text.strip():
        raise InterpretationFailed("Empty model response")

    data = _json_reply(text)
    if data is not None:
        try:
            contract = GeneratedContract.model_validate(data)
        except ValidationError as e:
            raise InterpretationFailed(f"Invalid generated contract: {e}") from e
        if not contract.contract_name:
            contract = contract.model_copy(update={"contract_name": extract_contract_name(contract.contract_code)})
        return contract

    logger.info("Reply is not JSON, extracting the contract from text")
    code = extract_contract_code(text)
    if not code:
        raise InterpretationFailed("No contract code found in model response")

    return GeneratedContract(
        contract_code=code,
        contract_name=extract_generated_name(text, code),
        symbol=extract_symbol(text, code),
        family=detect_family(text, code),
        features=extract_features(text, code),
        explanation=DEFAULT_EXPLANATION,
    )


# =============================================================================
# GENERATION AND COMPILATION
# =============================================================================

def build_generation_prompt(prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
    text = f'Generate a Solidity smart contract for this requirement: "{prompt}"'
    if context:
        text += f"\n\nAdditional context: {json.dumps(context, default=str)}"
    return text


async def generate_contract(
    prompt: str,
    context: Optional[Dict[str, Any]] = None,
    client: Any = None,
    settings: Optional[Settings] = None,
) -> GeneratedContract:
    """Ask Gemini for a complete contract and read its reply."""
    settings = settings or get_settings()
    if client is None:
        client = create_client(settings)
    if client is None:
        raise InterpretationFailed("Google API key not configured")

    try:
        response = await asyncio.wait_for(
            client.aio.models.generate_content(
                model=settings.model,
                contents=build_generation_prompt(prompt, context),
                config=types.GenerateContentConfig(
                    system_instruction=GENERATION_INSTRUCTION,
                    temperature=0.7,
                    max_output_tokens=3000,
                ),
            ),
            settings.model_timeout,
        )
    except Exception as e:
        raise InterpretationFailed(f"Contract generation failed: {e}") from e

    return read_generated_contract(response.text)


async def compile_generated_contract(
    context: CompilerContext,
    contract: GeneratedContract,
    timeout: Optional[float] = None,
) -> CompilerArtifact:
    """Validate and compile a generated contract like any other source."""
    name = contract.contract_name or extract_contract_name(contract.contract_code) or "Contract"
    logger.info("Compiling generated contract %s", name)
    return await compile_contract(context, contract.contract_code, name, timeout=timeout)
