# =============================================================================
# REQUEST INTERPRETATION
# =============================================================================
#
# Turns a free-text contract request into an AnalysisSuggestion. The model tier
# (Gemini through google-genai) runs only when a client is available; any
# failure there falls back to the keyword rules below, so interpret() always
# returns a usable suggestion.

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from google import genai
from google.genai import types
from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import InterpretationFailed
from .models import AnalysisSuggestion, ContractFamily, Provenance

logger = logging.getLogger(__name__)


# =============================================================================
# HEURISTIC RULES
# =============================================================================

# Checked in order; the first group with a matching keyword decides the family.
FAMILY_RULES: List[Tuple[Tuple[str, ...], ContractFamily, str]] = [
    (
        ("nft", "721", "erc721", "collectible", "art", "unique"),
        ContractFamily.NON_FUNGIBLE_TOKEN,
        "Detected NFT-related keywords, suggesting ERC721 contract",
    ),
    (
        ("governance", "voting", "dao", "proposal"),
        ContractFamily.GOVERNANCE_TOKEN,
        "Detected governance-related keywords, suggesting governance token",
    ),
    (
        ("multi", "1155", "erc1155", "game", "item"),
        ContractFamily.MULTI_TOKEN,
        "Detected multi-token keywords, suggesting ERC1155 contract",
    ),
]

DEFAULT_SUGGESTIONS: Dict[ContractFamily, Dict[str, Any]] = {
    ContractFamily.FUNGIBLE_TOKEN: {
        "contractName": "MyToken",
        "symbol": "MTK",
        "initialSupply": "1000000",
        "features": ["ownable", "mintable"],
        "reasoning": "General token request, suggesting standard ERC20",
    },
    ContractFamily.NON_FUNGIBLE_TOKEN: {
        "contractName": "MyNFT",
        "symbol": "MNFT",
        "initialSupply": None,
        "features": ["ownable"],
    },
    ContractFamily.GOVERNANCE_TOKEN: {
        "contractName": "GovernanceToken",
        "symbol": "GOV",
        "initialSupply": "1000000",
        "features": [],
    },
    ContractFamily.MULTI_TOKEN: {
        "contractName": "MultiToken",
        "symbol": "MULTI",
        "initialSupply": None,
        "features": ["ownable"],
    },
}

# Applied independently; each match adds its feature once.
FEATURE_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("mint", "create"), "mintable"),
    (("burn", "destroy"), "burnable"),
    (("pause", "emergency"), "pausable"),
    (("cap", "limit"), "capped"),
]

NAME_STOP_WORDS = {"Create", "Make", "Build", "Smart", "Contract", "Token", "Coin"}
CANDIDATE_NAME = re.compile(r"^[A-Z][a-zA-Z]*$")


def _words(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


def _matches(words: Sequence[str], keywords: Sequence[str]) -> bool:
    # Prefix match per word: "minting" hits "mint", "smart" does not hit "art".
    return any(word.startswith(keyword) for word in words for keyword in keywords)


def extract_contract_name(prompt: str) -> Optional[str]:
    """First capitalized word that is not a stop word or an all-caps acronym."""
    for word in prompt.split():
        if not 2 < len(word) < 20 or not CANDIDATE_NAME.match(word):
            continue
        if word in NAME_STOP_WORDS or word.isupper():
            continue
        return word
    return None


def heuristic_suggestion(prompt: str) -> AnalysisSuggestion:
    """Keyword-rule reading of a prompt. Never fails; defaults to an ERC20 token."""
    words = _words(prompt)

    family = ContractFamily.FUNGIBLE_TOKEN
    reasoning = DEFAULT_SUGGESTIONS[family]["reasoning"]
    for keywords, rule_family, rule_reasoning in FAMILY_RULES:
        if _matches(words, keywords):
            family, reasoning = rule_family, rule_reasoning
            break

    suggestion = dict(DEFAULT_SUGGESTIONS[family])
    features = list(suggestion["features"])
    for keywords, feature in FEATURE_RULES:
        if _matches(words, keywords) and feature not in features:
            features.append(feature)

    name = extract_contract_name(prompt)
    if name:
        suggestion["contractName"] = name
        suggestion["symbol"] = name[:5].upper()

    suggestion.update(family=family, features=features, reasoning=reasoning)
    return AnalysisSuggestion.model_validate(suggestion)


# =============================================================================
# MODEL TIER
# =============================================================================

SYSTEM_INSTRUCTION = """You are an expert Solidity smart contract developer. Analyze the contract request and provide structured recommendations.

Contract family, choose one:
- fungible-token: fungible tokens (currencies, utility tokens)
- non-fungible-token: NFTs (unique collectibles, certificates)
- multi-token: multi-token contracts (gaming items, multiple token types)
- governance-token: DAO tokens with voting capabilities
- custom: specialized contracts

Contract details:
- contractName: PascalCase, letters and digits only, no spaces
- symbol: 3-5 uppercase letters
- initialSupply: initial supply for tokens, as a string

Features, pick from:
- mintable, burnable, pausable, capped, permit (fungible-token)
- enumerable, uri_storage, burnable, pausable, royalty (non-fungible-token)
- burnable, pausable, supply (multi-token)

Respond ONLY with valid JSON in this exact format:
{
  "family": "fungible-token|non-fungible-token|multi-token|governance-token|custom",
  "contractName": "YourContractName",
  "symbol": "SYMBOL",
  "initialSupply": "1000000",
  "features": ["feature1", "feature2"],
  "reasoning": "Brief explanation of choices"
}"""

REQUIRED_FIELDS = ("family", "contractName", "symbol", "initialSupply", "features", "reasoning")

CODE_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    return CODE_FENCE.sub("", text).strip()


def parse_model_response(text: Optional[str]) -> AnalysisSuggestion:
    """Parse and schema-check the model's JSON reply."""
    if not text:
        raise InterpretationFailed("Empty model response")
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise InterpretationFailed(f"Failed to parse model response: {e}") from e

    if not isinstance(data, dict):
        raise InterpretationFailed("Model response is not a JSON object")
    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise InterpretationFailed(f"Model response missing fields: {', '.join(missing)}")

    try:
        return AnalysisSuggestion.model_validate(data)
    except ValidationError as e:
        raise InterpretationFailed(f"Invalid model response format: {e}") from e


def build_model_prompt(prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
    text = f'Request: "{prompt}"'
    if context:
        text += f"\n\nCurrent configuration: {json.dumps(context, default=str)}"
    return text


def create_client(settings: Optional[Settings] = None) -> Optional[genai.Client]:
    settings = settings or get_settings()
    if not settings.google_api_key:
        return None
    return genai.Client(api_key=settings.google_api_key)


async def model_suggestion(
    client: Any,
    prompt: str,
    context: Optional[Dict[str, Any]] = None,
    model: str = "gemini-2.0-flash",
    timeout: Optional[float] = None,
) -> AnalysisSuggestion:
    response = await asyncio.wait_for(
        client.aio.models.generate_content(
            model=model,
            contents=build_model_prompt(prompt, context),
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_INSTRUCTION,
                temperature=0.3,
                max_output_tokens=500,
            ),
        ),
        timeout,
    )
    return parse_model_response(response.text)


# =============================================================================
# ENTRY POINT
# =============================================================================

async def interpret(
    prompt: str,
    model_available: bool,
    context: Optional[Dict[str, Any]] = None,
    client: Any = None,
    settings: Optional[Settings] = None,
) -> Tuple[AnalysisSuggestion, Provenance]:
    """Interpret a prompt, preferring the model tier and falling back to heuristics."""
    prompt = prompt if isinstance(prompt, str) else ""

    if model_available:
        settings = settings or get_settings()
        if client is None:
            client = create_client(settings)
        if client is not None:
            try:
                suggestion = await model_suggestion(
                    client, prompt, context, model=settings.model, timeout=settings.model_timeout
                )
                return suggestion, Provenance.MODEL
            except Exception as e:
                # Every model-tier failure degrades to the heuristic tier.
                logger.warning("Model interpretation failed, using keyword analysis: %s", e)

    return heuristic_suggestion(prompt), Provenance.HEURISTIC
