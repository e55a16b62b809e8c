# =============================================================================
# DEPLOYMENT PAYLOAD
# =============================================================================
#
# Builds the init code for a compiled artifact: creation bytecode followed by
# the ABI-encoded constructor arguments. Signing and sending the transaction
# is left to the caller's wallet or node.

import logging
from typing import Any, Dict, List, Optional

from eth_abi import encode
from eth_utils import add_0x_prefix, is_address, remove_0x_prefix, to_checksum_address
from web3 import Web3

from .contract_templates import get_template
from .errors import ValidationFailed
from .models import CompilerArtifact, GenerationRequest

logger = logging.getLogger(__name__)


def constructor_inputs(abi: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for entry in abi:
        if entry.get("type") == "constructor":
            return list(entry.get("inputs") or [])
    return []


def _request_values(request: GenerationRequest) -> Dict[str, Any]:
    """Parameter values for a request: template defaults, then request fields, then explicit parameters."""
    values: Dict[str, Any] = {}
    for spec in get_template(request.family).parameters:
        if spec.default is not None:
            values[spec.name] = spec.default

    values["name"] = request.contract_name
    if request.symbol:
        values["symbol"] = request.symbol

    values.update({key: value for key, value in request.parameters.items() if value is not None})
    return values


def _coerce(abi_type: str, value: Any) -> Any:
    if abi_type.startswith("uint") or abi_type.startswith("int"):
        if isinstance(value, bool):
            raise ValueError("expected an integer, got a boolean")
        return int(value)
    if abi_type == "address":
        if not is_address(value):
            raise ValueError(f"{value!r} is not an address")
        return to_checksum_address(value)
    if abi_type == "bool":
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return bool(value)
    if abi_type == "string":
        return str(value)
    if abi_type.startswith("bytes"):
        if isinstance(value, str):
            return bytes.fromhex(remove_0x_prefix(value))
        return bytes(value)
    return value


def constructor_arguments(abi: List[Dict[str, Any]], request: GenerationRequest) -> List[Any]:
    """Map request values onto the constructor inputs, in ABI order.

    Raises ValidationFailed listing every input that is missing or cannot be
    coerced to its ABI type.
    """
    values = _request_values(request)
    arguments: List[Any] = []
    problems: List[str] = []

    for index, spec in enumerate(constructor_inputs(abi)):
        name = spec.get("name") or f"arg{index}"
        abi_type = spec.get("type", "")
        if name not in values:
            problems.append(f"Missing constructor argument: {name} ({abi_type})")
            continue
        try:
            arguments.append(_coerce(abi_type, values[name]))
        except (TypeError, ValueError) as e:
            problems.append(f"Invalid value for {name} ({abi_type}): {e}")

    if problems:
        raise ValidationFailed(problems)
    return arguments


def encode_deployment_data(artifact: CompilerArtifact, request: GenerationRequest) -> str:
    """Return 0x-prefixed init code ready to be sent as a contract-creation transaction."""
    if not artifact.bytecode:
        raise ValidationFailed([f"Contract {artifact.contract_name} has no creation bytecode"])
    if artifact.link_references:
        raise ValidationFailed([f"Contract {artifact.contract_name} requires library linking"])

    inputs = constructor_inputs(artifact.abi)
    arguments = constructor_arguments(artifact.abi, request)
    encoded = encode([spec["type"] for spec in inputs], arguments) if inputs else b""

    logger.info(
        "Prepared deployment data for %s: %d constructor arguments, %d encoded bytes",
        artifact.contract_name,
        len(arguments),
        len(encoded),
    )
    return add_0x_prefix(remove_0x_prefix(artifact.bytecode) + encoded.hex())


def deployment_summary(
    artifact: CompilerArtifact,
    request: GenerationRequest,
    gas_price_gwei: float = 20,
    chain_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Unsigned contract-creation transaction fields plus size and cost information."""
    gas_price = Web3.to_wei(gas_price_gwei, "gwei")
    summary: Dict[str, Any] = {
        "data": encode_deployment_data(artifact, request),
        "gas": artifact.gas_estimate,
        "gasPrice": gas_price,
        "estimatedCostEth": str(Web3.from_wei(artifact.gas_estimate * gas_price, "ether")),
        "sizeBytes": artifact.size_bytes,
        "overSizeLimit": artifact.is_over_size_limit,
    }
    if chain_id is not None:
        summary["chainId"] = chain_id
    return summary
