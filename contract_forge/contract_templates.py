# =============================================================================
# BASE TEMPLATES AND COMPOSITION
# =============================================================================

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .contract_features import fragment
from .errors import UnknownFamily
from .models import ComposedSource, ContractFamily, Feature, GenerationRequest

logger = logging.getLogger(__name__)

CONTRACT_NAME = "{{CONTRACT_NAME}}"
IMPORTS = "{{IMPORTS}}"
INHERITANCE = "{{INHERITANCE}}"
STATE_VARIABLES = "{{STATE_VARIABLES}}"
CONSTRUCTOR_CALLS = "{{CONSTRUCTOR_CALLS}}"
CONSTRUCTOR_BODY = "{{CONSTRUCTOR_BODY}}"
FUNCTIONS = "{{FUNCTIONS}}"

FUNCTION_NAME = re.compile(r"\bfunction\s+([A-Za-z_][A-Za-z0-9_]*)\s*\(")


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    type: str
    description: str
    required: bool = True
    default: Any = None


@dataclass(frozen=True)
class ContractTemplate:
    family: ContractFamily
    name: str
    description: str
    template: str
    features: Tuple[Feature, ...]
    parameters: Tuple[ParameterSpec, ...]

    def parameter(self, name: str) -> Optional[ParameterSpec]:
        return next((spec for spec in self.parameters if spec.name == name), None)

    def describe(self) -> Dict[str, Any]:
        return {
            "family": self.family.value,
            "name": self.name,
            "description": self.description,
            "features": [feature.value for feature in self.features],
            "parameters": [
                {
                    "name": spec.name,
                    "type": spec.type,
                    "description": spec.description,
                    "required": spec.required,
                    "default": spec.default,
                }
                for spec in self.parameters
            ],
        }


_OWNER = ParameterSpec("owner", "address", "Contract owner address")

fungible_template = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/token/ERC20/ERC20.sol";
import "@openzeppelin/contracts/access/Ownable.sol";
{{IMPORTS}}

/**
 * @title {{CONTRACT_NAME}}
 * @dev ERC20 token with optional extensions
 */
contract {{CONTRACT_NAME}} is ERC20, Ownable{{INHERITANCE}} {
    {{STATE_VARIABLES}}

    constructor(
        string memory name,
        string memory symbol,
        uint256 initialSupply,
        address owner
    ) ERC20(name, symbol) Ownable(owner){{CONSTRUCTOR_CALLS}} {
        {{CONSTRUCTOR_BODY}}
        _mint(owner, initialSupply * 10 ** decimals());
    }

    {{FUNCTIONS}}
}
"""

non_fungible_template = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/token/ERC721/ERC721.sol";
import "@openzeppelin/contracts/access/Ownable.sol";
{{IMPORTS}}

/**
 * @title {{CONTRACT_NAME}}
 * @dev ERC721 collection with optional extensions
 */
contract {{CONTRACT_NAME}} is ERC721, Ownable{{INHERITANCE}} {
    uint256 private _nextTokenId;
    {{STATE_VARIABLES}}

    constructor(
        string memory name,
        string memory symbol,
        address owner
    ) ERC721(name, symbol) Ownable(owner){{CONSTRUCTOR_CALLS}} {
        {{CONSTRUCTOR_BODY}}
    }

    function mint(address to) public onlyOwner returns (uint256) {
        uint256 tokenId = _nextTokenId++;
        _mint(to, tokenId);
        return tokenId;
    }

    {{FUNCTIONS}}
}
"""

multi_token_template = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/token/ERC1155/ERC1155.sol";
import "@openzeppelin/contracts/access/Ownable.sol";
{{IMPORTS}}

/**
 * @title {{CONTRACT_NAME}}
 * @dev ERC1155 multi-token contract with optional extensions
 */
contract {{CONTRACT_NAME}} is ERC1155, Ownable{{INHERITANCE}} {
    {{STATE_VARIABLES}}

    constructor(
        string memory uri,
        address owner
    ) ERC1155(uri) Ownable(owner){{CONSTRUCTOR_CALLS}} {
        {{CONSTRUCTOR_BODY}}
    }

    function mint(
        address to,
        uint256 id,
        uint256 amount,
        bytes memory data
    ) public onlyOwner {
        _mint(to, id, amount, data);
    }

    function mintBatch(
        address to,
        uint256[] memory ids,
        uint256[] memory amounts,
        bytes memory data
    ) public onlyOwner {
        _mintBatch(to, ids, amounts, data);
    }

    {{FUNCTIONS}}
}
"""

governance_template = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/token/ERC20/ERC20.sol";
import "@openzeppelin/contracts/token/ERC20/extensions/ERC20Permit.sol";
import "@openzeppelin/contracts/token/ERC20/extensions/ERC20Votes.sol";
import "@openzeppelin/contracts/access/Ownable.sol";
import "@openzeppelin/contracts/utils/Nonces.sol";
{{IMPORTS}}

/**
 * @title {{CONTRACT_NAME}}
 * @dev Governance token with voting capabilities
 */
contract {{CONTRACT_NAME}} is ERC20, ERC20Permit, ERC20Votes, Ownable{{INHERITANCE}} {
    {{STATE_VARIABLES}}

    constructor(
        string memory name,
        string memory symbol,
        uint256 initialSupply,
        address owner
    ) ERC20(name, symbol) ERC20Permit(name) Ownable(owner){{CONSTRUCTOR_CALLS}} {
        {{CONSTRUCTOR_BODY}}
        _mint(owner, initialSupply * 10 ** decimals());
    }

    function mint(address to, uint256 amount) public onlyOwner {
        _mint(to, amount);
    }

    // The following functions are overrides required by Solidity.
    function _update(address from, address to, uint256 value)
        internal
        override(ERC20, ERC20Votes)
    {
        super._update(from, to, value);
    }

    function nonces(address owner)
        public
        view
        override(ERC20Permit, Nonces)
        returns (uint256)
    {
        return super.nonces(owner);
    }

    {{FUNCTIONS}}
}
"""

custom_template = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/access/Ownable.sol";
{{IMPORTS}}

/**
 * @title {{CONTRACT_NAME}}
 * @dev Owned contract skeleton
 */
contract {{CONTRACT_NAME}} is Ownable{{INHERITANCE}} {
    {{STATE_VARIABLES}}

    constructor(address owner) Ownable(owner){{CONSTRUCTOR_CALLS}} {
        {{CONSTRUCTOR_BODY}}
    }

    {{FUNCTIONS}}
}
"""

CONTRACT_TEMPLATES: Dict[ContractFamily, ContractTemplate] = {
    ContractFamily.FUNGIBLE_TOKEN: ContractTemplate(
        family=ContractFamily.FUNGIBLE_TOKEN,
        name="ERC-20 Token",
        description="Standard fungible token contract",
        template=fungible_template,
        features=(Feature.MINTABLE, Feature.BURNABLE, Feature.PAUSABLE, Feature.CAPPED, Feature.PERMIT),
        parameters=(
            ParameterSpec("name", "string", "Token name"),
            ParameterSpec("symbol", "string", "Token symbol"),
            ParameterSpec("initialSupply", "uint256", "Initial token supply", default=1000000),
            _OWNER,
        ),
    ),
    ContractFamily.NON_FUNGIBLE_TOKEN: ContractTemplate(
        family=ContractFamily.NON_FUNGIBLE_TOKEN,
        name="ERC-721 NFT",
        description="Non-fungible token contract",
        template=non_fungible_template,
        features=(Feature.ENUMERABLE, Feature.URI_STORAGE, Feature.BURNABLE, Feature.PAUSABLE, Feature.ROYALTY),
        parameters=(
            ParameterSpec("name", "string", "NFT collection name"),
            ParameterSpec("symbol", "string", "NFT collection symbol"),
            _OWNER,
        ),
    ),
    ContractFamily.MULTI_TOKEN: ContractTemplate(
        family=ContractFamily.MULTI_TOKEN,
        name="ERC-1155 Multi-Token",
        description="Multi-token standard contract",
        template=multi_token_template,
        features=(Feature.BURNABLE, Feature.PAUSABLE, Feature.SUPPLY),
        parameters=(
            ParameterSpec("uri", "string", "Metadata URI template"),
            _OWNER,
        ),
    ),
    ContractFamily.GOVERNANCE_TOKEN: ContractTemplate(
        family=ContractFamily.GOVERNANCE_TOKEN,
        name="Governance Token",
        description="DAO governance token with voting capabilities",
        template=governance_template,
        features=(),
        parameters=(
            ParameterSpec("name", "string", "Token name"),
            ParameterSpec("symbol", "string", "Token symbol"),
            ParameterSpec("initialSupply", "uint256", "Initial token supply", default=1000000),
            _OWNER,
        ),
    ),
    ContractFamily.CUSTOM: ContractTemplate(
        family=ContractFamily.CUSTOM,
        name="Custom Contract",
        description="Owned contract skeleton for specialized logic",
        template=custom_template,
        features=(Feature.PAUSABLE,),
        parameters=(_OWNER,),
    ),
}


def get_template(family: Any) -> ContractTemplate:
    """Return the base template for a family, raising UnknownFamily if there is none."""
    template = CONTRACT_TEMPLATES.get(ContractFamily.parse(family))
    if template is None:
        raise UnknownFamily(family)
    return template


def get_available_templates() -> List[Dict[str, Any]]:
    return [template.describe() for template in CONTRACT_TEMPLATES.values()]


def compose(request: GenerationRequest) -> ComposedSource:
    """Merge the family's base template with the requested feature fragments."""
    template = get_template(request.family)

    # Dedup on the parsed feature so "Mintable" and "mintable" count once.
    selected: Dict[Feature, None] = {}
    for feature_id in request.features:
        feature = Feature.parse(feature_id)
        if feature is None or feature not in template.features:
            logger.debug("Skipping feature %r for %s", feature_id, request.family.value)
            continue
        selected.setdefault(feature)

    imports: Dict[str, None] = {}
    inheritance: Dict[str, None] = {}
    state_variables: List[str] = []
    constructor_calls: List[str] = []
    constructor_body: List[str] = []
    functions: List[str] = []
    defined_by: Dict[str, Feature] = {}

    for feature in selected:
        piece = fragment(feature, request.family)
        if piece is None:
            continue
        for name in dict.fromkeys(FUNCTION_NAME.findall("\n".join(piece.functions))):
            if name in defined_by:
                # Both bodies are kept; solc rejects the duplicate definition.
                logger.warning(
                    "Features %s and %s both define %s() for %s",
                    defined_by[name].value,
                    feature.value,
                    name,
                    request.family.value,
                )
            else:
                defined_by[name] = feature
        imports.update(dict.fromkeys(piece.imports))
        inheritance.update(dict.fromkeys(piece.inheritance))
        state_variables.extend(piece.state_variables)
        constructor_calls.extend(piece.constructor_calls)
        constructor_body.extend(piece.constructor_body)
        functions.extend(piece.functions)

    code = template.template
    code = code.replace(CONTRACT_NAME, request.contract_name)
    code = code.replace(IMPORTS, "\n".join(imports))
    code = code.replace(INHERITANCE, ", " + ", ".join(inheritance) if inheritance else "")
    code = code.replace(STATE_VARIABLES, "\n    ".join(state_variables))
    code = code.replace(CONSTRUCTOR_CALLS, " " + " ".join(constructor_calls) if constructor_calls else "")
    code = code.replace(CONSTRUCTOR_BODY, "\n        ".join(constructor_body))
    code = code.replace(FUNCTIONS, "\n\n    ".join(functions))

    return ComposedSource(source=code, request=request)
