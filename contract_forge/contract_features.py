# =============================================================================
# FEATURE REGISTRY
# =============================================================================
#
# Each optional feature contributes a fragment of Solidity that the template
# composer splices into a base template. Fragments target OpenZeppelin
# Contracts 5.x.
#
# Lookup policy: identifiers that do not name a Feature, or that have no
# fragment, resolve to None and callers skip them without failing. Interpreter
# heuristics may over-suggest features and generation must still succeed.

from typing import Any, Dict, Optional, Tuple

from .models import ContractFamily, Feature, FeatureFragment

_OZ = "@openzeppelin/contracts"

_PAUSE_FUNCTIONS = (
    """function pause() public onlyOwner {
        _pause();
    }""",
    """function unpause() public onlyOwner {
        _unpause();
    }""",
)


def _import(path: str) -> str:
    return f'import "{_OZ}/{path}";'


_FRAGMENTS: Dict[Feature, FeatureFragment] = {
    Feature.MINTABLE: FeatureFragment(
        functions=(
            """function mint(address to, uint256 amount) public onlyOwner {
        _mint(to, amount);
    }""",
        ),
    ),
    Feature.BURNABLE: FeatureFragment(
        imports=(_import("token/ERC20/extensions/ERC20Burnable.sol"),),
        inheritance=("ERC20Burnable",),
    ),
    Feature.PAUSABLE: FeatureFragment(
        imports=(_import("utils/Pausable.sol"),),
        inheritance=("Pausable",),
        functions=_PAUSE_FUNCTIONS,
    ),
    Feature.CAPPED: FeatureFragment(
        imports=(_import("token/ERC20/extensions/ERC20Capped.sol"),),
        inheritance=("ERC20Capped",),
        state_variables=("uint256 private constant _SUPPLY_CAP = 1_000_000_000 * 10 ** 18;",),
        constructor_calls=("ERC20Capped(_SUPPLY_CAP)",),
        functions=(
            """function _update(address from, address to, uint256 value)
        internal
        override(ERC20, ERC20Capped)
    {
        super._update(from, to, value);
    }""",
        ),
    ),
    Feature.PERMIT: FeatureFragment(
        imports=(_import("token/ERC20/extensions/ERC20Permit.sol"),),
        inheritance=("ERC20Permit",),
        constructor_calls=("ERC20Permit(name)",),
    ),
    Feature.ENUMERABLE: FeatureFragment(
        imports=(_import("token/ERC721/extensions/ERC721Enumerable.sol"),),
        inheritance=("ERC721Enumerable",),
        functions=(
            """function _update(address to, uint256 tokenId, address auth)
        internal
        override(ERC721, ERC721Enumerable)
        returns (address)
    {
        return super._update(to, tokenId, auth);
    }""",
            """function _increaseBalance(address account, uint128 value)
        internal
        override(ERC721, ERC721Enumerable)
    {
        super._increaseBalance(account, value);
    }""",
            """function supportsInterface(bytes4 interfaceId)
        public
        view
        override(ERC721, ERC721Enumerable)
        returns (bool)
    {
        return super.supportsInterface(interfaceId);
    }""",
        ),
    ),
    Feature.URI_STORAGE: FeatureFragment(
        imports=(_import("token/ERC721/extensions/ERC721URIStorage.sol"),),
        inheritance=("ERC721URIStorage",),
        functions=(
            """function tokenURI(uint256 tokenId)
        public
        view
        override(ERC721, ERC721URIStorage)
        returns (string memory)
    {
        return super.tokenURI(tokenId);
    }""",
            """function supportsInterface(bytes4 interfaceId)
        public
        view
        override(ERC721, ERC721URIStorage)
        returns (bool)
    {
        return super.supportsInterface(interfaceId);
    }""",
        ),
    ),
    Feature.ROYALTY: FeatureFragment(
        imports=(_import("token/common/ERC2981.sol"),),
        inheritance=("ERC2981",),
        constructor_body=("_setDefaultRoyalty(owner, 250); // 2.5% royalty",),
        functions=(
            """function setDefaultRoyalty(address receiver, uint96 feeNumerator) public onlyOwner {
        _setDefaultRoyalty(receiver, feeNumerator);
    }""",
            """function supportsInterface(bytes4 interfaceId)
        public
        view
        override(ERC721, ERC2981)
        returns (bool)
    {
        return super.supportsInterface(interfaceId);
    }""",
        ),
    ),
    Feature.SUPPLY: FeatureFragment(
        imports=(_import("token/ERC1155/extensions/ERC1155Supply.sol"),),
        inheritance=("ERC1155Supply",),
        functions=(
            """function _update(address from, address to, uint256[] memory ids, uint256[] memory values)
        internal
        override(ERC1155, ERC1155Supply)
    {
        super._update(from, to, ids, values);
    }""",
        ),
    ),
}

# Token standards that ship their own extension for a shared feature.
_FAMILY_FRAGMENTS: Dict[Tuple[ContractFamily, Feature], FeatureFragment] = {
    (ContractFamily.FUNGIBLE_TOKEN, Feature.PAUSABLE): FeatureFragment(
        imports=(_import("token/ERC20/extensions/ERC20Pausable.sol"),),
        inheritance=("ERC20Pausable",),
        functions=_PAUSE_FUNCTIONS + (
            """function _update(address from, address to, uint256 value)
        internal
        override(ERC20, ERC20Pausable)
    {
        super._update(from, to, value);
    }""",
        ),
    ),
    (ContractFamily.NON_FUNGIBLE_TOKEN, Feature.BURNABLE): FeatureFragment(
        imports=(_import("token/ERC721/extensions/ERC721Burnable.sol"),),
        inheritance=("ERC721Burnable",),
    ),
    (ContractFamily.NON_FUNGIBLE_TOKEN, Feature.PAUSABLE): FeatureFragment(
        imports=(_import("token/ERC721/extensions/ERC721Pausable.sol"),),
        inheritance=("ERC721Pausable",),
        functions=_PAUSE_FUNCTIONS + (
            """function _update(address to, uint256 tokenId, address auth)
        internal
        override(ERC721, ERC721Pausable)
        returns (address)
    {
        return super._update(to, tokenId, auth);
    }""",
        ),
    ),
    (ContractFamily.MULTI_TOKEN, Feature.BURNABLE): FeatureFragment(
        imports=(_import("token/ERC1155/extensions/ERC1155Burnable.sol"),),
        inheritance=("ERC1155Burnable",),
    ),
    (ContractFamily.MULTI_TOKEN, Feature.PAUSABLE): FeatureFragment(
        imports=(_import("token/ERC1155/extensions/ERC1155Pausable.sol"),),
        inheritance=("ERC1155Pausable",),
        functions=_PAUSE_FUNCTIONS + (
            """function _update(address from, address to, uint256[] memory ids, uint256[] memory values)
        internal
        override(ERC1155, ERC1155Pausable)
    {
        super._update(from, to, ids, values);
    }""",
        ),
    ),
}


def fragment(feature_id: Any, family: Optional[ContractFamily] = None) -> Optional[FeatureFragment]:
    """Look up the fragment for a feature, preferring the family's own extension."""
    feature = Feature.parse(feature_id)
    if feature is None:
        return None
    if family is not None:
        specific = _FAMILY_FRAGMENTS.get((family, feature))
        if specific is not None:
            return specific
    return _FRAGMENTS.get(feature)


def registered_features() -> Tuple[Feature, ...]:
    return tuple(_FRAGMENTS)
