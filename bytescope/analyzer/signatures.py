"""Known function selector tables.

Two families of tables live here:

* The core tables (ERC-20, ERC-721, Proxy, Security) used by the standards
  classifier.
* The enhanced tables used by the pattern detector, which extend the core
  ones and add ERC-1155, DeFi and gas-optimization selectors.

A selector may appear in more than one table (``balanceOf(address)`` is both
ERC-20 and ERC-721). Each family is collapsed into a single
selector -> (name, category) lookup where the first table that defines a
selector wins, so precedence is the order tables are listed in.
"""

from __future__ import annotations

from typing import NamedTuple

from bytescope.core.types import Category


class SignatureInfo(NamedTuple):
    name: str
    category: Category


# ── Core tables ──────────────────────────────────────────────────────────────

ERC20_SIGNATURES: dict[str, str] = {
    "0x70a08231": "balanceOf(address)",
    "0xa9059cbb": "transfer(address,uint256)",
    "0x23b872dd": "transferFrom(address,address,uint256)",
    "0x095ea7b3": "approve(address,uint256)",
    "0xdd62ed3e": "allowance(address,address)",
    "0x18160ddd": "totalSupply()",
    "0x06fdde03": "name()",
    "0x95d89b41": "symbol()",
    "0x313ce567": "decimals()",
}

ERC721_SIGNATURES: dict[str, str] = {
    "0x70a08231": "balanceOf(address)",
    "0x6352211e": "ownerOf(uint256)",
    "0x42842e0e": "safeTransferFrom(address,address,uint256)",
    "0xb88d4fde": "safeTransferFrom(address,address,uint256,bytes)",
    "0x23b872dd": "transferFrom(address,address,uint256)",
    "0x095ea7b3": "approve(address,uint256)",
    "0xa22cb465": "setApprovalForAll(address,bool)",
    "0x081812fc": "getApproved(uint256)",
    "0xe985e9c5": "isApprovedForAll(address,address)",
}

PROXY_SIGNATURES: dict[str, str] = {
    "0x5c60da1b": "implementation()",
    "0x3659cfe6": "upgradeTo(address)",
    "0x4f1ef286": "upgradeToAndCall(address,bytes)",
    "0xf851a440": "admin()",
}

SECURITY_SIGNATURES: dict[str, str] = {
    "0x8456cb59": "pause()",
    "0x3f4ba83a": "unpause()",
    "0x5c975abb": "paused()",
    "0x8da5cb5b": "owner()",
    "0xf2fde38b": "transferOwnership(address)",
    "0x715018a6": "renounceOwnership()",
}


# ── Enhanced tables ──────────────────────────────────────────────────────────

ENHANCED_ERC20_SIGNATURES: dict[str, str] = {
    **ERC20_SIGNATURES,
    "0x39509351": "increaseAllowance(address,uint256)",
    "0xa457c2d7": "decreaseAllowance(address,uint256)",
    "0x40c10f19": "mint(address,uint256)",
    "0x42966c68": "burn(uint256)",
    "0x79cc6790": "burnFrom(address,uint256)",
    "0x9dc29fac": "burn(address,uint256)",
}

ENHANCED_ERC721_SIGNATURES: dict[str, str] = {
    **ERC721_SIGNATURES,
    "0xc87b56dd": "tokenURI(uint256)",
    "0x4f6ccce7": "tokenByIndex(uint256)",
    "0x2f745c59": "tokenOfOwnerByIndex(address,uint256)",
    "0x01ffc9a7": "supportsInterface(bytes4)",
    "0x40c10f19": "mint(address,uint256)",
    "0x42966c68": "burn(uint256)",
}

ENHANCED_ERC1155_SIGNATURES: dict[str, str] = {
    "0x00fdd58e": "balanceOf(address,uint256)",
    "0x4e1273f4": "balanceOfBatch(address[],uint256[])",
    "0xf242432a": "safeTransferFrom(address,address,uint256,uint256,bytes)",
    "0x2eb2c2d6": "safeBatchTransferFrom(address,address,uint256[],uint256[],bytes)",
    "0xa22cb465": "setApprovalForAll(address,bool)",
    "0xe985e9c5": "isApprovedForAll(address,address)",
    "0x0e89341c": "uri(uint256)",
    "0x01ffc9a7": "supportsInterface(bytes4)",
}

ENHANCED_PROXY_SIGNATURES: dict[str, str] = {
    **PROXY_SIGNATURES,
    "0x8f283970": "changeAdmin(address)",
    "0x52d1902d": "proxiableUUID()",
    "0xa3f4df7e": "beacon()",
    "0xcdffacc6": "facetAddress(bytes4)",
    "0x52ef6b2c": "facetAddresses()",
    "0xadfca15e": "facetFunctionSelectors(address)",
    "0x7a0ed627": "facets()",
    "0x01ffc9a7": "supportsInterface(bytes4)",
}

ENHANCED_SECURITY_SIGNATURES: dict[str, str] = {
    # Ownable
    "0x8da5cb5b": "owner()",
    "0xf2fde38b": "transferOwnership(address)",
    "0x715018a6": "renounceOwnership()",
    # Pausable
    "0x8456cb59": "pause()",
    "0x3f4ba83a": "unpause()",
    "0x5c975abb": "paused()",
    # AccessControl
    "0x248a9ca3": "getRoleAdmin(bytes32)",
    "0x2f2ff15d": "grantRole(bytes32,address)",
    "0xd547741f": "revokeRole(bytes32,address)",
    "0x91d14854": "hasRole(bytes32,address)",
    "0x36568abe": "renounceRole(bytes32,address)",
    # ReentrancyGuard
    "0x6ef8d66d": "nonReentrant()",
    # Multisig
    "0xc6427474": "confirmTransaction(uint256)",
    "0xc01a8c84": "executeTransaction(uint256)",
    "0xa0e67e2b": "revokeConfirmation(uint256)",
}

DEFI_SIGNATURES: dict[str, str] = {
    # AMM
    "0x022c0d9f": "swap(uint256,uint256,address,bytes)",
    "0xe8e33700": "addLiquidity(address,address,uint256,uint256,uint256,uint256,address,uint256)",
    "0xbaa2abde": "removeLiquidity(address,address,uint256,uint256,uint256,address,uint256)",
    # Uniswap V3 router
    "0x414bf389": "exactInputSingle((address,address,uint24,address,uint256,uint256,uint256,uint160))",
    "0xc04b8d59": "exactInput((bytes,address,uint256,uint256,uint256))",
    # Compound
    "0xa0712d68": "mint(uint256)",
    "0xdb006a75": "redeem(uint256)",
    "0x852a12e3": "redeemUnderlying(uint256)",
    "0x0e752702": "repayBorrow(uint256)",
    "0xf5e3c462": "liquidateBorrow(address,uint256,address)",
    # Aave
    "0xe8eda9df": "deposit(address,uint256,address,uint16)",
    "0x69328dec": "withdraw(address,uint256,address)",
    "0xa415bcad": "borrow(address,uint256,uint256,uint16,address)",
    "0x573ade81": "repay(address,uint256,uint256,address)",
}

GAS_OPTIMIZATION_SIGNATURES: dict[str, str] = {
    "0x1f4e1ef9": "batchTransfer(address[],uint256[])",
    "0x88d695b2": "batchCall(bytes[])",
    "0xac9650d8": "multicall(bytes[])",
    "0x5ae401dc": "multicall(uint256,bytes[])",
}

# Human-readable standard names attached to detections from token tables
STANDARD_LABELS: dict[Category, str] = {
    Category.ERC20: "ERC-20",
    Category.ERC721: "ERC-721",
    Category.ERC1155: "ERC-1155",
}


def build_lookup(tables: list[tuple[dict[str, str], Category]]) -> dict[str, SignatureInfo]:
    """Collapse tables into one selector lookup; earlier tables take precedence."""
    lookup: dict[str, SignatureInfo] = {}
    for table, category in tables:
        for selector, name in table.items():
            lookup.setdefault(selector, SignatureInfo(name, category))
    return lookup


KNOWN_SIGNATURES: dict[str, SignatureInfo] = build_lookup([
    (ERC20_SIGNATURES, Category.ERC20),
    (ERC721_SIGNATURES, Category.ERC721),
    (PROXY_SIGNATURES, Category.PROXY),
    (SECURITY_SIGNATURES, Category.SECURITY),
])

ENHANCED_SIGNATURES: dict[str, SignatureInfo] = build_lookup([
    (ENHANCED_ERC20_SIGNATURES, Category.ERC20),
    (ENHANCED_ERC721_SIGNATURES, Category.ERC721),
    (ENHANCED_ERC1155_SIGNATURES, Category.ERC1155),
    (ENHANCED_PROXY_SIGNATURES, Category.PROXY),
    (ENHANCED_SECURITY_SIGNATURES, Category.SECURITY),
    (DEFI_SIGNATURES, Category.DEFI),
    (GAS_OPTIMIZATION_SIGNATURES, Category.GAS_OPTIMIZATION),
])
