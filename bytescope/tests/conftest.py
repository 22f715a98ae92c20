"""Shared fixtures for the Bytescope test suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from bytescope.analyzer.contract_analyzer import ContractAnalyzer
from bytescope.core.cache import BytecodeCache
from bytescope.core.config import Settings
from bytescope.core.errors import FetchError
from bytescope.core.types import (
    BytecodeAnalysis,
    Category,
    DetectedFunction,
    PatternAnalysisResult,
    ProxyInfo,
    TransactionContract,
)
from bytescope.pipeline.service import AnalysisService


# ── Selectors ────────────────────────────────────────────────────────────────

ERC20_CORE = [
    "0x70a08231",  # balanceOf(address)
    "0xa9059cbb",  # transfer(address,uint256)
    "0x23b872dd",  # transferFrom(address,address,uint256)
    "0x095ea7b3",  # approve(address,uint256)
    "0xdd62ed3e",  # allowance(address,address)
    "0x18160ddd",  # totalSupply()
]
ERC20_METADATA = ["0x06fdde03", "0x95d89b41", "0x313ce567"]
OWNABLE = ["0x8da5cb5b", "0xf2fde38b"]
TRANSPARENT_PROXY = ["0x5c60da1b", "0xf851a440"]  # implementation(), admin()

ADDR_A = "0x" + "a1" * 20
ADDR_B = "0x" + "b2" * 20
ADDR_C = "0x" + "c3" * 20
TX_HASH = "0x" + "ab" * 32


# ── Bytecode builders ────────────────────────────────────────────────────────


def push4(*selectors: str) -> str:
    """Bare PUSH4 instructions, no ``0x`` prefix."""
    return "".join("63" + s.removeprefix("0x") for s in selectors)


def dispatcher(*selectors: str) -> str:
    """``PUSH4 sel EQ PUSH2 0x0000 JUMPI`` per selector, no ``0x`` prefix."""
    return "".join("63" + s.removeprefix("0x") + "14" + "610000" + "57" for s in selectors)


def make_bytecode(*selectors: str, padding: int = 0) -> str:
    """Runtime bytecode with a selector dispatcher.

    Starts with the usual free-memory-pointer prologue and ends in two STOP
    bytes so no CBOR trailer is detected.
    """
    return "0x6080604052" + dispatcher(*selectors) + "00" * padding + "0000"


def make_analysis(
    address: str,
    selectors: list[str],
    size: int = 1000,
    is_proxy: bool = False,
    name: str | None = None,
) -> BytecodeAnalysis:
    """Hand-built analysis for similarity and export tests."""
    return BytecodeAnalysis(
        address=address,
        contract_name=name or f"Contract {address[:6]}",
        size=size,
        functions=[
            DetectedFunction(signature=s, name=f"fn_{s[2:]}", category=Category.UNKNOWN)
            for s in selectors
        ],
        proxy=ProxyInfo(is_proxy=is_proxy, type="Transparent Proxy" if is_proxy else None),
    )


# ── Collaborators ────────────────────────────────────────────────────────────


class StubDetector:
    """Pattern detector returning a fixed result."""

    def __init__(self, result: PatternAnalysisResult | None = None) -> None:
        self.result = result or PatternAnalysisResult()
        self.calls: list[str] = []

    def analyze_patterns(self, bytecode: str) -> PatternAnalysisResult:
        self.calls.append(bytecode)
        return self.result


class FakeRpc:
    """In-memory node: address -> code, with optional failing addresses."""

    def __init__(
        self,
        codes: dict[str, str] | None = None,
        failing: tuple[str, ...] = (),
        contracts: list[TransactionContract] | None = None,
    ) -> None:
        self.codes = {k.lower(): v for k, v in (codes or {}).items()}
        self.failing = {a.lower() for a in failing}
        self.get_code = AsyncMock(side_effect=self._get_code)
        self.get_contracts_from_transaction = AsyncMock(return_value=contracts or [])
        self.get_transaction_info = AsyncMock(
            side_effect=FetchError("Transaction not found")
        )

    def _get_code(self, address: str, block_tag: Any = "latest") -> str:
        if address.lower() in self.failing:
            raise httpx.ConnectError("connection refused")
        return self.codes.get(address.lower(), "0x")

    async def get_code_size(self, address: str, block_tag: Any = "latest") -> int:
        code = await self.get_code(address, block_tag)
        return (len(code) - 2) // 2

    async def is_contract(self, address: str, block_tag: Any = "latest") -> bool:
        return (await self.get_code(address, block_tag)) != "0x"

    async def __aenter__(self) -> FakeRpc:
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def erc20_bytecode() -> str:
    return make_bytecode(*ERC20_CORE, *ERC20_METADATA, *OWNABLE)


@pytest.fixture
def proxy_bytecode() -> str:
    return make_bytecode(*TRANSPARENT_PROXY)


@pytest.fixture
def analyzer() -> ContractAnalyzer:
    return ContractAnalyzer()


@pytest.fixture
def cache() -> BytecodeCache:
    return BytecodeCache(max_entries=10)


@pytest.fixture
def fake_rpc(erc20_bytecode: str, proxy_bytecode: str) -> FakeRpc:
    return FakeRpc(codes={ADDR_A: erc20_bytecode, ADDR_B: proxy_bytecode})


@pytest.fixture
def service(fake_rpc: FakeRpc, cache: BytecodeCache, settings: Settings) -> AnalysisService:
    return AnalysisService(fake_rpc, cache=cache, settings=settings)
