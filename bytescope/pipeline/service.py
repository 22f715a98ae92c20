"""Analysis service: coordinates RPC fetch, cache, analysis and comparison.

Contracts in a batch are processed strictly sequentially. A contract that
fails is reported as an ``AnalysisFailure`` and skipped; the batch only
fails as a whole when nothing succeeded (or when ``fail_fast`` is set).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Union

from bytescope.analyzer.contract_analyzer import ContractAnalyzer
from bytescope.analyzer.similarity import compare_contracts
from bytescope.core.cache import BytecodeCache
from bytescope.core.config import Settings, get_settings
from bytescope.core.errors import (
    AggregateFailure,
    AnalysisError,
    BytecodeValidationError,
    BytescopeError,
    FetchError,
)
from bytescope.core.types import BytecodeAnalysis, ContractComparison, ContractInput
from bytescope.ingestion.rpc_client import ADDRESS_RE, RpcClient, has_code

logger = logging.getLogger(__name__)


# ── Per-contract outcomes ────────────────────────────────────────────────────


@dataclass(frozen=True)
class AnalysisSuccess:
    contract: ContractInput
    analysis: BytecodeAnalysis

    ok = True


@dataclass(frozen=True)
class AnalysisFailure:
    contract: ContractInput
    error: BytescopeError

    ok = False


AnalysisOutcome = Union[AnalysisSuccess, AnalysisFailure]


def _as_input(contract: ContractInput | str | dict) -> ContractInput:
    if isinstance(contract, ContractInput):
        return contract
    if isinstance(contract, str):
        return ContractInput(address=contract)
    return ContractInput.model_validate(contract)


class AnalysisService:
    """Fetch, cache, analyse and compare deployed contracts."""

    def __init__(
        self,
        rpc: RpcClient,
        cache: BytecodeCache | None = None,
        analyzer: ContractAnalyzer | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.rpc = rpc
        self.cache = cache if cache is not None else BytecodeCache.from_settings(settings)
        self.analyzer = analyzer or ContractAnalyzer(min_bytecode_size=settings.min_bytecode_size)

    async def analyze_contract(
        self,
        address: str,
        name: str | None = None,
        block_tag: str | int = "latest",
    ) -> BytecodeAnalysis:
        """Analyse one contract, serving from cache when possible.

        Raises:
            BytecodeValidationError: Malformed address or bytecode.
            FetchError: The node failed, or the address has no code.
            AnalysisError: The analyzer raised on the fetched bytecode.
        """
        if not ADDRESS_RE.match(address or ""):
            raise BytecodeValidationError(f"Invalid contract address format: {address}")

        cached = self.cache.get(address, block_tag)
        if cached is not None:
            logger.debug("Cache hit for %s", address, extra={"address": address})
            return cached

        start = time.monotonic()
        try:
            bytecode = await self.rpc.get_code(address, block_tag)
        except Exception as exc:
            raise FetchError(
                f"Failed to analyze contract {address}: {exc}", address=address
            ) from exc

        if not has_code(bytecode):
            raise FetchError(f"No bytecode found at address {address}", address=address)

        try:
            analysis = self.analyzer.analyze(bytecode, address, name)
        except BytescopeError:
            raise
        except Exception as exc:
            raise AnalysisError(
                f"Failed to analyze contract {address}: {exc}", address=address
            ) from exc
        self.cache.set(address, analysis, block_tag)
        logger.info(
            "Analyzed %s (%d bytes, %d functions)",
            address, analysis.size, len(analysis.functions),
            extra={
                "address": address,
                "block_tag": str(block_tag),
                "duration_ms": round((time.monotonic() - start) * 1000, 1),
            },
        )
        return analysis

    async def analyze_batch(
        self,
        contracts: list[ContractInput | str | dict],
        block_tag: str | int = "latest",
        fail_fast: bool = False,
    ) -> list[AnalysisOutcome]:
        """Analyse each contract in turn, recording a result per contract."""
        outcomes: list[AnalysisOutcome] = []
        for raw in contracts:
            contract = _as_input(raw)
            try:
                analysis = await self.analyze_contract(contract.address, contract.name, block_tag)
            except BytescopeError as exc:
                if fail_fast:
                    raise
                logger.warning(
                    "Failed to analyze contract %s: %s", contract.address, exc,
                    extra={"address": contract.address},
                )
                outcomes.append(AnalysisFailure(contract=contract, error=exc))
            else:
                outcomes.append(AnalysisSuccess(contract=contract, analysis=analysis))
        return outcomes

    async def analyze_multiple_contracts(
        self,
        contracts: list[ContractInput | str | dict],
        block_tag: str | int = "latest",
        fail_fast: bool = False,
    ) -> ContractComparison:
        """Analyse a contract set and compare the successful analyses.

        Raises:
            AggregateFailure: No contract could be analysed.
        """
        outcomes = await self.analyze_batch(contracts, block_tag, fail_fast=fail_fast)
        analyses = [o.analysis for o in outcomes if isinstance(o, AnalysisSuccess)]
        failures = [o for o in outcomes if isinstance(o, AnalysisFailure)]

        if not analyses:
            raise AggregateFailure(
                "No contracts could be analyzed successfully", failures=failures
            )
        if failures:
            logger.info(
                "Analyzed %d/%d contracts, %d skipped",
                len(analyses), len(outcomes), len(failures),
            )
        return compare_contracts(analyses)

    async def analyze_from_transaction(
        self,
        tx_hash: str,
        block_tag: str | int = "latest",
    ) -> ContractComparison:
        """Analyse every contract with bytecode touched by a transaction.

        Raises:
            FetchError: The transaction cannot be loaded or touches no contracts.
            AggregateFailure: None of its contracts could be analysed.
        """
        try:
            touched = await self.rpc.get_contracts_from_transaction(tx_hash)
        except BytescopeError:
            raise
        except Exception as exc:
            raise FetchError(
                f"Failed to extract contracts from transaction {tx_hash}: {exc}"
            ) from exc

        if not touched:
            raise FetchError(f"No contracts with bytecode found in transaction {tx_hash}")

        logger.info(
            "Transaction %s touches %d contract(s)", tx_hash, len(touched),
            extra={"tx_hash": tx_hash},
        )
        return await self.analyze_multiple_contracts(
            [ContractInput(address=c.address, name=c.name) for c in touched],
            block_tag,
        )

    async def get_transaction_info(self, tx_hash: str) -> dict[str, Any]:
        """Summary of a mined transaction.

        Raises:
            FetchError: The transaction or its receipt cannot be loaded.
        """
        try:
            return await self.rpc.get_transaction_info(tx_hash)
        except BytescopeError:
            raise
        except Exception as exc:
            raise FetchError(f"Failed to load transaction {tx_hash}: {exc}") from exc
