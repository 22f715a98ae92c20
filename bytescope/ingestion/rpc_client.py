"""Fetch bytecode and transaction data from an Ethereum JSON-RPC node."""

from __future__ import annotations

import asyncio
import itertools
import logging
import re
from typing import Any, Protocol, runtime_checkable

import httpx

from bytescope.core.config import Settings, get_settings
from bytescope.core.errors import FetchError
from bytescope.core.networks import resolve_rpc_url
from bytescope.core.types import ContractSource, TransactionContract, shorten_address

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

# HTTP statuses considered transient and safe to retry
_TRANSIENT_STATUS = {429, 502, 503, 504}


class RpcError(Exception):
    """JSON-RPC error object returned by the node."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


@runtime_checkable
class RpcClient(Protocol):
    """What the analysis service needs from a node."""

    async def get_code(self, address: str, block_tag: str | int = "latest") -> str: ...

    async def get_code_size(self, address: str, block_tag: str | int = "latest") -> int: ...

    async def is_contract(self, address: str, block_tag: str | int = "latest") -> bool: ...

    async def get_contracts_from_transaction(self, tx_hash: str) -> list[TransactionContract]: ...

    async def get_transaction_info(self, tx_hash: str) -> dict[str, Any]: ...


def format_block_tag(block_tag: str | int) -> str:
    """Block numbers become hex quantities; named tags pass through."""
    if isinstance(block_tag, int):
        return hex(block_tag)
    if block_tag.isdigit():
        return hex(int(block_tag))
    return block_tag


def has_code(code: str | None) -> bool:
    return bool(code) and code not in ("0x", "0x0")


class JsonRpcClient:
    """Async Ethereum JSON-RPC client over ``httpx``.

    Usage::

        async with JsonRpcClient.from_settings() as rpc:
            code = await rpc.get_code("0x...")
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_base_delay: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        network: str | None = None,
    ) -> JsonRpcClient:
        settings = settings or get_settings()
        return cls(
            url=resolve_rpc_url(settings, network),
            timeout=settings.rpc_timeout_seconds,
            max_retries=settings.rpc_max_retries,
            retry_base_delay=settings.rpc_retry_base_delay,
        )

    # ── Context manager ──────────────────────────────────────────────

    async def __aenter__(self) -> JsonRpcClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ── JSON-RPC primitive ───────────────────────────────────────────

    async def call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call, retrying transient transport failures."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        last_exc: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.post(self.url, json=payload)
                if resp.status_code in _TRANSIENT_STATUS:
                    raise httpx.HTTPStatusError(
                        f"HTTP {resp.status_code}", request=resp.request, response=resp
                    )
                resp.raise_for_status()
                body = resp.json()
                if body.get("error"):
                    err = body["error"]
                    raise RpcError(err.get("message", "RPC error"), err.get("code"))
                return body.get("result")
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                retryable = not isinstance(exc, httpx.HTTPStatusError) or (
                    exc.response.status_code in _TRANSIENT_STATUS
                )
                last_exc = exc
                if attempt >= self._max_retries or not retryable:
                    raise
                delay = self._retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Transient RPC error in %s (attempt %d/%d), retrying in %.1fs: %s",
                    method, attempt + 1, self._max_retries, delay, exc,
                )
                await asyncio.sleep(delay)
        raise last_exc  # unreachable

    # ── Code ─────────────────────────────────────────────────────────

    async def get_code(self, address: str, block_tag: str | int = "latest") -> str:
        return await self.call("eth_getCode", [address, format_block_tag(block_tag)]) or "0x"

    async def get_code_size(self, address: str, block_tag: str | int = "latest") -> int:
        code = await self.get_code(address, block_tag)
        return (len(code) - 2) // 2 if has_code(code) else 0

    async def is_contract(self, address: str, block_tag: str | int = "latest") -> bool:
        return has_code(await self.get_code(address, block_tag))

    # ── Transactions ─────────────────────────────────────────────────

    async def get_transaction(self, tx_hash: str) -> dict[str, Any] | None:
        return await self.call("eth_getTransactionByHash", [tx_hash])

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def _load_transaction(self, tx_hash: str) -> tuple[dict[str, Any], dict[str, Any]]:
        if not TX_HASH_RE.match(tx_hash or ""):
            raise FetchError(f"Invalid transaction hash format: {tx_hash}")
        tx, receipt = await asyncio.gather(
            self.get_transaction(tx_hash),
            self.get_transaction_receipt(tx_hash),
        )
        if not tx:
            raise FetchError(f"Transaction {tx_hash} not found")
        if not receipt:
            raise FetchError(
                f"Transaction receipt for {tx_hash} not found. Transaction might be pending."
            )
        return tx, receipt

    async def get_contracts_from_transaction(self, tx_hash: str) -> list[TransactionContract]:
        """Contracts with bytecode touched by a transaction.

        Candidates are the call target, a created contract, then every log
        emitter, deduplicated case-insensitively. Addresses whose code
        lookup fails are skipped.
        """
        tx, receipt = await self._load_transaction(tx_hash)

        candidates: list[tuple[str | None, ContractSource, str]] = [
            (tx.get("to"), ContractSource.TARGET, "Target Contract"),
            (receipt.get("contractAddress"), ContractSource.CREATED, "Created Contract"),
        ]
        candidates.extend(
            (log.get("address"), ContractSource.EVENT_EMITTER, "Event Emitter")
            for log in receipt.get("logs") or []
        )

        contracts: list[TransactionContract] = []
        seen: set[str] = set()
        for address, source, prefix in candidates:
            if not address or address.lower() in seen:
                continue
            seen.add(address.lower())
            try:
                if not await self.is_contract(address):
                    continue
            except (httpx.HTTPError, RpcError) as exc:
                logger.warning(
                    "Could not check code for address %s: %s", address, exc,
                    extra={"address": address, "tx_hash": tx_hash},
                )
                continue
            contracts.append(TransactionContract(
                address=address,
                name=f"{prefix} ({shorten_address(address)})",
                source=source,
                transaction_hash=tx_hash,
            ))

        logger.info(
            "Found %d contract(s) with bytecode in transaction %s",
            len(contracts), tx_hash, extra={"tx_hash": tx_hash},
        )
        return contracts

    async def get_transaction_info(self, tx_hash: str) -> dict[str, Any]:
        """Summary of a mined transaction."""
        tx, receipt = await self._load_transaction(tx_hash)
        return {
            "hash": tx.get("hash"),
            "from": tx.get("from"),
            "to": tx.get("to"),
            "value": int(tx.get("value") or "0x0", 16),
            "gas_limit": int(tx.get("gas") or "0x0", 16),
            "gas_used": int(receipt.get("gasUsed") or "0x0", 16),
            "status": int(receipt.get("status") or "0x0", 16),
            "contract_address": receipt.get("contractAddress"),
            "logs_count": len(receipt.get("logs") or []),
            "block_number": int(receipt.get("blockNumber") or "0x0", 16),
            "block_hash": receipt.get("blockHash"),
        }
