"""Exception taxonomy for bytecode analysis."""

from __future__ import annotations

from typing import Any


class BytescopeError(Exception):
    """Base exception for all analysis errors."""


class FetchError(BytescopeError):
    """RPC endpoint unreachable, or the address carries no code."""

    def __init__(self, message: str, address: str | None = None) -> None:
        super().__init__(message)
        self.address = address


class BytecodeValidationError(BytescopeError):
    """Bytecode or input is empty, malformed, or below the minimum size."""


class AggregateFailure(BytescopeError):
    """A batch analysis in which no contract succeeded."""

    def __init__(self, message: str, failures: list[Any] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []


class AnalysisError(BytescopeError):
    """The analyzer itself failed on fetched bytecode."""

    def __init__(self, message: str, address: str | None = None) -> None:
        super().__init__(message)
        self.address = address
