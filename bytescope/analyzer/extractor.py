"""Selector extraction and lightweight opcode scanning over raw bytecode.

This is a heuristic scanner, not a disassembler. ``extract_signatures``
looks for a PUSH4 opcode followed by four bytes anywhere in the code and
does not verify the PUSH4 sits on an instruction boundary, so values pushed
from inside data segments can show up as false positives.
"""

from __future__ import annotations

import re
from typing import Iterator

from bytescope.core.errors import BytecodeValidationError

PUSH1 = 0x60
PUSH2 = 0x61
PUSH4 = 0x63
PUSH32 = 0x7F
EQ = 0x14
MSTORE = 0x52
CREATE2 = 0xF5
SELFDESTRUCT = 0xFF

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")

# DUP1 PUSH1 0x04 CALLDATALOAD followed by LT/GT/EQ, then a selector
_DISPATCHER_PREFIX = bytes.fromhex("80600435")
_DISPATCHER_COMPARES = (0x10, 0x11, 0x14)
# JUMPDEST DUP1 PUSH1 0x04 CALLDATALOAD followed by DUP1..DUP4, then a selector
_JUMP_TABLE_PREFIX = bytes.fromhex("5b80600435")
_JUMP_TABLE_DUPS = (0x80, 0x81, 0x82, 0x83)


def strip_hex_prefix(bytecode: str) -> str:
    return bytecode[2:] if bytecode[:2] in ("0x", "0X") else bytecode


def to_bytes(bytecode: str) -> bytes:
    """Decode a hex string (optionally ``0x``-prefixed) into bytes.

    Raises:
        BytecodeValidationError: If the string is not valid hex.
    """
    code = strip_hex_prefix(bytecode.strip())
    if len(code) % 2 or not _HEX_RE.match(code):
        raise BytecodeValidationError("Bytecode is not a valid hex string")
    return bytes.fromhex(code)


def _as_bytes(code: str | bytes) -> bytes:
    return code if isinstance(code, bytes) else to_bytes(code)


def _selector(raw: bytes) -> str:
    return "0x" + raw.hex()


def extract_signatures(bytecode: str | bytes) -> list[str]:
    """Return unique PUSH4 operands in first-seen order."""
    code = _as_bytes(bytecode)
    seen: dict[str, None] = {}
    i = 0
    end = len(code) - 4
    while i < end:
        if code[i] == PUSH4:
            seen.setdefault(_selector(code[i + 1:i + 5]), None)
            i += 5
        else:
            i += 1
    return list(seen)


def _scan_after(code: bytes, prefix: bytes, markers: tuple[int, ...]) -> Iterator[str]:
    start = code.find(prefix)
    while start != -1:
        pos = start + len(prefix)
        if pos + 5 <= len(code) and code[pos] in markers:
            yield _selector(code[pos + 1:pos + 5])
        start = code.find(prefix, start + 1)


def extract_dispatcher_signatures(bytecode: str | bytes) -> list[str]:
    """PUSH4 selectors plus those found in common dispatcher byte runs."""
    code = _as_bytes(bytecode)
    seen: dict[str, None] = dict.fromkeys(extract_signatures(code))
    for selector in _scan_after(code, _DISPATCHER_PREFIX, _DISPATCHER_COMPARES):
        seen.setdefault(selector, None)
    for selector in _scan_after(code, _JUMP_TABLE_PREFIX, _JUMP_TABLE_DUPS):
        seen.setdefault(selector, None)
    return list(seen)


def strip_metadata_trailer(code: bytes) -> bytes:
    """Drop the Solidity CBOR trailer, whose length sits in the last two bytes."""
    if len(code) < 2:
        return code
    length = int.from_bytes(code[-2:], "big")
    # CBOR maps emitted by solc start with 0xa1..0xa5
    if 0 < length <= len(code) - 2 and 0xA1 <= code[-2 - length] <= 0xA5:
        return code[:-2 - length]
    return code


def iter_opcodes(code: bytes) -> Iterator[tuple[int, int]]:
    """Linear sweep yielding ``(offset, opcode)`` and skipping PUSH operands."""
    i = 0
    n = len(code)
    while i < n:
        op = code[i]
        yield i, op
        if PUSH1 <= op <= PUSH32:
            i += op - PUSH1 + 2
        else:
            i += 1


def opcodes_present(bytecode: str | bytes) -> set[int]:
    """Opcodes seen by a linear sweep of the code, metadata trailer excluded."""
    code = strip_metadata_trailer(_as_bytes(bytecode))
    return {op for _, op in iter_opcodes(code)}


def selector_compare_strength(code: bytes, selector: str) -> int:
    """How strongly a selector looks like a dispatcher comparison.

    0: never followed by EQ, 1: ``PUSH4 sel EQ``, 2: ``PUSH4 sel EQ PUSH2``.
    """
    needle = bytes([PUSH4]) + bytes.fromhex(strip_hex_prefix(selector))
    best = 0
    start = code.find(needle)
    while start != -1:
        after = start + len(needle)
        if after < len(code) and code[after] == EQ:
            if after + 1 < len(code) and code[after + 1] == PUSH2:
                return 2
            best = 1
        start = code.find(needle, start + 1)
    return best


def contains_bytes(bytecode: str | bytes, *needles: str) -> bool:
    """True when any hex needle occurs byte-aligned in the code."""
    code = _as_bytes(bytecode)
    return any(bytes.fromhex(n) in code for n in needles)
