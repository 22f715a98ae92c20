"""Local structural detectors: patterns, security hooks, proxy shape,
compiler metadata and a coarse complexity estimate."""

from __future__ import annotations

import re

from bytescope.analyzer.extractor import CREATE2, SELFDESTRUCT
from bytescope.core.types import (
    Category,
    ComplexityInfo,
    ComplexityLevel,
    DetectedFunction,
    MetadataInfo,
    ProxyInfo,
    SecurityInfo,
)

# CBOR: map(2) "ipfs" bytes(34) 0x1220 <32-byte digest>
_IPFS_RE = re.compile(r"a264697066735822([0-9a-f]{64})", re.IGNORECASE)
# CBOR: "solc" bytes(3) <major><minor><patch>
_SOLC_RE = re.compile(r"64736f6c6343([0-9a-f]{6})", re.IGNORECASE)


def detect_patterns(opcodes: set[int], functions: list[DetectedFunction]) -> list[str]:
    """Flag structural idioms from opcode presence and matched functions."""
    patterns: list[str] = []
    if CREATE2 in opcodes:
        patterns.append("CREATE2 Usage")
    if SELFDESTRUCT in opcodes:
        patterns.append("Self-Destruct")
    if any(f.category == Category.PROXY for f in functions):
        patterns.append("Proxy Pattern")
    if any("pause" in f.name for f in functions):
        patterns.append("Pausable")
    if any("owner" in f.name for f in functions):
        patterns.append("Ownable")
    return patterns


def analyze_security(functions: list[DetectedFunction]) -> SecurityInfo:
    features = [f.name for f in functions if f.category == Category.SECURITY]
    return SecurityInfo(has_controls=bool(features), features=features)


def analyze_proxy(functions: list[DetectedFunction]) -> ProxyInfo:
    """Infer proxy shape; a UUPS match overrides a transparent one."""
    names = {f.name for f in functions if f.category == Category.PROXY}
    if not names:
        return ProxyInfo(is_proxy=False)

    proxy_type = "Unknown Proxy"
    if "implementation()" in names:
        proxy_type = "Transparent Proxy"
    if "upgradeTo(address)" in names:
        proxy_type = "UUPS Proxy"
    return ProxyInfo(is_proxy=True, type=proxy_type)


def _last_aligned_match(pattern: re.Pattern[str], code: str) -> re.Match[str] | None:
    last = None
    for match in pattern.finditer(code):
        if match.start() % 2 == 0:
            last = match
    return last


def analyze_metadata(code: str) -> MetadataInfo:
    """Read the IPFS hash (and solc version) from the CBOR trailer.

    ``code`` is hex without the ``0x`` prefix.
    """
    ipfs = _last_aligned_match(_IPFS_RE, code)
    if not ipfs:
        return MetadataInfo(has_metadata=False)

    solc_version = None
    solc = _last_aligned_match(_SOLC_RE, code[ipfs.end():])
    if solc:
        raw = bytes.fromhex(solc.group(1))
        solc_version = f"{raw[0]}.{raw[1]}.{raw[2]}"

    return MetadataInfo(
        has_metadata=True,
        ipfs_hash=ipfs.group(1).lower(),
        solc_version=solc_version,
    )


def estimate_complexity(size: int, function_count: int) -> ComplexityInfo:
    """Size/function-count estimate, bucketed Low < 10 <= Medium < 50 <= High."""
    estimate = max(1, size // 200 + function_count)
    if estimate < 10:
        level = ComplexityLevel.LOW
    elif estimate < 50:
        level = ComplexityLevel.MEDIUM
    else:
        level = ComplexityLevel.HIGH
    return ComplexityInfo(estimate=estimate, level=level, score=0)


def level_from_score(score: int) -> ComplexityLevel:
    """Bucket a 0-100 complexity score."""
    if score < 30:
        return ComplexityLevel.LOW
    if score < 70:
        return ComplexityLevel.MEDIUM
    return ComplexityLevel.HIGH
