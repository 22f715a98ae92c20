"""Enhanced pattern detector: higher-confidence selector matching.

The contract analyzer treats this as a pluggable capability: anything
implementing ``PatternDetector.analyze_patterns`` can be injected (tests use
a stub). ``EnhancedPatternDetector`` is the built-in heuristic engine. It
works over wider signature tables than the core classifier and reports:

  - detected selectors with a confidence score
  - token standard compliance (required / optional selector coverage)
  - named security features (Ownable, Pausable, Access Control, ...)
  - a proxy flavour (Diamond, UUPS, Beacon, Transparent)
  - a 0-100 complexity score
  - gas optimization hints
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from bytescope.analyzer.extractor import (
    CREATE2,
    MSTORE,
    PUSH1,
    contains_bytes,
    extract_dispatcher_signatures,
    opcodes_present,
    selector_compare_strength,
    to_bytes,
)
from bytescope.analyzer.signatures import ENHANCED_SIGNATURES, STANDARD_LABELS
from bytescope.core.types import (
    Category,
    PatternAnalysisResult,
    PatternDetection,
    StandardCompliance,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class PatternDetector(Protocol):
    """Anything that can produce a ``PatternAnalysisResult`` from bytecode."""

    def analyze_patterns(self, bytecode: str) -> PatternAnalysisResult: ...


@dataclass(frozen=True)
class StandardSpec:
    """Required and optional selectors for a token standard."""

    name: str
    required: tuple[str, ...]
    optional: tuple[str, ...] = field(default_factory=tuple)


STANDARD_SPECS: tuple[StandardSpec, ...] = (
    StandardSpec(
        name="ERC20",
        required=(
            "0x70a08231", "0xa9059cbb", "0x23b872dd",
            "0x095ea7b3", "0xdd62ed3e", "0x18160ddd",
        ),
        optional=("0x06fdde03", "0x95d89b41", "0x313ce567"),
    ),
    StandardSpec(
        name="ERC721",
        required=("0x70a08231", "0x6352211e", "0x23b872dd", "0x42842e0e", "0xa22cb465"),
        optional=("0xc87b56dd", "0x01ffc9a7"),
    ),
    StandardSpec(
        name="ERC1155",
        required=("0x00fdd58e", "0x4e1273f4", "0xf242432a", "0x2eb2c2d6", "0xa22cb465"),
        optional=("0x0e89341c", "0x01ffc9a7"),
    ),
)

# Substring in a security function name -> feature label
SECURITY_FEATURE_MARKERS: tuple[tuple[str, str], ...] = (
    ("owner", "Ownable"),
    ("pause", "Pausable"),
    ("Role", "Access Control"),
    ("nonReentrant", "Reentrancy Guard"),
)

# Substring in a proxy function name -> proxy type, first match wins
PROXY_TYPE_MARKERS: tuple[tuple[str, str], ...] = (
    ("facet", "Diamond Proxy (EIP-2535)"),
    ("proxiableUUID", "UUPS Proxy (EIP-1822)"),
    ("beacon", "Beacon Proxy"),
    ("implementation", "Transparent Proxy (EIP-1967)"),
)

BASE_CONFIDENCE = 0.7


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class EnhancedPatternDetector:
    """Default heuristic implementation of ``PatternDetector``."""

    def __init__(self) -> None:
        self._signatures = ENHANCED_SIGNATURES

    def name_of(self, selector: str) -> str:
        info = self._signatures.get(selector)
        return info.name if info else selector

    def analyze_patterns(self, bytecode: str) -> PatternAnalysisResult:
        code = to_bytes(bytecode)
        selectors = extract_dispatcher_signatures(code)

        detections: list[PatternDetection] = []
        for selector in selectors:
            info = self._signatures.get(selector)
            if not info:
                continue
            detections.append(PatternDetection(
                signature=selector,
                name=info.name,
                category=info.category,
                confidence=self._confidence(code, selector),
                standard=STANDARD_LABELS.get(info.category),
            ))
        detections.sort(key=lambda d: d.confidence, reverse=True)

        opcodes = opcodes_present(code)
        result = PatternAnalysisResult(
            total_signatures=len(selectors),
            detected_patterns=detections,
            standards_compliance=self._standards_compliance(detections),
            security_features=self._security_features(detections),
            proxy_type=self._proxy_type(detections),
            complexity_score=self._complexity_score(len(code), detections),
            gas_optimization_features=self._gas_optimizations(code, opcodes, detections),
        )
        logger.debug(
            "Pattern detector matched %d/%d selectors",
            len(detections), len(selectors),
        )
        return result

    # ── Scoring ──────────────────────────────────────────────────────────

    @staticmethod
    def _confidence(code: bytes, selector: str) -> float:
        strength = selector_compare_strength(code, selector)
        confidence = BASE_CONFIDENCE
        if strength >= 1:
            confidence += 0.2
        if strength >= 2:
            confidence += 0.1
        return round(min(confidence, 1.0), 2)

    def _standards_compliance(self, detections: list[PatternDetection]) -> list[StandardCompliance]:
        detected = {d.signature for d in detections}
        results: list[StandardCompliance] = []
        for spec in STANDARD_SPECS:
            found = [sig for sig in spec.required if sig in detected]
            compliance = _round_half_up(len(found) / len(spec.required) * 100)
            if compliance <= 0:
                continue
            results.append(StandardCompliance(
                standard=spec.name,
                compliance=compliance,
                missing_functions=[
                    self.name_of(sig) for sig in spec.required if sig not in detected
                ],
                extra_functions=[
                    self.name_of(sig) for sig in spec.optional if sig in detected
                ],
            ))
        return results

    @staticmethod
    def _security_features(detections: list[PatternDetection]) -> list[str]:
        names = [d.name for d in detections if d.category == Category.SECURITY]
        return [
            label
            for marker, label in SECURITY_FEATURE_MARKERS
            if any(marker in name for name in names)
        ]

    @staticmethod
    def _proxy_type(detections: list[PatternDetection]) -> str | None:
        names = [d.name for d in detections if d.category == Category.PROXY]
        if not names:
            return None
        for marker, proxy_type in PROXY_TYPE_MARKERS:
            if any(marker in name for name in names):
                return proxy_type
        return "Unknown Proxy Pattern"

    @staticmethod
    def _complexity_score(size: int, detections: list[PatternDetection]) -> int:
        if size <= 0:
            return 0
        complexity = math.log10(size) * 10 + len(detections) * 2
        categories = {d.category for d in detections}
        if Category.PROXY in categories:
            complexity *= 0.7
        if Category.DEFI in categories:
            complexity *= 1.3
        return max(0, _round_half_up(min(complexity, 100.0)))

    @staticmethod
    def _gas_optimizations(
        code: bytes,
        opcodes: set[int],
        detections: list[PatternDetection],
    ) -> list[str]:
        optimizations: list[str] = []
        # RETURNDATASIZE runs (minimal proxies) or GAS STATICCALL
        if contains_bytes(code, "3d3d3d3d", "5afa"):
            optimizations.append("Assembly Optimizations")
        if any("batch" in d.name or "multi" in d.name for d in detections):
            optimizations.append("Batch Operations")
        if PUSH1 in opcodes and MSTORE in opcodes:
            optimizations.append("Packed Storage")
        if CREATE2 in opcodes:
            optimizations.append("CREATE2 Deployment")
        return optimizations
