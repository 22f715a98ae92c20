"""Contract analyzer: composes extraction, classification and detection
into one ``BytecodeAnalysis`` per contract.

Local findings are merged with the pattern detector's output:

  - functions: union keyed by selector, detector entries win on collision
  - standards: local thresholds plus fully-compliant detector standards
  - security features: union, local first
  - proxy: detector type preferred when it reports one
  - complexity: local estimate kept, level and score from the detector
"""

from __future__ import annotations

import logging

from bytescope.analyzer.classifier import (
    identify_functions,
    identify_standards,
    sort_by_category,
)
from bytescope.analyzer.extractor import (
    extract_signatures,
    opcodes_present,
    strip_hex_prefix,
    to_bytes,
)
from bytescope.analyzer.pattern_detector import EnhancedPatternDetector, PatternDetector
from bytescope.analyzer.patterns import (
    analyze_metadata,
    analyze_proxy,
    analyze_security,
    detect_patterns,
    estimate_complexity,
    level_from_score,
)
from bytescope.core.errors import BytecodeValidationError
from bytescope.core.types import (
    BytecodeAnalysis,
    ComplexityInfo,
    DetectedFunction,
    PatternAnalysisResult,
    ProxyInfo,
    SecurityInfo,
    shorten_address,
)

logger = logging.getLogger(__name__)

# A detector-reported standard is claimed only at full required coverage
FULL_COMPLIANCE = 100


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


class ContractAnalyzer:
    """Produce a structural fingerprint from raw deployed bytecode."""

    def __init__(
        self,
        detector: PatternDetector | None = None,
        min_bytecode_size: int = 1,
    ) -> None:
        self.detector = detector or EnhancedPatternDetector()
        self.min_bytecode_size = max(1, min_bytecode_size)

    def analyze(
        self,
        bytecode: str,
        address: str,
        contract_name: str | None = None,
    ) -> BytecodeAnalysis:
        """Analyse one contract's runtime bytecode.

        Raises:
            BytecodeValidationError: If the bytecode is empty, not hex, or
                shorter than the configured minimum.
        """
        code_hex = strip_hex_prefix((bytecode or "").strip()).lower()
        if not code_hex:
            raise BytecodeValidationError(f"Empty bytecode for {address}")
        code = to_bytes(code_hex)
        size = len(code)
        if size < self.min_bytecode_size:
            raise BytecodeValidationError(
                f"Bytecode for {address} is {size} bytes, "
                f"below the minimum of {self.min_bytecode_size}"
            )

        selectors = extract_signatures(code)
        functions = identify_functions(selectors)
        standards = identify_standards(functions)
        patterns = detect_patterns(opcodes_present(code), functions)
        security = analyze_security(functions)
        proxy = analyze_proxy(functions)
        metadata = analyze_metadata(code_hex)
        complexity = estimate_complexity(size, len(functions))

        detected = self.detector.analyze_patterns("0x" + code_hex)

        analysis = BytecodeAnalysis(
            address=address,
            contract_name=contract_name or f"Contract ({shorten_address(address)})",
            size=size,
            standards=self._merge_standards(standards, detected),
            functions=self._merge_functions(functions, detected),
            patterns=patterns,
            complexity=ComplexityInfo(
                estimate=complexity.estimate,
                level=level_from_score(detected.complexity_score),
                score=detected.complexity_score,
            ),
            security=SecurityInfo(
                has_controls=security.has_controls or bool(detected.security_features),
                features=_unique(security.features + detected.security_features),
            ),
            proxy=ProxyInfo(
                is_proxy=bool(detected.proxy_type) or proxy.is_proxy,
                type=detected.proxy_type or proxy.type,
            ),
            metadata=metadata,
            gas_optimizations=list(detected.gas_optimization_features),
            standards_compliance=list(detected.standards_compliance),
        )
        logger.debug(
            "Analyzed %s: %d bytes, %d functions, standards=%s",
            address, size, len(analysis.functions), analysis.standards,
            extra={"address": address},
        )
        return analysis

    @staticmethod
    def _merge_functions(
        local: list[DetectedFunction],
        detected: PatternAnalysisResult,
    ) -> list[DetectedFunction]:
        merged: dict[str, DetectedFunction] = {f.signature: f for f in local}
        for pattern in detected.detected_patterns:
            merged[pattern.signature] = DetectedFunction(
                signature=pattern.signature,
                name=pattern.name,
                category=pattern.category,
            )
        return sort_by_category(list(merged.values()))

    @staticmethod
    def _merge_standards(local: list[str], detected: PatternAnalysisResult) -> list[str]:
        compliant = [
            s.standard for s in detected.standards_compliance
            if s.compliance >= FULL_COMPLIANCE
        ]
        return _unique(local + compliant)
