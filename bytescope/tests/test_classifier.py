"""Tests for selector tables, standards classification and local detectors."""

from __future__ import annotations

from bytescope.analyzer.classifier import identify_functions, identify_standards
from bytescope.analyzer.extractor import CREATE2, SELFDESTRUCT, extract_signatures
from bytescope.analyzer.patterns import (
    analyze_metadata,
    analyze_proxy,
    analyze_security,
    detect_patterns,
    estimate_complexity,
    level_from_score,
)
from bytescope.analyzer.signatures import (
    ENHANCED_SIGNATURES,
    KNOWN_SIGNATURES,
)
from bytescope.core.types import Category, ComplexityLevel
from conftest import ERC20_CORE, ERC20_METADATA, OWNABLE


# ── Signature tables ─────────────────────────────────────────────────────


class TestSignatureTables:
    def test_transfer_is_erc20(self):
        info = KNOWN_SIGNATURES["0xa9059cbb"]
        assert info.name == "transfer(address,uint256)"
        assert info.category == Category.ERC20

    def test_shared_selector_takes_first_table(self):
        # balanceOf(address) is in both ERC-20 and ERC-721
        assert KNOWN_SIGNATURES["0x70a08231"].category == Category.ERC20
        assert ENHANCED_SIGNATURES["0x70a08231"].category == Category.ERC20

    def test_supports_interface_is_not_proxy(self):
        assert ENHANCED_SIGNATURES["0x01ffc9a7"].category == Category.ERC721

    def test_unknown_selector(self):
        assert "0xdeadbeef" not in KNOWN_SIGNATURES

    def test_lookup_is_case_insensitive(self):
        assert identify_functions(["0xA9059CBB"])[0].category == Category.ERC20


# ── Classification ───────────────────────────────────────────────────────


class TestIdentifyFunctions:
    def test_push4_transfer(self):
        functions = identify_functions(extract_signatures("0x63a9059cbb"))
        assert len(functions) == 1
        assert functions[0].name == "transfer(address,uint256)"
        assert functions[0].category == Category.ERC20

    def test_unknown_selectors_dropped(self):
        assert identify_functions(["0xdeadbeef", "0xcafebabe"]) == []

    def test_sorted_by_category(self):
        functions = identify_functions(["0x8da5cb5b", "0x5c60da1b", "0xa9059cbb"])
        assert [f.category for f in functions] == [Category.ERC20, Category.PROXY, Category.SECURITY]


class TestIdentifyStandards:
    def test_five_erc20_selectors_claims_erc20(self):
        assert "ERC20" in identify_standards(identify_functions(ERC20_CORE[:5]))

    def test_four_erc20_selectors_does_not(self):
        assert identify_standards(identify_functions(ERC20_CORE[:4])) == []

    def test_duplicates_count_once(self):
        functions = identify_functions(ERC20_CORE[:4] + ERC20_CORE[:4])
        assert identify_standards(functions) == []

    def test_erc721_threshold(self):
        # balanceOf resolves to ERC-20, so four ERC-721-only selectors are needed
        selectors = ["0x6352211e", "0x42842e0e", "0xa22cb465", "0x081812fc"]
        assert identify_standards(identify_functions(selectors)) == ["ERC721"]


# ── Local detectors ──────────────────────────────────────────────────────


class TestPatterns:
    def test_opcode_patterns(self):
        patterns = detect_patterns({CREATE2, SELFDESTRUCT}, [])
        assert patterns == ["CREATE2 Usage", "Self-Destruct"]

    def test_function_patterns(self):
        functions = identify_functions(["0x5c60da1b", "0x8456cb59", "0x8da5cb5b"])
        patterns = detect_patterns(set(), functions)
        assert "Proxy Pattern" in patterns
        assert "Pausable" in patterns
        assert "Ownable" in patterns

    def test_security(self):
        info = analyze_security(identify_functions(OWNABLE + ERC20_METADATA))
        assert info.has_controls is True
        assert set(info.features) == {"owner()", "transferOwnership(address)"}

    def test_no_security(self):
        info = analyze_security(identify_functions(ERC20_CORE))
        assert info.has_controls is False
        assert info.features == []


class TestProxy:
    def test_not_proxy(self):
        assert analyze_proxy(identify_functions(ERC20_CORE)).is_proxy is False

    def test_unknown_proxy(self):
        info = analyze_proxy(identify_functions(["0xf851a440"]))
        assert info.is_proxy is True
        assert info.type == "Unknown Proxy"

    def test_transparent(self):
        assert analyze_proxy(identify_functions(["0x5c60da1b"])).type == "Transparent Proxy"

    def test_uups_overrides_transparent(self):
        info = analyze_proxy(identify_functions(["0x5c60da1b", "0x3659cfe6"]))
        assert info.type == "UUPS Proxy"

    def test_upgrade_to_and_call_is_not_uups(self):
        info = analyze_proxy(identify_functions(["0x4f1ef286"]))
        assert info.type == "Unknown Proxy"


class TestMetadata:
    DIGEST = "12" * 32

    def test_ipfs_and_solc(self):
        code = "6080" + "a264697066735822" + self.DIGEST + "64736f6c6343" + "000814" + "0033"
        info = analyze_metadata(code)
        assert info.has_metadata is True
        assert info.ipfs_hash == self.DIGEST
        assert info.solc_version == "0.8.20"

    def test_ipfs_without_solc(self):
        info = analyze_metadata("a264697066735822" + self.DIGEST)
        assert info.has_metadata is True
        assert info.solc_version is None

    def test_misaligned_match_ignored(self):
        assert analyze_metadata("0" + "a264697066735822" + self.DIGEST + "0").has_metadata is False

    def test_absent(self):
        info = analyze_metadata("6080604052")
        assert info.has_metadata is False
        assert info.ipfs_hash is None


class TestComplexity:
    def test_low(self):
        info = estimate_complexity(size=100, function_count=2)
        assert info.estimate == 2
        assert info.level == ComplexityLevel.LOW

    def test_minimum_is_one(self):
        assert estimate_complexity(size=10, function_count=0).estimate == 1

    def test_medium_and_high(self):
        assert estimate_complexity(size=2000, function_count=5).level == ComplexityLevel.MEDIUM
        assert estimate_complexity(size=20000, function_count=10).level == ComplexityLevel.HIGH

    def test_level_from_score(self):
        assert level_from_score(29) == ComplexityLevel.LOW
        assert level_from_score(30) == ComplexityLevel.MEDIUM
        assert level_from_score(70) == ComplexityLevel.HIGH
