"""Tests for JSON / CSV export and the Markdown summary (bytescope/reports/exporter.py)."""

from __future__ import annotations

import csv
import io
import json
import re
from pathlib import Path

import pytest

from bytescope.analyzer.similarity import compare_contracts
from bytescope.core.types import ContractComparison
from bytescope.reports.exporter import (
    BytecodeExporter,
    ExportFormat,
    format_bytes,
)
from conftest import ADDR_A, ADDR_B, ADDR_C, make_analysis


@pytest.fixture
def exporter() -> BytecodeExporter:
    return BytecodeExporter(version="2.1.0")


@pytest.fixture
def comparison() -> ContractComparison:
    return compare_contracts([
        make_analysis(ADDR_A, ["0x00000001"], size=300, is_proxy=True, name="Proxy"),
        make_analysis(ADDR_B, ["0x00000002", "0x00000003"], size=4096, name="Logic"),
        make_analysis(ADDR_C, ["0x00000002", "0x00000003"], size=2 * 1024 * 1024, name="Fork"),
    ])


class TestFormatBytes:
    @pytest.mark.parametrize(
        "size, expected",
        [
            (0, "0B"),
            (512, "512B"),
            (1023, "1023B"),
            (1024, "1.0KB"),
            (1536, "1.5KB"),
            (1024 * 1024, "1.0MB"),
            (5 * 1024 * 1024 + 512 * 1024, "5.5MB"),
        ],
    )
    def test_format(self, size, expected):
        assert format_bytes(size) == expected


class TestJsonExport:
    def test_comparison_layout(self, exporter, comparison):
        artifact = exporter.export_comparison(comparison, ExportFormat.JSON, {"network": "sepolia"})
        data = json.loads(artifact.content)

        assert set(data) == {"metadata", "summary", "contracts", "similarities", "relationships"}
        assert data["metadata"]["version"] == "2.1.0"
        assert data["metadata"]["network"] == "sepolia"
        assert data["metadata"]["analysis_type"] == "multiple"
        assert data["metadata"]["total_contracts"] == 3
        assert data["contracts"][1]["size_formatted"] == "4.0KB"
        assert data["contracts"][2]["size_formatted"] == "2.0MB"
        assert artifact.media_type == "application/json"

    def test_summary(self, exporter, comparison):
        data = json.loads(exporter.export_comparison(comparison).content)
        summary = data["summary"]
        assert summary["total_contracts"] == 3
        assert summary["total_similarities"] == 3
        assert summary["proxy_contracts_count"] == 1
        assert summary["total_relationships"] == len(comparison.relationships)

    def test_round_trip(self, exporter, comparison):
        artifact = exporter.export_comparison(comparison)
        restored = BytecodeExporter.load_comparison(artifact.content)

        assert len(restored.contracts) == len(comparison.contracts)
        assert [s.similarity for s in restored.similarities] == [
            s.similarity for s in comparison.similarities
        ]
        assert [r.type for r in restored.relationships] == [
            r.type for r in comparison.relationships
        ]
        assert restored == comparison

    def test_single_analysis(self, exporter):
        analysis = make_analysis(ADDR_A, ["0x00000001"], size=2048)
        data = json.loads(exporter.export_analysis(analysis).content)
        assert set(data) == {"metadata", "contract"}
        assert data["metadata"]["analysis_type"] == "single"
        assert data["metadata"]["total_contracts"] == 1
        assert data["contract"]["address"] == ADDR_A
        assert data["contract"]["size_formatted"] == "2.0KB"

    def test_default_filename(self, exporter, comparison):
        artifact = exporter.export_comparison(comparison, "json")
        assert re.fullmatch(r"bytecode-analysis-\d{4}-\d{2}-\d{2}\.json", artifact.filename)

    def test_custom_filename(self, exporter, comparison):
        artifact = exporter.export_comparison(comparison, filename="report.json")
        assert artifact.filename == "report.json"


class TestCsvExport:
    def test_three_sections(self, exporter, comparison):
        artifact = exporter.export_comparison(comparison, ExportFormat.CSV)
        rows = list(csv.reader(io.StringIO(artifact.content)))

        assert artifact.media_type == "text/csv"
        assert artifact.filename.endswith(".csv")
        titles = [r[0] for r in rows if len(r) == 1]
        assert titles == ["Contract Analysis Summary", "Detected Functions", "Contract Similarities"]
        # Sections are separated by blank rows
        assert rows.count([]) == 2

    def test_summary_rows(self, exporter, comparison):
        rows = list(csv.reader(io.StringIO(exporter.export_comparison(comparison, "csv").content)))
        header = rows[1]
        assert header[0] == "Address"
        proxy_row = rows[2]
        assert proxy_row[0] == ADDR_A
        assert proxy_row[1] == "Proxy"
        assert proxy_row[header.index("Is Proxy")] == "true"
        assert proxy_row[header.index("Size (formatted)")] == "300B"

    def test_function_and_similarity_rows(self, exporter, comparison):
        content = exporter.export_comparison(comparison, "csv").content
        rows = list(csv.reader(io.StringIO(content)))
        functions_at = rows.index(["Detected Functions"])
        similarities_at = rows.index(["Contract Similarities"])

        function_rows = rows[functions_at + 2:similarities_at - 1]
        assert len(function_rows) == 5
        similarity_rows = rows[similarities_at + 2:]
        assert len(similarity_rows) == 3
        assert similarity_rows[0][2] == "100.0"

    def test_single_analysis_csv(self, exporter):
        analysis = make_analysis(ADDR_A, ["0x00000001"])
        rows = list(csv.reader(io.StringIO(exporter.export_analysis(analysis, "csv").content)))
        assert rows[2][0] == ADDR_A
        assert rows[-1] == ["Contract A", "Contract B", "Similarity (%)", "Shared Functions", "Total Functions"]


class TestReportsAndLinks:
    def test_summary_report(self, exporter, comparison):
        report = exporter.summary_report(comparison)
        assert report.startswith("# Bytecode Analysis Summary")
        assert "| Contracts | 3 |" in report
        assert "### Logic" in report
        assert "- Proxy: Transparent Proxy" in report
        assert "**proxy-implementation**" in report
        assert "## Similarities" in report

    def test_summary_report_single_contract(self, exporter):
        report = exporter.summary_report(compare_contracts([make_analysis(ADDR_A, [])]))
        assert "## Similarities" not in report
        assert "## Relationships" not in report

    def test_shareable_url_addresses(self):
        url = BytecodeExporter.shareable_url("http://app.test/", [ADDR_A, ADDR_B], "sepolia")
        assert url.startswith("http://app.test/bytecode-analysis?")
        assert f"addresses={ADDR_A}%2C{ADDR_B}" in url
        assert "network=sepolia" in url

    def test_shareable_url_transaction(self):
        url = BytecodeExporter.shareable_url("http://app.test", [], tx_hash="0xabc")
        assert "txHash=0xabc" in url
        assert "addresses" not in url

    def test_write(self, exporter, comparison, tmp_path: Path):
        artifact = exporter.export_comparison(comparison, filename="out.json")
        path = BytecodeExporter.write(artifact, tmp_path / "exports")
        assert path == tmp_path / "exports" / "out.json"
        assert json.loads(path.read_text())["summary"]["total_contracts"] == 3
