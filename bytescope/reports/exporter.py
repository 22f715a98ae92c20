"""Export bytecode analyses as JSON / CSV artifacts and Markdown summaries."""

from __future__ import annotations

import csv
import enum
import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader
from pydantic import BaseModel, Field

from bytescope.core.types import BytecodeAnalysis, ContractComparison

TEMPLATE_DIR = Path(__file__).parent / "templates"


class ExportFormat(str, enum.Enum):
    JSON = "json"
    CSV = "csv"


class AnalysisType(str, enum.Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    TRANSACTION = "transaction"


class ExportMetadata(BaseModel):
    """Provenance attached to every export."""

    export_time: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    version: str = "1.0.0"
    network: str = "mainnet"
    analysis_type: AnalysisType = AnalysisType.MULTIPLE
    total_contracts: int = 0


class ExportArtifact(BaseModel):
    """A downloadable export."""

    filename: str
    content: str
    media_type: str


MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
}


def format_bytes(size: float) -> str:
    if size < 1024:
        return f"{size:g}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


def default_filename(fmt: ExportFormat) -> str:
    return f"bytecode-analysis-{datetime.now(timezone.utc).date().isoformat()}.{fmt.value}"


class BytecodeExporter:
    """Serialise analyses and comparisons for download.

    Features:
    - JSON export with metadata and a summary block
    - CSV export with summary, function and similarity tables
    - JSON re-import of comparison exports
    - Markdown summary report rendered with Jinja2
    """

    def __init__(self, version: str = "1.0.0") -> None:
        self.version = version
        self._jinja_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._jinja_env.filters["format_bytes"] = format_bytes

    # ── Public API ───────────────────────────────────────────────────────

    def export_comparison(
        self,
        comparison: ContractComparison,
        fmt: ExportFormat | str = ExportFormat.JSON,
        metadata: dict[str, Any] | None = None,
        filename: str | None = None,
    ) -> ExportArtifact:
        fmt = ExportFormat(fmt)
        meta = self._metadata(AnalysisType.MULTIPLE, len(comparison.contracts), metadata)
        data = self.comparison_data(comparison, meta)
        return self._artifact(data, fmt, filename)

    def export_analysis(
        self,
        analysis: BytecodeAnalysis,
        fmt: ExportFormat | str = ExportFormat.JSON,
        metadata: dict[str, Any] | None = None,
        filename: str | None = None,
    ) -> ExportArtifact:
        fmt = ExportFormat(fmt)
        meta = self._metadata(AnalysisType.SINGLE, 1, metadata)
        data = {
            "metadata": meta.model_dump(mode="json"),
            "contract": self._contract_data(analysis),
        }
        return self._artifact(data, fmt, filename)

    @staticmethod
    def load_comparison(text: str) -> ContractComparison:
        """Rebuild a comparison from a JSON export."""
        data = json.loads(text)
        return ContractComparison.model_validate({
            "contracts": data.get("contracts", []),
            "similarities": data.get("similarities", []),
            "relationships": data.get("relationships", []),
        })

    @staticmethod
    def write(artifact: ExportArtifact, directory: str | Path = ".") -> Path:
        """Write an artifact to disk and return its path."""
        path = Path(directory) / artifact.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(artifact.content, encoding="utf-8")
        return path

    def summary_report(self, comparison: ContractComparison) -> str:
        """Render a Markdown summary of a comparison."""
        template = self._jinja_env.get_template("summary.md.j2")
        summary = self._summary(comparison)
        return template.render(
            generated=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
            summary=summary,
            comparison=comparison,
        )

    @staticmethod
    def shareable_url(
        base_url: str,
        addresses: list[str],
        network: str = "mainnet",
        tx_hash: str | None = None,
    ) -> str:
        """Deep link back into the dashboard's bytecode analysis page."""
        params = {"txHash": tx_hash} if tx_hash else {"addresses": ",".join(addresses)}
        params["network"] = network
        return f"{base_url.rstrip('/')}/bytecode-analysis?{urlencode(params)}"

    # ── Data preparation ─────────────────────────────────────────────────

    def comparison_data(
        self,
        comparison: ContractComparison,
        metadata: ExportMetadata,
    ) -> dict[str, Any]:
        return {
            "metadata": metadata.model_dump(mode="json"),
            "summary": self._summary(comparison),
            "contracts": [self._contract_data(c) for c in comparison.contracts],
            "similarities": [s.model_dump(mode="json") for s in comparison.similarities],
            "relationships": [r.model_dump(mode="json") for r in comparison.relationships],
        }

    def _metadata(
        self,
        analysis_type: AnalysisType,
        total: int,
        overrides: dict[str, Any] | None,
    ) -> ExportMetadata:
        fields: dict[str, Any] = {
            "version": self.version,
            "analysis_type": analysis_type,
            "total_contracts": total,
        }
        fields.update(overrides or {})
        return ExportMetadata.model_validate(fields)

    @staticmethod
    def _summary(comparison: ContractComparison) -> dict[str, Any]:
        contracts = comparison.contracts
        return {
            "total_contracts": len(contracts),
            "total_similarities": len(comparison.similarities),
            "total_relationships": len(comparison.relationships),
            "average_size": sum(c.size for c in contracts) / len(contracts) if contracts else 0,
            "standards_found": list(dict.fromkeys(s for c in contracts for s in c.standards)),
            "security_features_found": list(
                dict.fromkeys(f for c in contracts for f in c.security.features)
            ),
            "proxy_contracts_count": sum(1 for c in contracts if c.proxy.is_proxy),
        }

    @staticmethod
    def _contract_data(analysis: BytecodeAnalysis) -> dict[str, Any]:
        data = analysis.model_dump(mode="json")
        data["size_formatted"] = format_bytes(analysis.size)
        return data

    # ── Serialisation ────────────────────────────────────────────────────

    def _artifact(
        self,
        data: dict[str, Any],
        fmt: ExportFormat,
        filename: str | None,
    ) -> ExportArtifact:
        if fmt == ExportFormat.JSON:
            content = json.dumps(data, indent=2)
        else:
            content = self._to_csv(data)
        return ExportArtifact(
            filename=filename or default_filename(fmt),
            content=content,
            media_type=MEDIA_TYPES[fmt],
        )

    @staticmethod
    def _to_csv(data: dict[str, Any]) -> str:
        contracts = data.get("contracts") or ([data["contract"]] if "contract" in data else [])
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")

        writer.writerow(["Contract Analysis Summary"])
        writer.writerow([
            "Address", "Name", "Size (bytes)", "Size (formatted)", "Standards",
            "Functions Count", "Complexity Level", "Complexity Score",
            "Security Features", "Is Proxy", "Proxy Type",
        ])
        for c in contracts:
            writer.writerow([
                c["address"],
                c["contract_name"],
                c["size"],
                c["size_formatted"],
                ", ".join(c["standards"]),
                len(c["functions"]),
                c["complexity"]["level"],
                c["complexity"]["score"],
                ", ".join(c["security"]["features"]),
                str(c["proxy"]["is_proxy"]).lower(),
                c["proxy"]["type"] or "",
            ])
        writer.writerow([])

        writer.writerow(["Detected Functions"])
        writer.writerow(["Contract Address", "Contract Name", "Signature", "Function Name", "Category"])
        for c in contracts:
            for func in c["functions"]:
                writer.writerow([
                    c["address"], c["contract_name"], func["signature"], func["name"], func["category"],
                ])
        writer.writerow([])

        writer.writerow(["Contract Similarities"])
        writer.writerow(["Contract A", "Contract B", "Similarity (%)", "Shared Functions", "Total Functions"])
        for sim in data.get("similarities", []):
            writer.writerow([
                sim["contract_a"], sim["contract_b"], sim["similarity"],
                sim["shared_functions"], sim["total_functions"],
            ])

        return buf.getvalue()
