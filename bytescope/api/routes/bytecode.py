"""Bytecode analysis endpoints: analyse, compare and export contracts."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from bytescope.analyzer.similarity import (
    comparison_insights,
    filter_comparison,
    similarity_matrix,
)
from bytescope.core.config import get_settings
from bytescope.core.types import (
    BytecodeAnalysis,
    ComparisonInsights,
    ContractComparison,
    ContractInput,
)
from bytescope.pipeline.service import AnalysisService
from bytescope.reports.exporter import AnalysisType, BytecodeExporter, ExportFormat

logger = logging.getLogger(__name__)

router = APIRouter()

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
TX_HASH_PATTERN = r"^0x[a-fA-F0-9]{64}$"


def get_service(request: Request) -> AnalysisService:
    return request.app.state.service


# ── Schemas ──────────────────────────────────────────────────────────────────


class AnalyzeRequest(BaseModel):
    """Analyse a single deployed contract."""

    address: str = Field(..., pattern=ADDRESS_PATTERN, description="Contract address (0x...)")
    name: str | None = None
    block_tag: str = "latest"


class CompareRequest(BaseModel):
    """Analyse and compare a set of deployed contracts."""

    contracts: list[ContractInput] = Field(..., min_length=1)
    block_tag: str = "latest"
    min_similarity: float = Field(0.0, ge=0.0, le=100.0)
    include_relationships: bool = True


class TransactionRequest(BaseModel):
    """Analyse every contract touched by a transaction."""

    tx_hash: str = Field(..., pattern=TX_HASH_PATTERN)
    block_tag: str = "latest"
    min_similarity: float = Field(0.0, ge=0.0, le=100.0)
    include_relationships: bool = True


class CompareResponse(BaseModel):
    comparison: ContractComparison
    matrix: list[list[float]]
    insights: ComparisonInsights


class ExportRequest(BaseModel):
    comparison: ContractComparison
    format: ExportFormat = ExportFormat.JSON
    network: str = "mainnet"
    analysis_type: AnalysisType = AnalysisType.MULTIPLE
    filename: str | None = None


def _compare_response(
    comparison: ContractComparison,
    min_similarity: float,
    include_relationships: bool,
) -> CompareResponse:
    view = filter_comparison(comparison, min_similarity, include_relationships)
    return CompareResponse(
        comparison=view,
        matrix=similarity_matrix(comparison),
        insights=comparison_insights(comparison),
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/analyze", response_model=BytecodeAnalysis)
async def analyze_contract(
    req: AnalyzeRequest,
    service: AnalysisService = Depends(get_service),
) -> BytecodeAnalysis:
    return await service.analyze_contract(req.address, req.name, req.block_tag)


@router.post("/compare", response_model=CompareResponse)
async def compare_contracts(
    req: CompareRequest,
    service: AnalysisService = Depends(get_service),
) -> CompareResponse:
    """Analyse each contract, skipping failures, and compare the rest."""
    comparison = await service.analyze_multiple_contracts(req.contracts, req.block_tag)
    return _compare_response(comparison, req.min_similarity, req.include_relationships)


@router.post("/transaction", response_model=CompareResponse)
async def analyze_transaction(
    req: TransactionRequest,
    service: AnalysisService = Depends(get_service),
) -> CompareResponse:
    comparison = await service.analyze_from_transaction(req.tx_hash, req.block_tag)
    return _compare_response(comparison, req.min_similarity, req.include_relationships)


@router.get("/transaction/{tx_hash}")
async def transaction_info(
    tx_hash: str = Path(pattern=TX_HASH_PATTERN),
    service: AnalysisService = Depends(get_service),
) -> dict[str, Any]:
    """Sender, gas, status and log count of a mined transaction."""
    return await service.get_transaction_info(tx_hash)


@router.post("/export")
async def export_comparison(req: ExportRequest) -> Response:
    """Download a comparison as a JSON or CSV attachment."""
    exporter = BytecodeExporter(version=get_settings().export_version)
    artifact = exporter.export_comparison(
        req.comparison,
        req.format,
        metadata={"network": req.network, "analysis_type": req.analysis_type},
        filename=req.filename,
    )
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


@router.get("/cache/stats")
async def cache_stats(service: AnalysisService = Depends(get_service)) -> dict[str, Any]:
    return service.cache.stats()


@router.delete("/cache")
async def clear_cache(service: AnalysisService = Depends(get_service)) -> dict[str, Any]:
    cleared = len(service.cache)
    service.cache.clear()
    logger.info("Cleared %d cached analyses", cleared)
    return {"cleared": cleared}
