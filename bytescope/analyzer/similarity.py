"""Pairwise similarity and relationship inference across a contract set."""

from __future__ import annotations

import logging
import math

from bytescope.core.types import (
    BytecodeAnalysis,
    ComparisonInsights,
    ContractComparison,
    ContractRelationship,
    RelationshipType,
    SimilarityMetric,
)

logger = logging.getLogger(__name__)

SIMILAR_THRESHOLD = 80.0
PROXY_CONFIDENCE = 0.95


def round2(value: float) -> float:
    """Round half-up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def calculate_similarity(a: BytecodeAnalysis, b: BytecodeAnalysis) -> SimilarityMetric:
    """Jaccard index over the two contracts' selector sets, as a percentage."""
    sigs_a = a.signatures
    sigs_b = b.signatures
    shared = sigs_a & sigs_b
    union = sigs_a | sigs_b
    similarity = len(shared) / len(union) * 100 if union else 0.0
    return SimilarityMetric(
        contract_a=a.address,
        contract_b=b.address,
        similarity=round2(similarity),
        shared_functions=len(shared),
        total_functions=len(union),
    )


def _proxy_for(proxy: BytecodeAnalysis, impl: BytecodeAnalysis) -> ContractRelationship | None:
    if proxy.proxy.is_proxy and not impl.proxy.is_proxy and proxy.size < impl.size:
        return ContractRelationship(
            type=RelationshipType.PROXY_IMPLEMENTATION,
            contracts=[proxy.address, impl.address],
            description=f"{proxy.contract_name} appears to be a proxy for {impl.contract_name}",
            confidence=PROXY_CONFIDENCE,
        )
    return None


def detect_relationship(
    a: BytecodeAnalysis,
    b: BytecodeAnalysis,
    similarity: SimilarityMetric | None = None,
) -> ContractRelationship | None:
    """Infer at most one relationship for a pair.

    A smaller proxy next to a larger non-proxy wins over similarity.
    """
    relationship = _proxy_for(a, b) or _proxy_for(b, a)
    if relationship:
        return relationship

    metric = similarity or calculate_similarity(a, b)
    if metric.similarity > SIMILAR_THRESHOLD:
        return ContractRelationship(
            type=RelationshipType.SIMILAR,
            contracts=[a.address, b.address],
            description=f"Contracts share {metric.similarity:g}% function similarity",
            confidence=metric.similarity / 100,
        )
    return None


def compare_contracts(analyses: list[BytecodeAnalysis]) -> ContractComparison:
    """Compare every unordered pair of analyses."""
    similarities: list[SimilarityMetric] = []
    relationships: list[ContractRelationship] = []

    for i, first in enumerate(analyses):
        for second in analyses[i + 1:]:
            metric = calculate_similarity(first, second)
            similarities.append(metric)
            relationship = detect_relationship(first, second, metric)
            if relationship:
                relationships.append(relationship)

    similarities.sort(key=lambda s: s.similarity, reverse=True)
    logger.info(
        "Compared %d contracts: %d pairs, %d relationships",
        len(analyses), len(similarities), len(relationships),
    )
    return ContractComparison(
        contracts=list(analyses),
        similarities=similarities,
        relationships=relationships,
    )


# ── Views over a comparison ──────────────────────────────────────────────────


def filter_comparison(
    comparison: ContractComparison,
    min_similarity: float = 0.0,
    include_relationships: bool = True,
) -> ContractComparison:
    """Drop similarities under a threshold and optionally all relationships."""
    return ContractComparison(
        contracts=comparison.contracts,
        similarities=[s for s in comparison.similarities if s.similarity >= min_similarity],
        relationships=comparison.relationships if include_relationships else [],
    )


def similarity_matrix(comparison: ContractComparison) -> list[list[float]]:
    """Symmetric N x N matrix in contract order with 100 on the diagonal."""
    index = {c.address: i for i, c in enumerate(comparison.contracts)}
    size = len(comparison.contracts)
    matrix = [[0.0] * size for _ in range(size)]
    for i in range(size):
        matrix[i][i] = 100.0
    for metric in comparison.similarities:
        i = index.get(metric.contract_a)
        j = index.get(metric.contract_b)
        if i is None or j is None:
            continue
        matrix[i][j] = metric.similarity
        matrix[j][i] = metric.similarity
    return matrix


def comparison_insights(comparison: ContractComparison) -> ComparisonInsights:
    values = [s.similarity for s in comparison.similarities]
    return ComparisonInsights(
        avg_similarity=round2(sum(values) / len(values)) if values else 0.0,
        max_similarity=max(values, default=0.0),
        min_similarity=min(values, default=0.0),
        proxy_count=sum(1 for c in comparison.contracts if c.proxy.is_proxy),
        standards_count=len({s for c in comparison.contracts for s in c.standards}),
        total_contracts=len(comparison.contracts),
        total_relationships=len(comparison.relationships),
    )
