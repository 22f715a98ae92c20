"""Shared enums and schemas used across the engine."""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class Category(str, enum.Enum):
    """Category a known function selector belongs to."""

    ERC20 = "ERC20"
    ERC721 = "ERC721"
    ERC1155 = "ERC1155"
    PROXY = "Proxy"
    SECURITY = "Security"
    DEFI = "DeFi"
    GAS_OPTIMIZATION = "Gas Optimization"
    UNKNOWN = "Unknown"


class ComplexityLevel(str, enum.Enum):
    """Coarse complexity tier."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RelationshipType(str, enum.Enum):
    """Kind of relationship inferred between two contracts."""

    PROXY_IMPLEMENTATION = "proxy-implementation"
    SIMILAR = "similar"
    RELATED = "related"


class ContractSource(str, enum.Enum):
    """How a contract was touched by a transaction."""

    TARGET = "target"
    CREATED = "created"
    EVENT_EMITTER = "event_emitter"


# ── Per-contract schemas ─────────────────────────────────────────────────────


class DetectedFunction(BaseModel):
    """A known function selector found in bytecode."""

    signature: str
    name: str
    category: Category


class ComplexityInfo(BaseModel):
    """Local estimate plus the detector's 0-100 score."""

    estimate: int = 1
    level: ComplexityLevel = ComplexityLevel.LOW
    score: int = 0


class SecurityInfo(BaseModel):
    has_controls: bool = False
    features: list[str] = Field(default_factory=list)


class ProxyInfo(BaseModel):
    is_proxy: bool = False
    type: str | None = None


class MetadataInfo(BaseModel):
    """Solidity CBOR metadata trailer contents."""

    has_metadata: bool = False
    ipfs_hash: str | None = None
    solc_version: str | None = None


class StandardCompliance(BaseModel):
    """How closely a contract's selectors match a token standard."""

    standard: str
    compliance: int = Field(ge=0, le=100)
    missing_functions: list[str] = Field(default_factory=list)
    extra_functions: list[str] = Field(default_factory=list)


class PatternDetection(BaseModel):
    """A selector recognised by the enhanced pattern detector."""

    signature: str
    name: str
    category: Category
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    standard: str | None = None


class PatternAnalysisResult(BaseModel):
    """Output contract of a pattern detector."""

    total_signatures: int = 0
    detected_patterns: list[PatternDetection] = Field(default_factory=list)
    standards_compliance: list[StandardCompliance] = Field(default_factory=list)
    security_features: list[str] = Field(default_factory=list)
    proxy_type: str | None = None
    complexity_score: int = Field(default=0, ge=0, le=100)
    gas_optimization_features: list[str] = Field(default_factory=list)


class BytecodeAnalysis(BaseModel):
    """Structural fingerprint of one deployed contract."""

    address: str
    contract_name: str
    size: int
    standards: list[str] = Field(default_factory=list)
    functions: list[DetectedFunction] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)
    complexity: ComplexityInfo = Field(default_factory=ComplexityInfo)
    security: SecurityInfo = Field(default_factory=SecurityInfo)
    proxy: ProxyInfo = Field(default_factory=ProxyInfo)
    metadata: MetadataInfo = Field(default_factory=MetadataInfo)
    gas_optimizations: list[str] = Field(default_factory=list)
    standards_compliance: list[StandardCompliance] = Field(default_factory=list)

    @property
    def signatures(self) -> set[str]:
        return {f.signature for f in self.functions}


# ── Comparison schemas ───────────────────────────────────────────────────────


class SimilarityMetric(BaseModel):
    """Jaccard similarity between two contracts' selector sets."""

    contract_a: str
    contract_b: str
    similarity: float = Field(ge=0.0, le=100.0)
    shared_functions: int = 0
    total_functions: int = 0


class ContractRelationship(BaseModel):
    type: RelationshipType
    contracts: list[str]
    description: str
    confidence: float = Field(ge=0.0, le=1.0)


class ContractComparison(BaseModel):
    """Result of comparing a set of analysed contracts."""

    contracts: list[BytecodeAnalysis] = Field(default_factory=list)
    similarities: list[SimilarityMetric] = Field(default_factory=list)
    relationships: list[ContractRelationship] = Field(default_factory=list)


class ComparisonInsights(BaseModel):
    """Aggregate statistics over a comparison."""

    avg_similarity: float = 0.0
    max_similarity: float = 0.0
    min_similarity: float = 0.0
    proxy_count: int = 0
    standards_count: int = 0
    total_contracts: int = 0
    total_relationships: int = 0


# ── Inputs ───────────────────────────────────────────────────────────────────


class ContractInput(BaseModel):
    """A contract to analyse, optionally with a display name."""

    address: str
    name: str | None = None


class TransactionContract(BaseModel):
    """A contract with bytecode touched by a transaction."""

    address: str
    name: str
    source: ContractSource
    transaction_hash: str


def shorten_address(address: str, chars: int = 4) -> str:
    """``0x1234...abcd`` style abbreviation."""
    if not address or len(address) < 10:
        return address
    return f"{address[:2 + chars]}...{address[-chars:]}"
