"""
Provider Configuration Models

Pydantic models validating the vector configuration stored on a space.
Keys use the camelCase names of the stored record (url, token, indexType,
metricType, M, efConstruction, nlist, nprobe, m, nbits, ef) as aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveFloat,
    PositiveInt,
    ValidationError,
    field_validator,
)

from SpaceRAG.Data.VectorDB.metrics import MetricType


class IndexType(str, Enum):
    """Index families a provider can build for a collection."""
    FLAT = "FLAT"
    HNSW = "HNSW"           # graph: M, efConstruction / ef
    IVF_FLAT = "IVF_FLAT"   # clusters: nlist / nprobe
    IVF_SQ8 = "IVF_SQ8"
    IVF_PQ = "IVF_PQ"       # clusters + product quantization: m, nbits


ConfigT = TypeVar("ConfigT", bound="ProviderConfig")

# Metrics usable with dense float vectors
DENSE_METRICS = (MetricType.COSINE, MetricType.IP, MetricType.L2)


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError("must be an absolute URL (scheme://host[:port])")
    return value


class ProviderConfig(BaseModel):
    """Fields shared by every provider configuration."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    metric_type: MetricType = Field(MetricType.COSINE, alias="metricType")
    ef: Optional[PositiveInt] = None

    @field_validator("metric_type")
    @classmethod
    def _dense_metric(cls, value: MetricType) -> MetricType:
        if value not in DENSE_METRICS:
            allowed = [m.value for m in DENSE_METRICS]
            raise ValueError(f"must be one of {allowed} for float vectors")
        return value

    @classmethod
    def cross_field_errors(cls, raw: Mapping[str, Any]) -> List[str]:
        """Rules spanning several fields, checked on the raw mapping."""
        return []


class MilvusConfig(ProviderConfig):
    """Connection and index settings for Milvus / Zilliz Cloud."""
    url: str
    token: str = Field(min_length=1)
    database: str = "default"
    index_type: IndexType = Field(IndexType.HNSW, alias="indexType")
    # HNSW build parameters
    hnsw_m: Optional[PositiveInt] = Field(None, alias="M")
    ef_construction: Optional[PositiveInt] = Field(None, alias="efConstruction")
    # IVF parameters
    nlist: Optional[PositiveInt] = None
    nprobe: Optional[PositiveInt] = None
    # IVF_PQ parameters
    pq_m: Optional[PositiveInt] = Field(None, alias="m")
    nbits: Optional[PositiveInt] = None
    timeout: Optional[PositiveFloat] = None
    # BM25 full-text index over chunk content, fused with the dense search
    enable_full_text_search: bool = Field(False, alias="enableFullTextSearch")
    bm25_k1: float = Field(1.5, alias="bm25K1", ge=0)
    bm25_b: float = Field(0.75, alias="bm25B", ge=0, le=1)
    # Share of the BM25 ranking in the fused score; the dense search gets the rest
    full_text_weight: float = Field(0.3, alias="fullTextWeight", ge=0, le=1)

    @field_validator("url")
    @classmethod
    def _valid_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class QdrantConfig(ProviderConfig):
    """Connection and HNSW settings for Qdrant."""
    url: Optional[str] = None
    api_key: Optional[str] = Field(None, alias="apiKey")
    path: Optional[str] = None
    location: Optional[str] = None
    prefer_grpc: bool = Field(False, alias="preferGrpc")
    timeout: Optional[PositiveInt] = None
    hnsw_m: Optional[PositiveInt] = Field(None, alias="M")
    ef_construction: Optional[PositiveInt] = Field(None, alias="efConstruction")

    @field_validator("url")
    @classmethod
    def _valid_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)

    @classmethod
    def cross_field_errors(cls, raw: Mapping[str, Any]) -> List[str]:
        if not any(raw.get(key) for key in ("url", "path", "location")):
            return ["url: required unless path or location is set"]
        return []


def format_validation_error(error: ValidationError) -> List[str]:
    """Flatten a pydantic ValidationError into 'field: message' strings."""
    messages = []
    for issue in error.errors():
        loc = ".".join(str(part) for part in issue.get("loc", ()))
        msg = issue.get("msg", "invalid value")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


def parse_provider_config(
    model: Type[ConfigT],
    config: Mapping[str, Any],
) -> Tuple[Optional[ConfigT], List[str]]:
    """
    Validate a raw configuration mapping against a config model.

    Returns:
        (parsed model or None, every error found)
    """
    errors: List[str] = []
    parsed: Optional[ConfigT] = None

    try:
        parsed = model.model_validate(dict(config))
    except ValidationError as e:
        errors.extend(format_validation_error(e))

    errors.extend(model.cross_field_errors(config))
    return (None if errors else parsed), errors


def dump_config(config: ProviderConfig) -> Dict[str, Any]:
    """Serialize a parsed config back to its stored (aliased) form."""
    return config.model_dump(by_alias=True, exclude_none=True, mode="json")
