"""
Embedding Model Registry.

Catalogue of the embedding models a space can be configured with, keyed by
"<provider>/<model>" id. Each entry lists the output dimensions the model
supports; a space's embedding dimension must be one of them.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from SpaceRAG.Data.Embeddings.base import EmbeddingProvider
from SpaceRAG.exceptions import UnsupportedEmbeddingDimensionError


@dataclass(frozen=True)
class EmbeddingModelDefinition:
    """
    A catalogue entry.

    Attributes:
        id: "<provider>/<model>"
        name: Display name
        provider: Vendor of the model
        dimensions: Supported output dimensions
        default_dim: Dimension used when a space does not pick one
        max_tokens: Input token limit
        cost_per_1m: USD per million input tokens, when published
        description: Short summary for selectors
    """
    id: str
    name: str
    provider: EmbeddingProvider
    dimensions: Tuple[int, ...]
    default_dim: int
    max_tokens: int
    cost_per_1m: Optional[float] = None
    description: Optional[str] = None

    @property
    def model_name(self) -> str:
        """The vendor model name, without the provider prefix."""
        return self.id.split("/", 1)[1]

    @property
    def configurable_dimensions(self) -> bool:
        return len(self.dimensions) > 1


_MODELS: List[EmbeddingModelDefinition] = [
    # ===== OPENAI =====
    EmbeddingModelDefinition(
        id="openai/text-embedding-3-large",
        name="Text Embedding 3 Large",
        provider=EmbeddingProvider.OPENAI,
        dimensions=(256, 512, 1024, 1536, 3072),
        default_dim=3072,
        max_tokens=8191,
        cost_per_1m=0.13,
        description="Most capable embedding model with configurable dimensions",
    ),
    EmbeddingModelDefinition(
        id="openai/text-embedding-3-small",
        name="Text Embedding 3 Small",
        provider=EmbeddingProvider.OPENAI,
        dimensions=(512, 1536),
        default_dim=1536,
        max_tokens=8191,
        cost_per_1m=0.02,
        description="Fast and affordable for most use cases",
    ),
    EmbeddingModelDefinition(
        id="openai/text-embedding-ada-002",
        name="Text Embedding Ada 002",
        provider=EmbeddingProvider.OPENAI,
        dimensions=(1536,),
        default_dim=1536,
        max_tokens=8191,
        cost_per_1m=0.1,
        description="Legacy model",
    ),

    # ===== COHERE =====
    EmbeddingModelDefinition(
        id="cohere/embed-v4.0",
        name="Embed V4.0",
        provider=EmbeddingProvider.COHERE,
        dimensions=(256, 512, 1024, 1536),
        default_dim=1536,
        max_tokens=128000,
        cost_per_1m=0.12,
        description="Multilingual multimodal embedding model",
    ),
    EmbeddingModelDefinition(
        id="cohere/embed-english-v3.0",
        name="Embed English V3.0",
        provider=EmbeddingProvider.COHERE,
        dimensions=(1024,),
        default_dim=1024,
        max_tokens=512,
        cost_per_1m=0.1,
        description="Optimized for English text",
    ),
    EmbeddingModelDefinition(
        id="cohere/embed-multilingual-v3.0",
        name="Embed Multilingual V3.0",
        provider=EmbeddingProvider.COHERE,
        dimensions=(1024,),
        default_dim=1024,
        max_tokens=512,
        cost_per_1m=0.1,
        description="Supports 100+ languages",
    ),

    # ===== GOOGLE =====
    EmbeddingModelDefinition(
        id="google/gemini-embedding-001",
        name="Gemini Embedding 001",
        provider=EmbeddingProvider.GOOGLE,
        dimensions=(768, 1536, 3072),
        default_dim=3072,
        max_tokens=2048,
        cost_per_1m=0.15,
        description="Multilingual embedding with MRL support",
    ),
    EmbeddingModelDefinition(
        id="google/text-embedding-004",
        name="Text Embedding 004",
        provider=EmbeddingProvider.GOOGLE,
        dimensions=(768,),
        default_dim=768,
        max_tokens=2048,
        description="Legacy Gecko model",
    ),

    # ===== VOYAGE =====
    EmbeddingModelDefinition(
        id="voyage/voyage-3-large",
        name="Voyage 3 Large",
        provider=EmbeddingProvider.VOYAGE,
        dimensions=(256, 512, 1024, 2048),
        default_dim=2048,
        max_tokens=32000,
        description="General-purpose embedding, highest quality",
    ),
    EmbeddingModelDefinition(
        id="voyage/voyage-3",
        name="Voyage 3",
        provider=EmbeddingProvider.VOYAGE,
        dimensions=(256, 512, 1024, 2048),
        default_dim=1024,
        max_tokens=32000,
        cost_per_1m=0.06,
    ),
    EmbeddingModelDefinition(
        id="voyage/voyage-3-lite",
        name="Voyage 3 Lite",
        provider=EmbeddingProvider.VOYAGE,
        dimensions=(256, 512, 1024, 2048),
        default_dim=512,
        max_tokens=32000,
        cost_per_1m=0.02,
    ),
    EmbeddingModelDefinition(
        id="voyage/voyage-code-3",
        name="Voyage Code 3",
        provider=EmbeddingProvider.VOYAGE,
        dimensions=(256, 512, 1024, 2048),
        default_dim=1024,
        max_tokens=32000,
        description="Specialized for code retrieval",
    ),

    # ===== MISTRAL =====
    EmbeddingModelDefinition(
        id="mistral/mistral-embed",
        name="Mistral Embed",
        provider=EmbeddingProvider.MISTRAL,
        dimensions=(1024,),
        default_dim=1024,
        max_tokens=8000,
    ),
]

EMBEDDING_MODEL_REGISTRY: Dict[str, EmbeddingModelDefinition] = {m.id: m for m in _MODELS}


def get_embedding_model(model_id: str) -> Optional[EmbeddingModelDefinition]:
    """
    Look up a model by id.

    Example:
        >>> get_embedding_model("cohere/embed-v4.0").default_dim
        1536
        >>> get_embedding_model("unknown/model") is None
        True
    """
    return EMBEDDING_MODEL_REGISTRY.get(model_id)


def validate_dimension(model_id: str, dimension: int) -> bool:
    """True if the model is known and offers the dimension."""
    model = get_embedding_model(model_id)
    return model is not None and dimension in model.dimensions


def ensure_dimension(
    model_id: str,
    dimension: int,
    supported: Optional[List[int]] = None,
) -> None:
    """
    Raise unless the dimension is offered by the model.

    Args:
        model_id: Catalogue id of the model
        dimension: The space's configured dimension
        supported: Dimensions stored with the space, overriding the catalogue

    Raises:
        UnsupportedEmbeddingDimensionError: Unknown model or unsupported dimension
    """
    if supported is None:
        model = get_embedding_model(model_id)
        supported = list(model.dimensions) if model else []

    if isinstance(dimension, bool) or dimension not in supported:
        raise UnsupportedEmbeddingDimensionError(model_id, dimension, supported)


def get_models_by_provider(provider: EmbeddingProvider) -> List[EmbeddingModelDefinition]:
    """All catalogue entries from one vendor."""
    return [m for m in _MODELS if m.provider == provider]


def get_all_providers() -> List[EmbeddingProvider]:
    """Vendors present in the catalogue, in catalogue order."""
    return list(dict.fromkeys(m.provider for m in _MODELS))
