from service_clients.clients.rag_embeddings.client import RagEmbeddingsClient
from service_clients.clients.rag_embeddings.schemas import (
    EmbeddingType,
    GuidelineEmbedRequest,
    PatientContextRequest,
    SimilaritySearchRequest,
    SimilaritySearchResponse,
    TemplateEmbedRequest,
)

__all__ = [
    "RagEmbeddingsClient",
    "EmbeddingType",
    "GuidelineEmbedRequest",
    "PatientContextRequest",
    "SimilaritySearchRequest",
    "SimilaritySearchResponse",
    "TemplateEmbedRequest",
]
