"""
ML service clients.

Inter-service clients with retry, circuit breaker, S2S JWT and
degraded-mode fallbacks, one subclass per downstream service.
"""

from service_clients.clients.audio_intelligence import AudioIntelligenceClient
from service_clients.clients.base import RequestOptions, ResilientClient
from service_clients.clients.careplan_recommender import CarePlanRecommenderClient
from service_clients.clients.pdf_parser import PdfParserClient
from service_clients.clients.rag_embeddings import RagEmbeddingsClient
from service_clients.clients.wire import WireModel

__all__ = [
    "AudioIntelligenceClient",
    "CarePlanRecommenderClient",
    "PdfParserClient",
    "RagEmbeddingsClient",
    "RequestOptions",
    "ResilientClient",
    "WireModel",
]
