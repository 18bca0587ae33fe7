from service_clients.clients.careplan_recommender.client import CarePlanRecommenderClient
from service_clients.clients.careplan_recommender.schemas import (
    EngineRecommendRequest,
    FullContextRequest,
    PatientDemographics,
    RecommendResponse,
    SimpleRecommendRequest,
    TrainingJobResponse,
    TrainingJobStatus,
)

__all__ = [
    "CarePlanRecommenderClient",
    "EngineRecommendRequest",
    "FullContextRequest",
    "PatientDemographics",
    "RecommendResponse",
    "SimpleRecommendRequest",
    "TrainingJobResponse",
    "TrainingJobStatus",
]
