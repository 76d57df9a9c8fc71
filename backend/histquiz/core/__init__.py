# backend/histquiz/core/__init__.py
"""
Core package for the world-history quiz generator.
Exposes the request/response models and the host-independent endpoint.
"""

from .schemas import (
    GenerationRequest,
    QuizPayload,
    ErrorResponse,
)
from .endpoint import GenerationEndpoint, EndpointResponse

__all__ = [
    "GenerationRequest",
    "QuizPayload",
    "ErrorResponse",
    "GenerationEndpoint",
    "EndpointResponse",
]
