# AI Adapters
# Anthropic (quiz content) and Replicate (quiz images) integrations

from .anthropic_adapter import (
    AnthropicQuizService,
    QuizContentError,
    quiz_ai_service,
)
from .replicate_adapter import (
    GeneratedImage,
    ReplicateImageService,
    image_ai_service,
)

__all__ = [
    "AnthropicQuizService",
    "QuizContentError",
    "quiz_ai_service",
    "ReplicateImageService",
    "image_ai_service",
    "GeneratedImage",
]
