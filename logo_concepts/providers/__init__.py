from .base import (
    ImageGenerationService,
    LanguageRewriteService,
    RubricScore,
    ServiceError,
    TextRecognitionService,
    VisionEvaluationService,
    call_with_timeout,
)

__all__ = [
    "ImageGenerationService",
    "LanguageRewriteService",
    "RubricScore",
    "ServiceError",
    "TextRecognitionService",
    "VisionEvaluationService",
    "call_with_timeout",
]
