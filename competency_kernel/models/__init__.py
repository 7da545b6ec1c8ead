"""Competency Kernel data models."""

from competency_kernel.models.client import ClientConfig, ResourceSpec
from competency_kernel.models.collection import (
    CacheKey,
    CollectionSnapshot,
    ErrorInfo,
    ErrorKind,
    MutationResult,
    StaleWriteDiscarded,
    StoreConfig,
    make_key,
)
from competency_kernel.models.development import DevelopmentPath, Intervention
from competency_kernel.models.question import (
    EssayQuestion,
    MultipleChoiceQuestion,
    Question,
    QuestionOption,
    ShortAnswerQuestion,
    TrueFalseAnswer,
    TrueFalseQuestion,
)
from competency_kernel.models.scheduling import (
    Interval,
    IntervalViolation,
    ValidationResult,
    normalize_day,
)
from competency_kernel.models.view import (
    FilterPredicateSet,
    SortDirection,
    SortType,
    ViewConfig,
)

__all__ = [
    "CacheKey",
    "ClientConfig",
    "CollectionSnapshot",
    "DevelopmentPath",
    "ErrorInfo",
    "ErrorKind",
    "EssayQuestion",
    "FilterPredicateSet",
    "Interval",
    "IntervalViolation",
    "Intervention",
    "MultipleChoiceQuestion",
    "MutationResult",
    "Question",
    "QuestionOption",
    "ResourceSpec",
    "ShortAnswerQuestion",
    "SortDirection",
    "SortType",
    "StaleWriteDiscarded",
    "StoreConfig",
    "TrueFalseAnswer",
    "TrueFalseQuestion",
    "ValidationResult",
    "ViewConfig",
    "make_key",
    "normalize_day",
]
