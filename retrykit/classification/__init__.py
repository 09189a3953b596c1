from .categories import ErrorCategory, ClassifiedError
from .classifier import ErrorClassifier

__all__ = [
    'ErrorCategory',
    'ClassifiedError',
    'ErrorClassifier',
]
