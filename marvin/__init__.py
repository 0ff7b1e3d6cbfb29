"""
Marvin - Canvas LMS domain core

Plain-Python models and importers for the parts of a learning-management
system that carry real rules: SIS account imports with sticky fields and
rollback, scoped custom data storage, QTI question parsing, media tag
rewriting, polls, message summaries and enrollment grading.
"""

__version__ = "1.0.0"
__author__ = "Dale Chapman"
__license__ = "MIT"

from .errors import MarvinError, ConfigurationError, RecordInvalid, RecordNotFound

__all__ = [
    "__version__",
    "MarvinError",
    "ConfigurationError",
    "RecordInvalid",
    "RecordNotFound",
]
