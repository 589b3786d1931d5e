"""Common Pydantic v2 schemas for the review gate."""

from .config import GateSettings
from .review import GateReport, ReviewVerdict, Severity

__all__ = [
    "GateReport",
    "GateSettings",
    "ReviewVerdict",
    "Severity",
]
