"""Services for the PerfKit backend"""

from .capturer import CAPTURABLE_KINDS, Capturer, CaptureResult, parse_kinds
from .profile_ingestor import IngestParams, ProfileIngestor

__all__ = [
    "CAPTURABLE_KINDS",
    "Capturer",
    "CaptureResult",
    "IngestParams",
    "ProfileIngestor",
    "parse_kinds",
]
