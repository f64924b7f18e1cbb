"""Profile decoding, metric extraction and comparison"""

from .compare import METRIC_TABLES, MetricSpec, compare_metric, compare_records
from .decoder import DecodedProfile, DecodedSample, SampleType, decode_profile
from .detector import detect_kind
from .extractors import ParsedProfile, extract_metrics, extract_profile
from .k6 import ParsedK6, extract_k6_summary
from .topn import top_n

__all__ = [
    "METRIC_TABLES",
    "DecodedProfile",
    "DecodedSample",
    "MetricSpec",
    "ParsedK6",
    "ParsedProfile",
    "SampleType",
    "compare_metric",
    "compare_records",
    "decode_profile",
    "detect_kind",
    "extract_k6_summary",
    "extract_metrics",
    "extract_profile",
    "top_n",
]
