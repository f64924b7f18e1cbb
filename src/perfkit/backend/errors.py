"""
Error types raised by the PerfKit extraction and comparison core.

Every error carries a human-readable message. The HTTP layer maps them
onto status codes; nothing in the core retries.
"""


class PerfkitError(Exception):
    """Base exception for all PerfKit errors"""


class DecodeError(PerfkitError):
    """Profile bytes are not a well-formed (optionally gzipped) pprof profile"""


class ParseError(PerfkitError):
    """A k6 summary document is not valid JSON or has an unexpected shape"""


class UnsupportedKindError(PerfkitError):
    """An explicit profile kind has no extractor for pprof input"""


class InsufficientInputError(PerfkitError):
    """Fewer than two records were supplied for comparison"""


class MismatchedKindError(PerfkitError):
    """Records of different profile kinds were supplied for comparison"""

    def __init__(self, expected: str, found: str, index: int):
        super().__init__(
            f"All profiles must be of the same type: expected '{expected}', "
            f"got '{found}' at position {index}"
        )
        self.expected = expected
        self.found = found
        self.index = index


class ProfileNotFoundError(PerfkitError):
    """A requested profile ID is not in the store"""

    def __init__(self, profile_id: str):
        super().__init__(f"Profile not found: {profile_id}")
        self.profile_id = profile_id
