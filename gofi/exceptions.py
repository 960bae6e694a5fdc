"""
Custom exception hierarchy for the gofi client.

Recoverable problems (a single unreadable file, a corrupt shard) are logged
where they happen; the types below mark the points where a run either
degrades or stops.
"""


class GofiError(Exception):
    """Base exception for all gofi errors."""
    pass


class ScanRootError(GofiError):
    """Raised when the scan root cannot be listed."""
    pass


class FingerprintError(GofiError):
    """Raised when file content cannot be read for fingerprinting."""
    pass


class ShardError(GofiError):
    """Raised when a shard cannot be written or parsed."""
    pass


class DatabaseError(GofiError):
    """Raised when the store cannot be opened or initialized."""
    pass


class TransmissionError(GofiError):
    """Raised when the store cannot be framed or sent to the collector."""
    pass
