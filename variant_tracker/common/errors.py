"""
Data-quality warning taxonomy.

Every failure mode of the derivation layer is recoverable: the affected value
falls back to zero / neutral / "unknown" and a warning of the matching
category is emitted with ``warnings.warn``. Callers that want hard failures
can escalate with ``warnings.simplefilter("error", SnapshotWarning)``.
"""


class SnapshotWarning(UserWarning):
    """Base category for all snapshot data-quality warnings."""


class ParseFailure(SnapshotWarning):
    """A time or date string did not match its expected format."""


class MissingBaseline(SnapshotWarning):
    """Growth computation had no valid prior point."""


class InvalidSnapshot(SnapshotWarning):
    """A record is unusable (missing field, negative count, short history)."""


class SourceShapeMismatch(SnapshotWarning):
    """Top-level input was not the expected JSON array."""
