"""
Error types raised by the scorers.
"""

# Define what gets exported
__all__ = ['ScoringError', 'ShapeMismatch', 'DegenerateInput', 'ParseError',
    'KeyMismatch', 'InsufficientFeatures']


def _preview(ids, n=10):
    ids = [str(i) for i in ids]
    if len(ids) > n:
        return ", ".join(ids[:n]) + f", ... ({len(ids)} total)"
    return ", ".join(ids)


class ScoringError(ValueError):
    """Base class. `ids` holds the offending cell/sample identifiers, if any."""

    def __init__(self, message, ids=None):
        self.ids = list(ids) if ids is not None else []
        if self.ids:
            message = f"{message}: {_preview(self.ids)}"
        super().__init__(message)


class ShapeMismatch(ScoringError):
    """Matrix dimensions or identifiers disagree with what was requested."""


class DegenerateInput(ScoringError):
    """Input carries no usable information, e.g. an all-zero count column."""


class ParseError(ScoringError):
    """Malformed external table."""

    def __init__(self, message, line=None, ids=None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message, ids=ids)


class KeyMismatch(ScoringError):
    """Re-keying list disagrees with the table it is applied to."""


class InsufficientFeatures(ScoringError):
    """Sample expresses fewer genes than the configured number of variable features."""
