"""
Exception types shared across the Bubblescape engine.
"""


class BubblescapeError(Exception):
    """Base class for all Bubblescape errors."""


class ConfigurationError(BubblescapeError, ValueError):
    """Raised at construction time when a component is given invalid parameters."""


class CaptureUnavailableError(BubblescapeError, RuntimeError):
    """Raised by a capture source that cannot deliver magnitudes right now."""
