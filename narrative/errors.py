"""
Narrative engine errors.

Only the loader raises into the host. Inside playback, malformed content
is replaced by safe defaults, out-of-phase input is dropped, stale reveal
callbacks are ignored and collaborator failures are logged.
"""


class NarrativeError(Exception):
    """Base class for narrative engine errors."""


class ContentError(NarrativeError):
    """A scene or entry is missing fields or carries unusable values."""


class RevealInProgressError(NarrativeError):
    """A reveal was started while another one is still pending."""
