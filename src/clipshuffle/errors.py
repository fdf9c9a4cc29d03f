"""Error taxonomy for a clipshuffle run.

Configuration problems are ValueErrors and surface before a run starts.
Decode and playback failures are fatal for the whole run: there are no
retries and no partial output. A rejected codec is the only recovered
condition and is reported through the observer.
"""


class ClipShuffleError(Exception):
    """Base class for all clipshuffle errors."""


class InputValidationError(ClipShuffleError, ValueError):
    """Malformed or missing run parameters."""


class DecodeError(ClipShuffleError):
    """A source failed to load metadata or to seek."""

    def __init__(self, source_name: str, message: str):
        super().__init__(f"{source_name}: {message}")
        self.source_name = source_name


class PlaybackStartError(ClipShuffleError):
    """A bound clip failed to start rendering."""

    def __init__(self, source_name: str, message: str):
        super().__init__(f"{source_name}: {message}")
        self.source_name = source_name


class CodecCapabilityDegradation(ClipShuffleError):
    """The preferred encoder configuration is not available."""

    def __init__(self, codec: str, message: str):
        super().__init__(f"{codec}: {message}")
        self.codec = codec
