"""Typed failures raised by external collaborators and caught at their call sites."""


class RadarError(Exception):
    """Base class for recoverable radar failures."""


class SourceUnavailableError(RadarError):
    """A feed, detector or provider could not be reached."""


class MalformedResponseError(RadarError):
    """A collaborator answered with an unexpected shape."""


class AIUnavailableError(SourceUnavailableError):
    """No AI provider is configured."""
