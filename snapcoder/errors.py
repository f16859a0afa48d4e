class SnapcoderError(Exception):
    pass


class RendererError(SnapcoderError):
    """The browser went away or refused a command mid-capture."""


class RendererTimeoutError(RendererError):
    """A renderer step (navigation, scroll, measurement) ran out of time."""
