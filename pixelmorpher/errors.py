class PixelMorpherError(Exception):
    """Base class for errors raised by PixelMorpher."""


class NotFoundError(PixelMorpherError):
    """A user or image record does not exist."""


class UnauthorizedError(PixelMorpherError):
    """The acting user does not own the record."""


class ConfigurationError(PixelMorpherError):
    """Required configuration is missing."""


class FormStateError(PixelMorpherError):
    """A form operation was attempted while it is disabled."""
