# frameup/domain/errors.py

class FrameupError(Exception):
    """Base class for editor errors."""


class ConfigParseError(FrameupError):
    """Border or decoration settings could not be parsed.

    The provider turns it into a default config for decorations and into
    AssetNotFoundError for borders.
    """


class AssetLoadError(FrameupError):
    """An image or asset could not be fetched or decoded."""


class AssetNotFoundError(AssetLoadError):
    """Unknown asset id, or its configuration is unreadable."""


class DecorationNotFoundError(FrameupError, LookupError):
    pass


class ExportError(FrameupError):
    """The flattened canvas could not be encoded."""
