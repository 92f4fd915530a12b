"""Custom exceptions for recolor."""


class RecolorError(Exception):
    """Base exception for all recolor errors."""

    pass


class ConfigError(RecolorError):
    """Raised when a configuration file is missing content or invalid."""

    pass


class CSSParseError(RecolorError):
    """Raised when stylesheet text cannot be turned into a rule tree."""

    pass


class ColorParseError(RecolorError):
    """Raised when a color token cannot be resolved to an RGBA quadruple."""

    pass


class SandboxError(RecolorError):
    """Raised when a transform function cannot be loaded or executed."""

    pass


class CollectorError(RecolorError):
    """Raised when a join barrier is fed more results than it was armed for."""

    pass
