from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised at startup when a configured value cannot be used."""


class RenderError(RuntimeError):
    pass


class TemplateParseError(RenderError):
    pass


class TemplateRenderError(RenderError):
    pass


class OutputWriteError(RenderError):
    pass


class SnapshotError(RuntimeError):
    pass


class NotifyError(RuntimeError):
    pass
