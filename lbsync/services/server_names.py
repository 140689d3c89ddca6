from __future__ import annotations

from dataclasses import dataclass

from jinja2 import Environment, StrictUndefined, Template, TemplateError, TemplateSyntaxError

from lbsync.config import DEFAULT_SERVER_NAME_TEMPLATE
from lbsync.errors import ConfigurationError, TemplateRenderError
from lbsync.logger import get_logger
from lbsync.schemas.cluster import ServiceInformation

_logger = get_logger("services.server_names")

PATTERN_MARKER = "~"

_NAME_ENV = Environment(undefined=StrictUndefined, autoescape=False)


class ServerName(str):
    """A server name; a leading ``~`` marks it as a pattern instead of a literal host."""

    @property
    def is_pattern(self) -> bool:
        return self.startswith(PATTERN_MARKER)

    @property
    def pattern(self) -> str:
        return self[len(PATTERN_MARKER):] if self.is_pattern else str(self)


_TAG_CLOSERS = {"{{": "}}", "{%": "%}", "{#": "#}"}


def split_expressions(raw: str) -> list[str]:
    """Split ``raw`` on commas in literal text.

    Commas inside ``{{ }}``, ``{% %}`` and ``{# #}`` belong to the expression
    (filter and call arguments) and are kept, as are commas in quoted strings
    within those tags.
    """
    items: list[str] = []
    start = 0
    closer = ""
    quote = ""
    i = 0
    while i < len(raw):
        char = raw[i]
        if quote:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = ""
        elif closer:
            if raw.startswith(closer, i):
                i += len(closer)
                closer = ""
                continue
            if char in "'\"" and closer != "#}":
                quote = char
        elif raw[i : i + 2] in _TAG_CLOSERS:
            closer = _TAG_CLOSERS[raw[i : i + 2]]
            i += 2
            continue
        elif char == ",":
            items.append(raw[start:i])
            start = i + 1
        i += 1
    items.append(raw[start:])
    return items


@dataclass(frozen=True)
class ServerNameTemplates:
    expressions: tuple[str, ...]
    templates: tuple[Template, ...]

    @classmethod
    def parse(cls, raw: str) -> "ServerNameTemplates":
        """Compile a comma-separated list of name template expressions.

        Commas inside Jinja tags do not separate expressions. Empty input
        falls back to the default ``name.namespace.svc.domain``
        expression. Any expression that does not compile is a configuration
        error.
        """
        expressions = tuple(item.strip() for item in split_expressions(raw) if item.strip())
        if not expressions:
            expressions = (DEFAULT_SERVER_NAME_TEMPLATE,)

        templates: list[Template] = []
        for expression in expressions:
            try:
                templates.append(_NAME_ENV.from_string(expression))
            except TemplateSyntaxError as exc:
                raise ConfigurationError(
                    f"Invalid server name template {expression!r}: {exc.message}"
                ) from exc
        _logger.debug(
            "server_names.parse",
            "Parsed server name templates",
            count=len(templates),
        )
        return cls(expressions=expressions, templates=tuple(templates))

    @classmethod
    def default(cls) -> "ServerNameTemplates":
        return cls.parse(DEFAULT_SERVER_NAME_TEMPLATE)


def remove_duplicated(names: list[str]) -> list[str]:
    return list(dict.fromkeys(names))


def generate_server_names(
    service: ServiceInformation,
    domain: str,
    templates: ServerNameTemplates,
) -> list[ServerName]:
    generated: list[str] = []
    for expression, template in zip(templates.expressions, templates.templates):
        try:
            generated.append(template.render(service=service, domain=domain))
        except TemplateError as exc:
            raise TemplateRenderError(
                f"Server name template {expression!r} failed for service "
                f"{service.namespace}/{service.name}: {exc}"
            ) from exc

    # Aliases are appended as given, never deduplicated against generated names.
    names = remove_duplicated(generated) + list(service.external)
    return [ServerName(name) for name in names]
