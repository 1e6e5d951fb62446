"""Expansion of templated resource URIs such as ``users://{userId}/profile``.

Only simple, non-nested ``{name}`` placeholders are understood. There is no
escape for literal braces: a ``{`` ... ``}`` pair in a template is always a
placeholder.
"""

from __future__ import annotations

import re
from typing import Mapping

PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


class MissingParameterError(ValueError):
    """A placeholder in the template has no value."""

    def __init__(self, template: str, missing: list[str]):
        self.template = template
        self.missing = missing
        super().__init__(
            f"Missing value for {', '.join(missing)} in URI template {template!r}"
        )


def template_parameters(template: str) -> list[str]:
    """Placeholder names in order of first occurrence, without duplicates."""
    names: list[str] = []
    for match in PLACEHOLDER.finditer(template):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


def is_template(uri: str) -> bool:
    """True if the URI has at least one placeholder."""
    return PLACEHOLDER.search(uri) is not None


def expand_uri_template(
    template: str,
    params: Mapping[str, str] | None = None,
    strict: bool = True,
) -> str:
    """
    Substitute every ``{name}`` placeholder with ``params[name]``.

    Every occurrence of a repeated placeholder gets the same value. Values
    are inserted verbatim, without percent-encoding.

    Args:
        template: URI containing zero or more placeholders.
        params: Placeholder values.
        strict: If True, a placeholder without a value is an error. If
            False, it is replaced by the empty string.

    Raises:
        MissingParameterError: In strict mode, naming every missing placeholder.
    """
    params = params or {}

    if strict:
        missing = [name for name in template_parameters(template) if name not in params]
        if missing:
            raise MissingParameterError(template, missing)

    return PLACEHOLDER.sub(lambda m: str(params.get(m.group(1), "")), template)
