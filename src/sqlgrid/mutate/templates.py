"""``{name}`` placeholder substitution for injected field values."""

from __future__ import annotations

from collections.abc import Mapping
import re
from typing import Any

_TOKEN = re.compile(r"\{([A-Za-z0-9_]+)\}")


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Replace ``{name}`` tokens with values from ``context``.

    ``None`` renders as an empty string; tokens with no matching key are
    left in place.
    """

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in context:
            return match.group(0)
        value = context[name]
        return "" if value is None else str(value)

    return _TOKEN.sub(_sub, template)


def is_empty_value(value: Any) -> bool:
    """``None`` and whitespace-only strings count as empty."""
    return value is None or (isinstance(value, str) and not value.strip())
