"""Interpolation of dashboard variables inside backend references."""
from __future__ import annotations

import re
from typing import Dict, Mapping, Optional

_VARIABLE_PATTERN = re.compile(r"\$\{(\w+)\}|\$(\w+)")


class TemplateVariables:
    """Current values of the variables a backend reference may point at."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    def set(self, name: str, value: str) -> None:
        self._values[name] = value

    def contains_template(self, target: Optional[str]) -> bool:
        if not target:
            return False
        return _VARIABLE_PATTERN.search(target) is not None

    def replace(self, target: Optional[str]) -> Optional[str]:
        """Substitutes known variables; unknown ones are left verbatim."""
        if not target:
            return target

        def _sub(match: "re.Match[str]") -> str:
            name = match.group(1) or match.group(2)
            return self._values.get(name, match.group(0))

        return _VARIABLE_PATTERN.sub(_sub, target)
