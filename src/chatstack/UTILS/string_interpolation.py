"""
Utilities for expanding ${VAR} references in stack files.
"""
import re
from typing import Dict

# ${VAR}, ${VAR:-default}, ${VAR:+alternative}; $$ is a literal dollar sign.
_REFERENCE = re.compile(r'\$\$|\$\{([A-Za-z_][A-Za-z0-9_]*)(?::([-+])([^}]*))?\}')


class EnvironmentInterpolator:
    """
    Expands environment references the way compose files do.
    """
    @staticmethod
    def interpolate(template: str, context: Dict[str, str], strict: bool = True) -> str:
        """
        Expands every reference in the template against the context.

        :param template: Text containing ${VAR} references.
        :param context: Variable values, usually the process environment.
        :param strict: Raise KeyError for a plain ${VAR} that is unset; otherwise expand it to ''.
        :return: The expanded text.
        :raises KeyError: If strict and a referenced variable is unset.
        """
        def replace(match):
            if match.group(0) == '$$':
                return '$'
            name, modifier, alternative = match.group(1), match.group(2), match.group(3)
            value = context.get(name)
            if modifier == '-':
                return value if value else alternative
            if modifier == '+':
                return alternative if value else ''
            if value is None:
                if strict:
                    raise KeyError(f"Variable {name} not found in context")
                return ''
            return value

        return _REFERENCE.sub(replace, template)
