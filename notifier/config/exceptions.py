"""Configuration errors."""

from typing import Iterable, List, Optional


def _numbered(items: Iterable[str]) -> List[str]:
    return [f"  {n}. {item}" for n, item in enumerate(items, 1)]


class ConfigurationError(Exception):
    """
    Raised when the worker cannot start with the configuration it was given.

    Every problem found while loading YAML and environment variables is
    carried in ``errors`` so an operator sees them all at once instead of
    fixing one variable per restart.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        super().__init__(self.render())

    def render(self) -> str:
        lines = [self.message]
        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(_numbered(self.errors))
        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {hint}" for hint in self.suggestions)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()
