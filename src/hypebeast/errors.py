"""hypebeast exception hierarchy.

Kept small and dependency-free: every other module imports it.
"""


class HypebeastError(Exception):
    """Base exception for all hypebeast errors."""


class TemplateSyntaxError(HypebeastError):
    """Raised when template source or an embedded expression is malformed."""


class UnsupportedConstruct(HypebeastError):
    """Raised at compile time for constructs the compiler does not cover yet."""


class UnsupportedValue(HypebeastError, TypeError):
    """Raised when a value of an unknown kind reaches the render capability."""


class UndefinedName(HypebeastError, NameError):
    """Raised when a template name is missing from context, namespace and builtins."""


class ConfigError(HypebeastError):
    """Raised for invalid compiler configuration."""
