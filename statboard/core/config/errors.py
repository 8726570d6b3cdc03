"""
Configuration error hierarchy for Statboard.

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (malformed YAML / catalog entries)
└── ConfigInitializationError (startup/init failures)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     ConfigManager.initialize()
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """
    Raised when configuration validation fails.

    Raised for YAML documents that are not mappings and for metric
    catalog entries with unknown sort orders or formatter names.
    """


class ConfigInitializationError(ConfigError):
    """Raised when ConfigManager cannot load its YAML defaults."""
