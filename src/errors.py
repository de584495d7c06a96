class MalformedRecord(ValueError):
    """An input row cannot be turned into a valid Transaction."""


class ConfigError(Exception):
    """Command-line arguments do not describe a runnable configuration."""
