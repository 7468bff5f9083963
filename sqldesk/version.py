"""Version information for sqldesk."""

__version__ = "0.3.0"
