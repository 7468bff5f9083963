"""sqldesk - MySQL/PostgreSQL workbench core."""

from .version import __version__

__all__ = ["__version__"]
