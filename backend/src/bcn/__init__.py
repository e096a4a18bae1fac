"""BCN backend: team collaboration and delegated payments."""

__version__ = "1.0.0"
