"""devctl -- command-line device management tool."""

__version__ = "0.1.0"
