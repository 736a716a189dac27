"""Air Agent - chat client with Model Context Protocol tool support."""

__version__ = "0.1.0"
