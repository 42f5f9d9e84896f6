"""Command-line interface for certin-mapper.

Options fall back to environment variables (see ``certin_mapper.config``).
"""

from .main import cli, main

__all__ = ["cli", "main"]
