"""daberu: one-shot conversations with hosted chat LLMs from the shell."""

__version__ = "0.1.0"


class DaberuError(Exception):
    """Base error for everything daberu raises on purpose."""
