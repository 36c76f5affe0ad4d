"""Grade free-text submissions with a text-completion backend."""

__version__ = "0.1.0"
