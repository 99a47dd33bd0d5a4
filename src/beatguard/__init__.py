"""beatguard: content integrity checks for six-beat lesson stories."""

__version__ = "0.3.0"
