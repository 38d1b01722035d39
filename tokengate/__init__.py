"""tokengate - bearer token lifecycle and request authentication."""

__version__ = "0.1.0"
