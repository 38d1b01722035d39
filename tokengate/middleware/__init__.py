"""Middleware module for tokengate."""

from tokengate.middleware.authentication import AuthenticationMiddleware

__all__ = [
    "AuthenticationMiddleware",
]
