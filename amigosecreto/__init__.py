"""Amigo Secreto: draw a secret gift-exchange partner and persist the result."""

__version__ = "0.1.0"
