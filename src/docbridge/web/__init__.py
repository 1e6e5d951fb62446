"""HTTP surface over a bridge session."""

from docbridge.web.app import create_app, main

__all__ = ["create_app", "main"]
