"""
Logjam - HTTP log ingestion front end

A FastAPI-based service that authenticates callers with shared-secret
tokens, strictly validates log event payloads, and hands each accepted
record to configured sinks without blocking the caller.
"""

__version__ = "0.1.0"

from .main import create_app

__all__ = ["create_app"]
