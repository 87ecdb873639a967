"""
Core business logic components.

This package contains the ingestion pipeline components:
- Token authentication (TokenSet, AuthGate)
- Strict request body decoder
- Record normalization
- Bounded dispatcher and sinks
- Metrics collection
"""
