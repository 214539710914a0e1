"""Record storage layer.

This package persists energy records to a single JSON document.
It powers listing, correction, and soft deletion for the SDK.
"""
