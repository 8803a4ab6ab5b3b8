"""
Embedding Providers Package

Contains implementations for specific embedding model providers.
"""

# Providers are imported lazily by the registry.
