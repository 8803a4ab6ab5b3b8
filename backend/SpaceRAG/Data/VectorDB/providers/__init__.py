"""
VectorDB Providers Package

Contains adapters for specific vector store backends:
- milvus_db: Milvus / Zilliz Cloud (pymilvus)
- qdrant_db: Qdrant (qdrant-client)
"""

# Providers are imported lazily by the registry.
