"""
RAG configuration constants.

Centralized so the facade, the HTTP layer and the UI agree on ranges.
"""

RAG_CONSTANTS = {
    # Number of document chunks to retrieve
    "TOP_K": {
        "MIN": 1,
        "MAX": 20,
        "DEFAULT": 5,
    },
    # Minimum relevance score (0 = no filtering, 1 = only perfect matches)
    "SCORE_THRESHOLD": {
        "MIN": 0.0,
        "MAX": 1.0,
        "DEFAULT": 0.3,
        "STEP": 0.05,
    },
    "CHUNK_SIZE": {
        "DEFAULT": 1000,
    },
    "CHUNK_OVERLAP": {
        "DEFAULT": 200,
    },
}

COLLECTION_PREFIX = "space_"
