"""Vector store provider implementations.

ChromaDB is the sole implementation.  With an empty INDEX_URL it persists
to CHROMADB_PERSIST_DIR (default ./data/chromadb); with an http(s) URL it
talks to a Chroma server.  Each corpus lives in its own collection.
"""

from corpuschat.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
