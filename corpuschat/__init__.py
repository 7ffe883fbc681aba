"""corpuschat: ask questions about a website, a video, or a document.

Sources are fetched by adapters, normalized into documents, chunked,
embedded and stored in a persistent vector index.  An interactive loop
then answers questions from the retrieved chunks and cites its sources.
"""

__version__ = "0.1.0"
