"""Public interface definitions for all external collaborators.

Every external service in the corpuschat pipeline is accessed exclusively
through the abstract base classes defined in this package.  Concrete
adapters implement these interfaces and are injected at runtime by the
CLI factories, so unit tests can inject mocks instead of real services.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations (in corpuschat/providers/)
    ─────────────────────────────────────────────────────────────────────
    ISourceAdapter         →  SitemapSourceAdapter, WebPageSourceAdapter,
                              PDFSourceAdapter, YouTubeSourceAdapter
    IContentExtractor      →  HtmlContentExtractor, PlainTextExtractor
    IEmbeddingProvider     →  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    ILLMProvider           →  OpenAILLMProvider, OllamaLLMProvider
    IVectorStoreProvider   →  ChromaDBProvider
"""

from corpuschat.interfaces.content_extractor import ExtractedContent, IContentExtractor
from corpuschat.interfaces.embedding_provider import IEmbeddingProvider
from corpuschat.interfaces.llm_provider import ILLMProvider
from corpuschat.interfaces.source_adapter import ISourceAdapter, RawItem, SourceDescriptor
from corpuschat.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ExtractedContent",
    "IContentExtractor",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ISourceAdapter",
    "IVectorStoreProvider",
    "RawItem",
    "SourceDescriptor",
]
