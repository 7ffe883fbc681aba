"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources, highest priority first:

  1. **Environment variables** -- e.g. ``OPENAI_API_KEY=sk-abc123``
  2. **.env file** -- ``key=value`` lines in the working directory's ``.env``

The mapping is automatic: field ``chunk_size`` maps to ``CHUNK_SIZE``.
Defaults apply when neither source sets a field.  Corpus profiles
(``profiles.yaml``) sit between these defaults and explicitly set values;
see :func:`corpuschat.config.loader.resolve_pipeline_config`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """corpuschat application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Language model / embedding providers ===
    # Empty key = "not configured"; the CLI then falls back to Ollama.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, vLLM, ...)
    openai_text_model: str = ""  # Empty = provider default (gpt-4o-mini)
    openai_embedding_model: str = ""  # Empty = text-embedding-3-small
    rephrase_model: str = ""  # Model for the optional second pass; empty = text model
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = "llama3"

    # === Vector index ===
    # Empty index_url = local persistent store under chromadb_persist_dir.
    # http(s)://host:port = remote Chroma server.
    index_url: str = ""
    chromadb_persist_dir: str = "./data/chromadb"
    collection_name: str = "corpuschat"

    # === Chunking / retrieval ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    retriever_k: int = 4
    min_similarity: float = 0.0

    # === Answer synthesis ===
    model_temperature: float = 0.0
    max_answer_tokens: int = 1000
    max_context_chars: int = 12000
    rephrase_enabled: bool = False
    rephrase_temperature: float = 0.7
    dont_know_answer: str = "I don't know"

    # === Ingestion ===
    embedding_batch_size: int = 64
    ingest_concurrency: int = 4

    # === Timeouts / retries ===
    request_timeout: float = 30.0
    index_retry_attempts: int = 3
    index_retry_backoff: float = 0.5

    # === App Config ===
    app_env: str = "development"
    log_level: str = "WARNING"
