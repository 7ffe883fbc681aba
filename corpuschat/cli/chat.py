"""Command-line entry point for corpuschat.

Usage::

    corpuschat chat sitemap https://example.com/page-sitemap.xml
    corpuschat chat youtube "https://www.youtube.com/watch?v=X280T0lDozU"
    corpuschat chat pdf files/pitch-deck.pdf --skip-ingest

    corpuschat ingest pdf files/pitch-deck.pdf --rebuild
    corpuschat stats --profile pdf
    corpuschat purge --collection docs --yes

``chat`` ingests the source into its collection, then opens an interactive
question loop.  ``ingest`` stops after ingestion.  Exit codes: 0 on a
graceful shutdown, 1 when the index cannot be reached, 2 on a
configuration error.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from corpuschat.config.settings import Settings
from corpuschat.utils.errors import ConfigurationError, IndexConnectionError

EXIT_OK = 0
EXIT_INDEX_UNAVAILABLE = 1
EXIT_CONFIGURATION = 2

SOURCE_KINDS = ("sitemap", "page", "pdf", "youtube")


# ---------------------------------------------------------------------------
# Provider factories
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings):  # noqa: ANN202
    """Select the embedding provider.

    OpenAI (or an OpenAI-compatible endpoint) when an API key is set,
    otherwise ``nomic-embed-text`` through the local Ollama server.
    Imports are deferred so ``stats`` and ``purge`` never load the SDKs.
    """
    if app_settings.openai_api_key:
        from corpuschat.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        return OpenAIEmbeddingProvider(settings=app_settings)

    from corpuschat.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

    return NomicEmbeddingProvider(settings=app_settings)


def _build_llm_provider(app_settings: Settings, model: str | None = None):  # noqa: ANN202
    """Select the language model: OpenAI when a key is set, else Ollama."""
    if app_settings.openai_api_key:
        from corpuschat.providers.llm.openai_provider import OpenAILLMProvider

        return OpenAILLMProvider(settings=app_settings, model=model)

    from corpuschat.providers.llm.ollama_provider import OllamaLLMProvider

    return OllamaLLMProvider(settings=app_settings, model=model)


def _build_vector_store(app_settings: Settings):  # noqa: ANN202
    from corpuschat.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        index_url=app_settings.index_url,
        persist_directory=app_settings.chromadb_persist_dir,
    )


def _build_console_io():  # noqa: ANN202
    from corpuschat.services.session_loop import ConsoleIO

    return ConsoleIO()


def _build_ingestion_service(
    app_settings: Settings,
    config,  # noqa: ANN001
    embedding_provider,  # noqa: ANN001
    vector_store,  # noqa: ANN001
    http_client,  # noqa: ANN001
):  # noqa: ANN202
    """Wire adapters, normalizer, chunker and indexer into an IngestionService."""
    from corpuschat.providers.extraction import default_extractors
    from corpuschat.providers.source import (
        PDFSourceAdapter,
        SitemapSourceAdapter,
        WebPageSourceAdapter,
        YouTubeSourceAdapter,
    )
    from corpuschat.services.ingestion import (
        DocumentNormalizer,
        HtmlToTextTransform,
        Indexer,
        IngestionService,
        RecursiveTextChunker,
    )

    page_adapter = WebPageSourceAdapter(http_client=http_client)
    adapters = {
        "sitemap": SitemapSourceAdapter(
            page_adapter=page_adapter,
            http_client=http_client,
            concurrency=app_settings.ingest_concurrency,
        ),
        "page": page_adapter,
        "pdf": PDFSourceAdapter(),
        "youtube": YouTubeSourceAdapter(http_client=http_client),
    }

    chunker = RecursiveTextChunker(
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        transform=HtmlToTextTransform() if config.html_to_text else None,
    )
    indexer = Indexer(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        batch_size=app_settings.embedding_batch_size,
    )
    return IngestionService(
        adapters=adapters,
        normalizer=DocumentNormalizer(default_extractors()),
        chunker=chunker,
        indexer=indexer,
        vector_store=vector_store,
    )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _load_profile(args: argparse.Namespace, kind: str | None = None):  # noqa: ANN202
    """Return the profile named by ``--profile``, or the default for *kind*."""
    from corpuschat.config.loader import load_profiles, profile_for_kind

    name = args.profile or (profile_for_kind(kind) if kind else None)
    if name is None:
        return None
    profiles = load_profiles(args.profiles)
    if name not in profiles:
        known = ", ".join(sorted(profiles))
        raise ConfigurationError(message=f"Unknown profile '{name}' (available: {known})")
    return profiles[name]


def _resolve_config(args: argparse.Namespace, app_settings: Settings):  # noqa: ANN202
    from corpuschat.config.loader import resolve_pipeline_config

    if args.kind not in SOURCE_KINDS:
        raise ConfigurationError(message=f"Unknown source kind '{args.kind}'")
    if not args.descriptor or not args.descriptor.strip():
        raise ConfigurationError(message=f"No location given for source kind '{args.kind}'")

    overrides: dict[str, Any] = {
        "collection_name": args.collection,
        "chunk_size": args.chunk_size,
        "chunk_overlap": args.chunk_overlap,
        "retriever_k": args.k,
        "model_temperature": args.temperature,
        "rephrase_enabled": False if args.no_rephrase else None,
    }
    return resolve_pipeline_config(app_settings, _load_profile(args, args.kind), overrides)


def _collection_for(args: argparse.Namespace, app_settings: Settings) -> str:
    from corpuschat.config.loader import validate_collection_name

    name = args.collection
    if not name:
        profile = _load_profile(args)
        name = profile.collection_name if profile is not None and profile.collection_name else None
    name = name or app_settings.collection_name
    validate_collection_name(name)
    return name


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _print_report(report) -> None:  # noqa: ANN001
    print("\nIngestion complete:")
    print(f"  Collection:       {report.collection_name}")
    print(f"  Items fetched:    {report.items_fetched}")
    print(f"  Documents loaded: {report.documents_loaded}")
    print(f"  Unchanged:        {report.documents_unchanged}")
    print(f"  Chunks created:   {report.chunks_created}")
    print(f"  Chunks indexed:   {report.chunks_indexed}")
    print(f"  Time:             {report.ingestion_time:.2f}s")
    if report.item_failures:
        print(f"\n  Skipped items ({len(report.item_failures)}):")
        for failure in report.item_failures:
            print(f"    {failure.locator}: {failure.error}")
    if report.chunk_failures:
        print(f"\n  Chunks not indexed: {len(report.chunk_failures)}")
    print()


async def _ingest(
    args: argparse.Namespace,
    app_settings: Settings,
    config,  # noqa: ANN001
    embedding_provider,  # noqa: ANN001
    vector_store,  # noqa: ANN001
):  # noqa: ANN202
    """Run one ingestion and print its report."""
    from corpuschat.interfaces.source_adapter import SourceDescriptor
    from corpuschat.providers.source.web_page_adapter import build_http_client

    descriptor = SourceDescriptor(
        kind=args.kind,
        location=args.descriptor.strip(),
        language=config.language,
    )
    async with build_http_client(app_settings.request_timeout) as http_client:
        service = _build_ingestion_service(
            app_settings, config, embedding_provider, vector_store, http_client
        )
        report = await service.ingest(descriptor, config.collection_name, rebuild=args.rebuild)
    _print_report(report)
    return report


async def _handle_ingest(args: argparse.Namespace, app_settings: Settings) -> int:
    """Ingest one source and exit."""
    from corpuschat.services.session_loop import index_connection

    config = _resolve_config(args, app_settings)
    embedding_provider = _build_embedding_provider(app_settings)
    vector_store = _build_vector_store(app_settings)

    print(f"Ingesting {args.kind}: {args.descriptor}")
    async with index_connection(vector_store):
        await _ingest(args, app_settings, config, embedding_provider, vector_store)
    return EXIT_OK


async def _handle_chat(args: argparse.Namespace, app_settings: Settings) -> int:
    """Ingest the source (unless skipped) and run the interactive loop."""
    from corpuschat.services.answer_synthesizer import AnswerSynthesizer, GenerationConfig
    from corpuschat.services.retriever import Retriever
    from corpuschat.services.session_loop import SessionLoop, index_connection

    config = _resolve_config(args, app_settings)
    embedding_provider = _build_embedding_provider(app_settings)
    llm = _build_llm_provider(app_settings)
    rephrase_llm = (
        _build_llm_provider(app_settings, model=app_settings.rephrase_model)
        if app_settings.rephrase_model
        else None
    )
    vector_store = _build_vector_store(app_settings)

    async with index_connection(vector_store):
        if not args.skip_ingest:
            print(f"Loading {args.kind}: {args.descriptor}")
            report = await _ingest(args, app_settings, config, embedding_provider, vector_store)
            if report.documents_loaded == 0 and report.documents_unchanged == 0:
                print("Warning: nothing was ingested; answers may be empty.\n")

        retriever = Retriever(
            embedding_provider=embedding_provider,
            vector_store=vector_store,
            min_similarity=config.min_similarity,
            max_retries=app_settings.index_retry_attempts,
            backoff_seconds=app_settings.index_retry_backoff,
        )
        loop = SessionLoop(
            retriever=retriever,
            synthesizer=AnswerSynthesizer(llm=llm, rephrase_llm=rephrase_llm),
            io=_build_console_io(),
            collection_name=config.collection_name,
            retriever_k=config.retriever_k,
            generation=GenerationConfig.from_pipeline(config),
            exit_keywords=config.exit_keywords,
            banner=config.banner,
        )
        await loop.run()
    return EXIT_OK


async def _handle_stats(args: argparse.Namespace, app_settings: Settings) -> int:
    """Display collection statistics."""
    from corpuschat.services.session_loop import index_connection

    collection = _collection_for(args, app_settings)
    vector_store = _build_vector_store(app_settings)
    async with index_connection(vector_store):
        stats = await vector_store.get_stats(collection)

    print(f"Collection: {stats.collection_name}")
    print("=" * 40)
    print(f"  Total chunks:   {stats.total_chunks}")
    print(f"  Total sources:  {stats.total_sources}")
    if stats.sources_by_type:
        print("\n  Chunks by source type:")
        for src_type, count in sorted(stats.sources_by_type.items()):
            print(f"    {src_type:<15} {count}")
    return EXIT_OK


async def _handle_purge(args: argparse.Namespace, app_settings: Settings) -> int:
    """Drop a whole collection.  Requires confirmation unless --yes is passed."""
    from corpuschat.services.session_loop import index_connection

    collection = _collection_for(args, app_settings)
    vector_store = _build_vector_store(app_settings)
    async with index_connection(vector_store):
        stats = await vector_store.get_stats(collection)
        if stats.total_chunks == 0:
            print(f"Collection '{collection}' is empty. Nothing to purge.")
            return EXIT_OK

        print(f"Collection '{collection}' holds {stats.total_chunks} chunks.")
        if not args.yes:
            confirm = input(f"  Delete all {stats.total_chunks} chunks? [y/N] ").strip().lower()
            if confirm not in ("y", "yes"):
                print("  Aborted.")
                return EXIT_OK

        await vector_store.drop_collection(collection)
    print(f"  Dropped collection '{collection}'.")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("kind", choices=SOURCE_KINDS, help="Source kind")
    parser.add_argument("descriptor", help="Sitemap/page/video URL or PDF path")
    parser.add_argument("--collection", help="Collection name (default: from profile)")
    parser.add_argument("--chunk-size", type=int, dest="chunk_size", help="Maximum chunk length")
    parser.add_argument("--chunk-overlap", type=int, dest="chunk_overlap", help="Chunk overlap")
    parser.add_argument("-k", type=int, dest="k", help="Chunks retrieved per question")
    parser.add_argument("--temperature", type=float, help="Answer temperature")
    parser.add_argument(
        "--no-rephrase",
        action="store_true",
        dest="no_rephrase",
        help="Disable the rephrasing pass",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Drop the collection before ingesting",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the corpuschat CLI."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--profiles",
        help="Path to a corpus profiles YAML file (default: packaged profiles)",
    )
    common.add_argument(
        "--profile",
        help="Corpus profile to use (default: chosen by source kind)",
    )
    common.add_argument(
        "--verbose", "-v", action="store_true", help="Log debug output to stderr"
    )

    parser = argparse.ArgumentParser(
        prog="corpuschat",
        description="Ask questions about a website, video, or document.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- chat --
    chat_parser = subparsers.add_parser(
        "chat", parents=[common], help="Ingest a source and chat with it"
    )
    _add_source_arguments(chat_parser)
    chat_parser.add_argument(
        "--skip-ingest",
        action="store_true",
        dest="skip_ingest",
        help="Chat against the existing collection without ingesting",
    )

    # -- ingest --
    ingest_parser = subparsers.add_parser(
        "ingest", parents=[common], help="Ingest a source and exit"
    )
    _add_source_arguments(ingest_parser)

    # -- stats --
    stats_parser = subparsers.add_parser(
        "stats", parents=[common], help="Show collection statistics"
    )
    stats_parser.add_argument("--collection", help="Collection name")

    # -- purge --
    purge_parser = subparsers.add_parser("purge", parents=[common], help="Drop a collection")
    purge_parser.add_argument("--collection", help="Collection name")
    purge_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

_HANDLERS = {
    "chat": _handle_chat,
    "ingest": _handle_ingest,
    "stats": _handle_stats,
    "purge": _handle_purge,
}


def run(argv: list[str] | None = None) -> int:
    """Parse *argv*, dispatch to the subcommand, and return the exit code."""
    from corpuschat.utils.logging import configure_logging

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_CONFIGURATION

    app_settings = Settings()

    try:
        configure_logging(
            log_level="DEBUG" if args.verbose else app_settings.log_level,
            json_output=app_settings.app_env == "production",
        )
        return asyncio.run(_HANDLERS[args.command](args, app_settings))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except IndexConnectionError as exc:
        print(f"Index unavailable: {exc.message}", file=sys.stderr)
        return EXIT_INDEX_UNAVAILABLE
    except KeyboardInterrupt:
        print()
        return EXIT_OK


def main() -> None:
    """Console-script entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
