"""Unit tests for the corpuschat CLI -- argument parsing, wiring, exit codes."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from corpuschat.cli import chat as cli
from corpuschat.models.rag import CorpusStats, IngestionReport, ItemFailure
from corpuschat.utils.errors import IndexConnectionError
from tests.conftest import FakeIO, KeywordEmbeddingProvider, ScriptedLLM


@pytest.fixture()
def wired(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, mock_vector_store):
    """Replace every external dependency the CLI builds with an in-memory fake."""
    monkeypatch.chdir(tmp_path)
    for var in (
        "OPENAI_API_KEY",
        "COLLECTION_NAME",
        "RETRIEVER_K",
        "CHUNK_SIZE",
        "CHUNK_OVERLAP",
        "APP_ENV",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)

    io = FakeIO(["What powers the panels?", "exit"])
    llm = ScriptedLLM(default="Sunlight.")
    service = MagicMock()
    service.ingest = AsyncMock(
        side_effect=lambda descriptor, collection, rebuild=False: IngestionReport(
            collection_name=collection,
            items_fetched=2,
            documents_loaded=1,
            chunks_created=3,
            chunks_indexed=3,
            item_failures=[ItemFailure(locator="https://example.com/gone", error="HTTP 404")],
        )
    )

    monkeypatch.setattr(cli, "_build_embedding_provider", lambda s: KeywordEmbeddingProvider())
    monkeypatch.setattr(cli, "_build_llm_provider", lambda s, model=None: llm)
    monkeypatch.setattr(cli, "_build_vector_store", lambda s: mock_vector_store)
    monkeypatch.setattr(cli, "_build_console_io", lambda: io)
    monkeypatch.setattr(cli, "_build_ingestion_service", lambda *args: service)

    logging_calls: list[dict] = []
    monkeypatch.setattr(
        "corpuschat.utils.logging.configure_logging",
        lambda **kwargs: logging_calls.append(kwargs),
    )

    return MagicMock(
        io=io, llm=llm, service=service, store=mock_vector_store, logging_calls=logging_calls
    )


class TestParser:
    def test_chat_arguments(self) -> None:
        args = cli._build_parser().parse_args(
            ["chat", "pdf", "deck.pdf", "--profile", "pdf", "-k", "2", "--no-rephrase", "--skip-ingest"]
        )

        assert args.command == "chat"
        assert args.kind == "pdf"
        assert args.descriptor == "deck.pdf"
        assert args.profile == "pdf"
        assert args.k == 2
        assert args.no_rephrase is True
        assert args.skip_ingest is True
        assert args.chunk_size is None

    def test_unknown_kind_is_rejected(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli._build_parser().parse_args(["chat", "epub", "book.epub"])
        assert exc_info.value.code == 2

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert cli.run([]) == cli.EXIT_CONFIGURATION
        assert "usage:" in capsys.readouterr().out


class TestChatCommand:
    def test_ingests_then_answers(self, wired, capsys: pytest.CaptureFixture[str]) -> None:
        code = cli.run(["chat", "sitemap", "https://example.com/sitemap.xml"])

        assert code == cli.EXIT_OK
        descriptor, collection = wired.service.ingest.await_args.args
        assert descriptor.kind == "sitemap"
        assert descriptor.location == "https://example.com/sitemap.xml"
        assert collection == "chat-with-website"
        out = capsys.readouterr().out
        assert "Chunks indexed:   3" in out
        assert "https://example.com/gone: HTTP 404" in out
        assert wired.io.prompts == ["> ", "> "]
        assert wired.io.close_calls == 1
        wired.store.connect.assert_awaited_once()
        wired.store.disconnect.assert_awaited_once()

    def test_skip_ingest(self, wired) -> None:
        code = cli.run(["chat", "pdf", "deck.pdf", "--skip-ingest"])

        assert code == cli.EXIT_OK
        wired.service.ingest.assert_not_called()
        wired.store.query.assert_awaited_once()
        assert wired.store.query.await_args.args[0] == "docs"
        assert wired.store.query.await_args.kwargs["top_k"] == 4

    def test_empty_index_answers_dont_know_without_llm(self, wired) -> None:
        cli.run(["chat", "pdf", "deck.pdf", "--skip-ingest"])

        assert "I don't know" in wired.io.output
        assert wired.llm.calls == []

    def test_cli_flags_override_profile(self, wired) -> None:
        cli.run(["chat", "pdf", "deck.pdf", "--skip-ingest", "--collection", "manual", "-k", "2"])

        assert wired.store.query.await_args.args[0] == "manual"
        assert wired.store.query.await_args.kwargs["top_k"] == 2

    def test_invalid_chunking_exits_with_configuration_code(
        self, wired, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = cli.run(["chat", "pdf", "deck.pdf", "--chunk-size", "100", "--chunk-overlap", "100"])

        assert code == cli.EXIT_CONFIGURATION
        assert "Configuration error" in capsys.readouterr().err
        wired.store.connect.assert_not_called()

    def test_invalid_collection_name_exits_with_configuration_code(
        self, wired, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = cli.run(["chat", "pdf", "deck.pdf", "--collection", "c"])

        assert code == cli.EXIT_CONFIGURATION
        assert "Invalid collection name 'c'" in capsys.readouterr().err
        wired.store.connect.assert_not_called()

    def test_unknown_profile_exits_with_configuration_code(self, wired) -> None:
        assert cli.run(["chat", "pdf", "deck.pdf", "--profile", "nope"]) == cli.EXIT_CONFIGURATION

    def test_unreachable_index_exits_with_index_code(
        self, wired, capsys: pytest.CaptureFixture[str]
    ) -> None:
        wired.store.connect = AsyncMock(
            side_effect=IndexConnectionError(message="connection refused", provider_name="chromadb")
        )

        code = cli.run(["chat", "pdf", "deck.pdf"])

        assert code == cli.EXIT_INDEX_UNAVAILABLE
        assert "Index unavailable: connection refused" in capsys.readouterr().err
        wired.service.ingest.assert_not_called()


class TestIngestCommand:
    def test_ingest_with_rebuild(self, wired) -> None:
        code = cli.run(["ingest", "youtube", "dQw4w9WgXcQ", "--rebuild"])

        assert code == cli.EXIT_OK
        assert wired.service.ingest.await_args.kwargs["rebuild"] is True
        assert wired.service.ingest.await_args.args[1] == "chat-with-youtube"
        assert wired.io.prompts == []
        wired.store.disconnect.assert_awaited_once()


class TestProviderFactories:
    def test_openai_key_selects_openai(self) -> None:
        from corpuschat.config.settings import Settings
        from corpuschat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
        from corpuschat.providers.llm.openai_provider import OpenAILLMProvider

        settings = Settings(_env_file=None, openai_api_key="sk-test")

        assert isinstance(cli._build_llm_provider(settings), OpenAILLMProvider)
        assert isinstance(cli._build_embedding_provider(settings), OpenAIEmbeddingProvider)

    def test_without_key_falls_back_to_ollama(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from corpuschat.config.settings import Settings
        from corpuschat.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
        from corpuschat.providers.llm.ollama_provider import OllamaLLMProvider

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        settings = Settings(_env_file=None)

        assert isinstance(cli._build_llm_provider(settings), OllamaLLMProvider)
        assert isinstance(cli._build_embedding_provider(settings), NomicEmbeddingProvider)


class TestStatsAndPurge:
    def test_stats(self, wired, capsys: pytest.CaptureFixture[str]) -> None:
        wired.store.get_stats = AsyncMock(
            return_value=CorpusStats(
                collection_name="docs", total_chunks=12, total_sources=3, sources_by_type={"pdf": 3}
            )
        )

        code = cli.run(["stats", "--profile", "pdf"])

        assert code == cli.EXIT_OK
        wired.store.get_stats.assert_awaited_once_with("docs")
        out = capsys.readouterr().out
        assert "Total chunks:   12" in out
        assert "pdf" in out

    def test_stats_defaults_to_settings_collection(self, wired) -> None:
        cli.run(["stats"])
        wired.store.get_stats.assert_awaited_once_with("corpuschat")

    def test_purge_with_yes_drops_collection(self, wired) -> None:
        wired.store.get_stats = AsyncMock(
            return_value=CorpusStats(collection_name="docs", total_chunks=5)
        )

        code = cli.run(["purge", "--collection", "docs", "--yes"])

        assert code == cli.EXIT_OK
        wired.store.drop_collection.assert_awaited_once_with("docs")

    def test_purge_aborted_on_no(self, wired, monkeypatch: pytest.MonkeyPatch) -> None:
        wired.store.get_stats = AsyncMock(
            return_value=CorpusStats(collection_name="docs", total_chunks=5)
        )
        monkeypatch.setattr("builtins.input", lambda prompt: "n")

        cli.run(["purge", "--collection", "docs"])

        wired.store.drop_collection.assert_not_called()

    def test_purge_invalid_collection_name_exits_with_configuration_code(self, wired) -> None:
        code = cli.run(["purge", "--collection", "c", "--yes"])

        assert code == cli.EXIT_CONFIGURATION
        wired.store.drop_collection.assert_not_called()

    def test_purge_empty_collection_is_noop(self, wired) -> None:
        cli.run(["purge", "--collection", "docs", "--yes"])
        wired.store.drop_collection.assert_not_called()


class TestLogging:
    def test_verbose_switches_to_debug(self, wired) -> None:
        cli.run(["stats", "-v"])
        assert wired.logging_calls == [{"log_level": "DEBUG", "json_output": False}]

    def test_default_level_comes_from_settings(self, wired) -> None:
        cli.run(["stats"])
        assert wired.logging_calls[0]["log_level"] == "WARNING"
