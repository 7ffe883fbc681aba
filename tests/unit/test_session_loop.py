"""Unit tests for SessionLoop, ConsoleIO and index_connection."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from io import StringIO
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from corpuschat.models.rag import Answer, SourceCitation
from corpuschat.models.session import SessionPhase
from corpuschat.services.answer_synthesizer import AnswerSynthesizer, GenerationConfig
from corpuschat.services.retriever import Retriever
from corpuschat.services.session_loop import PROMPT, ConsoleIO, SessionLoop, index_connection
from corpuschat.utils.errors import EmbeddingError, IndexConnectionError, LanguageModelError
from tests.conftest import FakeIO

_REPO_ROOT = Path(__file__).resolve().parents[2]


def _make_loop(
    lines: list[str],
    answer: Answer | None = None,
    synthesizer_error: Exception | None = None,
    retriever_error: Exception | None = None,
) -> tuple[SessionLoop, FakeIO, MagicMock, MagicMock]:
    retriever = MagicMock(spec=Retriever)
    retriever.retrieve = AsyncMock(return_value=[], side_effect=retriever_error)
    synthesizer = MagicMock(spec=AnswerSynthesizer)
    synthesizer.answer = AsyncMock(
        return_value=answer or Answer(text="Solar panels convert sunlight."),
        side_effect=synthesizer_error,
    )
    io = FakeIO(lines)
    loop = SessionLoop(
        retriever=retriever,
        synthesizer=synthesizer,
        io=io,
        collection_name="docs",
        retriever_k=4,
        generation=GenerationConfig(),
    )
    return loop, io, retriever, synthesizer


class TestSessionLoop:
    @pytest.mark.asyncio
    async def test_exit_keyword_stops_without_further_prompts(self) -> None:
        loop, io, retriever, _ = _make_loop(["q", "never asked"])

        state = await loop.run()

        assert state.phase == SessionPhase.SHUTTING_DOWN
        assert io.prompts == [PROMPT]
        retriever.retrieve.assert_not_called()
        assert io.close_calls == 1

    @pytest.mark.asyncio
    async def test_end_of_input_shuts_down(self) -> None:
        loop, io, _, _ = _make_loop([])

        state = await loop.run()

        assert state.phase == SessionPhase.SHUTTING_DOWN
        assert state.questions_answered == 0
        assert io.close_calls == 1

    @pytest.mark.asyncio
    async def test_answers_each_question_in_order(self) -> None:
        loop, io, retriever, synthesizer = _make_loop(["What is solar?", "And wind?", "exit"])

        state = await loop.run()

        assert state.questions_answered == 2
        assert [c.args[0] for c in retriever.retrieve.await_args_list] == [
            "What is solar?",
            "And wind?",
        ]
        assert retriever.retrieve.await_args_list[0].args[1:] == ("docs", 4)
        assert synthesizer.answer.await_count == 2
        assert io.output.count("Solar panels convert sunlight.") == 2

    @pytest.mark.asyncio
    async def test_blank_lines_are_ignored(self) -> None:
        loop, io, retriever, _ = _make_loop(["", "   ", "sair"])

        await loop.run()

        retriever.retrieve.assert_not_called()
        assert len(io.prompts) == 3

    @pytest.mark.asyncio
    async def test_exit_keywords_are_case_sensitive(self) -> None:
        loop, _, retriever, _ = _make_loop(["Quit", "quit"])

        state = await loop.run()

        retriever.retrieve.assert_awaited_once()
        assert state.questions_answered == 1

    @pytest.mark.asyncio
    async def test_sources_are_printed_under_answer(self) -> None:
        answer = Answer(
            text="Wind turbines spin.",
            sources=[SourceCitation(title="Energy Guide", url="https://example.com/energy")],
        )
        loop, io, _, _ = _make_loop(["How do turbines work?"], answer=answer)

        await loop.run()

        assert "Sources:" in io.transcript
        assert "- [Energy Guide](https://example.com/energy)" in io.output

    @pytest.mark.asyncio
    async def test_banner_is_printed_first(self) -> None:
        loop, io, _, _ = _make_loop([])
        loop._banner = "Welcome to the energy corpus"

        await loop.run()

        assert io.output[0] == "Welcome to the energy corpus"


class TestErrorHandling:
    @pytest.mark.asyncio
    async def test_language_model_error_keeps_session_alive(self) -> None:
        loop, io, _, synthesizer = _make_loop(
            ["first", "second"],
            synthesizer_error=LanguageModelError(message="rate limited", provider_name="openai"),
        )

        state = await loop.run()

        assert synthesizer.answer.await_count == 2
        assert state.questions_answered == 0
        assert "Could not generate an answer: rate limited" in io.transcript

    @pytest.mark.asyncio
    async def test_index_outage_is_reported(self) -> None:
        loop, io, _, _ = _make_loop(
            ["question"],
            retriever_error=IndexConnectionError(message="down", provider_name="chromadb"),
        )

        state = await loop.run()

        assert state.phase == SessionPhase.SHUTTING_DOWN
        assert "temporarily unavailable" in io.transcript

    @pytest.mark.asyncio
    async def test_embedding_error_is_reported(self) -> None:
        loop, io, _, _ = _make_loop(
            ["question"],
            retriever_error=EmbeddingError(message="quota exceeded", provider_name="openai"),
        )

        await loop.run()

        assert "Could not process the question: quota exceeded" in io.transcript


class TestAsk:
    @pytest.mark.asyncio
    async def test_ask_returns_answer_without_printing(self) -> None:
        loop, io, _, _ = _make_loop([])

        answer = await loop.ask("What is solar?")

        assert answer.text == "Solar panels convert sunlight."
        assert io.output == []


class TestIndexConnection:
    @pytest.mark.asyncio
    async def test_connects_and_disconnects_once(self, mock_vector_store) -> None:
        async with index_connection(mock_vector_store) as store:
            assert store is mock_vector_store
            mock_vector_store.connect.assert_awaited_once()
            mock_vector_store.disconnect.assert_not_called()

        mock_vector_store.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disconnects_when_block_raises(self, mock_vector_store) -> None:
        with pytest.raises(RuntimeError):
            async with index_connection(mock_vector_store):
                raise RuntimeError("boom")

        mock_vector_store.disconnect.assert_awaited_once()



_INTERRUPTIBLE_SESSION = """
import asyncio
from unittest.mock import MagicMock

from corpuschat.services.session_loop import ConsoleIO, SessionLoop

session = SessionLoop(MagicMock(), MagicMock(), ConsoleIO(), collection_name="docs", retriever_k=3)
try:
    asyncio.run(session.run())
except KeyboardInterrupt:
    raise SystemExit(130)
"""


class TestConsoleIO:
    @pytest.mark.asyncio
    async def test_reads_lines_until_end_of_input(self) -> None:
        read_fd, write_fd = os.pipe()
        os.write(write_fd, "first question\nsecond question\r\nüber\n".encode("utf-8"))
        os.close(write_fd)
        output = StringIO()
        with open(read_fd, encoding="utf-8") as stream:
            console = ConsoleIO(output=output, input_stream=stream)

            lines = [await console.read_line(PROMPT) for _ in range(3)]
            with pytest.raises(EOFError):
                await console.read_line(PROMPT)

        assert lines == ["first question", "second question", "über"]
        assert output.getvalue() == PROMPT * 4

    @pytest.mark.asyncio
    async def test_closed_console_reports_end_of_input(self) -> None:
        console = ConsoleIO(output=StringIO())
        console.close()

        with pytest.raises(EOFError):
            await console.read_line(PROMPT)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    def test_interrupt_while_waiting_for_input_exits_promptly(self) -> None:
        env = {**os.environ, "PYTHONPATH": str(_REPO_ROOT)}
        proc = subprocess.Popen(
            [sys.executable, "-c", _INTERRUPTIBLE_SESSION],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            cwd=_REPO_ROOT,
            env=env,
        )
        try:
            seen = b""
            while not seen.endswith(PROMPT.encode()):
                byte = proc.stdout.read(1)
                if not byte:
                    break
                seen += byte
            assert seen.endswith(PROMPT.encode()), seen

            proc.send_signal(signal.SIGINT)

            assert proc.wait(timeout=10) == 130
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            proc.stdin.close()
            proc.stdout.close()
