"""Interactive question loop over a persistent index.

The loop is a two-state machine driven by an explicit ``while`` over an
async line reader: each non-terminal line runs one retrieval + synthesis
cycle and prints the answer with its sources; a terminal keyword or the
end of input moves the session to ``SHUTTING_DOWN``.  Questions are
processed strictly one at a time.

Per-question failures (model errors, a temporarily unreachable index, an
embedding failure) are printed and the loop keeps going.  The index
connection itself is owned by :func:`index_connection`, which wraps the
whole session and releases the store exactly once, also when the session
ends through an exception or ``KeyboardInterrupt``.
"""

from __future__ import annotations

import asyncio
import os
import sys
import threading
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, TextIO

import structlog

from corpuschat.config.pipeline_config import DEFAULT_EXIT_KEYWORDS
from corpuschat.models.session import SessionState
from corpuschat.services.answer_synthesizer import GenerationConfig
from corpuschat.utils.errors import EmbeddingError, IndexConnectionError, LanguageModelError

if TYPE_CHECKING:
    from corpuschat.interfaces.vector_store_provider import IVectorStoreProvider
    from corpuschat.models.rag import Answer
    from corpuschat.services.answer_synthesizer import AnswerSynthesizer
    from corpuschat.services.retriever import Retriever

logger = structlog.get_logger(logger_name=__name__)

PROMPT = "> "
_READ_SIZE = 4096


@asynccontextmanager
async def index_connection(vector_store: IVectorStoreProvider) -> AsyncIterator[IVectorStoreProvider]:
    """Connect *vector_store* for the duration of the block, then disconnect once."""
    await vector_store.connect()
    try:
        yield vector_store
    finally:
        await vector_store.disconnect()


class ConsoleIO:
    """Line-oriented terminal IO.

    A daemon thread pumps raw bytes from the input file descriptor into an
    :class:`asyncio.StreamReader`, so the event loop stays responsive and a
    pending read never keeps the process alive after ``KeyboardInterrupt``.
    ``read_line`` raises ``EOFError`` at end of input.
    """

    def __init__(self, output: TextIO | None = None, input_stream: TextIO | None = None) -> None:
        self._output = output or sys.stdout
        self._input = input_stream or sys.stdin
        self._reader: asyncio.StreamReader | None = None
        self._closed = False

    async def read_line(self, prompt: str) -> str:
        if self._closed:
            raise EOFError
        if self._reader is None:
            self._reader = self._start_reader()
        self._output.write(prompt)
        self._output.flush()
        data = await self._reader.readline()
        if not data:
            raise EOFError
        encoding = getattr(self._input, "encoding", None) or "utf-8"
        return data.decode(encoding, errors="replace").rstrip("\r\n")

    def write(self, text: str) -> None:
        print(text, file=self._output, flush=True)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._output.flush()

    def _start_reader(self) -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        fd = self._input.fileno()

        def _pump() -> None:
            try:
                while True:
                    try:
                        chunk = os.read(fd, _READ_SIZE)
                    except OSError as exc:
                        logger.warning("console_input_failed", error=str(exc))
                        chunk = b""
                    if not chunk:
                        loop.call_soon_threadsafe(reader.feed_eof)
                        return
                    loop.call_soon_threadsafe(reader.feed_data, chunk)
            except RuntimeError:
                # The event loop closed while input was still arriving.
                return

        threading.Thread(target=_pump, name="console-input", daemon=True).start()
        return reader


class SessionLoop:
    """Prompts for questions and answers them until told to stop.

    Parameters
    ----------
    retriever:
        Looks up chunks for each question.
    synthesizer:
        Generates the answer from the retrieved chunks.
    io:
        Console reader/writer (anything with ``read_line``, ``write``, ``close``).
    collection_name:
        Collection to query.
    retriever_k:
        Chunks retrieved per question.
    generation:
        Language-model parameters for each answer.
    exit_keywords:
        Case-sensitive terminal keywords.
    banner:
        Optional welcome line printed before the first prompt.
    """

    def __init__(
        self,
        retriever: Retriever,
        synthesizer: AnswerSynthesizer,
        io: ConsoleIO,
        collection_name: str,
        retriever_k: int,
        generation: GenerationConfig | None = None,
        exit_keywords: tuple[str, ...] = DEFAULT_EXIT_KEYWORDS,
        banner: str = "",
    ) -> None:
        self._retriever = retriever
        self._synthesizer = synthesizer
        self._io = io
        self._generation = generation or GenerationConfig()
        self._exit_keywords = frozenset(exit_keywords)
        self._banner = banner
        self._state = SessionState(collection_name=collection_name, retriever_k=retriever_k)

    @property
    def state(self) -> SessionState:
        return self._state

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self) -> SessionState:
        """Run the loop until a terminal keyword or end of input."""
        if self._banner:
            self._io.write(self._banner)

        while self._state.is_active:
            try:
                line = await self._io.read_line(PROMPT)
            except EOFError:
                logger.debug("session_input_closed")
                self._state = self._state.shut_down()
                break

            question = line.strip()
            if question in self._exit_keywords:
                self._state = self._state.shut_down()
                break
            if not question:
                continue

            await self._handle_question(question)

        self._io.close()
        logger.info(
            "session_closed",
            collection=self._state.collection_name,
            questions=self._state.questions_answered,
        )
        return self._state

    async def ask(self, question: str) -> Answer:
        """Run one retrieval + synthesis cycle without printing."""
        results = await self._retriever.retrieve(
            question, self._state.collection_name, self._state.retriever_k
        )
        return await self._synthesizer.answer(question, results, self._generation)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _handle_question(self, question: str) -> None:
        try:
            answer = await self.ask(question)
        except LanguageModelError as exc:
            logger.warning("question_failed", stage="generation", error=str(exc))
            self._io.write(f"⚠ Could not generate an answer: {exc.message}")
            return
        except IndexConnectionError as exc:
            logger.warning("question_failed", stage="retrieval", error=str(exc))
            self._io.write("⚠ The index is temporarily unavailable. Please try again in a moment.")
            return
        except EmbeddingError as exc:
            logger.warning("question_failed", stage="embedding", error=str(exc))
            self._io.write(f"⚠ Could not process the question: {exc.message}")
            return

        self._print_answer(answer)
        self._state = self._state.record_answer()

    def _print_answer(self, answer: Answer) -> None:
        self._io.write(answer.text)
        if answer.sources:
            self._io.write("\nSources:")
            for source in answer.sources:
                self._io.write(f"- {source.as_markdown()}")
        self._io.write("")
