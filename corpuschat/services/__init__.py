"""Query-time services: retrieval, answer synthesis, and the session loop."""

from corpuschat.services.answer_synthesizer import AnswerSynthesizer, GenerationConfig
from corpuschat.services.retriever import Retriever
from corpuschat.services.session_loop import ConsoleIO, SessionLoop, index_connection

__all__ = [
    "AnswerSynthesizer",
    "ConsoleIO",
    "GenerationConfig",
    "Retriever",
    "SessionLoop",
    "index_connection",
]
