"""Session state models for the interactive question loop.

The session is a two-state machine.  It starts in ``AWAITING_INPUT`` and
moves to ``SHUTTING_DOWN`` exactly once, either on a terminal keyword or
when the input stream ends.  Like the other models, :class:`SessionState`
is frozen; transitions produce new instances via ``model_copy(update=...)``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SessionPhase(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Phases of an interactive session."""

    AWAITING_INPUT = "AWAITING_INPUT"  # Prompt shown, waiting for a question
    SHUTTING_DOWN = "SHUTTING_DOWN"    # Terminal keyword or EOF received


class SessionState(BaseModel):
    """Snapshot of the interactive session."""

    model_config = ConfigDict(frozen=True)

    collection_name: str = Field(description="Collection the session queries.")
    retriever_k: int = Field(ge=1, description="Number of chunks retrieved per question.")
    phase: SessionPhase = Field(default=SessionPhase.AWAITING_INPUT)
    questions_answered: int = Field(default=0, ge=0)

    @property
    def is_active(self) -> bool:
        return self.phase == SessionPhase.AWAITING_INPUT

    def shut_down(self) -> SessionState:
        """Return the terminal state for this session."""
        return self.model_copy(update={"phase": SessionPhase.SHUTTING_DOWN})

    def record_answer(self) -> SessionState:
        return self.model_copy(update={"questions_answered": self.questions_answered + 1})
