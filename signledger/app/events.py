"""
Finalization progress notifications.

The assembler reports each pipeline step to an emitter. Notifications
describe progress only: no document bytes, signer names or tax ids, and
nothing downstream depends on them. An emitter that raises is logged by
the assembler and otherwise ignored.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class FinalizeEventType(str, Enum):
    # In pipeline order; a run ends with exactly one of the last two.
    FINALIZE_STARTED = "finalize_started"
    DIGEST_COMPUTED = "digest_computed"
    PROTOCOL_BUILT = "protocol_built"
    HEADERS_STAMPED = "headers_stamped"
    FINALIZE_COMPLETED = "finalize_completed"
    FINALIZE_FAILED = "finalize_failed"


TERMINAL_EVENTS = frozenset(
    {FinalizeEventType.FINALIZE_COMPLETED, FinalizeEventType.FINALIZE_FAILED}
)


class FinalizeEvent(BaseModel):
    """One step of one finalize call, keyed by the ledger's document id."""

    event_id: UUID = Field(default_factory=uuid4)
    document_id: str
    event_type: FinalizeEventType
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    # Digest prefix, page counts or failure reason, depending on the step
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENTS


class FinalizeEventEmitter(Protocol):
    async def emit(self, event: FinalizeEvent) -> None:
        ...


class NullEventEmitter:
    """Default emitter: discards everything."""

    async def emit(self, event: FinalizeEvent) -> None:
        return None


class RecordingEventEmitter:
    """
    Keeps every notification in arrival order.

    Notifications arriving after a terminal one are dropped, so a reused
    recorder holds a single run.
    """

    def __init__(self) -> None:
        self.events: List[FinalizeEvent] = []

    @property
    def finished(self) -> bool:
        return bool(self.events) and self.events[-1].is_terminal

    async def emit(self, event: FinalizeEvent) -> None:
        if self.finished:
            return
        self.events.append(event)

    def types(self) -> List[FinalizeEventType]:
        return [event.event_type for event in self.events]
