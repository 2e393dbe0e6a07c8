"""
Governance Events

One event is emitted per successful mutating operation (and one per
allocated proposal for an allocation round). Failed calls emit nothing.
Events carry the logical time at which they were produced.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Type, TypeVar

from ..logger import get_logger
from .clock import Timestamp
from .types import Choice

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoterRegistered:
    """Emitted when a voter joins the registry."""
    voter: str
    at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoterRegistered",
            "voter": self.voter,
            "at": self.at,
        }


@dataclass(frozen=True)
class ProposalCreated:
    """Emitted when the ledger accepts a proposal."""
    proposal_id: int
    proposer: str
    description: str
    deadline: Timestamp
    at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalCreated",
            "proposalId": self.proposal_id,
            "proposer": self.proposer,
            "description": self.description,
            "deadline": self.deadline,
            "at": self.at,
        }


@dataclass(frozen=True)
class VoteCast:
    """Emitted on every accepted vote."""
    voter: str
    proposal_id: int
    choice: Choice
    weight: int
    at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteCast",
            "voter": self.voter,
            "proposalId": self.proposal_id,
            "choice": self.choice.name,
            "weight": self.weight,
            "at": self.at,
        }


@dataclass(frozen=True)
class ProposalPassed:
    """Emitted when finalization classifies a proposal as passing."""
    proposal_id: int
    at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "ProposalPassed", "proposalId": self.proposal_id, "at": self.at}


@dataclass(frozen=True)
class ProposalFailed:
    """Emitted when finalization classifies a proposal as failing."""
    proposal_id: int
    at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"event": "ProposalFailed", "proposalId": self.proposal_id, "at": self.at}


@dataclass(frozen=True)
class AllocationComputed:
    """Emitted once per passing proposal in an allocation round."""
    proposal_id: int
    share: int
    at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "AllocationComputed",
            "proposalId": self.proposal_id,
            "share": self.share,
            "at": self.at,
        }


@dataclass(frozen=True)
class AllocationQueued:
    """Release signal consumed by the external execution sink."""
    proposal_id: int
    share: int
    at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "AllocationQueued",
            "proposalId": self.proposal_id,
            "share": self.share,
            "at": self.at,
        }


# ══════════════════════════════════════════════════════════════════════
#  EVENT LOG
# ══════════════════════════════════════════════════════════════════════

E = TypeVar("E")


class EventLog:
    """
    Ordered, append-only record of emitted events.

    Subscribers are called synchronously in subscription order after the
    event has been appended. The emitting operation has already committed,
    so a failing subscriber is logged and the remaining subscribers still
    run.
    """

    def __init__(self):
        self._events: List[Any] = []
        self._subscribers: List[Callable[[Any], None]] = []

    def subscribe(self, callback: Callable[[Any], None]):
        self._subscribers.append(callback)

    def emit(self, event: Any):
        self._events.append(event)
        logger.debug(f"Event: {event.to_dict()}")
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Subscriber error for {type(event).__name__}: {e}")

    def events(self) -> List[Any]:
        return list(self._events)

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, event_type)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": len(self._events),
            "events": [e.to_dict() for e in self._events],
        }

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        return f"<EventLog events={len(self._events)}>"
