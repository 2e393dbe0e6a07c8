"""
Voter Registry

Tracks the participants eligible to propose and vote. Registration is
permanent: there is no unregistration, and the ordered voter sequence is
append-only. Its length is the quorum denominator.
"""

from typing import Any, Dict, List, Optional, Set

from ..exceptions import (
    AlreadyRegisteredError,
    InvalidIdentityError,
    NotRegisteredError,
)
from ..logger import get_logger
from .clock import Clock, LogicalClock
from .events import EventLog, VoterRegistered

logger = get_logger(__name__)


class VoterRegistry:
    """Ordered set of registered voters."""

    def __init__(self, events: Optional[EventLog] = None, clock: Optional[Clock] = None):
        self._events = events if events is not None else EventLog()
        self._clock = clock or LogicalClock()
        self._ordered: List[str] = []
        self._members: Set[str] = set()

    def register(self, voter: str):
        """
        Add *voter* to the registry.

        Raises AlreadyRegisteredError if the voter is already present;
        a duplicate is never silently ignored.
        """
        if not isinstance(voter, str) or not voter:
            raise InvalidIdentityError(f"Invalid voter identity: {voter!r}")
        if voter in self._members:
            raise AlreadyRegisteredError(f"{voter} is already registered")

        self._members.add(voter)
        self._ordered.append(voter)
        self._events.emit(VoterRegistered(voter=voter, at=self._clock.now()))
        logger.info(f"Registered voter {voter} (total={len(self._ordered)})")

    def is_registered(self, voter: str) -> bool:
        return voter in self._members

    def require_registered(self, voter: str):
        if voter not in self._members:
            raise NotRegisteredError(f"{voter} is not a registered voter")

    def registered_count(self) -> int:
        return len(self._ordered)

    def voters(self) -> List[str]:
        """Registered voters in registration order."""
        return list(self._ordered)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registeredCount": len(self._ordered),
            "voters": list(self._ordered),
        }

    def __contains__(self, voter: object) -> bool:
        return voter in self._members

    def __len__(self) -> int:
        return len(self._ordered)

    def __repr__(self) -> str:
        return f"<VoterRegistry voters={len(self._ordered)}>"
