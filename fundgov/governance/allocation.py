"""
Allocation Engine

Divides a fixed budget across the Passing Set in proportion to each
proposal's FOR weight:

  share(p) = floor(p.for_votes × total_budget / Σ for_votes)

Shares are truncated; the remainder stays with the treasury and is not
redistributed. Each call recomputes every share for the current Passing
Set and replaces the previous round.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..exceptions import (
    InvalidBudgetError,
    NoPassingProposalsError,
)
from ..logger import get_logger
from .clock import Clock, LogicalClock, Timestamp
from .events import AllocationComputed, EventLog
from .finalization import FinalizationEngine
from .proposals import ProposalLedger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AllocationRound:
    """Summary of one ``allocate`` call."""
    total_budget: int
    total_for_votes: int
    shares: Dict[int, int] = field(default_factory=dict)
    computed_at: Timestamp = 0

    @property
    def distributed(self) -> int:
        return sum(self.shares.values())

    @property
    def remainder(self) -> int:
        """Budget left undistributed by integer truncation."""
        return self.total_budget - self.distributed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalBudget": self.total_budget,
            "totalForVotes": self.total_for_votes,
            "shares": dict(self.shares),
            "distributed": self.distributed,
            "remainder": self.remainder,
            "computedAt": self.computed_at,
        }


class AllocationEngine:
    """Proportional budget division over the Passing Set."""

    def __init__(
        self,
        ledger: ProposalLedger,
        finalization: FinalizationEngine,
        events: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
    ):
        self._ledger = ledger
        self._finalization = finalization
        self._events = events if events is not None else EventLog()
        self._clock = clock or LogicalClock()

        self._allocations: Dict[int, int] = {}
        self._last_round: Optional[AllocationRound] = None

    def allocate(self, total_budget: int) -> AllocationRound:
        """
        Compute and store shares for every passing proposal.

        All shares are computed before any is written, so a failing call
        leaves the previous allocations in place.

        Raises:
            InvalidBudgetError:      budget is not a non-negative int
            NoPassingProposalsError: Passing Set empty or carries no FOR weight
        """
        if isinstance(total_budget, bool) or not isinstance(total_budget, int):
            raise InvalidBudgetError(f"Budget must be an integer, got {total_budget!r}")
        if total_budget < 0:
            raise InvalidBudgetError(f"Budget must be non-negative, got {total_budget}")

        passing = self._finalization.passing_set()
        if not passing:
            raise NoPassingProposalsError("No proposals have passed")

        for_votes = {pid: self._ledger.get(pid).for_votes for pid in passing}
        total_for = sum(for_votes.values())
        if total_for == 0:
            raise NoPassingProposalsError("Passing proposals carry no FOR weight")

        shares = {
            pid: (votes * total_budget) // total_for
            for pid, votes in for_votes.items()
        }

        now = self._clock.now()
        allocation_round = AllocationRound(
            total_budget=total_budget,
            total_for_votes=total_for,
            shares=shares,
            computed_at=now,
        )
        self._allocations = dict(shares)
        self._last_round = allocation_round

        for pid, share in shares.items():
            self._events.emit(AllocationComputed(proposal_id=pid, share=share, at=now))

        logger.info(
            f"Allocated budget={total_budget} across {len(shares)} proposals "
            f"(total_for={total_for})"
        )
        if allocation_round.remainder:
            logger.warning(
                f"Allocation left remainder={allocation_round.remainder} undistributed"
            )
        return allocation_round

    # ── Queries ───────────────────────────────────────────────────────

    def allocation_of(self, proposal_id: int) -> int:
        return self._allocations.get(proposal_id, 0)

    def allocations(self) -> Dict[int, int]:
        return dict(self._allocations)

    @property
    def last_round(self) -> Optional[AllocationRound]:
        return self._last_round

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allocations": dict(self._allocations),
            "lastRound": self._last_round.to_dict() if self._last_round else None,
        }

    def __repr__(self) -> str:
        return f"<AllocationEngine allocations={len(self._allocations)}>"
