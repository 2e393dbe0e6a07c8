"""
Weighted Voting Engine

Implements:
  - one vote per (proposal, voter) pair
  - weight read from the WeightOracle at vote time (no snapshot)
  - For / Against / Abstain tally buckets
  - all-or-nothing vote application
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..exceptions import (
    AlreadyVotedError,
    NoVotingPowerError,
    VotingClosedError,
)
from ..logger import get_logger
from .clock import Clock, LogicalClock, Timestamp
from .events import EventLog, VoteCast
from .oracle import WeightOracle
from .proposals import ProposalLedger
from .registry import VoterRegistry
from .types import Choice

logger = get_logger(__name__)


@dataclass(frozen=True)
class VoteRecord:
    """An individual vote cast by a voter."""
    proposal_id: int
    voter: str
    choice: Choice
    weight: int
    cast_at: Timestamp = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "choice": self.choice.name,
            "weight": self.weight,
            "castAt": self.cast_at,
        }


class VotingEngine:
    """
    Weighted voting over the proposal ledger.

    Responsibilities:
        - Gate votes on registration, proposal existence and deadline
        - Enforce at most one vote per voter per proposal
        - Resolve weight through the oracle and update tallies
    """

    def __init__(
        self,
        registry: VoterRegistry,
        ledger: ProposalLedger,
        oracle: WeightOracle,
        events: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
    ):
        self._registry = registry
        self._ledger = ledger
        self._oracle = oracle
        self._events = events if events is not None else EventLog()
        self._clock = clock or LogicalClock()

        # proposal_id → {voter → record}, insertion ordered
        self._records: Dict[int, Dict[str, VoteRecord]] = {}

    @property
    def oracle(self) -> WeightOracle:
        return self._oracle

    # ── Cast vote ─────────────────────────────────────────────────────

    def cast_vote(
        self,
        voter: str,
        proposal_id: int,
        choice: Union[Choice, int, str],
    ) -> VoteRecord:
        """
        Cast a weighted vote on a proposal.

        Every check, including the oracle read, completes before any state
        is written, so a failed call leaves tallies and records untouched.

        Raises:
            NotRegisteredError, UnknownProposalError, VotingClosedError,
            AlreadyVotedError, NoVotingPowerError, InvalidChoiceError,
            WeightOracleError
        """
        choice = Choice.coerce(choice)
        self._registry.require_registered(voter)
        proposal = self._ledger.get(proposal_id)

        now = self._clock.now()
        if not proposal.is_open(now):
            raise VotingClosedError(
                f"Voting on proposal #{proposal_id} closed at {proposal.deadline} "
                f"(now={now})"
            )

        if self.has_voted(proposal_id, voter):
            raise AlreadyVotedError(
                f"{voter} has already voted on proposal #{proposal_id}"
            )

        weight = self._oracle.weight_of(voter)
        if weight == 0:
            raise NoVotingPowerError(f"{voter} has no voting power")

        record = VoteRecord(
            proposal_id=proposal_id,
            voter=voter,
            choice=choice,
            weight=weight,
            cast_at=now,
        )

        if choice == Choice.FOR:
            proposal.for_votes += weight
        elif choice == Choice.AGAINST:
            proposal.against_votes += weight
        else:
            proposal.abstain_votes += weight
        self._records.setdefault(proposal_id, {})[voter] = record

        self._events.emit(VoteCast(
            voter=voter,
            proposal_id=proposal_id,
            choice=choice,
            weight=weight,
            at=now,
        ))
        logger.info(
            f"Vote: {voter} → {choice.name} on proposal #{proposal_id} "
            f"(weight={weight})"
        )
        return record

    # ── Queries ───────────────────────────────────────────────────────

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return voter in self._records.get(proposal_id, {})

    def get_vote(self, proposal_id: int, voter: str) -> Optional[VoteRecord]:
        return self._records.get(proposal_id, {}).get(voter)

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return list(self._records.get(proposal_id, {}).values())

    def voter_count(self, proposal_id: int) -> int:
        return len(self._records.get(proposal_id, {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "votes": {
                pid: [r.to_dict() for r in records.values()]
                for pid, records in self._records.items()
            },
        }

    def __repr__(self) -> str:
        total = sum(len(r) for r in self._records.values())
        return f"<VotingEngine votes={total}>"
