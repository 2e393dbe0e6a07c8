"""
Governance Proposals

Defines the Proposal record and the ProposalLedger that assigns dense,
zero-based ids to proposals submitted by registered voters. Proposals are
never removed; once finalized they are immutable history.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import (
    InvalidDeadlineError,
    UnknownProposalError,
)
from ..logger import get_logger
from .clock import Clock, LogicalClock, Timestamp
from .events import EventLog, ProposalCreated
from .registry import VoterRegistry
from .types import ProposalStatus

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    A time-bounded funding proposal.

    Fields:
        id:             Dense zero-based identifier, assigned at creation
        proposer:       Registered voter that submitted the proposal
        description:    Opaque text, not validated
        deadline:       Logical time at which voting closes
        created_at:     Logical time of creation
        for_votes:      Accumulated FOR weight
        against_votes:  Accumulated AGAINST weight
        abstain_votes:  Accumulated ABSTAIN weight
        finalized:      One-way flag set by the finalization engine
        passed:         Outcome, None until finalized

    Tally fields are written only by the VotingEngine and ``finalized`` /
    ``passed`` only by the FinalizationEngine.
    """
    id: int
    proposer: str
    description: str
    deadline: Timestamp
    created_at: Timestamp = 0
    for_votes: int = 0
    against_votes: int = 0
    abstain_votes: int = 0
    finalized: bool = False
    passed: Optional[bool] = None

    @property
    def total_votes(self) -> int:
        return self.for_votes + self.against_votes + self.abstain_votes

    def is_open(self, now: Timestamp) -> bool:
        """Votes are accepted strictly before the deadline."""
        return now < self.deadline

    def status(self, now: Timestamp) -> ProposalStatus:
        if self.finalized:
            return ProposalStatus.PASSED if self.passed else ProposalStatus.FAILED
        if self.is_open(now):
            return ProposalStatus.ACTIVE
        return ProposalStatus.AWAITING_FINALIZATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "description": self.description,
            "deadline": self.deadline,
            "createdAt": self.created_at,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "finalized": self.finalized,
            "passed": self.passed,
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} by {self.proposer} deadline={self.deadline} "
            f"for={self.for_votes} against={self.against_votes} "
            f"finalized={self.finalized}>"
        )


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class ProposalLedger:
    """
    Arena of proposals indexed by dense integer id.

    The id of a new proposal is always the number of proposals created
    before it, so ids are never reused or reordered.
    """

    def __init__(
        self,
        registry: VoterRegistry,
        events: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
    ):
        self._registry = registry
        self._events = events if events is not None else EventLog()
        self._clock = clock or LogicalClock()
        self._proposals: List[Proposal] = []

    def create_proposal(self, creator: str, description: str, deadline: Timestamp) -> int:
        """
        Submit a proposal on behalf of *creator*.

        Raises:
            NotRegisteredError:   creator is not registered
            InvalidDeadlineError: deadline is not strictly after now
        """
        self._registry.require_registered(creator)

        now = self._clock.now()
        if isinstance(deadline, bool) or not isinstance(deadline, (int, float)):
            raise InvalidDeadlineError(f"Deadline must be a number, got {deadline!r}")
        if deadline <= now:
            raise InvalidDeadlineError(
                f"Deadline {deadline} is not after current time {now}"
            )

        proposal = Proposal(
            id=len(self._proposals),
            proposer=creator,
            description=description,
            deadline=deadline,
            created_at=now,
        )
        self._proposals.append(proposal)
        self._events.emit(ProposalCreated(
            proposal_id=proposal.id,
            proposer=creator,
            description=description,
            deadline=deadline,
            at=now,
        ))
        logger.info(
            f"Proposal #{proposal.id} created by {creator} "
            f"(deadline={deadline})"
        )
        return proposal.id

    # ── Queries ───────────────────────────────────────────────────────

    def exists(self, proposal_id: int) -> bool:
        return (
            isinstance(proposal_id, int)
            and not isinstance(proposal_id, bool)
            and 0 <= proposal_id < len(self._proposals)
        )

    def get(self, proposal_id: int) -> Proposal:
        if not self.exists(proposal_id):
            raise UnknownProposalError(f"Unknown proposal #{proposal_id}")
        return self._proposals[proposal_id]

    def proposals(self) -> List[Proposal]:
        return list(self._proposals)

    def status_of(self, proposal_id: int) -> ProposalStatus:
        return self.get(proposal_id).status(self._clock.now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalCount": len(self._proposals),
            "proposals": [p.to_dict() for p in self._proposals],
        }

    def __len__(self) -> int:
        return len(self._proposals)

    def __repr__(self) -> str:
        return f"<ProposalLedger proposals={len(self._proposals)}>"
