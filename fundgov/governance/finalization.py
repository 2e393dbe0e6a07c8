"""
Finalization Engine

Closes a proposal exactly once after its deadline and classifies it:

  quorum_threshold = floor(quorum_fraction × registered_count / 100)
  passes  ⇔  for_votes ≥ quorum_threshold  AND  for_votes > against_votes

Passing proposals are appended to the Passing Set in finalization order.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from ..constants import (
    GOVERNANCE_DEFAULT_QUORUM_FRACTION,
    GOVERNANCE_MAX_QUORUM_FRACTION,
    GOVERNANCE_MIN_QUORUM_FRACTION,
    GOVERNANCE_QUORUM_DENOMINATOR,
)
from ..exceptions import (
    AlreadyFinalizedError,
    DeadlineNotReachedError,
    InvalidQuorumFractionError,
)
from ..logger import get_logger
from .clock import Clock, LogicalClock, Timestamp
from .events import EventLog, ProposalFailed, ProposalPassed
from .proposals import ProposalLedger
from .registry import VoterRegistry

logger = get_logger(__name__)


def validate_quorum_fraction(value: Any) -> int:
    """Return *value* if it is an integer percentage in [0, 100]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuorumFractionError(
            f"Quorum fraction must be an integer, got {value!r}"
        )
    if not GOVERNANCE_MIN_QUORUM_FRACTION <= value <= GOVERNANCE_MAX_QUORUM_FRACTION:
        raise InvalidQuorumFractionError(
            f"Quorum fraction {value} outside "
            f"[{GOVERNANCE_MIN_QUORUM_FRACTION}, {GOVERNANCE_MAX_QUORUM_FRACTION}]"
        )
    return value


@dataclass(frozen=True)
class FinalizationResult:
    """Outcome of closing one proposal."""
    proposal_id: int
    passed: bool
    quorum_threshold: int
    registered_count: int
    for_votes: int
    against_votes: int
    abstain_votes: int
    finalized_at: Timestamp = 0

    @property
    def quorum_reached(self) -> bool:
        return self.for_votes >= self.quorum_threshold

    @property
    def majority_reached(self) -> bool:
        """Strict FOR majority over AGAINST; abstentions do not count."""
        return self.for_votes > self.against_votes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "passed": self.passed,
            "quorumThreshold": self.quorum_threshold,
            "registeredCount": self.registered_count,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "quorumReached": self.quorum_reached,
            "majorityReached": self.majority_reached,
            "finalizedAt": self.finalized_at,
        }


class FinalizationEngine:
    """
    Quorum and majority evaluation.

    ``quorum_fraction`` is fixed for the lifetime of the engine.
    """

    def __init__(
        self,
        registry: VoterRegistry,
        ledger: ProposalLedger,
        quorum_fraction: int = GOVERNANCE_DEFAULT_QUORUM_FRACTION,
        events: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
    ):
        self._quorum_fraction = validate_quorum_fraction(quorum_fraction)
        self._registry = registry
        self._ledger = ledger
        self._events = events if events is not None else EventLog()
        self._clock = clock or LogicalClock()

        self._passing: List[int] = []
        self._passing_members: Set[int] = set()
        self._results: Dict[int, FinalizationResult] = {}

    @property
    def quorum_fraction(self) -> int:
        return self._quorum_fraction

    def quorum_threshold(self) -> int:
        """Threshold against the current registered voter count."""
        return (
            self._quorum_fraction * self._registry.registered_count()
        ) // GOVERNANCE_QUORUM_DENOMINATOR

    # ── Finalization ──────────────────────────────────────────────────

    def finalize(self, proposal_id: int) -> FinalizationResult:
        """
        Finalize voting on a proposal.

        Raises:
            UnknownProposalError:     proposal does not exist
            DeadlineNotReachedError:  now < deadline
            AlreadyFinalizedError:    proposal already finalized
        """
        proposal = self._ledger.get(proposal_id)

        now = self._clock.now()
        if now < proposal.deadline:
            raise DeadlineNotReachedError(
                f"Proposal #{proposal_id} deadline {proposal.deadline} not reached "
                f"(now={now})"
            )
        if proposal.finalized:
            raise AlreadyFinalizedError(f"Proposal #{proposal_id} already finalized")

        threshold = self.quorum_threshold()
        result = FinalizationResult(
            proposal_id=proposal_id,
            passed=(
                proposal.for_votes >= threshold
                and proposal.for_votes > proposal.against_votes
            ),
            quorum_threshold=threshold,
            registered_count=self._registry.registered_count(),
            for_votes=proposal.for_votes,
            against_votes=proposal.against_votes,
            abstain_votes=proposal.abstain_votes,
            finalized_at=now,
        )

        proposal.finalized = True
        proposal.passed = result.passed
        self._results[proposal_id] = result

        if result.passed:
            self._passing.append(proposal_id)
            self._passing_members.add(proposal_id)
            self._events.emit(ProposalPassed(proposal_id=proposal_id, at=now))
            logger.info(
                f"Proposal #{proposal_id}: PASSED "
                f"(for={result.for_votes}, against={result.against_votes}, "
                f"threshold={threshold})"
            )
        else:
            self._events.emit(ProposalFailed(proposal_id=proposal_id, at=now))
            if not result.quorum_reached:
                logger.warning(
                    f"Proposal #{proposal_id}: FAILED, quorum not reached "
                    f"({result.for_votes}/{threshold})"
                )
            else:
                logger.info(
                    f"Proposal #{proposal_id}: FAILED, no strict majority "
                    f"(for={result.for_votes}, against={result.against_votes})"
                )

        return result

    # ── Queries ───────────────────────────────────────────────────────

    def passing_set(self) -> List[int]:
        """Passing proposal ids in finalization order."""
        return list(self._passing)

    def is_passing(self, proposal_id: int) -> bool:
        return proposal_id in self._passing_members

    def get_result(self, proposal_id: int) -> Optional[FinalizationResult]:
        return self._results.get(proposal_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quorumFraction": self._quorum_fraction,
            "quorumThreshold": self.quorum_threshold(),
            "passingSet": list(self._passing),
            "results": {pid: r.to_dict() for pid, r in self._results.items()},
        }

    def __repr__(self) -> str:
        return (
            f"<FinalizationEngine quorum={self._quorum_fraction}% "
            f"passing={len(self._passing)}>"
        )
