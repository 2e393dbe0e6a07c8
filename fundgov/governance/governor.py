"""
Budget Governor

Single entry point over one shared governance state: registry, proposal
ledger, voting, finalization, allocation and the queue gate all operate
on the same owned store. Every public call is serialized through one
re-entrant lock, so operations are totally ordered and atomic with
respect to each other; racing callers observe the already-applied state
and receive the corresponding "already done" error.
"""

import functools
import threading
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Union

from ..constants import GOVERNANCE_DEFAULT_QUORUM_FRACTION
from ..logger import get_logger
from .allocation import AllocationEngine, AllocationRound
from .clock import Clock, LogicalClock, Timestamp
from .events import AllocationQueued, EventLog
from .execution import ExecutionSink, QueueGate
from .finalization import FinalizationEngine, FinalizationResult
from .oracle import StaticWeightOracle, WeightOracle
from .proposals import Proposal, ProposalLedger
from .registry import VoterRegistry
from .types import Choice, ProposalStatus
from .voting import VoteRecord, VotingEngine

logger = get_logger(__name__)


def _serialized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class BudgetGovernor:
    """
    Weighted-vote budget governance state machine.

    Args:
        oracle:          Weight source queried at vote time
        quorum_fraction: Integer percentage in [0, 100], fixed for life
        clock:           Logical time source (defaults to a LogicalClock at 0)
        sinks:           Execution sinks receiving queued allocations
    """

    def __init__(
        self,
        oracle: WeightOracle,
        quorum_fraction: int = GOVERNANCE_DEFAULT_QUORUM_FRACTION,
        clock: Optional[Clock] = None,
        sinks: Iterable[ExecutionSink] = (),
    ):
        self._lock = threading.RLock()
        self.clock = clock or LogicalClock()
        self.events = EventLog()

        self.registry = VoterRegistry(self.events, self.clock)
        self.ledger = ProposalLedger(self.registry, self.events, self.clock)
        self.voting = VotingEngine(
            self.registry, self.ledger, oracle, self.events, self.clock
        )
        self.finalization = FinalizationEngine(
            self.registry, self.ledger, quorum_fraction, self.events, self.clock
        )
        self.allocation = AllocationEngine(
            self.ledger, self.finalization, self.events, self.clock
        )
        self.gate = QueueGate(
            self.ledger, self.allocation, self.events, self.clock, list(sinks)
        )

        logger.info(
            f"Governor initialized (quorum={quorum_fraction}%, oracle={oracle!r})"
        )

    @classmethod
    def from_config(cls, config, oracle: Optional[WeightOracle] = None,
                    sinks: Iterable[ExecutionSink] = ()) -> "BudgetGovernor":
        """
        Build a governor from a ``GovernanceConfig``.

        Without an explicit *oracle*, the config's static balance table is
        used.
        """
        return cls(
            oracle=oracle or StaticWeightOracle(config.balances),
            quorum_fraction=config.quorum_fraction,
            clock=LogicalClock(config.start_time),
            sinks=sinks,
        )

    # ── Registry ──────────────────────────────────────────────────────

    @_serialized
    def register(self, voter: str):
        self.registry.register(voter)

    @_serialized
    def is_registered(self, voter: str) -> bool:
        return self.registry.is_registered(voter)

    @_serialized
    def registered_count(self) -> int:
        return self.registry.registered_count()

    # ── Proposals & votes ─────────────────────────────────────────────

    @_serialized
    def create_proposal(self, creator: str, description: str, deadline: Timestamp) -> int:
        return self.ledger.create_proposal(creator, description, deadline)

    @_serialized
    def vote(self, voter: str, proposal_id: int, choice: Union[Choice, int, str]) -> VoteRecord:
        return self.voting.cast_vote(voter, proposal_id, choice)

    @_serialized
    def get_proposal(self, proposal_id: int) -> Proposal:
        """Copy of the proposal; mutating it does not affect the ledger."""
        return replace(self.ledger.get(proposal_id))

    @_serialized
    def proposal_count(self) -> int:
        return len(self.ledger)

    @_serialized
    def status_of(self, proposal_id: int) -> ProposalStatus:
        return self.ledger.status_of(proposal_id)

    @_serialized
    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return self.voting.has_voted(proposal_id, voter)

    @_serialized
    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return self.voting.get_votes(proposal_id)

    # ── Finalization & allocation ─────────────────────────────────────

    @_serialized
    def finalize(self, proposal_id: int) -> FinalizationResult:
        return self.finalization.finalize(proposal_id)

    @_serialized
    def passing_set(self) -> List[int]:
        return self.finalization.passing_set()

    @_serialized
    def allocate(self, total_budget: int) -> AllocationRound:
        return self.allocation.allocate(total_budget)

    @_serialized
    def allocation_of(self, proposal_id: int) -> int:
        return self.allocation.allocation_of(proposal_id)

    @_serialized
    def allocations(self) -> Dict[int, int]:
        return self.allocation.allocations()

    # ── Queue ─────────────────────────────────────────────────────────

    @_serialized
    def queue(self, proposal_id: int) -> AllocationQueued:
        return self.gate.queue(proposal_id)

    @_serialized
    def add_sink(self, sink: ExecutionSink):
        self.gate.add_sink(sink)

    # ── Serialization ─────────────────────────────────────────────────

    @_serialized
    def snapshot(self) -> Dict[str, Any]:
        """Diagnostic view of the whole state (not a persistence format)."""
        return {
            "now": self.clock.now(),
            "registry": self.registry.to_dict(),
            "ledger": self.ledger.to_dict(),
            "votes": self.voting.to_dict(),
            "finalization": self.finalization.to_dict(),
            "allocation": self.allocation.to_dict(),
            "eventCount": len(self.events),
        }

    def __repr__(self) -> str:
        return (
            f"<BudgetGovernor voters={len(self.registry)} "
            f"proposals={len(self.ledger)} "
            f"passing={len(self.finalization.passing_set())}>"
        )
