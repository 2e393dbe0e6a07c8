"""
Queue Gate

Permissionless release trigger: anyone may surface a finalized
proposal's computed allocation to the external execution sinks. Queuing
reads governance state but never writes it, so repeated calls re-emit the
current allocation. A sink that raises is logged and the signal still
reaches the remaining sinks.
"""

from typing import Any, Callable, Dict, List, Optional

from ..exceptions import (
    NoAllocationError,
    NotFinalizedError,
)
from ..logger import get_logger
from .allocation import AllocationEngine
from .clock import Clock, LogicalClock
from .events import AllocationQueued, EventLog
from .proposals import ProposalLedger

logger = get_logger(__name__)

# Consumes (proposal_id, amount) release signals
ExecutionSink = Callable[[AllocationQueued], None]


class RecordingSink:
    """Execution sink that keeps every received signal in order."""

    def __init__(self):
        self._received: List[AllocationQueued] = []

    def __call__(self, signal: AllocationQueued):
        self._received.append(signal)

    @property
    def received(self) -> List[AllocationQueued]:
        return list(self._received)

    def total_released(self) -> Dict[int, int]:
        """Latest amount signalled per proposal."""
        return {s.proposal_id: s.share for s in self._received}

    def __len__(self) -> int:
        return len(self._received)

    def __repr__(self) -> str:
        return f"<RecordingSink signals={len(self._received)}>"


class QueueGate:
    """Release trigger for finalized, allocated proposals."""

    def __init__(
        self,
        ledger: ProposalLedger,
        allocation: AllocationEngine,
        events: Optional[EventLog] = None,
        clock: Optional[Clock] = None,
        sinks: Optional[List[ExecutionSink]] = None,
    ):
        self._ledger = ledger
        self._allocation = allocation
        self._events = events if events is not None else EventLog()
        self._clock = clock or LogicalClock()
        self._sinks: List[ExecutionSink] = list(sinks or [])

    def add_sink(self, sink: ExecutionSink):
        """Register an execution sink to receive queued allocations."""
        self._sinks.append(sink)

    def queue(self, proposal_id: int) -> AllocationQueued:
        """
        Emit ``(proposal_id, allocation)`` to every execution sink.

        Raises:
            UnknownProposalError: proposal does not exist
            NotFinalizedError:    proposal has not been finalized
            NoAllocationError:    proposal has a zero allocation
        """
        proposal = self._ledger.get(proposal_id)
        if not proposal.finalized:
            raise NotFinalizedError(f"Proposal #{proposal_id} is not finalized")

        share = self._allocation.allocation_of(proposal_id)
        if share == 0:
            raise NoAllocationError(f"Proposal #{proposal_id} has no allocation")

        signal = AllocationQueued(
            proposal_id=proposal_id,
            share=share,
            at=self._clock.now(),
        )
        self._events.emit(signal)
        for sink in self._sinks:
            try:
                sink(signal)
            except Exception as e:
                logger.error(f"Execution sink error for proposal #{proposal_id}: {e}")

        logger.info(f"Proposal #{proposal_id} queued for execution (share={share})")
        return signal

    def to_dict(self) -> Dict[str, Any]:
        return {"sinks": len(self._sinks)}

    def __repr__(self) -> str:
        return f"<QueueGate sinks={len(self._sinks)}>"
