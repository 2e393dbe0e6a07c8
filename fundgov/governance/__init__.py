"""
fundgov Governance

Provides:
  - VoterRegistry                                   (registry.py)
  - WeightOracle / StaticWeightOracle / CallableWeightOracle (oracle.py)
  - Proposal / ProposalLedger                       (proposals.py)
  - Choice / VoteRecord / VotingEngine              (voting.py)
  - FinalizationEngine / FinalizationResult         (finalization.py)
  - AllocationEngine / AllocationRound              (allocation.py)
  - QueueGate / RecordingSink                       (execution.py)
  - BudgetGovernor                                  (governor.py)
"""

from .allocation import AllocationEngine, AllocationRound
from .clock import Clock, LogicalClock, SystemClock
from .events import (
    AllocationComputed,
    AllocationQueued,
    EventLog,
    ProposalCreated,
    ProposalFailed,
    ProposalPassed,
    VoteCast,
    VoterRegistered,
)
from .execution import ExecutionSink, QueueGate, RecordingSink
from .finalization import FinalizationEngine, FinalizationResult
from .governor import BudgetGovernor
from .oracle import CallableWeightOracle, StaticWeightOracle, WeightOracle
from .proposals import Proposal, ProposalLedger
from .registry import VoterRegistry
from .types import Choice, ProposalStatus
from .voting import VoteRecord, VotingEngine

__all__ = [
    # State machine
    "BudgetGovernor",
    "VoterRegistry",
    "ProposalLedger",
    "VotingEngine",
    "FinalizationEngine",
    "AllocationEngine",
    "QueueGate",
    # Records
    "Proposal",
    "ProposalStatus",
    "Choice",
    "VoteRecord",
    "FinalizationResult",
    "AllocationRound",
    # Collaborators
    "WeightOracle",
    "StaticWeightOracle",
    "CallableWeightOracle",
    "ExecutionSink",
    "RecordingSink",
    "Clock",
    "LogicalClock",
    "SystemClock",
    # Events
    "EventLog",
    "VoterRegistered",
    "ProposalCreated",
    "VoteCast",
    "ProposalPassed",
    "ProposalFailed",
    "AllocationComputed",
    "AllocationQueued",
]
