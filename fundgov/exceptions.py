"""
fundgov Exceptions

Custom exception classes for the governance state machine. Every failure
is raised synchronously to the caller; none of them is retried or
compensated internally.
"""


class FundGovException(Exception):
    """Base exception for fundgov."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  GOVERNANCE
# ══════════════════════════════════════════════════════════════════════

class GovernanceError(FundGovException):
    """Base class for rejected governance operations."""
    pass


class EligibilityError(GovernanceError):
    """The action cannot be attributed to a valid participant."""
    pass


class TemporalError(GovernanceError):
    """The action is outside its valid time window."""
    pass


class IdempotenceError(GovernanceError):
    """The action was already performed once and must not repeat."""
    pass


class DataError(GovernanceError):
    """The referenced entity or precondition does not exist or is zero."""
    pass


# -- eligibility --------------------------------------------------------

class NotRegisteredError(EligibilityError):
    """Voter or proposer is not in the registry."""
    pass


class AlreadyRegisteredError(EligibilityError):
    """Voter is already in the registry."""
    pass


class InvalidIdentityError(EligibilityError):
    """Voter identity is empty or not a string."""
    pass


# -- temporal -----------------------------------------------------------

class InvalidDeadlineError(TemporalError):
    """Proposal deadline is not strictly in the future."""
    pass


class VotingClosedError(TemporalError):
    """Vote cast at or after the proposal deadline."""
    pass


class DeadlineNotReachedError(TemporalError):
    """Finalization attempted before the proposal deadline."""
    pass


class NotFinalizedError(TemporalError):
    """Queue attempted on a proposal that has not been finalized."""
    pass


# -- idempotence --------------------------------------------------------

class AlreadyVotedError(IdempotenceError):
    """Voter already cast a vote on this proposal."""
    pass


class AlreadyFinalizedError(IdempotenceError):
    """Proposal was already finalized."""
    pass


# -- data ---------------------------------------------------------------

class UnknownProposalError(DataError):
    """Proposal id does not exist."""
    pass


class NoVotingPowerError(DataError):
    """Weight oracle reported a zero balance for the voter."""
    pass


class NoPassingProposalsError(DataError):
    """Allocation attempted with no passing proposals or no FOR weight."""
    pass


class NoAllocationError(DataError):
    """Queue attempted on a proposal with a zero allocation."""
    pass


class InvalidBudgetError(DataError):
    """Allocation budget is not a non-negative integer."""
    pass


class InvalidChoiceError(DataError):
    """Vote choice is not FOR, AGAINST or ABSTAIN."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  CONFIGURATION / COLLABORATORS
# ══════════════════════════════════════════════════════════════════════

class ConfigurationError(FundGovException):
    """Invalid configuration supplied at construction."""
    pass


class InvalidQuorumFractionError(ConfigurationError):
    """Quorum fraction is not an integer percentage in [0, 100]."""
    pass


class WeightOracleError(FundGovException):
    """Weight oracle returned something other than a non-negative int."""
    pass
