"""
Shared governance enums.
"""

from enum import IntEnum
from typing import Union

from ..constants import (
    GOVERNANCE_VOTE_ABSTAIN,
    GOVERNANCE_VOTE_AGAINST,
    GOVERNANCE_VOTE_FOR,
)
from ..exceptions import InvalidChoiceError


class Choice(IntEnum):
    """Ballot option for a single vote."""
    FOR = GOVERNANCE_VOTE_FOR
    AGAINST = GOVERNANCE_VOTE_AGAINST
    ABSTAIN = GOVERNANCE_VOTE_ABSTAIN

    @classmethod
    def coerce(cls, value: Union["Choice", int, str]) -> "Choice":
        """Accept a Choice, its integer value, or its name (any casing)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidChoiceError(f"Invalid vote choice: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidChoiceError(f"Invalid vote choice: {value!r}") from None
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidChoiceError(f"Invalid vote choice: {value!r}") from None
        raise InvalidChoiceError(f"Invalid vote choice: {value!r}")


class ProposalStatus(IntEnum):
    """Derived lifecycle stage of a proposal."""
    ACTIVE = 0                  # Before deadline, accepting votes
    AWAITING_FINALIZATION = 1   # Deadline reached, not yet finalized
    PASSED = 2                  # Finalized, met quorum and majority
    FAILED = 3                  # Finalized, did not pass
