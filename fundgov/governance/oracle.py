"""
Weight Oracle Adapter

Thin interface over the external token-balance source. The voting engine
reads one balance per vote call; the value must not change during that
call. Adapters validate what the source returns but never coerce it.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional

from ..exceptions import WeightOracleError
from ..logger import get_logger

logger = get_logger(__name__)


def _checked_weight(voter: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise WeightOracleError(
            f"Weight oracle returned non-integer balance for {voter}: {value!r}"
        )
    if value < 0:
        raise WeightOracleError(
            f"Weight oracle returned negative balance for {voter}: {value}"
        )
    return value


class WeightOracle(ABC):
    """Source of voting weight, queried at vote time."""

    def weight_of(self, voter: str) -> int:
        """Validated balance of *voter*."""
        return _checked_weight(voter, self.balance_of(voter))

    @abstractmethod
    def balance_of(self, voter: str) -> int:
        ...


class StaticWeightOracle(WeightOracle):
    """
    In-memory balance table.

    Unknown voters have a balance of zero. ``set_balance`` lets callers
    model balance changes between votes.
    """

    def __init__(self, balances: Optional[Mapping[str, int]] = None):
        self._balances: Dict[str, int] = {}
        for voter, amount in (balances or {}).items():
            self.set_balance(voter, amount)

    def set_balance(self, voter: str, amount: int):
        self._balances[voter] = _checked_weight(voter, amount)
        logger.debug(f"Balance of {voter} set to {amount}")

    def balance_of(self, voter: str) -> int:
        return self._balances.get(voter, 0)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._balances)

    def __repr__(self) -> str:
        return f"<StaticWeightOracle holders={len(self._balances)}>"


class CallableWeightOracle(WeightOracle):
    """Wraps a ``Callable(voter) → int`` balance lookup."""

    def __init__(self, balance_fn: Callable[[str], int]):
        self._balance_fn = balance_fn

    def balance_of(self, voter: str) -> int:
        return self._balance_fn(voter)

    def __repr__(self) -> str:
        return f"<CallableWeightOracle fn={getattr(self._balance_fn, '__name__', '?')}>"
