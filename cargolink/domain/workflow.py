"""
Status workflows (State Pattern)
================================

One ``StateMachine`` per lifecycle.  Each wraps a transition table from
:mod:`cargolink.domain.enums` and is the single place where a status change
is validated:

* ``ORDER_WORKFLOW``    -- pending_pickup -> ... -> delivered | returned | cancelled
* ``COD_WORKFLOW``      -- pending_collection -> ... -> completed | failed
* ``TRANSFER_WORKFLOW`` -- pending -> accepted | rejected
"""

from __future__ import annotations

import enum
from typing import Generic, Mapping, TypeVar

from .enums import (
    COD_TRANSITIONS,
    ORDER_TRANSITIONS,
    TRANSFER_TRANSITIONS,
    CodStatus,
    OrderStatus,
    TransferStatus,
)
from .errors import InvalidStateTransition

S = TypeVar("S", bound=enum.Enum)


class StateMachine(Generic[S]):
    def __init__(self, name: str, transitions: Mapping[S, set[S]]):
        self.name = name
        self._transitions = transitions
        self._state_type = type(next(iter(transitions)))

    def coerce(self, state: S | str) -> S:
        """Accept either an enum member or its stored string value."""
        return self._state_type(state)

    def allowed(self, current: S | str) -> set[S]:
        return set(self._transitions.get(self.coerce(current), set()))

    def can(self, current: S | str, new: S | str) -> bool:
        return self.coerce(new) in self.allowed(current)

    def is_terminal(self, state: S | str) -> bool:
        return not self._transitions.get(self.coerce(state))

    def ensure(self, current: S | str, new: S | str) -> S:
        """Return *new* as an enum member if the move is legal, else raise."""
        current, new = self.coerce(current), self.coerce(new)
        if new not in self._transitions.get(current, set()):
            raise InvalidStateTransition(
                f"Invalid {self.name} status transition: "
                f"{current.value} -> {new.value}"
            )
        return new


ORDER_WORKFLOW: StateMachine[OrderStatus] = StateMachine("order", ORDER_TRANSITIONS)
COD_WORKFLOW: StateMachine[CodStatus] = StateMachine("COD", COD_TRANSITIONS)
TRANSFER_WORKFLOW: StateMachine[TransferStatus] = StateMachine(
    "transfer", TRANSFER_TRANSITIONS
)
