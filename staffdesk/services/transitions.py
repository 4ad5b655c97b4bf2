from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass

from staffdesk.exceptions import GuardViolation


@dataclass(frozen=True)
class StateMachine:
    """Transition table for a request workflow.

    Each (status, action) pair maps to exactly one next status. Terminal
    statuses have no outgoing entries, and no entry leads back to a status
    that precedes it, so every path through the table is monotonic.
    """

    name: str
    initial: enum.StrEnum
    transitions: Mapping[tuple[enum.StrEnum, enum.StrEnum], enum.StrEnum]
    terminal: frozenset[enum.StrEnum]

    def allowed_actions(self, status: enum.StrEnum) -> list[enum.StrEnum]:
        return [action for (source, action) in self.transitions if source == status]

    def is_terminal(self, status: enum.StrEnum) -> bool:
        return status in self.terminal

    def next_status(self, status: enum.StrEnum, action: enum.StrEnum) -> enum.StrEnum:
        """Return the status reached by applying ``action``.

        Raises GuardViolation when the action is not defined for ``status``.
        """
        target = self.transitions.get((status, action))
        if target is None:
            if self.is_terminal(status):
                msg = f"This {self.name} is already {status.value}; no further actions are possible"
            else:
                msg = f"Cannot {action.value.replace('_', ' ')} a {self.name} that is {status.value}"
            raise GuardViolation(msg)
        return target
