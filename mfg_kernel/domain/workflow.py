"""
Canonical workflow types (``mfg_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines (purchase orders, BOMs,
production batches, sales orders, finished-goods batches).  Guard,
Transition and Workflow are defined once here and every module declares
its workflow as a module-level constant built from them.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* A status change is legal only when a matching Transition exists;
  ``Workflow.require`` raises ``InvalidTransitionError`` otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mfg_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``moves_stock=True`` marks transitions that mutate a ledger.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state "
                f"'{self.initial_state}' not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition "
                    f"{t.from_state}->{t.to_state} references unknown state"
                )

    def find(self, from_state: str, to_state: str) -> Transition | None:
        """Return the transition from ``from_state`` to ``to_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allowed_targets(self, from_state: str) -> tuple[str, ...]:
        return tuple(t.to_state for t in self.transitions if t.from_state == from_state)

    def require(
        self,
        entity_type: str,
        entity_id: Any,
        from_state: str,
        to_state: str,
    ) -> Transition:
        """Return the transition or raise ``InvalidTransitionError``."""
        transition = self.find(from_state, to_state)
        if transition is None:
            raise InvalidTransitionError(entity_type, entity_id, from_state, to_state)
        return transition
