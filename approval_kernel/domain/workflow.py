"""
Canonical state machine types (``approval_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for lifecycle state machines.  A ``Workflow`` is a
declarative table of ``Transition`` rows; the purchase lifecycle in
``domain/purchase.py`` is defined with them and the workflow service
consults it before applying any action.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Self-loops (``from_state == to_state``) are actions that are audited
    but leave the status untouched, e.g. a transfer of the pending step.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None

    @property
    def changes_status(self) -> bool:
        return self.from_state != self.to_state


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
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
                f"Initial state {self.initial_state!r} not in workflow {self.name}"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Transition {t.action} {t.from_state}->{t.to_state} "
                    f"references unknown state in workflow {self.name}"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Terminal state {t.from_state!r} has outgoing "
                    f"transition {t.action} in workflow {self.name}"
                )

    def transitions_for(self, from_state: str, action: str) -> tuple[Transition, ...]:
        """All transitions for ``action`` leaving ``from_state``."""
        return tuple(
            t for t in self.transitions
            if t.from_state == from_state and t.action == action
        )

    def allows(self, from_state: str, action: str) -> bool:
        return bool(self.transitions_for(from_state, action))

    def target_for(self, from_state: str, action: str, to_state: str) -> Transition | None:
        """The transition ``from_state --action--> to_state`` if declared."""
        for t in self.transitions_for(from_state, action):
            if t.to_state == to_state:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Distinct actions available from ``state``, in declaration order."""
        seen: list[str] = []
        for t in self.transitions:
            if t.from_state == state and t.action not in seen:
                seen.append(t.action)
        return tuple(seen)
