"""
Canonical workflow types (``erp_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document lifecycle state machines.  Every document
kind (quote, order, invoice, bill, returns, reorder alerts) declares its
own ``Workflow`` table built from these types; one generic engine
(``erp_engines.state_machine``) evaluates all of them.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* Several transitions may share ``(from_state, action)``; they are
  evaluated in declaration order and the first whose guards all pass wins.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    ``description`` is the human-readable precondition, reported verbatim
    when the guard blocks a transition ("order has unvoided invoices").
    The guard executor evaluates the condition; this type only names it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``effects`` names side effects the caller must perform after commit
    (stock reservation, credit note issuance, e-invoice submission).
    """
    from_state: str
    to_state: str
    action: str
    guards: tuple[Guard, ...] = ()
    effects: tuple[str, ...] = ()


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state} not in states"
            )
        for t in self.transitions:
            for state in (t.from_state, t.to_state):
                if state not in self.states:
                    raise ValueError(
                        f"Workflow {self.name}: transition {t.action} references "
                        f"unknown state {state}"
                    )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state} "
                    f"has outgoing transition {t.action}"
                )

    def candidates(self, state: str, action: str) -> tuple[Transition, ...]:
        """Transitions leaving ``state`` on ``action``, in declaration order."""
        return tuple(
            t for t in self.transitions
            if t.from_state == state and t.action == action
        )

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Distinct actions available from ``state``."""
        seen: dict[str, None] = {}
        for t in self.transitions:
            if t.from_state == state:
                seen.setdefault(t.action, None)
        return tuple(seen)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
