"""
GENERIC STATUS STATE MACHINE

One table-driven validator for every entity with a status lifecycle:
- Status vocabulary and initial statuses
- Directed transition edges
- Companion rules per status, in two kinds:
    HOLDS     checked whenever a record sits in the status
              (creation, transition, and unchanged resubmission)
    ON_ENTER  checked only when the record enters the status
              (creation or an actual transition)

A resubmitted record whose status did not change is always a legal
"transition"; it re-checks HOLDS rules but never ON_ENTER rules.

Usage:
    machine = StateMachine("expense", record_label="expenses")
    machine.add_states("pending", "approved")
    machine.set_initial("pending")
    machine.register("pending", "approved")
    machine.holds("approved", has_approver, "approver recorded")

    machine.validate(record, previous_record, context={"now_ns": now})
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from ledger_guard.errors import ErrorCategory, WriteRejectedError
from ledger_guard.validators import require_choice

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class StateMachineError(WriteRejectedError):
    """Base exception for status lifecycle violations."""
    category = ErrorCategory.TRANSITION


class InvalidTransitionError(StateMachineError):
    """Raised when a status change is not an edge of the graph."""
    def __init__(self, entity: str, from_state: str, to_state: str, allowed: List[str] = None):
        self.entity = entity
        self.from_state = from_state
        self.to_state = to_state
        self.allowed = allowed or []

        message = (
            f"Invalid status transition from '{from_state}' to '{to_state}'. "
            f"Allowed transitions: [{', '.join(self.allowed)}]"
        )
        super().__init__(message, details={
            "entity": entity,
            "from": from_state,
            "to": to_state,
            "allowed": self.allowed,
        })


class InvalidInitialStatusError(StateMachineError):
    """Raised when a record is created in a non-initial status."""
    def __init__(self, entity: str, record_label: str, status: str, initial: List[str]):
        self.entity = entity
        self.status = status
        self.initial = initial
        quoted = " or ".join(f"'{s}'" for s in initial)
        super().__init__(
            f"New {record_label} must have status {quoted}",
            details={"entity": entity, "status": status, "initial": initial}
        )


class CompanionFieldError(StateMachineError):
    """Raised when a status's companion rule fails."""
    def __init__(self, entity: str, status: str, reason: str):
        self.entity = entity
        self.status = status
        self.reason = reason
        super().__init__(reason, details={"entity": entity, "status": status})


# =============================================================================
# TYPE DEFINITIONS
# =============================================================================

# Rule signature: def rule(record, context) -> Tuple[bool, str]
# context carries "now_ns" (epoch nanoseconds) for time-bounded rules.
CompanionCheck = Callable[[Any, Dict[str, Any]], Tuple[bool, str]]


class RuleKind(str, Enum):
    HOLDS = "holds"
    ON_ENTER = "on_enter"


@dataclass(frozen=True)
class CompanionRule:
    status: str
    check: CompanionCheck
    kind: RuleKind
    description: str = ""


# =============================================================================
# STATE MACHINE
# =============================================================================

class StateMachine:
    """
    Declarative status lifecycle for one entity type.

    Statuses and edges keep registration order, so allowed-transition
    listings in error messages are stable.
    """

    def __init__(
        self,
        entity_name: str,
        record_label: Optional[str] = None,
        status_field: str = "status"
    ):
        self.entity_name = entity_name
        self.record_label = record_label or f"{entity_name}s"
        self.status_field = status_field

        self._states: List[str] = []
        self._initial: List[str] = []
        self._edges: Dict[str, List[str]] = {}
        self._rules: List[CompanionRule] = []

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_states(self, *states: str) -> "StateMachine":
        for state in states:
            if state not in self._states:
                self._states.append(state)
                self._edges.setdefault(state, [])
        return self

    def set_initial(self, *states: str) -> "StateMachine":
        self.add_states(*states)
        self._initial = list(states)
        return self

    def register(self, from_state: str, to_state: str) -> "StateMachine":
        """Register a directed edge."""
        self.add_states(from_state, to_state)
        if to_state in self._edges[from_state]:
            logger.warning(
                f"[STATE_MACHINE] Duplicate transition {self.entity_name}: "
                f"'{from_state}' -> '{to_state}'"
            )
            return self
        self._edges[from_state].append(to_state)
        return self

    def holds(self, status: str, check: CompanionCheck, description: str = "") -> "StateMachine":
        self.add_states(status)
        self._rules.append(CompanionRule(status, check, RuleKind.HOLDS, description))
        return self

    def on_enter(self, status: str, check: CompanionCheck, description: str = "") -> "StateMachine":
        self.add_states(status)
        self._rules.append(CompanionRule(status, check, RuleKind.ON_ENTER, description))
        return self

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def get_allowed_transitions(self, from_state: str) -> List[str]:
        return list(self._edges.get(from_state, []))

    def can_transition(self, from_state: str, to_state: str) -> bool:
        """Edge exists, or the status is unchanged."""
        return from_state == to_state or to_state in self._edges.get(from_state, [])

    def is_terminal(self, state: str) -> bool:
        return not self._edges.get(state)

    def validate_status(self, status: str) -> None:
        require_choice(status, self._states, f"{self.entity_name} status")

    def validate_initial(self, status: str) -> None:
        if status not in self._initial:
            raise InvalidInitialStatusError(
                self.entity_name, self.record_label, status, self._initial
            )

    def validate_transition(self, from_state: str, to_state: str) -> None:
        """
        Raises InvalidTransitionError if to_state is not reachable in one step.
        """
        if not self.can_transition(from_state, to_state):
            raise InvalidTransitionError(
                entity=self.entity_name,
                from_state=from_state,
                to_state=to_state,
                allowed=self.get_allowed_transitions(from_state)
            )

    def check_companions(
        self,
        record: Any,
        status: str,
        entering: bool,
        context: Dict[str, Any]
    ) -> None:
        for rule in self._rules:
            if rule.status != status:
                continue
            if rule.kind == RuleKind.ON_ENTER and not entering:
                continue
            ok, reason = rule.check(record, context)
            if not ok:
                logger.info(
                    f"[STATE_MACHINE] {self.entity_name} '{status}' {rule.kind.value} "
                    f"rule failed: {reason}"
                )
                raise CompanionFieldError(self.entity_name, status, reason)

    def validate(
        self,
        record: Any,
        previous: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Validate a proposed record against its predecessor.

        Args:
            record: Proposed record (attribute access on status_field)
            previous: Stored record, None on creation
            context: Rule context, e.g. {"now_ns": ...}

        Returns:
            True if the record enters its status with this write

        Raises:
            FormatViolationError: unknown status
            InvalidInitialStatusError: creation in a non-initial status
            InvalidTransitionError: status change that is not an edge
            CompanionFieldError: companion rule failed
        """
        context = context or {}
        to_state = getattr(record, self.status_field)
        self.validate_status(to_state)

        if previous is None:
            self.validate_initial(to_state)
            entering = True
        else:
            from_state = getattr(previous, self.status_field)
            self.validate_transition(from_state, to_state)
            entering = from_state != to_state
            if entering:
                logger.debug(
                    f"[STATE_MACHINE] {self.entity_name}: '{from_state}' -> '{to_state}'"
                )

        self.check_companions(record, to_state, entering, context)
        return entering

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def get_states(self) -> List[str]:
        return list(self._states)

    def get_initial_states(self) -> List[str]:
        return list(self._initial)

    def get_graph(self) -> Dict[str, List[str]]:
        """State graph as adjacency list."""
        return {state: list(targets) for state, targets in self._edges.items()}

    def __repr__(self):
        edges = sum(len(t) for t in self._edges.values())
        return (
            f"StateMachine({self.entity_name}, "
            f"states={len(self._states)}, "
            f"transitions={edges})"
        )


# =============================================================================
# REGISTRY
# =============================================================================

class StateMachineRegistry:
    """
    Registry for managing multiple state machines.

    Usage:
        registry = StateMachineRegistry()
        registry.register("expense", expense_machine)
        machine = registry.get("expense")
    """

    def __init__(self):
        self._machines: Dict[str, StateMachine] = {}

    def register(self, name: str, machine: StateMachine) -> None:
        self._machines[name] = machine
        logger.debug(f"[REGISTRY] Registered state machine: {name}")

    def get(self, name: str) -> StateMachine:
        if name not in self._machines:
            raise KeyError(f"State machine not found: {name}")
        return self._machines[name]

    def has(self, name: str) -> bool:
        return name in self._machines

    def list(self) -> List[str]:
        return list(self._machines.keys())
