"""Step state machine for the Connect-an-Account wizard.

Two fixed step sequences exist, one per provider family:

- BANK:    intro -> connect   -> select -> sync -> complete
- SERVICE: intro -> authorize -> select -> sync -> complete

The machine has no failure state. Failures are expressed by the caller as a
regression to an earlier interactive step plus a notification.
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class ProviderFamily(str, Enum):
    """Top-level linking flow variants."""

    BANK = "bank"
    SERVICE = "service"


class StepId(str, Enum):
    """Named wizard steps."""

    INTRO = "intro"
    CONNECT = "connect"
    AUTHORIZE = "authorize"
    SELECT = "select"
    SYNC = "sync"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Step:
    """One wizard step as presented by the stepper."""

    id: StepId
    title: str
    description: str


BANK_STEPS: tuple[Step, ...] = (
    Step(StepId.INTRO, "Introduction", "Security information"),
    Step(StepId.CONNECT, "Connect", "Select your bank"),
    Step(StepId.SELECT, "Select Accounts", "Choose accounts"),
    Step(StepId.SYNC, "Sync", "Import accounts"),
    Step(StepId.COMPLETE, "Complete", "All set!"),
)

SERVICE_STEPS: tuple[Step, ...] = (
    Step(StepId.INTRO, "Introduction", "Get started"),
    Step(StepId.AUTHORIZE, "Authorize", "Grant access"),
    Step(StepId.SELECT, "Select Data", "Choose what to sync"),
    Step(StepId.SYNC, "Sync", "Import data"),
    Step(StepId.COMPLETE, "Complete", "All set!"),
)

# Steps from which the user may navigate back
_BACK_ALLOWED = frozenset({StepId.CONNECT, StepId.AUTHORIZE, StepId.SELECT})


def steps_for(family: ProviderFamily) -> tuple[Step, ...]:
    """Return the step sequence for a provider family."""
    return BANK_STEPS if family is ProviderFamily.BANK else SERVICE_STEPS


class StepMachine:
    """Owns the current step index for one linking session."""

    def __init__(self, family: ProviderFamily):
        self.family = family
        self.steps = steps_for(family)
        self._index = 0

    def __repr__(self) -> str:
        return f"StepMachine({self.family.value}, step={self.current_step.id.value})"

    @property
    def index(self) -> int:
        """0-based index of the current step."""
        return self._index

    @property
    def current_step(self) -> Step:
        return self.steps[self._index]

    @property
    def current_id(self) -> StepId:
        return self.steps[self._index].id

    @property
    def last_index(self) -> int:
        return len(self.steps) - 1

    @property
    def is_complete(self) -> bool:
        """True once the terminal step is reached."""
        return self._index == self.last_index

    @property
    def connect_step(self) -> StepId:
        """The family's handshake step (``connect`` or ``authorize``)."""
        return self.steps[1].id

    @property
    def can_go_back(self) -> bool:
        return self.current_id in _BACK_ALLOWED

    def index_of(self, step_id: StepId) -> int:
        """Index of a named step in this family's sequence.

        Raises:
            ValueError: If the step does not belong to this family
        """
        for i, step in enumerate(self.steps):
            if step.id is step_id:
                return i
        raise ValueError(f"Step '{step_id.value}' is not part of the {self.family.value} flow")

    def is_at(self, step_id: StepId) -> bool:
        return self.current_id is step_id

    def advance(self) -> StepId:
        """Move one step forward; a no-op on the terminal step."""
        if self._index < self.last_index:
            self._index += 1
            logger.debug(f"Advanced to step '{self.current_id.value}'")
        return self.current_id

    def regress(self, step_id: StepId) -> StepId:
        """Move back to an earlier named step after a recoverable failure.

        Regressing to the current step is allowed and leaves the index unchanged.

        Raises:
            ValueError: If the target lies ahead of the current step
        """
        target = self.index_of(step_id)
        if target > self._index:
            raise ValueError(
                f"Cannot regress forward from '{self.current_id.value}' to '{step_id.value}'"
            )
        if target != self._index:
            logger.info(f"Regressing from '{self.current_id.value}' to '{step_id.value}'")
        self._index = target
        return self.current_id

    def jump_to(self, step_id: StepId) -> StepId:
        """Set the current step directly (on-mount "already connected" shortcut)."""
        self._index = self.index_of(step_id)
        logger.debug(f"Jumped to step '{step_id.value}'")
        return self.current_id

    def prev(self) -> bool:
        """Navigate back one step if the current step allows it.

        Returns:
            bool: True if the step changed
        """
        if not self.can_go_back:
            return False
        self._index -= 1
        return True
