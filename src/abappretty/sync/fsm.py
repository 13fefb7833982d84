"""Include lifecycle finite state machine for the synchronization pipeline.

Each include gets its own FSM instance. It is purely a validation tool:
it performs no remote calls and has no callbacks. The orchestrator and
the write pipeline advance it at every step, so an out-of-order call
(writing without a lock, activating before unlocking) raises
``TransitionNotAllowed`` instead of touching the remote system, and the
state reached when a run fails is available for diagnostics.
"""

from __future__ import annotations

from collections.abc import Callable

from statemachine import State, StateMachine

from abappretty.models import AbapInclude

TERMINAL_STATES = frozenset({"unchanged", "generated", "written", "failed"})


class IncludeLifecycleSM(StateMachine):
    """Lifecycle of one include through read, format, lock, write, activate.

    States:
        pending    -- Not started.
        reading    -- Source read in flight.
        formatting -- Formatter running.
        unchanged  -- Formatted source equals the original; nothing to do.
        locking    -- Lock request in flight.
        generated  -- Object cannot be locked (generated); skipped.
        writing    -- Lock held; transport check and source write.
        unlocked   -- Lock released after the write (or dry-run no-op).
        activating -- Activation in flight.
        written    -- Done.
        failed     -- An error escaped one of the steps.

    The four outcome states are final: once an include is unchanged,
    generated, written or failed its FSM accepts no further events.
    """

    pending = State("pending", initial=True, value="pending")
    reading = State("reading", value="reading")
    formatting = State("formatting", value="formatting")
    unchanged = State("unchanged", value="unchanged", final=True)
    locking = State("locking", value="locking")
    generated = State("generated", value="generated", final=True)
    writing = State("writing", value="writing")
    unlocked = State("unlocked", value="unlocked")
    activating = State("activating", value="activating")
    written = State("written", value="written", final=True)
    failed = State("failed", value="failed", final=True)

    start_read = pending.to(reading)
    start_format = reading.to(formatting)
    mark_unchanged = formatting.to(unchanged)
    start_lock = formatting.to(locking)
    mark_generated = locking.to(generated)
    start_write = locking.to(writing)
    release = writing.to(unlocked)
    start_activate = unlocked.to(activating)
    # dry runs complete straight from unlocked
    complete = activating.to(written) | unlocked.to(written)
    fail = (
        pending.to(failed)
        | reading.to(failed)
        | formatting.to(failed)
        | locking.to(failed)
        | writing.to(failed)
        | unlocked.to(failed)
        | activating.to(failed)
    )


def create_fsm(current_state: str = "pending") -> IncludeLifecycleSM:
    """Create an FSM instance at the given state."""
    return IncludeLifecycleSM(start_value=current_state)


class IncludeLifecycle:
    """Binds an include to its FSM and reports every step.

    Args:
        include: The include being processed.
        on_step: Called with the include and the new state after each
            transition.
        state: State to start from.
    """

    def __init__(
        self,
        include: AbapInclude,
        on_step: Callable[[AbapInclude, str], None] | None = None,
        state: str = "pending",
    ) -> None:
        self.include = include
        self.sm = create_fsm(state)
        self._on_step = on_step

    @property
    def state(self) -> str:
        return self.sm.current_state.value

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, event: str) -> None:
        self.sm.send(event)
        if self._on_step is not None:
            self._on_step(self.include, self.state)

    def fail(self) -> None:
        if not self.is_terminal:
            self.sm.fail()
