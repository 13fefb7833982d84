"""Write, unlock and activate one locked include.

The lock is released in a ``finally`` as soon as a usable handle exists,
so a failing transport check or write never leaves it held. Activation
runs after the unlock and is the only step with a follow-up call: one
extra activation of whatever the first pass left inactive.
"""

from __future__ import annotations

import logging

from abappretty.adt.client import AdtClient
from abappretty.constants import PROGRAM_INCLUDE
from abappretty.exceptions import ActivationError, LockError
from abappretty.models import (
    AbapInclude,
    ActivationResult,
    AdtLock,
    RunStatus,
    SyncOptions,
    inactive_objects_in_results,
)
from abappretty.sync.fsm import IncludeLifecycle
from abappretty.sync.lock_guard import LockAndTransportGuard

logger = logging.getLogger(__name__)


class WriteActivatePipeline:
    """Writes formatted source under a lock and activates the result."""

    def __init__(self, client: AdtClient, guard: LockAndTransportGuard | None = None) -> None:
        self.client = client
        self.guard = guard or LockAndTransportGuard(client)

    async def write(
        self,
        include: AbapInclude,
        formatted: str,
        lock: AdtLock,
        options: SyncOptions,
        status: RunStatus,
        lifecycle: IncludeLifecycle | None = None,
    ) -> None:
        """Write *formatted* as the new source of *include*.

        Args:
            include: Include to write.
            formatted: New source text.
            lock: Lock acquired for ``include.source_url``.
            options: Dry-run flag and transport of the run.
            status: Run counters; ``written_includes`` is incremented.
            lifecycle: FSM of the include, advanced at each step.

        Raises:
            LockError: The lock carries no handle.
            TransportValidationError: The transport does not fit the lock.
            ActivationError: The server reported a failed activation.
        """
        lifecycle = lifecycle or IncludeLifecycle(include, state="locking")
        key = include.key
        if not lock.lock_handle:
            raise LockError(f"Failed to lock {key}")

        lifecycle.advance("start_write")
        try:
            self.guard.validate_transport(lock, key, options.transport)
            if not options.dry_run:
                await self.client.set_object_source(
                    include.source_url, formatted, lock.lock_handle, options.transport
                )
                logger.info("Wrote %s", key)
        finally:
            await self.client.unlock(include.source_url, lock.lock_handle)
        lifecycle.advance("release")

        if not options.dry_run:
            lifecycle.advance("start_activate")
            result = await self.activate(include)
            if result.success is False:
                first = result.messages[0].short_text if result.messages else ""
                raise ActivationError(first or f"Failed to activate {key}")
            logger.info("Activated %s", key)

        lifecycle.advance("complete")
        status.written_includes += 1

    async def activate(self, include: AbapInclude) -> ActivationResult:
        """Activate *include*.

        ``PROG/I`` includes are activated in the context of their first
        main program. Anything else is activated directly; if that leaves
        objects inactive, exactly one more activation over those objects
        is issued and its result returned.
        """
        if include.type == PROGRAM_INCLUDE:
            mains = await self.client.stateless_clone.main_programs(include.meta_url)
            main_uri = mains[0].uri if mains else None
            return await self.client.activate(include.name, include.source_url, main_uri)

        result = await self.client.activate(include.name, include.source_url)
        if result.inactive:
            inactives = inactive_objects_in_results(result)
            logger.info(
                "Activating %d objects left inactive by %s", len(inactives), include.key
            )
            return await self.client.activate_objects(inactives)
        return result
