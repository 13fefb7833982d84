"""Source synchronization orchestrator.

Drives the read-format-compare-lock-write-activate sequence over every
include of every selected object:

- one stateful session for the whole run, torn down in ``finally``
- strictly sequential processing, objects and includes in order
- idempotency: unchanged includes are never locked, written or activated
- generated (unlockable) includes are skipped, every other failure aborts
  the run after the last object/include in flight has been reported
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable

from abappretty.adt.client import AdtClient, SessionType
from abappretty.adt.repository import expand
from abappretty.formatter import SourceFormatter
from abappretty.models import (
    AbapInclude,
    AbapObject,
    IncludeOutcome,
    RunStatus,
    SyncOptions,
)
from abappretty.sync.fsm import IncludeLifecycle
from abappretty.sync.lock_guard import LockAndTransportGuard
from abappretty.sync.pipeline import WriteActivatePipeline
from abappretty.sync.progress import NullProgress, SyncProgress

logger = logging.getLogger(__name__)

Expander = Callable[[AdtClient, AbapObject], Awaitable[list[AbapInclude]]]


class SourceSyncOrchestrator:
    """Pretty prints every include of a list of objects on the server.

    Usage::

        formatter = build_formatter(client, abaplint=None)
        orchestrator = SourceSyncOrchestrator(client, formatter, progress=reporter)
        status = await orchestrator.process_objects(objects, SyncOptions(transport="DEVK900001"))
        print(status.summary)
    """

    def __init__(
        self,
        client: AdtClient,
        formatter: SourceFormatter,
        expander: Expander = expand,
        progress: SyncProgress | None = None,
    ) -> None:
        self.client = client
        self.formatter = formatter
        self.expander = expander
        self.progress = progress or NullProgress()
        self.guard = LockAndTransportGuard(client)
        self.pipeline = WriteActivatePipeline(client, self.guard)

    async def process_objects(
        self, objects: Iterable[AbapObject], options: SyncOptions
    ) -> RunStatus:
        """Process all *objects* in order.

        The first failure aborts the run. Cancellation and Ctrl-C count as
        failures too: the last object and include are reported, the
        session is torn down and the original exception is re-raised
        unchanged.

        Returns:
            The run status with final counters.
        """
        objects = list(objects)
        status = RunStatus(total_objects=len(objects))
        await self.formatter.prepare()

        self.progress.run_started(len(objects))
        self.client.stateful = SessionType.STATEFUL
        failed = False
        try:
            for obj in objects:
                status.current_object = obj
                self.progress.object_started(obj)
                includes = await self.expander(self.client, obj)
                self.progress.object_expanded(obj, includes)
                logger.info("Expanded %s into %d includes", obj.key, len(includes))
                for include in includes:
                    await self.process_include(include, options, status)
                status.processed_objects += 1
        except BaseException as error:
            failed = True
            self._report_failure(status, error)
            raise
        finally:
            self.progress.run_finished(status)
            logger.info("Run finished: %s", status.summary)
            self.client.stateful = SessionType.STATELESS
            await self._drop_session(failed)
        return status

    async def process_include(
        self, include: AbapInclude, options: SyncOptions, status: RunStatus
    ) -> IncludeOutcome:
        """Run the pipeline for one include and record its outcome."""
        status.current_include = include
        status.current_step = None
        lifecycle = IncludeLifecycle(include, self.progress.include_step)
        try:
            outcome = await self._sync_include(include, options, status, lifecycle)
        except BaseException:
            status.current_step = lifecycle.state
            lifecycle.fail()
            raise

        status.processed_includes += 1
        status.outcomes.append((include.key, outcome))
        status.current_include = None
        self.progress.include_finished(include, outcome)
        return outcome

    async def _sync_include(
        self,
        include: AbapInclude,
        options: SyncOptions,
        status: RunStatus,
        lifecycle: IncludeLifecycle,
    ) -> IncludeOutcome:
        lifecycle.advance("start_read")
        source = await self.client.stateless_clone.get_object_source(include.source_url)

        lifecycle.advance("start_format")
        formatted = await self.formatter.pretty_print(include, source)
        if formatted == source:
            lifecycle.advance("mark_unchanged")
            logger.debug("Unchanged: %s", include.key)
            return IncludeOutcome.UNCHANGED

        lifecycle.advance("start_lock")
        lock = (await self.guard.try_lock(include.source_url)).unwrap()
        if lock is None:
            lifecycle.advance("mark_generated")
            logger.info("Generated, skipped: %s", include.key)
            return IncludeOutcome.GENERATED

        await self.pipeline.write(include, formatted, lock, options, status, lifecycle)
        return IncludeOutcome.WRITTEN

    def _report_failure(self, status: RunStatus, error: BaseException) -> None:
        obj = status.current_object
        logger.error(
            "Run failed: %s",
            error,
            extra={
                "last_object": obj.key if obj else None,
                "last_include": status.current_include.key if status.current_include else None,
                "last_step": status.current_step,
            },
        )
        self.progress.run_failed(status, error)

    async def _drop_session(self, failed: bool) -> None:
        try:
            await self.client.drop_session()
        except Exception:
            if not failed:
                raise
            # keep the run's own error as the one the caller sees
            logger.warning("Could not drop session after failed run", exc_info=True)
