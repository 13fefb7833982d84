"""Tests for WriteActivatePipeline: write under lock, unlock, activate.

Covers:
  - unlock always follows a lock, also when validation or the write fails
  - dry runs validate and unlock but never write or activate
  - the single follow-up activation of objects left inactive
  - PROG/I activation in the context of its main program
  - activation failure messages
"""

from __future__ import annotations

import pytest

from abappretty.adt.client import AdtError
from abappretty.exceptions import ActivationError, LockError, TransportValidationError
from abappretty.models import (
    ActivationMessage,
    ActivationResult,
    AdtLock,
    InactiveObjectEntry,
    MainProgram,
    RunStatus,
    SyncOptions,
)
from abappretty.sync.fsm import IncludeLifecycle
from abappretty.sync.pipeline import WriteActivatePipeline

LOCAL_LOCK = AdtLock(lock_handle="LH", is_local=True)


# ======================================================================
# Write and unlock
# ======================================================================


class TestWrite:
    async def test_write_unlock_activate_in_order(self, fake_client, include_a):
        status = RunStatus()
        lifecycle = IncludeLifecycle(include_a, state="locking")

        await WriteActivatePipeline(fake_client).write(
            include_a, "NEW", LOCAL_LOCK, SyncOptions(), status, lifecycle
        )

        url = include_a.source_url
        assert fake_client.calls == [
            ("write", url, None),
            ("unlock", url),
            ("activate", url, None),
        ]
        assert fake_client.sources[url] == "NEW"
        assert status.written_includes == 1
        assert lifecycle.state == "written"

    async def test_transport_passed_to_write(self, fake_client, include_a):
        lock = AdtLock(lock_handle="LH", corrnr="DEVK900001")

        await WriteActivatePipeline(fake_client).write(
            include_a, "NEW", lock, SyncOptions(transport="DEVK900001"), RunStatus()
        )

        assert fake_client.calls[0] == ("write", include_a.source_url, "DEVK900001")

    async def test_unlock_after_failed_write(self, fake_client, include_a):
        fake_client.write_error = AdtError("Write refused")
        status = RunStatus()
        lifecycle = IncludeLifecycle(include_a, state="locking")

        with pytest.raises(AdtError, match="Write refused"):
            await WriteActivatePipeline(fake_client).write(
                include_a, "NEW", LOCAL_LOCK, SyncOptions(), status, lifecycle
            )

        assert [c[0] for c in fake_client.calls] == ["write", "unlock"]
        assert status.written_includes == 0
        assert lifecycle.state == "writing"

    async def test_unlock_after_failed_transport_check(self, fake_client, include_a):
        lock = AdtLock(lock_handle="LH", corrnr="DEVK900002")

        with pytest.raises(TransportValidationError):
            await WriteActivatePipeline(fake_client).write(
                include_a, "NEW", lock, SyncOptions(transport="DEVK900003"), RunStatus()
            )

        assert fake_client.calls == [("unlock", include_a.source_url)]

    async def test_lock_without_handle_fails_before_any_call(self, fake_client, include_a):
        with pytest.raises(LockError, match="Failed to lock PROG/P ZPROG_A"):
            await WriteActivatePipeline(fake_client).write(
                include_a, "NEW", AdtLock(lock_handle=""), SyncOptions(), RunStatus()
            )
        assert fake_client.calls == []

    async def test_dry_run_skips_write_and_activation(self, fake_client, include_a):
        status = RunStatus()
        lifecycle = IncludeLifecycle(include_a, state="locking")

        await WriteActivatePipeline(fake_client).write(
            include_a, "NEW", LOCAL_LOCK, SyncOptions(dry_run=True), status, lifecycle
        )

        assert fake_client.calls == [("unlock", include_a.source_url)]
        assert status.written_includes == 1
        assert lifecycle.state == "written"

    async def test_dry_run_still_validates_transport(self, fake_client, include_a):
        with pytest.raises(TransportValidationError):
            await WriteActivatePipeline(fake_client).write(
                include_a,
                "NEW",
                AdtLock(lock_handle="LH"),
                SyncOptions(dry_run=True),
                RunStatus(),
            )
        assert fake_client.calls == [("unlock", include_a.source_url)]


# ======================================================================
# Activation
# ======================================================================


class TestActivate:
    async def test_inactive_objects_activated_exactly_once(
        self, fake_client, include_a, inactive_pair
    ):
        fake_client.activation_results = [
            ActivationResult(
                success=False,
                inactive=[InactiveObjectEntry(object=ref) for ref in inactive_pair],
            ),
            ActivationResult(
                success=False,
                inactive=[InactiveObjectEntry(object=inactive_pair[0])],
            ),
        ]

        result = await WriteActivatePipeline(fake_client).activate(include_a)

        assert fake_client.calls == [
            ("activate", include_a.source_url, None),
            ("activate_objects", [ref.uri for ref in inactive_pair]),
        ]
        assert result.success is False

    async def test_clean_activation_makes_one_call(self, fake_client, include_a):
        result = await WriteActivatePipeline(fake_client).activate(include_a)

        assert result.success is True
        assert fake_client.calls == [("activate", include_a.source_url, None)]

    async def test_program_include_activated_with_main_program(
        self, fake_client, program_include
    ):
        fake_client.mains = [
            MainProgram(uri="/sap/bc/adt/programs/programs/zprog_a", name="ZPROG_A"),
            MainProgram(uri="/sap/bc/adt/programs/programs/zprog_b", name="ZPROG_B"),
        ]

        await WriteActivatePipeline(fake_client).activate(program_include)

        assert fake_client.calls == [
            ("main_programs", program_include.meta_url),
            (
                "activate",
                program_include.source_url,
                "/sap/bc/adt/programs/programs/zprog_a",
            ),
        ]

    async def test_program_include_without_main_program(self, fake_client, program_include):
        await WriteActivatePipeline(fake_client).activate(program_include)

        assert fake_client.calls[-1] == ("activate", program_include.source_url, None)

    async def test_failed_activation_reports_first_message(self, fake_client, include_a):
        fake_client.activation_results = [
            ActivationResult(
                success=False,
                messages=[
                    ActivationMessage(type="E", short_text="Syntax error in line 3"),
                    ActivationMessage(type="E", short_text="Second problem"),
                ],
            )
        ]

        with pytest.raises(ActivationError, match="^Syntax error in line 3$"):
            await WriteActivatePipeline(fake_client).write(
                include_a, "NEW", LOCAL_LOCK, SyncOptions(), RunStatus()
            )

    async def test_failed_activation_without_messages(self, fake_client, include_a):
        fake_client.activation_results = [ActivationResult(success=False)]
        status = RunStatus()

        with pytest.raises(ActivationError, match="Failed to activate PROG/P ZPROG_A"):
            await WriteActivatePipeline(fake_client).write(
                include_a, "NEW", LOCAL_LOCK, SyncOptions(), status
            )
        assert status.written_includes == 0
