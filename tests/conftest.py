"""Shared pytest fixtures for abappretty tests.

Provides an in-memory fake of the ADT client that records every remote
call in order, a formatter fake that logs into the same call list, and
a progress recorder. Together they let pipeline and orchestrator tests
assert on the exact sequence of remote effects.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from abappretty.adt.client import SessionType
from abappretty.models import (
    AbapInclude,
    ActivationResult,
    AdtLock,
    IncludeOutcome,
    MainProgram,
    ObjectReference,
    RunStatus,
)


class FakeAdtClient:
    """Records calls instead of talking to a server.

    Attributes:
        calls: Remote calls in order, as tuples starting with an action name.
        sources: Current source text per source URL; writes update it.
        locks: Lock to grant (or exception to raise) per URL.
        activation_results: Results returned by successive activations.
        sessions: Every session type assigned to ``stateful``.
    """

    def __init__(self, sources: dict[str, str] | None = None) -> None:
        self.calls: list[tuple] = []
        self.sources: dict[str, str] = dict(sources or {})
        self.locks: dict[str, AdtLock | Exception] = {}
        self.default_lock = AdtLock(lock_handle="LOCKHANDLE", is_local=True)
        self.activation_results: list[ActivationResult] = []
        self.mains: list[MainProgram] = []
        self.sessions: list[SessionType] = []
        self.write_error: Exception | None = None
        self.drop_error: Exception | None = None
        self._stateful = SessionType.STATELESS

    @property
    def stateful(self) -> SessionType:
        return self._stateful

    @stateful.setter
    def stateful(self, value: SessionType) -> None:
        self._stateful = value
        self.sessions.append(value)

    @property
    def stateless_clone(self) -> FakeAdtClient:
        return self

    async def get_object_source(self, url: str) -> str:
        self.calls.append(("read", url))
        return self.sources.get(url, "")

    async def set_object_source(
        self, url: str, source: str, lock_handle: str, transport: str | None = None
    ) -> None:
        self.calls.append(("write", url, transport))
        if self.write_error is not None:
            raise self.write_error
        self.sources[url] = source

    async def lock(self, url: str, access_mode: str = "MODIFY") -> AdtLock:
        self.calls.append(("lock", url))
        lock = self.locks.get(url, self.default_lock)
        if isinstance(lock, Exception):
            raise lock
        return lock

    async def unlock(self, url: str, lock_handle: str) -> None:
        self.calls.append(("unlock", url))

    async def activate(
        self, name: str, url: str, main_include: str | None = None
    ) -> ActivationResult:
        self.calls.append(("activate", url, main_include))
        return self._next_activation()

    async def activate_objects(self, references) -> ActivationResult:
        self.calls.append(("activate_objects", [ref.uri for ref in references]))
        return self._next_activation()

    async def main_programs(self, meta_url: str) -> list[MainProgram]:
        self.calls.append(("main_programs", meta_url))
        return list(self.mains)

    async def pretty_printer(self, source: str) -> str:
        self.calls.append(("pretty_printer",))
        return source.upper()

    async def drop_session(self) -> None:
        self.calls.append(("drop_session",))
        if self.drop_error is not None:
            raise self.drop_error

    def _next_activation(self) -> ActivationResult:
        if self.activation_results:
            return self.activation_results.pop(0)
        return ActivationResult(success=True)


class FakeFormatter:
    """Returns canned formatted text per source URL, else the source itself."""

    def __init__(self, client: FakeAdtClient, formatted: dict[str, str] | None = None) -> None:
        self.client = client
        self.formatted = dict(formatted or {})
        self.prepared = 0

    async def prepare(self) -> None:
        self.prepared += 1

    async def pretty_print(self, include: AbapInclude, source: str) -> str:
        self.client.calls.append(("format", include.source_url))
        return self.formatted.get(include.source_url, source)


class RecordingProgress:
    """Progress sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.failed_with: tuple[RunStatus, BaseException] | None = None

    def run_started(self, total_objects: int) -> None:
        self.events.append(("run_started", total_objects))

    def object_started(self, obj) -> None:
        self.events.append(("object_started", obj.key))

    def object_expanded(self, obj, includes) -> None:
        self.events.append(("object_expanded", obj.key, len(includes)))

    def include_step(self, include: AbapInclude, step: str) -> None:
        self.events.append(("step", include.key, step))

    def include_finished(self, include: AbapInclude, outcome: IncludeOutcome) -> None:
        self.events.append(("finished", include.key, outcome))

    def run_failed(self, status: RunStatus, error: BaseException) -> None:
        self.failed_with = (status, error)
        self.events.append(("run_failed", str(error)))

    def run_finished(self, status: RunStatus) -> None:
        self.events.append(("run_finished", status.summary))


PROG_A_URL = "/sap/bc/adt/programs/programs/zprog_a"
PROG_B_URL = "/sap/bc/adt/programs/programs/zprog_b"


def make_include(url: str, name: str = "ZPROG", object_type: str = "PROG/P") -> AbapInclude:
    return AbapInclude(
        type=object_type, name=name, source_url=f"{url}/source/main", meta_url=url
    )


@pytest.fixture
def fake_client() -> FakeAdtClient:
    return FakeAdtClient()


@pytest.fixture
def include_a() -> AbapInclude:
    return make_include(PROG_A_URL, "ZPROG_A")


@pytest.fixture
def include_b() -> AbapInclude:
    return make_include(PROG_B_URL, "ZPROG_B")


@pytest.fixture
def program_include() -> AbapInclude:
    return make_include(
        "/sap/bc/adt/programs/includes/zprog_a_top", "ZPROG_A_TOP", "PROG/I"
    )


@pytest.fixture
def inactive_pair() -> list[ObjectReference]:
    return [
        ObjectReference(uri="/sap/bc/adt/oo/classes/zcl_one", type="CLAS/OC", name="ZCL_ONE"),
        ObjectReference(uri="/sap/bc/adt/oo/classes/zcl_two", type="CLAS/OC", name="ZCL_TWO"),
    ]


@pytest.fixture
def connections_file(tmp_path: Path) -> Path:
    path = tmp_path / "connections.json"
    path.write_text(
        '{"DEV": {"url": "https://dev.example.com:44300/", "user": "DEVELOPER",'
        ' "client": "001", "language": "EN"}}',
        encoding="utf-8",
    )
    return path
