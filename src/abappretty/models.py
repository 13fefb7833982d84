"""Data models and enums for the source synchronization pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from abappretty.exceptions import LockError


@dataclass(slots=True)
class AbapObject:
    """A top-level repository object selected for processing."""

    type: str
    name: str
    url: str = ""

    @property
    def key(self) -> str:
        return f"{self.type} {self.name}"


@dataclass(slots=True)
class AbapInclude:
    """A leaf unit with its own readable, lockable and writable source.

    Attributes:
        type: Object type of the unit (``PROG/I`` needs a main program
            context to activate).
        name: Object name used for activation.
        source_url: URL of the source text, used for read/lock/write.
        meta_url: URL of the object metadata (main program lookup).
        part: Include name inside its container, e.g. ``definitions``
            for a class include. Empty for stand-alone units.
    """

    type: str
    name: str
    source_url: str
    meta_url: str
    part: str = ""

    @property
    def key(self) -> str:
        if self.part:
            return f"{self.type} {self.name} {self.part}"
        return f"{self.type} {self.name}"


@dataclass(slots=True)
class AdtLock:
    """Result of a successful lock request.

    ``corrnr`` is the transport request the object is already recorded in.
    """

    lock_handle: str = ""
    is_local: bool = False
    corrnr: str = ""
    corruser: str = ""
    corrtext: str = ""


class LockStatus(str, Enum):
    """Outcome classes of a lock attempt."""

    LOCKED = "locked"
    NOT_LOCKABLE = "not_lockable"
    FAILED = "failed"


@dataclass(slots=True)
class LockResult:
    """Three-way result of :meth:`LockAndTransportGuard.try_lock`."""

    status: LockStatus
    lock: AdtLock | None = None
    error: BaseException | None = None

    @classmethod
    def locked(cls, lock: AdtLock) -> LockResult:
        return cls(LockStatus.LOCKED, lock=lock)

    @classmethod
    def not_lockable(cls) -> LockResult:
        return cls(LockStatus.NOT_LOCKABLE)

    @classmethod
    def failed(cls, error: BaseException) -> LockResult:
        return cls(LockStatus.FAILED, error=error)

    def unwrap(self) -> AdtLock | None:
        """Return the lock, ``None`` when not lockable, or raise the failure."""
        if self.status is LockStatus.FAILED:
            if self.error is None:
                raise LockError("Lock attempt failed without an error")
            raise self.error
        return self.lock


@dataclass(slots=True)
class SyncOptions:
    """Run options for :meth:`SourceSyncOrchestrator.process_objects`.

    Attributes:
        dry_run: Lock, validate and unlock, but skip write and activation.
        transport: Transport request recorded with every write.
    """

    dry_run: bool = False
    transport: str | None = None


@dataclass(slots=True)
class ListOptions:
    """Selection options for :meth:`ObjectListLoader.list`."""

    file: Path | None = None
    recursive: bool = False


class IncludeOutcome(str, Enum):
    """Final outcome of one include's pipeline."""

    UNCHANGED = "unchanged"
    GENERATED = "generated"
    WRITTEN = "written"


@dataclass
class RunStatus:
    """Counters and in-flight markers for one synchronization run.

    Created by each ``process_objects`` call and returned to the caller.
    ``current_include`` is only set while that include's pipeline runs.
    """

    total_objects: int = 0
    current_object: AbapObject | None = None
    current_include: AbapInclude | None = None
    current_step: str | None = None
    processed_objects: int = 0
    processed_includes: int = 0
    written_includes: int = 0
    outcomes: list[tuple[str, IncludeOutcome]] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return (
            f"{self.processed_objects} of {self.total_objects} objects / "
            f"{self.processed_includes} includes processed "
            f"{self.written_includes} written"
        )


@dataclass(slots=True)
class ObjectReference:
    """An ``adtcore:objectReference`` element."""

    uri: str
    type: str = ""
    name: str = ""
    parent_uri: str = ""


@dataclass(slots=True)
class MainProgram:
    """A main program that includes a ``PROG/I`` unit."""

    uri: str
    type: str = ""
    name: str = ""


@dataclass(slots=True)
class ActivationMessage:
    """A message from the activation check list."""

    type: str
    short_text: str
    obj_descr: str = ""
    href: str = ""


@dataclass(slots=True)
class InactiveObjectEntry:
    """An entry of the inactive objects list returned by activation."""

    object: ObjectReference | None = None
    transport: ObjectReference | None = None


@dataclass
class ActivationResult:
    """Parsed result of an activation request."""

    success: bool
    messages: list[ActivationMessage] = field(default_factory=list)
    inactive: list[InactiveObjectEntry] = field(default_factory=list)


def inactive_objects_in_results(result: ActivationResult) -> list[ObjectReference]:
    """Return the object references left inactive by an activation."""
    return [entry.object for entry in result.inactive if entry.object is not None]
