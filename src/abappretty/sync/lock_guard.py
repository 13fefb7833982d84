"""Lock acquisition and transport validation for a single include."""

from __future__ import annotations

import logging
import re

from abappretty.adt.client import AdtClient
from abappretty.constants import RESOURCE_NO_ACCESS
from abappretty.exceptions import TransportValidationError
from abappretty.models import AdtLock, LockResult

logger = logging.getLogger(__name__)

_LOCKED_PATTERN = re.compile(r"locked", re.IGNORECASE)


def is_not_lockable(error: BaseException) -> bool:
    """Whether a lock refusal means the object can never be locked.

    Generated includes answer a lock request with a no-access error. The
    same error type is used when someone else holds the lock, which the
    message tells apart.
    """
    if getattr(error, "type", None) != RESOURCE_NO_ACCESS:
        return False
    message = getattr(error, "message", None) or str(error)
    return not _LOCKED_PATTERN.search(message)


class LockAndTransportGuard:
    """Acquires include locks and checks them against the run's transport."""

    def __init__(self, client: AdtClient) -> None:
        self.client = client

    async def try_lock(self, url: str) -> LockResult:
        """Attempt to lock *url*, classifying any refusal.

        Returns:
            ``locked`` with the lock, ``not_lockable`` for generated
            objects, or ``failed`` carrying the original exception.
        """
        try:
            lock = await self.client.lock(url)
        except Exception as exc:
            if is_not_lockable(exc):
                logger.info("Not lockable, treating as generated: %s (%s)", url, exc)
                return LockResult.not_lockable()
            return LockResult.failed(exc)
        return LockResult.locked(lock)

    @staticmethod
    def validate_transport(lock: AdtLock, key: str, transport: str | None) -> None:
        """Check that *transport* may be used to write the locked object.

        Raises:
            TransportValidationError: Local object with a transport, non-local
                object without one, or a transport different from the one the
                object is already recorded in.
        """
        if lock.is_local and transport:
            raise TransportValidationError(f"Object {key} is local, can't use {transport}")

        if not lock.is_local and not transport:
            locked_in = f" (locked in {lock.corrnr})" if lock.corrnr else ""
            raise TransportValidationError(f"Object {key} requires a transport{locked_in}")

        if transport != lock.corrnr and not lock.is_local and lock.corrnr:
            raise TransportValidationError(
                f"Object {key} locked in transport {lock.corrnr} can't use {transport}"
            )
