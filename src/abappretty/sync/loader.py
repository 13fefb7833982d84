"""Selection of the objects to process.

Objects come either from a manifest file or from a live discovery query,
never both. A manifest has one ``type name url`` row per line; the first
line is a header unless it contains a ``/`` (every real row has a URL,
and ADT URLs always contain one). Short main types such as ``PROG``
stand for their main object type (``PROG/P``); types are case-insensitive.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from abappretty.adt.client import AdtClient
from abappretty.adt.repository import list_objects, supported_type
from abappretty.constants import TYPE_ALIASES
from abappretty.exceptions import ManifestError, UsageError
from abappretty.models import AbapObject, ListOptions

logger = logging.getLogger(__name__)


def _is_header(line: str, index: int) -> bool:
    return index == 0 and "/" not in line


def parse_manifest(lines: Iterable[str], source: Path | str = "<manifest>") -> list[AbapObject]:
    """Parse manifest rows into objects.

    Args:
        lines: The manifest lines, without trailing newlines.
        source: File name used in error messages.

    Raises:
        ManifestError: On an unsupported type or a missing URL.
    """
    objects: list[AbapObject] = []
    for index, line in enumerate(lines):
        if not line.strip() or _is_header(line, index):
            continue
        # columns after the url are ignored
        fields = line.split()
        object_type = fields[0].upper()
        object_type = TYPE_ALIASES.get(object_type, object_type)
        name = fields[1] if len(fields) > 1 else ""
        url = fields[2] if len(fields) > 2 else ""
        if not supported_type(object_type):
            raise ManifestError(
                f"Objects of type {object_type} are not supported "
                f"near line {index + 1} of file {source}",
                source,
                index + 1,
            )
        if not url:
            raise ManifestError(
                f"URL not specified for object {object_type} {name} "
                f"near line {index + 1} of file {source}",
                source,
                index + 1,
            )
        objects.append(AbapObject(object_type, name, url))
    return objects


def load_from_manifest(path: Path) -> list[AbapObject]:
    """Read and parse a manifest file."""
    text = Path(path).read_text(encoding="utf-8")
    objects = parse_manifest(text.split("\n"), path)
    logger.info("Loaded %d objects from %s", len(objects), path)
    return objects


class ObjectListLoader:
    """Resolves the object selection of one invocation.

    Usage::

        loader = ObjectListLoader(client, progress=console.print)
        objects = await loader.list("DEVC/K", "ZPACKAGE", ListOptions(recursive=True))
    """

    def __init__(
        self,
        client: AdtClient,
        progress: Callable[[str], None] | None = None,
    ) -> None:
        self.client = client
        self.progress = progress

    async def list(
        self, object_type: str, name: str, options: ListOptions | None = None
    ) -> list[AbapObject]:
        """Return the selected objects.

        Raises:
            UsageError: A manifest combined with a type or name, or neither a
                manifest nor both type and name.
            ManifestError: The manifest is malformed.
        """
        options = options or ListOptions()
        if (name or object_type) and options.file:
            raise UsageError(
                "Can't specify an object name or type and a list file at the same time"
            )

        if options.file:
            return load_from_manifest(options.file)

        if not name or not object_type:
            raise UsageError("Object type and name required unless a list file is provided")
        return await self.load_from_query(object_type, name, options.recursive)

    async def load_from_query(
        self, object_type: str, name: str, recursive: bool = False
    ) -> list[AbapObject]:
        objects = await list_objects(
            self.client, object_type, name, self.progress, recursive
        )
        logger.info("Discovered %d objects for %s %s", len(objects), object_type, name)
        return objects
