"""Source formatter strategies.

Two ways to pretty print an include:

* :class:`AdtPrettyPrinter` -- the server's own pretty printer, using the
  settings of the logon user.
* :class:`AbapLintFormatter` -- the ``abaplint`` command line tool run
  with ``--fix`` over a throwaway abapGit-style folder, driven by an
  ``abaplint.json`` configuration.

The strategy is chosen once per run by :func:`build_formatter`.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Protocol

from abappretty.adt.client import AdtClient
from abappretty.constants import ABAPLINT_DEFAULT, CLASS, INTERFACE
from abappretty.exceptions import FormatterError
from abappretty.models import AbapInclude

logger = logging.getLogger(__name__)

DEFAULT_ABAPLINT_CONFIG: dict[str, Any] = {
    "global": {"files": "/src/**/*.*", "skipGeneratedGatewayClasses": True},
    "syntax": {"version": "v755", "errorNamespace": "."},
    "rules": {
        "keyword_case": {"style": "upper", "ignoreLowerClassImplmentationStatement": True},
        "indentation": {
            "ignoreExceptions": True,
            "alignTryCatch": False,
            "globalClassSkipFirst": False,
        },
        "whitespace_end": True,
        "exporting": True,
        "colon_missing_space": True,
    },
}

_CLASS_PART_SUFFIX = {
    "main": "clas.abap",
    "definitions": "clas.locals_def.abap",
    "implementations": "clas.locals_imp.abap",
    "macros": "clas.macros.abap",
    "testclasses": "clas.testclasses.abap",
}


class SourceFormatter(Protocol):
    """Formatter strategy used by the orchestrator."""

    async def prepare(self) -> None:
        """Load whatever the formatter needs before the first include."""

    async def pretty_print(self, include: AbapInclude, source: str) -> str:
        """Return the formatted source of *include*."""


class AdtPrettyPrinter:
    """Formats through the server pretty printer on a stateless session."""

    def __init__(self, client: AdtClient) -> None:
        self.client = client

    async def prepare(self) -> None:
        return None

    async def pretty_print(self, include: AbapInclude, source: str) -> str:
        return await self.client.stateless_clone.pretty_printer(source)


def abaplint_file_name(include: AbapInclude) -> str:
    """abapGit file name for an include, as abaplint expects it."""
    stem = include.name.lower().replace("/", "#")
    if include.type == CLASS:
        suffix = _CLASS_PART_SUFFIX.get(include.part or "main", "clas.abap")
    elif include.type == INTERFACE:
        suffix = "intf.abap"
    else:
        # programs, program includes and function group parts
        suffix = "prog.abap"
    return f"{stem}.{suffix}"


class AbapLintFormatter:
    """Runs ``abaplint --fix`` on each include.

    Usage::

        formatter = AbapLintFormatter("abaplint.json")
        await formatter.prepare()
        formatted = await formatter.pretty_print(include, source)
    """

    def __init__(
        self,
        config: str | Path = ABAPLINT_DEFAULT,
        executable: str = "abaplint",
        timeout_seconds: float = 120.0,
    ) -> None:
        self.config = config
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        self._config_data: dict[str, Any] | None = None

    async def prepare(self) -> None:
        """Load the abaplint configuration (or the built-in default)."""
        self._config_data = self.load_config()

    def load_config(self) -> dict[str, Any]:
        if str(self.config) == ABAPLINT_DEFAULT:
            data = copy.deepcopy(DEFAULT_ABAPLINT_CONFIG)
        else:
            path = Path(self.config).expanduser()
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as e:
                raise FormatterError(f"abaplint config not found: {path}") from e
            except json.JSONDecodeError as e:
                raise FormatterError(f"Invalid abaplint config {path}: {e}") from e
            if not isinstance(data, dict):
                raise FormatterError(f"Invalid abaplint config {path}: not an object")
        # The throwaway project always keeps its single file under /src
        data.setdefault("global", {})["files"] = "/src/**/*.*"
        logger.info("Loaded abaplint config from %s", self.config)
        return data

    async def pretty_print(self, include: AbapInclude, source: str) -> str:
        if self._config_data is None:
            self._config_data = self.load_config()

        with tempfile.TemporaryDirectory(prefix="abappretty-") as tmp:
            root = Path(tmp)
            (root / "src").mkdir()
            target = root / "src" / abaplint_file_name(include)
            with open(target, "w", encoding="utf-8", newline="") as f:
                f.write(source)
            (root / "abaplint.json").write_text(
                json.dumps(self._config_data, indent=2), encoding="utf-8"
            )
            await self._run(root, include)
            with open(target, encoding="utf-8", newline="") as f:
                return f.read()

    async def _run(self, cwd: Path, include: AbapInclude) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                "--fix",
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FormatterError(f"abaplint executable not found: {self.executable}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise FormatterError(
                f"abaplint timed out after {self.timeout_seconds:.0f}s on {include.key}"
            ) from e

        # abaplint exits 1 when issues remain after fixing
        if process.returncode not in (0, 1):
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise FormatterError(
                f"abaplint failed on {include.key} (exit {process.returncode}): {detail}"
            )
        logger.debug("abaplint exit %s for %s", process.returncode, include.key)


def build_formatter(client: AdtClient, abaplint: str | None = None) -> SourceFormatter:
    """Choose the formatter strategy for a run.

    Args:
        client: Connected ADT client, used by the server pretty printer.
        abaplint: abaplint config path, :data:`ABAPLINT_DEFAULT`, or ``None``
            to use the server pretty printer.
    """
    if abaplint:
        return AbapLintFormatter(abaplint)
    return AdtPrettyPrinter(client)
