"""Tests for formatter selection, abaplint file naming and abaplint runs.

The abaplint process is never started: ``asyncio.create_subprocess_exec``
is patched with a fake that applies a "fix" to the file on disk.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import FakeAdtClient

from abappretty.exceptions import FormatterError
from abappretty.formatter import (
    AbapLintFormatter,
    AdtPrettyPrinter,
    abaplint_file_name,
    build_formatter,
)
from abappretty.models import AbapInclude


def _include(object_type: str, name: str, part: str = "") -> AbapInclude:
    return AbapInclude(object_type, name, "/src", "/meta", part)


def _fake_process(returncode: int = 0, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.communicate = AsyncMock(return_value=(b"", stderr))
    process.wait = AsyncMock(return_value=returncode)
    process.returncode = returncode
    return process


class TestBuildFormatter:
    def test_server_pretty_printer_by_default(self, fake_client):
        assert isinstance(build_formatter(fake_client), AdtPrettyPrinter)
        assert isinstance(build_formatter(fake_client, ""), AdtPrettyPrinter)

    def test_abaplint_when_configured(self, fake_client):
        formatter = build_formatter(fake_client, "default")
        assert isinstance(formatter, AbapLintFormatter)
        assert formatter.config == "default"

    async def test_server_pretty_printer_uses_stateless_clone(self):
        client = FakeAdtClient()

        formatted = await AdtPrettyPrinter(client).pretty_print(
            _include("PROG/P", "ZPROG"), "report zprog."
        )

        assert formatted == "REPORT ZPROG."
        assert client.calls == [("pretty_printer",)]


class TestAbapLintFileName:
    @pytest.mark.parametrize(
        ("include", "expected"),
        [
            (_include("CLAS/OC", "ZCL_ONE", "main"), "zcl_one.clas.abap"),
            (_include("CLAS/OC", "ZCL_ONE", "definitions"), "zcl_one.clas.locals_def.abap"),
            (_include("CLAS/OC", "ZCL_ONE", "testclasses"), "zcl_one.clas.testclasses.abap"),
            (_include("INTF/OI", "/NS/IF_ONE"), "#ns#if_one.intf.abap"),
            (_include("PROG/I", "ZPROG_TOP"), "zprog_top.prog.abap"),
            (_include("FUGR/FF", "Z_DO_IT"), "z_do_it.prog.abap"),
        ],
    )
    def test_names(self, include, expected):
        assert abaplint_file_name(include) == expected


class TestLoadConfig:
    def test_default_config_is_a_copy(self):
        first = AbapLintFormatter("default").load_config()
        first["rules"]["keyword_case"]["style"] = "lower"

        second = AbapLintFormatter("default").load_config()

        assert second["rules"]["keyword_case"]["style"] == "upper"

    def test_file_config_gets_src_glob(self, tmp_path: Path):
        path = tmp_path / "abaplint.json"
        path.write_text(json.dumps({"global": {"files": "/elsewhere/**"}, "rules": {}}))

        data = AbapLintFormatter(path).load_config()

        assert data["global"]["files"] == "/src/**/*.*"

    def test_missing_config(self, tmp_path: Path):
        with pytest.raises(FormatterError, match="not found"):
            AbapLintFormatter(tmp_path / "missing.json").load_config()

    def test_invalid_config(self, tmp_path: Path):
        path = tmp_path / "abaplint.json"
        path.write_text("{not json")

        with pytest.raises(FormatterError, match="Invalid abaplint config"):
            AbapLintFormatter(path).load_config()


class TestAbapLintRun:
    async def test_fixed_file_is_returned(self):
        seen: dict[str, object] = {}

        async def fake_exec(executable, *args, cwd, **kwargs):
            root = Path(cwd)
            seen["args"] = (executable, *args)
            seen["config"] = json.loads((root / "abaplint.json").read_text())
            target = root / "src" / "zprog.prog.abap"
            seen["source"] = target.read_text()
            target.write_text("REPORT zprog.\r\n")
            return _fake_process(returncode=1)

        formatter = AbapLintFormatter("default")
        await formatter.prepare()
        with patch("asyncio.create_subprocess_exec", new=fake_exec):
            formatted = await formatter.pretty_print(_include("PROG/P", "ZPROG"), "report zprog.")

        assert formatted == "REPORT zprog.\r\n"
        assert seen["args"] == ("abaplint", "--fix")
        assert seen["source"] == "report zprog."
        assert seen["config"]["global"]["files"] == "/src/**/*.*"

    async def test_crash_raises_formatter_error(self):
        process = _fake_process(returncode=2, stderr=b"parser exploded")

        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=process)):
            with pytest.raises(FormatterError, match="parser exploded"):
                await AbapLintFormatter("default").pretty_print(
                    _include("PROG/P", "ZPROG"), "report zprog."
                )

    async def test_missing_executable(self):
        with patch(
            "asyncio.create_subprocess_exec", new=AsyncMock(side_effect=FileNotFoundError)
        ):
            with pytest.raises(FormatterError, match="executable not found"):
                await AbapLintFormatter("default", executable="no-abaplint").pretty_print(
                    _include("PROG/P", "ZPROG"), "report zprog."
                )
