"""Tests for the patio command line (patio.cli)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from patio.cli import from_json, main, to_json

RECORD_LAYOUT = """\
type: struct
fields:
  - {name: tag, type: u8}
  - {name: length, type: u16be}
  - {name: payload, type: bytes, size: {field: length}}
  - {name: checksum, type: u8}
"""

RECORD_BYTES = bytes.fromhex("0100034142436a")
RECORD_JSON = {"tag": 1, "length": 3, "payload": {"$bytes": "414243"}, "checksum": 106}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def files(tmp_path: Path) -> Path:
    layout = tmp_path / "layout.yaml"
    layout.write_text(RECORD_LAYOUT, encoding="utf-8")
    data = tmp_path / "record.bin"
    data.write_bytes(RECORD_BYTES)
    record = tmp_path / "record.json"
    record.write_text(json.dumps(RECORD_JSON), encoding="utf-8")
    return tmp_path


class TestJson:
    def test_bytes_tagged(self) -> None:
        assert to_json({"a": b"\x00\xff", "b": (1, 2)}) == {
            "a": {"$bytes": "00ff"},
            "b": [1, 2],
        }

    def test_bytes_restored(self) -> None:
        assert from_json({"a": [{"$bytes": "00ff"}]}) == {"a": [b"\x00\xff"]}

    def test_extra_keys_not_bytes(self) -> None:
        value = {"$bytes": "00", "other": 1}
        assert from_json(value) == value


class TestDecode:
    def test_prints_record(self, runner: CliRunner, files: Path) -> None:
        result = runner.invoke(
            main, ["decode", str(files / "layout.yaml"), str(files / "record.bin")]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == RECORD_JSON

    def test_trailing_bytes_rejected(self, runner: CliRunner, files: Path) -> None:
        (files / "record.bin").write_bytes(RECORD_BYTES + b"\x00")
        result = runner.invoke(
            main, ["decode", str(files / "layout.yaml"), str(files / "record.bin")]
        )
        assert result.exit_code == 1
        assert "1 trailing bytes" in result.output

    def test_allow_trailing(self, runner: CliRunner, files: Path) -> None:
        (files / "record.bin").write_bytes(RECORD_BYTES + b"\x00")
        result = runner.invoke(
            main,
            [
                "decode",
                "--allow-trailing",
                str(files / "layout.yaml"),
                str(files / "record.bin"),
            ],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == RECORD_JSON

    def test_truncated_input(self, runner: CliRunner, files: Path) -> None:
        (files / "record.bin").write_bytes(RECORD_BYTES[:4])
        result = runner.invoke(
            main, ["decode", str(files / "layout.yaml"), str(files / "record.bin")]
        )
        assert result.exit_code == 1
        assert "unexpected end of stream" in result.output

    def test_input_from_stdin(self, runner: CliRunner, files: Path) -> None:
        result = runner.invoke(
            main, ["decode", str(files / "layout.yaml"), "-"], input=RECORD_BYTES
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["payload"] == {"$bytes": "414243"}


class TestEncode:
    def test_writes_bytes(self, runner: CliRunner, files: Path) -> None:
        out = files / "out.bin"
        result = runner.invoke(
            main,
            [
                "encode",
                str(files / "layout.yaml"),
                str(files / "record.json"),
                "-o",
                str(out),
            ],
        )
        assert result.exit_code == 0, result.output
        assert out.read_bytes() == RECORD_BYTES

    def test_bad_record(self, runner: CliRunner, files: Path) -> None:
        (files / "record.json").write_text('{"tag": 1}', encoding="utf-8")
        result = runner.invoke(
            main,
            [
                "encode",
                str(files / "layout.yaml"),
                str(files / "record.json"),
                "-o",
                str(files / "out.bin"),
            ],
        )
        assert result.exit_code == 1
        assert "KeyError" in result.output

    def test_invalid_json(self, runner: CliRunner, files: Path) -> None:
        (files / "record.json").write_text("{", encoding="utf-8")
        result = runner.invoke(
            main,
            [
                "encode",
                str(files / "layout.yaml"),
                str(files / "record.json"),
                "-o",
                str(files / "out.bin"),
            ],
        )
        assert result.exit_code == 1
        assert "record is not valid" in result.output


class TestSize:
    def test_fixed_layout(self, runner: CliRunner, tmp_path: Path) -> None:
        layout = tmp_path / "fixed.yaml"
        layout.write_text(
            "type: struct\nfields:\n"
            "  - {name: a, type: u32be}\n"
            "  - {name: b, type: bytes, size: 4}\n",
            encoding="utf-8",
        )
        result = runner.invoke(main, ["size", str(layout)])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "8"

    def test_variable_layout(self, runner: CliRunner, files: Path) -> None:
        result = runner.invoke(main, ["size", str(files / "layout.yaml")])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "variable"

    def test_record_size(self, runner: CliRunner, files: Path) -> None:
        result = runner.invoke(
            main,
            [
                "size",
                str(files / "layout.yaml"),
                "--record",
                str(files / "record.json"),
            ],
        )
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "7"


class TestLayoutErrors:
    def test_invalid_yaml(self, runner: CliRunner, tmp_path: Path) -> None:
        layout = tmp_path / "bad.yaml"
        layout.write_text("type: [u8\n", encoding="utf-8")
        result = runner.invoke(main, ["size", str(layout)])
        assert result.exit_code == 1
        assert "not valid YAML" in result.output

    def test_unknown_leaf(self, runner: CliRunner, tmp_path: Path) -> None:
        layout = tmp_path / "bad.yaml"
        layout.write_text("type: u128be\n", encoding="utf-8")
        result = runner.invoke(main, ["size", str(layout)])
        assert result.exit_code == 1
        assert "unknown leaf type: 'u128be'" in result.output

    def test_malformed_layout(self, runner: CliRunner, tmp_path: Path) -> None:
        layout = tmp_path / "bad.yaml"
        layout.write_text("type: bytes\n", encoding="utf-8")
        result = runner.invoke(main, ["size", str(layout)])
        assert result.exit_code == 1
        assert "missing required field 'size'" in result.output


class TestVerbose:
    def test_verbose_flag_accepted(self, runner: CliRunner, files: Path) -> None:
        result = runner.invoke(
            main,
            ["-v", "decode", str(files / "layout.yaml"), str(files / "record.bin")],
        )
        assert result.exit_code == 0, result.output
