"""Tests for CLI commands over temporary data files."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from pyplc_insight import __version__
from pyplc_insight.cli import app, format_values
from pyplc_insight.types import BatchReadResult, DeviceReadResult

runner = CliRunner()


@pytest.fixture
def comments_file(tmp_path: Path) -> Path:
    path = tmp_path / "comments.csv"
    path.write_text(
        "Device,Comment\nM10,motor run\nT5,start delay\nL10,conveyor error\nD100,main motor speed\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def program_file(tmp_path: Path) -> Path:
    path = tmp_path / "main.csv"
    path.write_text(
        "0,,LD,X1\n1,,AND,M10\n2,,OUT,L10\n3,,DMOV,D100,D200\n",
        encoding="utf-8",
    )
    return path


def make_gateway(read_result=None, batch_result=None) -> MagicMock:
    gw = MagicMock()
    gw.read = AsyncMock(return_value=read_result)
    gw.read_batch = AsyncMock(return_value=batch_result)
    gw.aclose = AsyncMock()
    return gw


# ============================================================================
# Helpers
# ============================================================================


def test_format_values() -> None:
    assert format_values(DeviceReadResult("D100", (1, 2), True)) == "D100 = 1, 2"
    assert format_values(DeviceReadResult("D100", (), False, "timeout")) == "D100: ERROR timeout"


# ============================================================================
# Offline commands
# ============================================================================


def test_parse_command_json() -> None:
    result = runner.invoke(app, ["parse", "t3:2", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"device": "TS", "address": "3", "length": 2, "spec": "TS3:2"}


def test_parse_command_text() -> None:
    result = runner.invoke(app, ["parse", "ZR10"])
    assert result.exit_code == 0
    assert "ZR" in result.output
    assert "ZR10" in result.output


def test_comment_command(comments_file: Path) -> None:
    result = runner.invoke(app, ["comment", "M10", "--comments", str(comments_file)])
    assert result.exit_code == 0
    assert result.output.strip() == "motor run"


def test_comment_command_timer_alias(comments_file: Path) -> None:
    result = runner.invoke(app, ["comment", "TS5", "--comments", str(comments_file)])
    assert result.exit_code == 0
    assert result.output.strip() == "start delay"


def test_comment_command_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["comment", "M10", "--comments", str(tmp_path / "none.csv")])
    assert result.exit_code == 2
    assert "not found" in result.output


def test_blocks_command(program_file: Path) -> None:
    result = runner.invoke(app, ["blocks", "M10", "--program", str(program_file), "--context", "1", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == ["0 LD X1\n1 AND M10\n2 OUT L10"]


def test_related_command(program_file: Path) -> None:
    result = runner.invoke(app, ["related", "M10", "--program", str(program_file)])
    assert result.exit_code == 0
    assert result.output.strip() == "X1"


def test_dtype_command(program_file: Path) -> None:
    result = runner.invoke(app, ["dtype", "D100", "--program", str(program_file)])
    assert result.exit_code == 0
    assert result.output.strip() == "double_word"


def test_trace_command(comments_file: Path, program_file: Path) -> None:
    result = runner.invoke(app, ["trace", "--comments", str(comments_file), "--program", str(program_file)])
    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["status"] == "success"
    assert report["candidates"][0]["device"] == "L10"
    assert report["candidates"][0]["relatedDevices"] == ["X1", "M10"]


def test_search_command(comments_file: Path) -> None:
    result = runner.invoke(app, ["search", "motor speed", "--comments", str(comments_file), "--json"])
    assert result.exit_code == 0
    hits = json.loads(result.stdout)
    assert hits[0]["device"] == "D100"


def test_infer_command_single() -> None:
    result = runner.invoke(app, ["infer", "M10が動かない"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["device"] == "M10"


def test_infer_command_multiple(program_file: Path) -> None:
    result = runner.invoke(app, ["infer", "check main", "--multiple", "--program", str(program_file)])
    assert result.exit_code == 0
    devices = [d["device"] for d in json.loads(result.stdout)["devices"]]
    assert devices[:3] == ["X1", "M10", "L10"]


def test_info_command_json(comments_file: Path, program_file: Path) -> None:
    result = runner.invoke(
        app, ["info", "--comments", str(comments_file), "--program", str(program_file), "--json"]
    )
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["version"] == __version__
    assert data["comments"] == 4
    assert data["programs"] == ["main.csv"]


def test_info_command_text() -> None:
    result = runner.invoke(app, ["info"])
    assert result.exit_code == 0
    assert "pyplc-insight version" in result.output
    assert "offline" in result.output


# ============================================================================
# Gateway commands
# ============================================================================


@patch("pyplc_insight.cli.PlcGatewayClient")
def test_read_command(mock_client_class: MagicMock) -> None:
    gw = make_gateway(read_result=DeviceReadResult("D100", (5,), True))
    mock_client_class.return_value = gw
    result = runner.invoke(app, ["read", "D100", "--gateway-url", "http://gw:8000"])
    assert result.exit_code == 0
    assert "D100 = 5" in result.output
    mock_client_class.assert_called_once_with(base_url="http://gw:8000", timeout=10.0)
    assert gw.read.call_args.args[0] == "D100"
    gw.aclose.assert_awaited_once()


@patch("pyplc_insight.cli.PlcGatewayClient")
def test_read_command_widens_with_program(mock_client_class: MagicMock, program_file: Path) -> None:
    gw = make_gateway(read_result=DeviceReadResult("D100", (1, 0), True))
    mock_client_class.return_value = gw
    result = runner.invoke(app, ["read", "D100", "--program", str(program_file), "--json"])
    assert result.exit_code == 0
    assert gw.read.call_args.args[0] == "D100:2"
    assert json.loads(result.stdout)["values"] == [1, 0]


@patch("pyplc_insight.cli.PlcGatewayClient")
def test_read_command_failure_exit_code(mock_client_class: MagicMock) -> None:
    mock_client_class.return_value = make_gateway(
        read_result=DeviceReadResult("D100", (), False, "connection refused")
    )
    result = runner.invoke(app, ["read", "D100"])
    assert result.exit_code == 3
    assert "connection refused" in result.output


@patch("pyplc_insight.cli.PlcGatewayClient")
def test_read_many_command(mock_client_class: MagicMock) -> None:
    batch = BatchReadResult(
        (DeviceReadResult("D100", (1,), True), DeviceReadResult("M10", (0,), True))
    )
    gw = make_gateway(batch_result=batch)
    mock_client_class.return_value = gw
    result = runner.invoke(app, ["read-many", "D100", "M10", "--ip", "10.0.0.1", "--plc-port", "5000"])
    assert result.exit_code == 0
    assert "D100 = 1" in result.output
    assert "M10 = 0" in result.output
    assert gw.read_batch.call_args.args[0] == ["D100", "M10"]
    assert gw.read_batch.call_args.kwargs == {"host": "10.0.0.1", "port": 5000}


@patch("pyplc_insight.cli.PlcGatewayClient")
def test_read_many_command_partial_failure(mock_client_class: MagicMock) -> None:
    batch = BatchReadResult(
        (DeviceReadResult("D100", (1,), True), DeviceReadResult("M10", (), False, "bad address"))
    )
    mock_client_class.return_value = make_gateway(batch_result=batch)
    result = runner.invoke(app, ["read-many", "D100", "M10"])
    assert result.exit_code == 3
    assert "M10: ERROR bad address" in result.output


def test_command_help() -> None:
    for cmd in ["parse", "comment", "blocks", "related", "dtype", "trace", "search", "infer", "read", "read-many", "info"]:
        result = runner.invoke(app, [cmd, "--help"])
        assert result.exit_code == 0, cmd


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
