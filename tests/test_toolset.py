"""Tests for the JSON tool surface over the PLC analyses."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from pyplc_insight.address import DeviceAddress
from pyplc_insight.store import PlcDataStore
from pyplc_insight.toolset import FUNCTION_BLOCK_NOT_FOUND, PlcToolset
from pyplc_insight.types import BatchReadResult, DeviceReadResult, FunctionBlockData, ProgramFile


@pytest.fixture
def store() -> PlcDataStore:
    s = PlcDataStore()
    s.set_programs(
        [
            ProgramFile("main", ('"0"\t""\t"DMOV"\t"D500"', '"1"\t""\t"EMOV"\t"D600"', '"2"\t""\t"MOV"\t"D700"')),
            ProgramFile("ProgPou.csv", ('"0"\t""\t"LD"\t"X30"', '"1"\t""\t"OUT"\t"L5"')),
        ]
    )
    s.set_comments({"M0": "ﾘﾐｯﾄｽｲｯﾁ異常", "D10": "圧力計", "L5": "搬送異常"})
    s.set_function_blocks(
        [
            FunctionBlockData(
                name="MotorCtl",
                safe_name="motor_ctl",
                label_content="Name,Type,Comment\nStart,BOOL,start input\n",
                program_content="Line,Inst,Op\n0,LD,Start\n1,OUT,Run\n",
                created_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            ),
            FunctionBlockData(name="ValveCtl"),
        ]
    )
    return s


@pytest.fixture
def gateway() -> MagicMock:
    gw = MagicMock()
    gw.read = AsyncMock(return_value=DeviceReadResult("D500", (1, 2), True))
    gw.read_batch = AsyncMock(return_value=BatchReadResult((DeviceReadResult("D600", (0, 16512), True),)))
    return gw


@pytest.fixture
def toolset(store: PlcDataStore, gateway: MagicMock) -> PlcToolset:
    return PlcToolset(store, gateway=gateway)


class TestGetTools:
    def test_online_includes_reads(self, toolset: PlcToolset) -> None:
        names = {t.name for t in toolset.get_tools(True)}
        assert {"read_plc_values", "read_multiple_plc_values"} <= names
        assert len(names) == 12

    def test_offline_excludes_reads(self, toolset: PlcToolset) -> None:
        names = {t.name for t in toolset.get_tools(False)}
        assert "read_plc_values" not in names
        assert "read_multiple_plc_values" not in names
        assert len(names) == 10


class TestReadWidening:
    """Word devices used as 32-bit or float are read as two words."""

    @pytest.mark.asyncio
    async def test_dmov_widens_single_read(self, toolset: PlcToolset, gateway: MagicMock) -> None:
        payload = json.loads(await toolset.read_plc_values("D500"))
        assert gateway.read.call_args.args[0] == "D500:2"
        assert gateway.read.call_args.kwargs["timeout"] == 10.0
        assert gateway.read.call_args.kwargs["host"] is None
        assert gateway.read.call_args.kwargs["port"] is None
        assert payload == {"device": "D500", "values": [1, 2], "success": True}

    @pytest.mark.asyncio
    async def test_emov_widens_batch_read(self, toolset: PlcToolset, gateway: MagicMock) -> None:
        payload = json.loads(await toolset.read_multiple_plc_values(["D600", "D700", "M1"]))
        assert gateway.read_batch.call_args.args[0] == ["D600:2", "D700", "M1"]
        assert payload["results"][0]["device"] == "D600"

    @pytest.mark.asyncio
    async def test_explicit_length_is_kept(self, toolset: PlcToolset, gateway: MagicMock) -> None:
        await toolset.read_plc_values("D500:4", ip="10.0.0.5", port=5000, timeout_seconds=2)
        assert gateway.read.call_args.args[0] == "D500:4"
        assert gateway.read.call_args.kwargs["host"] == "10.0.0.5"
        assert gateway.read.call_args.kwargs["port"] == 5000
        assert gateway.read.call_args.kwargs["timeout"] == 2

    @pytest.mark.asyncio
    async def test_read_failure_returns_message(self, toolset: PlcToolset, gateway: MagicMock) -> None:
        gateway.read.side_effect = RuntimeError("gateway exploded")
        assert await toolset.read_plc_values("D1") == "gateway exploded"


def test_non_decimal_address_is_left_alone(toolset: PlcToolset) -> None:
    address = DeviceAddress("D", "\N{SUPERSCRIPT TWO}")
    assert toolset.normalize_address(address) is address


def test_reasoning_multiple_uses_named_program(toolset: PlcToolset) -> None:
    result = json.loads(toolset.reasoning_multiple_devices("ProgPou.csv を確認したい"))
    assert [d["device"] for d in result["devices"]] == ["X30", "L5"]


def test_reasoning_multiple_matches_program_stem(toolset: PlcToolset) -> None:
    result = json.loads(toolset.reasoning_multiple_devices("progpou の動作"))
    assert result["devices"][0]["device"] == "X30"


def test_reasoning_device(toolset: PlcToolset) -> None:
    assert json.loads(toolset.reasoning_device("M10が変"))["device"] == "M10"


def test_search_comment_devices(toolset: PlcToolset) -> None:
    result = json.loads(toolset.search_comment_devices("リミットスイッチが効かない"))
    assert result["status"] == "success"
    assert result["matchCount"] == 1
    assert result["results"][0]["device"] == "M0"
    assert result["results"][0]["score"] == round(result["results"][0]["score"], 2)


def test_program_lines_and_related(toolset: PlcToolset) -> None:
    assert json.loads(toolset.program_lines("X", 30, 0)) == ["0 LD X30"]
    assert toolset.related_devices("X", 30) == ""
    assert toolset.get_comment("L", 5) == "搬送異常"


def test_trace_error_coil(toolset: PlcToolset) -> None:
    result = json.loads(toolset.trace_error_coil())
    assert result["status"] == "success"
    assert result["candidates"][0]["device"] == "L5"
    assert result["candidates"][0]["relatedDevices"] == ["X30"]


class TestFunctionBlockTools:
    def test_list(self, toolset: PlcToolset) -> None:
        result = json.loads(toolset.list_function_blocks())
        assert result["count"] == 2
        motor, valve = result["functionBlocks"]
        assert motor["hasLabel"] is True
        assert motor["hasProgram"] is True
        assert motor["createdAt"].startswith("2024-01-02T03:04:05")
        assert "updatedAt" not in motor
        assert valve["hasLabel"] is False

    def test_analyze(self, toolset: PlcToolset) -> None:
        result = json.loads(toolset.analyze_function_block("motorctl"))
        assert result["name"] == "MotorCtl"
        assert result["labels"] == [{"name": "Start", "type": "BOOL", "description": "start input"}]
        assert result["program"]["lineCount"] == 2

    def test_analyze_unknown(self, toolset: PlcToolset) -> None:
        assert toolset.analyze_function_block("nope") == FUNCTION_BLOCK_NOT_FOUND

    def test_search(self, toolset: PlcToolset) -> None:
        result = json.loads(toolset.search_function_blocks("RUN"))
        assert result["matchCount"] == 1
        assert result["results"][0]["safeName"] == "motor_ctl"


def test_tool_errors_are_returned(store: PlcDataStore) -> None:
    analyzer = MagicMock()
    analyzer.get_program_blocks.side_effect = RuntimeError("boom")
    toolset = PlcToolset(store, gateway=MagicMock(), analyzer=analyzer)
    assert toolset.program_lines("D", 1, 3) == "boom"


def test_build_context_hint(toolset: PlcToolset) -> None:
    hint = toolset.build_context_hint(gateway_options_json='{"ip":"10.0.0.3"}', note="line 2", plc_online=False)
    assert "  - main" in hint
    assert "  - ProgPou.csv" in hint
    assert "  - MotorCtl" in hint
    assert "offline" in hint
    assert 'Gateway options: {"ip":"10.0.0.3"}' in hint
    assert "Note: line 2" in hint


def test_build_context_hint_empty_store() -> None:
    hint = PlcToolset(PlcDataStore(), gateway=MagicMock()).build_context_hint(plc_online=True)
    assert hint.count("  - none") == 2
    assert "online" in hint


@pytest.mark.asyncio
async def test_invoke_by_name(toolset: PlcToolset, gateway: MagicMock) -> None:
    assert await toolset.invoke("get_comment", dev="M", address=0) == "ﾘﾐｯﾄｽｲｯﾁ異常"
    assert json.loads(await toolset.invoke("read_plc_values", spec="D500"))["success"] is True
    assert (await toolset.invoke("missing")).startswith("Unknown tool")
