"""
PlcToolset: the PLC analyses exposed as named tools that return JSON text.

Each tool logs and returns the error message instead of raising, so a
conversational caller always gets a string back.
"""

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import PurePath
from typing import Any

from .address import WORD_DEVICES, DeviceAddress
from .analyzer import PlcProgramAnalyzer
from .fault_tracer import PlcFaultTracer
from .function_blocks import search_function_blocks, summarize_labels, summarize_program
from .gateway import PlcGatewayClient
from .reasoner import PlcReasoner
from .search import PlcCommentSearchService
from .store import PlcDataStore
from .types import DeviceDataType, ProgramContext

logger = logging.getLogger(__name__)

GATEWAY_READ_TOOLS = frozenset({"read_plc_values", "read_multiple_plc_values"})
SEARCH_RESULT_LIMIT = 10
DEFAULT_READ_TIMEOUT = 10.0
FUNCTION_BLOCK_NOT_FOUND = "Function block not found"

_WIDE_TYPES = (DeviceDataType.DOUBLE_WORD, DeviceDataType.FLOAT)


@dataclass(frozen=True)
class PlcTool:
    """A named tool; func returns a string or an awaitable of one."""

    name: str
    description: str
    func: Callable[..., str | Awaitable[str]]


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _round_score(score: float) -> float:
    return float(Decimal(str(score)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _contains_ignore_case(source: str, value: str) -> bool:
    if not source.strip() or not value.strip():
        return False
    return value.casefold() in source.casefold()


class PlcToolset:
    """Binds one PlcDataStore and one gateway client to the tool surface."""

    def __init__(
        self,
        store: PlcDataStore,
        gateway: PlcGatewayClient | None = None,
        analyzer: PlcProgramAnalyzer | None = None,
        comment_search: PlcCommentSearchService | None = None,
        reasoner: PlcReasoner | None = None,
        fault_tracer: PlcFaultTracer | None = None,
    ) -> None:
        if store is None:
            raise ValueError("store is required")
        self._store = store
        self._gateway = gateway if gateway is not None else PlcGatewayClient()
        self._analyzer = analyzer or PlcProgramAnalyzer(store)
        self._comment_search = comment_search or PlcCommentSearchService(store)
        self._reasoner = reasoner or PlcReasoner()
        self._fault_tracer = fault_tracer or PlcFaultTracer(store)
        self._tools = (
            PlcTool("program_lines", "Program lines around a device; dev is the class, e.g. D or M.", self.program_lines),
            PlcTool("related_devices", "Devices appearing on or next to the lines of a device.", self.related_devices),
            PlcTool("get_comment", "Comment of a device.", self.get_comment),
            PlcTool("search_comment_devices", "Rank devices whose comments match a question.", self.search_comment_devices),
            PlcTool("reasoning_device", "Infer a single device from a question.", self.reasoning_device),
            PlcTool("reasoning_multiple_devices", "Infer candidate devices from a question.", self.reasoning_multiple_devices),
            PlcTool("read_plc_values", "Read live device values through the gateway, e.g. D100.", self.read_plc_values),
            PlcTool("read_multiple_plc_values", "Read several devices in one gateway request.", self.read_multiple_plc_values),
            PlcTool("list_function_blocks", "List registered function blocks.", self.list_function_blocks),
            PlcTool("analyze_function_block", "Summarize the labels and program of a function block.", self.analyze_function_block),
            PlcTool("search_function_blocks", "Find function blocks by keyword.", self.search_function_blocks),
            PlcTool("trace_error_coil", "Trace OUT-driven L coils with error comments to their contacts.", self.trace_error_coil),
        )

    @property
    def all(self) -> tuple[PlcTool, ...]:
        return self._tools

    def get_tools(self, include_gateway_reads: bool) -> tuple[PlcTool, ...]:
        """All tools, minus the live-read ones when the PLC is offline."""
        if include_gateway_reads:
            return self._tools
        return tuple(t for t in self._tools if t.name not in GATEWAY_READ_TOOLS)

    async def invoke(self, name: str, **arguments: Any) -> str:
        """Call a tool by name, awaiting it when it is a coroutine."""
        tool = next((t for t in self._tools if t.name == name), None)
        if tool is None:
            return f"Unknown tool: {name}"
        result = tool.func(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_context_hint(
        self,
        gateway_options_json: str | None = None,
        unit_id: str | None = None,
        unit_name: str | None = None,
        enable_function_blocks: bool = True,
        note: str | None = None,
        plc_online: bool = False,
    ) -> str:
        """Plain-text overview of loaded data and connection state for a prompt."""
        lines = ["Loaded PLC data", "- Program files:"]
        lines.extend(_bullets(sorted(self._store.programs, key=str.casefold)))
        lines.append(f"- Function blocks: {'enabled' if enable_function_blocks else 'disabled'}")
        lines.extend(_bullets(sorted((b.name for b in self._store.function_blocks), key=str.casefold)))

        if plc_online:
            lines.append("- PLC connection: online")
        else:
            lines.append("- PLC connection: offline (read_plc_values/read_multiple_plc_values disabled)")

        if (unit_id and unit_id.strip()) or (unit_name and unit_name.strip()):
            lines.append(f"Target unit: {unit_name or '(unknown)'} ({unit_id or 'n/a'})")
        if gateway_options_json and gateway_options_json.strip():
            lines.append(f"Gateway options: {gateway_options_json}")
        if note and note.strip():
            lines.append(f"Note: {note}")
        return "\n".join(lines).strip()

    # -- analysis tools ------------------------------------------------------

    def program_lines(self, dev: str, address: int, context: int = 30) -> str:
        try:
            return _dumps(self._analyzer.get_program_blocks(dev, address, context))
        except Exception as e:
            logger.error("program_lines failed: %s", e)
            return str(e)

    def related_devices(self, dev: str, address: int) -> str:
        try:
            return ",".join(self._analyzer.get_related_devices(dev, address))
        except Exception as e:
            logger.error("related_devices failed: %s", e)
            return str(e)

    def get_comment(self, dev: str, address: int) -> str:
        try:
            return self._analyzer.get_comment(dev, address)
        except Exception as e:
            logger.error("get_comment failed: %s", e)
            return str(e)

    def search_comment_devices(self, question: str) -> str:
        try:
            results = self._comment_search.search(question, SEARCH_RESULT_LIMIT)
            return _dumps(
                {
                    "status": "success",
                    "question": question,
                    "matchCount": len(results),
                    "results": [
                        {
                            "device": r.device,
                            "comment": r.comment,
                            "score": _round_score(r.score),
                            "matchedTerms": sorted(r.matched_terms),
                        }
                        for r in results
                    ],
                }
            )
        except Exception as e:
            logger.error("search_comment_devices failed: %s", e)
            return str(e)

    def reasoning_device(self, query: str) -> str:
        try:
            return _dumps(self._reasoner.infer_single(query))
        except Exception as e:
            logger.error("reasoning_device failed: %s", e)
            return str(e)

    def reasoning_multiple_devices(self, query: str) -> str:
        try:
            return _dumps(self._reasoner.infer_multiple(query, self.program_contexts(query)))
        except Exception as e:
            logger.error("reasoning_multiple_devices failed: %s", e)
            return str(e)

    def trace_error_coil(self) -> str:
        try:
            return _dumps(self._fault_tracer.trace_error_coils())
        except Exception as e:
            logger.error("trace_error_coil failed: %s", e)
            return str(e)

    # -- function blocks -----------------------------------------------------

    def list_function_blocks(self) -> str:
        try:
            blocks = []
            for block in self._store.function_blocks:
                entry = {
                    "name": block.name,
                    "safeName": block.safe_name,
                    "hasLabel": bool(block.label_content.strip()),
                    "hasProgram": bool(block.program_content.strip()),
                }
                entry.update(_timestamps(block.to_dict()))
                blocks.append(entry)
            return _dumps({"status": "success", "count": len(blocks), "functionBlocks": blocks})
        except Exception as e:
            logger.error("list_function_blocks failed: %s", e)
            return str(e)

    def analyze_function_block(self, name: str) -> str:
        try:
            block = self._store.try_get_function_block(name)
            if block is None:
                return FUNCTION_BLOCK_NOT_FOUND
            return _dumps(
                {
                    "status": "success",
                    "name": block.name,
                    "labels": summarize_labels(block.label_content),
                    "program": summarize_program(block.program_content),
                }
            )
        except Exception as e:
            logger.error("analyze_function_block failed: %s", e)
            return str(e)

    def search_function_blocks(self, keyword: str) -> str:
        try:
            matches = []
            for block in search_function_blocks(self._store, keyword):
                entry = {"name": block.name, "safeName": block.safe_name}
                entry.update(_timestamps(block.to_dict()))
                matches.append(entry)
            return _dumps({"status": "success", "keyword": keyword, "matchCount": len(matches), "results": matches})
        except Exception as e:
            logger.error("search_function_blocks failed: %s", e)
            return str(e)

    # -- live reads ----------------------------------------------------------

    async def read_plc_values(
        self,
        spec: str,
        ip: str | None = None,
        port: int = 0,
        timeout_seconds: float = 0,
        base_url: str | None = None,
    ) -> str:
        try:
            normalized = self.normalize_address(DeviceAddress.parse(spec)).to_spec()
            result = await self._gateway.read(
                normalized,
                host=ip if ip and ip.strip() else None,
                port=port if port > 0 else None,
                timeout=timeout_seconds if timeout_seconds > 0 else DEFAULT_READ_TIMEOUT,
                base_url=base_url,
            )
            return _dumps(result.to_dict())
        except Exception as e:
            logger.error("read_plc_values failed: %s", e)
            return str(e)

    async def read_multiple_plc_values(self, specs: Iterable[str], base_url: str | None = None) -> str:
        try:
            normalized = [self.normalize_address(DeviceAddress.parse(s)).to_spec() for s in specs or ()]
            result = await self._gateway.read_batch(normalized, base_url=base_url)
            return _dumps(result.to_dict())
        except Exception as e:
            logger.error("read_multiple_plc_values failed: %s", e)
            return str(e)

    def normalize_address(self, address: DeviceAddress) -> DeviceAddress:
        """Widen a single-length D/W read to two words when programs treat it as 32-bit or float."""
        if address.length > 1:
            return address
        if address.device_class.upper() not in WORD_DEVICES or not address.address.isdecimal():
            return address
        data_type = self._analyzer.infer_device_data_type(address.device_class, int(address.address))
        if data_type in _WIDE_TYPES:
            return address.with_length(2)
        return address

    def program_contexts(self, query: str | None) -> list[ProgramContext]:
        """Programs whose file name or stem appears in the question."""
        if not query or not query.strip():
            return []
        contexts: list[ProgramContext] = []
        for name, lines in self._store.programs.items():
            stem = PurePath(name).stem
            if _contains_ignore_case(query, name) or _contains_ignore_case(query, stem):
                contexts.append(ProgramContext(name, tuple(line.raw for line in lines)))
        return contexts


def _bullets(names: list[str]) -> list[str]:
    if not names:
        return ["  - none"]
    return [f"  - {name}" for name in names]


def _timestamps(block: dict[str, Any]) -> dict[str, Any]:
    return {k: block[k] for k in ("createdAt", "updatedAt") if block.get(k) is not None}
