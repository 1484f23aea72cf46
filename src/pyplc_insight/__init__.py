"""pyplc-insight: ladder program, device comment and live-value analysis for PLC troubleshooting."""

__version__ = "0.1.0"

from .address import DeviceAddress, parse_device
from .analyzer import PlcProgramAnalyzer
from .errors import DataFileError, GatewayError, PlcInsightError
from .fault_tracer import PlcFaultTracer
from .gateway import PlcGatewayClient
from .parser import TabularProgramParser
from .reasoner import PlcReasoner
from .search import PlcCommentSearchService
from .store import PlcDataStore
from .toolset import PlcTool, PlcToolset
from .types import (
    BatchReadRequest,
    BatchReadResult,
    CommentSearchResult,
    DeviceDataType,
    DeviceReadRequest,
    DeviceReadResult,
    FunctionBlockData,
    GatewayOptions,
    ProgramContext,
    ProgramFile,
    ProgramLine,
)

__all__ = [
    "__version__",
    "DeviceAddress",
    "parse_device",
    "PlcProgramAnalyzer",
    "DataFileError",
    "GatewayError",
    "PlcInsightError",
    "PlcFaultTracer",
    "PlcGatewayClient",
    "TabularProgramParser",
    "PlcReasoner",
    "PlcCommentSearchService",
    "PlcDataStore",
    "PlcTool",
    "PlcToolset",
    "BatchReadRequest",
    "BatchReadResult",
    "CommentSearchResult",
    "DeviceDataType",
    "DeviceReadRequest",
    "DeviceReadResult",
    "FunctionBlockData",
    "GatewayOptions",
    "ProgramContext",
    "ProgramFile",
    "ProgramLine",
]
