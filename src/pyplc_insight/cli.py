#!/usr/bin/env python3
"""Command line front end for pyplc-insight using Typer."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .address import DeviceAddress
from .analyzer import PlcProgramAnalyzer
from .errors import DataFileError
from .fault_tracer import PlcFaultTracer
from .gateway import PlcGatewayClient
from .loader import load_comments, load_function_blocks, load_programs
from .reasoner import PlcReasoner
from .search import MAX_RESULTS_LIMIT, PlcCommentSearchService
from .store import PlcDataStore
from .toolset import PlcToolset
from .types import BatchReadResult, DeviceReadResult

app = typer.Typer(
    name="plcinsight",
    help="Query ladder programs, device comments and live PLC values for troubleshooting.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

CommentsOption = Annotated[
    Optional[Path],
    typer.Option("--comments", "-c", help="Device comment CSV/TSV file", envvar="PLCINSIGHT_COMMENTS"),
]
ProgramOption = Annotated[
    Optional[list[Path]],
    typer.Option("--program", "-P", help="Ladder program export (repeatable)", envvar="PLCINSIGHT_PROGRAMS"),
]
FunctionBlocksOption = Annotated[
    Optional[Path],
    typer.Option("--function-blocks", "-f", help="Function block JSON file", envvar="PLCINSIGHT_FUNCTION_BLOCKS"),
]
GatewayUrlOption = Annotated[
    str,
    typer.Option("--gateway-url", "-g", help="Gateway base URL", envvar="PLCINSIGHT_GATEWAY_URL"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Gateway timeout in seconds", envvar="PLCINSIGHT_TIMEOUT"),
]
IpOption = Annotated[
    Optional[str],
    typer.Option("--ip", help="PLC IP address forwarded to the gateway", envvar="PLCINSIGHT_PLC_IP"),
]
PlcPortOption = Annotated[
    int,
    typer.Option("--plc-port", help="PLC port forwarded to the gateway (0 = gateway default)", envvar="PLCINSIGHT_PLC_PORT"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]
DeviceArgument = Annotated[str, typer.Argument(help="Device, e.g. D100, M10 or TS3")]

DEFAULT_GATEWAY_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 10.0


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def _load(
    store: PlcDataStore,
    comments: Optional[Path],
    programs: Optional[list[Path]],
    function_blocks: Optional[Path],
) -> None:
    if comments is not None:
        await load_comments(store, comments)
    if programs:
        await load_programs(store, programs)
    if function_blocks is not None:
        await load_function_blocks(store, function_blocks)


def load_store(
    comments: Optional[Path],
    programs: Optional[list[Path]],
    function_blocks: Optional[Path] = None,
) -> PlcDataStore:
    """Build a store from whichever data files were given."""
    store = PlcDataStore()
    asyncio.run(_load(store, comments, programs, function_blocks))
    return store


def create_gateway(gateway_url: str, timeout: float) -> PlcGatewayClient:
    """Create and return a PlcGatewayClient instance."""
    return PlcGatewayClient(base_url=gateway_url, timeout=timeout)


def format_values(result: DeviceReadResult) -> str:
    """Format one read result for display."""
    if not result.success:
        return f"{result.device}: ERROR {result.error or 'unknown'}"
    return f"{result.device} = {', '.join(str(v) for v in result.values)}"


def fail(message: str, code: int, verbose: bool = False) -> typer.Exit:
    """Echo an error to stderr and return the Exit to raise."""
    typer.echo(f"Error: {message}", err=True)
    if verbose and code == 4:
        import traceback
        traceback.print_exc()
    return typer.Exit(code)


# ============================================================================
# Commands
# ============================================================================

@app.command()
def parse(
    spec: Annotated[str, typer.Argument(help="Device spec, e.g. D100:2 or ts3")],
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show how a device spec is interpreted.

    Does not need any data files; malformed input falls back to D0.
    """
    setup_logging(verbose)
    address = DeviceAddress.parse(spec)
    info = {
        "device": address.device_class,
        "address": address.address,
        "length": address.length,
        "spec": address.to_spec(),
    }
    if json_output:
        typer.echo(json.dumps(info, indent=2))
    else:
        typer.echo(f"Device class:  {info['device']}")
        typer.echo(f"Address:       {info['address']}")
        typer.echo(f"Length:        {info['length']}")
        typer.echo(f"Spec:          {info['spec']}")


@app.command()
def comment(
    device: DeviceArgument,
    comments: CommentsOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print the comment registered for a device (TS falls back to T)."""
    setup_logging(verbose)
    try:
        store = load_store(comments, None)
        address = DeviceAddress.parse(device)
        text = PlcProgramAnalyzer(store).get_comment(address.device_class, address.address)
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)
    typer.echo(text)


@app.command()
def blocks(
    device: DeviceArgument,
    program: ProgramOption = None,
    context: Annotated[int, typer.Option("--context", "-n", help="Lines of context either side")] = 30,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Print the program lines surrounding every mention of a device."""
    setup_logging(verbose)
    try:
        store = load_store(None, program)
        address = DeviceAddress.parse(device)
        found = PlcProgramAnalyzer(store).get_program_blocks(address.device_class, address.address, context)
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)

    if json_output:
        typer.echo(json.dumps(found, ensure_ascii=False, indent=2))
        return
    for i, block in enumerate(found):
        if i:
            typer.echo("----")
        typer.echo(block)


@app.command()
def related(
    device: DeviceArgument,
    program: ProgramOption = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """List devices appearing on or next to the lines that mention a device."""
    setup_logging(verbose)
    try:
        store = load_store(None, program)
        address = DeviceAddress.parse(device)
        devices = PlcProgramAnalyzer(store).get_related_devices(address.device_class, address.address)
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)

    if json_output:
        typer.echo(json.dumps(devices))
    else:
        typer.echo(",".join(devices))


@app.command()
def dtype(
    device: DeviceArgument,
    program: ProgramOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Infer whether a D/W device holds a double word or a float."""
    setup_logging(verbose)
    try:
        store = load_store(None, program)
        address = DeviceAddress.parse(device)
        data_type = PlcProgramAnalyzer(store).infer_device_data_type(address.device_class, address.address)
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)
    typer.echo(data_type.value)


@app.command()
def trace(
    comments: CommentsOption = None,
    program: ProgramOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Find OUT-driven L coils whose comment marks an error, with their contacts."""
    setup_logging(verbose)
    try:
        store = load_store(comments, program)
        report = PlcFaultTracer(store).trace_error_coils()
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)
    typer.echo(json.dumps(report, ensure_ascii=False, indent=2))


@app.command()
def search(
    question: Annotated[str, typer.Argument(help="Free-form question, e.g. 'the motor stopped'")],
    comments: CommentsOption = None,
    max_results: Annotated[int, typer.Option("--max-results", "-m", help=f"1..{MAX_RESULTS_LIMIT}")] = 5,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Rank devices whose comments match a question."""
    setup_logging(verbose)
    try:
        store = load_store(comments, None)
        results = PlcCommentSearchService(store).search(question, max_results)
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)

    if json_output:
        payload = [
            {
                "device": r.device,
                "comment": r.comment,
                "score": round(r.score, 2),
                "matchedTerms": sorted(r.matched_terms),
            }
            for r in results
        ]
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    for r in results:
        typer.echo(f"{r.device}\t{r.score:.2f}\t{r.comment}")


@app.command()
def infer(
    query: Annotated[str, typer.Argument(help="Question mentioning devices or program names")],
    program: ProgramOption = None,
    multiple: Annotated[bool, typer.Option("--multiple", help="Return ranked candidates instead of one device")] = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Infer the device(s) a question is about.

    With --multiple, programs whose file name appears in the question add
    their devices after the ones named in the question.
    """
    setup_logging(verbose)
    try:
        reasoner = PlcReasoner()
        if multiple:
            store = load_store(None, program)
            contexts = PlcToolset(store, reasoner=reasoner).program_contexts(query)
            result = reasoner.infer_multiple(query, contexts)
        else:
            result = reasoner.infer_single(query)
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)
    typer.echo(json.dumps(result, ensure_ascii=False, indent=2))


async def _read_one(
    gateway: PlcGatewayClient,
    spec: str,
    ip: Optional[str],
    plc_port: int,
) -> DeviceReadResult:
    try:
        return await gateway.read(spec, host=ip, port=plc_port if plc_port > 0 else None)
    finally:
        await gateway.aclose()


async def _read_many(
    gateway: PlcGatewayClient,
    specs: list[str],
    ip: Optional[str],
    plc_port: int,
) -> BatchReadResult:
    try:
        return await gateway.read_batch(specs, host=ip, port=plc_port if plc_port > 0 else None)
    finally:
        await gateway.aclose()


@app.command()
def read(
    spec: Annotated[str, typer.Argument(help="Device spec to read, e.g. D100 or D100:4")],
    program: ProgramOption = None,
    gateway_url: GatewayUrlOption = DEFAULT_GATEWAY_URL,
    timeout: TimeoutOption = DEFAULT_TIMEOUT,
    ip: IpOption = None,
    plc_port: PlcPortOption = 0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Read live values for one device through the gateway.

    With --program, a D/W device the programs treat as 32-bit or float is
    read as two words.
    """
    setup_logging(verbose)
    try:
        store = load_store(None, program)
        gateway = create_gateway(gateway_url, timeout)
        normalized = PlcToolset(store, gateway=gateway).normalize_address(DeviceAddress.parse(spec)).to_spec()
        result = asyncio.run(_read_one(gateway, normalized, ip, plc_port))
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False))
    else:
        typer.echo(format_values(result))
    if not result.success:
        raise fail(f"Gateway read failed: {result.error}", 3)


@app.command("read-many")
def read_many(
    specs: Annotated[list[str], typer.Argument(help="Device specs to read in one request")],
    program: ProgramOption = None,
    gateway_url: GatewayUrlOption = DEFAULT_GATEWAY_URL,
    timeout: TimeoutOption = DEFAULT_TIMEOUT,
    ip: IpOption = None,
    plc_port: PlcPortOption = 0,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Read several devices with one batch request through the gateway."""
    setup_logging(verbose)
    try:
        store = load_store(None, program)
        gateway = create_gateway(gateway_url, timeout)
        toolset = PlcToolset(store, gateway=gateway)
        normalized = [toolset.normalize_address(DeviceAddress.parse(s)).to_spec() for s in specs]
        result = asyncio.run(_read_many(gateway, normalized, ip, plc_port))
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False))
    else:
        for item in result.results:
            typer.echo(format_values(item))
    if result.error is not None:
        raise fail(f"Gateway batch read failed: {result.error}", 3)
    if not result.success:
        raise typer.Exit(3)


@app.command()
def info(
    comments: CommentsOption = None,
    program: ProgramOption = None,
    function_blocks: FunctionBlocksOption = None,
    online: Annotated[bool, typer.Option("--online", help="Report the PLC as reachable for live reads")] = False,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show package version and a summary of the loaded data.

    Without data options: shows local metadata only.
    """
    setup_logging(verbose)
    try:
        store = load_store(comments, program, function_blocks)
    except DataFileError as e:
        raise fail(str(e), 2)
    except Exception as e:
        raise fail(f"Unexpected error: {e}", 4, verbose)

    if json_output:
        info_data = {
            "version": __version__,
            "comments": len(store.comments),
            "programs": sorted(store.programs),
            "functionBlocks": [b.name for b in store.function_blocks],
            "online": online,
        }
        typer.echo(json.dumps(info_data, ensure_ascii=False, indent=2))
        return
    typer.echo(f"pyplc-insight version: {__version__}")
    typer.echo(f"Comments: {len(store.comments)}")
    typer.echo(PlcToolset(store).build_context_hint(plc_online=online))


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pyplc-insight {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """plcinsight - ladder program, comment and live-value queries for PLC troubleshooting."""
    pass


if __name__ == "__main__":
    app()
