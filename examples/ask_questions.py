#!/usr/bin/env python3
"""Example: load a PLC project export and answer troubleshooting questions offline."""

import asyncio
import sys

from pyplc_insight import PlcCommentSearchService, PlcDataStore, PlcFaultTracer, PlcProgramAnalyzer, PlcReasoner
from pyplc_insight.errors import DataFileError
from pyplc_insight.loader import load_comments, load_programs


async def main() -> None:
    comments_path = "export/comments.csv"  # change to your comment export
    program_paths = ["export/Main.csv", "export/Conveyor.csv"]

    store = PlcDataStore()
    try:
        await load_comments(store, comments_path)
        await load_programs(store, program_paths)
    except DataFileError as e:
        print(f"Data file error: {e}", file=sys.stderr)
        sys.exit(1)

    # Which devices does the question talk about?
    question = "搬送モータが止まった"
    for hit in PlcCommentSearchService(store).search(question, 5):
        print(f"{hit.device:8} {hit.score:5.2f}  {hit.comment}")

    # Explicit device mentions
    print(PlcReasoner().infer_single("M10が入らない"))

    # Program context and width of a word device
    analyzer = PlcProgramAnalyzer(store)
    for block in analyzer.get_program_blocks("M", 10, context=3):
        print(block)
        print("----")
    print(f"D100 is {analyzer.infer_device_data_type('D', 100).value}")

    # Error coils driven by OUT and the contacts behind them
    print(PlcFaultTracer(store).trace_error_coils())


if __name__ == "__main__":
    asyncio.run(main())
