#!/usr/bin/env python3
"""Example: read live device values through the gateway; failures come back as results."""

import asyncio

from pyplc_insight import PlcGatewayClient


async def main() -> None:
    base_url = "http://localhost:8000"  # change to your gateway
    plc_ip = "192.168.1.10"
    plc_port = 5000

    async with PlcGatewayClient(base_url=base_url, timeout=5.0) as gateway:
        result = await gateway.read("D100:2", host=plc_ip, port=plc_port)
        if result.success:
            print(f"{result.device} = {list(result.values)}")
        else:
            print(f"{result.device}: {result.error}")

        batch = await gateway.read_batch(["D100", "M10", "X1"], host=plc_ip, port=plc_port)
        if batch.error:
            print(f"batch failed: {batch.error}")
        for item in batch.results:
            print(item.to_dict())


if __name__ == "__main__":
    asyncio.run(main())
