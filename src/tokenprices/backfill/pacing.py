import asyncio
from typing import Protocol


class Pacer(Protocol):
    """Delay between backfill chunks."""

    async def wait(self) -> None: ...


class FixedDelayPacer:
    def __init__(self, delay_seconds: float = 2.0) -> None:
        self.delay_seconds = delay_seconds

    async def wait(self) -> None:
        await asyncio.sleep(self.delay_seconds)
