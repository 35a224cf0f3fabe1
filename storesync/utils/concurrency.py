"""Best-effort fan-out helpers for asyncio.

`settle_all` waits for every awaitable to finish and reports each outcome
individually, so one failing tenant never cancels or hides its siblings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Iterable, List, Optional


@dataclass
class Settled:
    """Outcome of one awaitable passed to settle_all()."""
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(awaitables: Iterable[Awaitable[Any]]) -> List[Settled]:
    """Run awaitables concurrently and wait for all of them to settle.

    Results are returned in input order. Exceptions are captured in
    `Settled.error` rather than raised; cancellation of the caller still
    propagates.
    """
    results = await asyncio.gather(*awaitables, return_exceptions=True)

    settled: List[Settled] = []
    for result in results:
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            settled.append(Settled(error=result))
        else:
            settled.append(Settled(value=result))
    return settled
