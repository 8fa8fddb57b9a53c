"""Politeness delays between metered provider calls."""
from __future__ import annotations

import asyncio
import random


async def politeness_delay(delay_ms: int, *, jitter_ms: int = 0) -> None:
    """Sleep ``delay_ms`` milliseconds plus up to ``jitter_ms`` of random jitter."""
    if delay_ms <= 0 and jitter_ms <= 0:
        return
    jitter = random.uniform(0, jitter_ms) if jitter_ms > 0 else 0.0
    await asyncio.sleep(max(delay_ms, 0) / 1000 + jitter / 1000)
