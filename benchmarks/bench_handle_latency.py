"""Benchmark: SessionHandle open/save cycle latency — p50/p95/p99.

Measures one full locked request cycle (open, set, save) against the
in-memory driver, isolating the overhead of the handle's state machine.
"""
from __future__ import annotations

import asyncio
import json
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from request_session import InMemoryDriver, RequestContext, SessionConfig, SessionHandle

_WARMUP: int = 200
_ITERATIONS: int = 5_000


async def _cycle(config: SessionConfig, session_id: str | None) -> str | None:
    handle = SessionHandle(session_id, RequestContext.for_request(config))
    await handle.open()
    handle.set("hits", handle.get("hits", 0) + 1)
    await handle.save()
    return handle.id


async def bench_handle_cycle_latency() -> dict[str, object]:
    """Benchmark open/set/save per-cycle latency.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms, p50_latency_ms, p95_latency_ms, p99_latency_ms.
    """
    config = SessionConfig(driver=InMemoryDriver())
    session_id = None
    for _ in range(_WARMUP):
        session_id = await _cycle(config, session_id)

    latencies_ms: list[float] = []
    start_total = time.perf_counter()
    for _ in range(_ITERATIONS):
        start = time.perf_counter()
        session_id = await _cycle(config, session_id)
        latencies_ms.append((time.perf_counter() - start) * 1000)
    total = time.perf_counter() - start_total

    latencies_ms.sort()
    count = len(latencies_ms)
    return {
        "operation": "handle_open_save_cycle",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(sum(latencies_ms) / count, 4),
        "p50_latency_ms": round(latencies_ms[count // 2], 4),
        "p95_latency_ms": round(latencies_ms[int(count * 0.95)], 4),
        "p99_latency_ms": round(latencies_ms[int(count * 0.99)], 4),
    }


if __name__ == "__main__":
    print(json.dumps(asyncio.run(bench_handle_cycle_latency()), indent=2))
