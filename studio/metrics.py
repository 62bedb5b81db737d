"""
Thread-safe in-memory metrics for the studio worker.

Tracks backend gateway traffic per action:
  - Traffic:    `requests.<action>` counters
  - Errors:     `errors.<action>` counters + a short log of recent failures
  - Latency:    duration samples per action (last 100)
  - Saturation: gauges such as active sessions

All data is ephemeral (resets on restart).
"""

import time
import threading
from collections import defaultdict, deque
from typing import Deque, Dict

_lock = threading.Lock()

MAX_SAMPLES = 100
MAX_ERRORS = 50
SNAPSHOT_ERRORS = 10

_counters: Dict[str, int] = defaultdict(int)
_gauges: Dict[str, float] = {}
_durations: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=MAX_SAMPLES))
_failures: Deque[dict] = deque(maxlen=MAX_ERRORS)


def _summarize(samples) -> dict:
    ordered = sorted(samples)
    n = len(ordered)
    return {
        "p50": ordered[n // 2],
        # p95 needs a reasonable sample before it means anything
        "p95": ordered[int(n * 0.95)] if n >= 20 else ordered[-1],
        "avg": sum(ordered) / n,
        "count": n,
    }


def _total(prefix: str) -> int:
    return sum(count for name, count in _counters.items() if name.startswith(prefix))


# ── Public API ────────────────────────────────────────────────────────────────

def inc_counter(name: str, amount: int = 1):
    with _lock:
        _counters[name] += amount


def set_gauge(name: str, value: float):
    with _lock:
        _gauges[name] = value


def record_call(action: str, duration_ms: float, error: Exception | None = None):
    """Record one gateway call: traffic, latency and (optionally) its failure."""
    with _lock:
        _counters[f"requests.{action}"] += 1
        _durations[action].append(duration_ms)
        if error is None:
            return
        _counters[f"errors.{action}"] += 1
        _failures.append({
            "timestamp": time.time(),
            "action": action,
            "error_type": type(error).__name__,
            "message": str(error)[:300],
        })


def get_snapshot() -> dict:
    """Complete metrics snapshot for the /metrics endpoint."""
    now = time.time()
    with _lock:
        requests = _total("requests.")
        errors = _total("errors.")
        started = _gauges.get("start_time", now)
        return {
            "timestamp": now,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
            "latency": {action: _summarize(s) for action, s in _durations.items() if s},
            "error_rate": round(errors / requests * 100, 2) if requests else 0,
            "recent_errors": list(_failures)[-SNAPSHOT_ERRORS:],
            "uptime_seconds": now - started,
        }


def reset():
    """Drop every collected sample."""
    with _lock:
        _counters.clear()
        _gauges.clear()
        _durations.clear()
        _failures.clear()
