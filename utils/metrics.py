import logging
import threading
from collections import defaultdict
from typing import Any

logger = logging.getLogger("api.metrics")

_LOCK = threading.Lock()
_COUNTERS: dict[tuple, float] = defaultdict(float)
_LATENCIES: dict[tuple, list[float]] = defaultdict(list)
_MAX_SAMPLES = 1024


def _labels_key(name: str, labels: dict[str, Any]) -> tuple:
    return (name, tuple(sorted((k, str(v)) for k, v in labels.items())))


def incr(name: str, amount: float = 1, **labels: Any) -> None:
    key = _labels_key(name, labels)
    with _LOCK:
        _COUNTERS[key] += amount
    logger.debug("metric_incr name=%s amount=%s labels=%s", name, amount, labels)


def observe_ms(name: str, value_ms: float, **labels: Any) -> None:
    key = _labels_key(name, labels)
    with _LOCK:
        samples = _LATENCIES[key]
        samples.append(float(value_ms))
        if len(samples) > _MAX_SAMPLES:
            del samples[: len(samples) - _MAX_SAMPLES]
    logger.debug("metric_observe name=%s value_ms=%.2f labels=%s", name, value_ms, labels)


def counter_value(name: str, **labels: Any) -> float:
    with _LOCK:
        return _COUNTERS.get(_labels_key(name, labels), 0.0)


def snapshot() -> dict:
    with _LOCK:
        counters = [
            {"name": name, "labels": dict(labels), "value": value}
            for (name, labels), value in _COUNTERS.items()
        ]
        latencies = [
            {
                "name": name,
                "labels": dict(labels),
                "count": len(samples),
                "max_ms": max(samples) if samples else 0.0,
                "avg_ms": (sum(samples) / len(samples)) if samples else 0.0,
            }
            for (name, labels), samples in _LATENCIES.items()
        ]
    return {"counters": counters, "latencies": latencies}


def reset() -> None:
    with _LOCK:
        _COUNTERS.clear()
        _LATENCIES.clear()
