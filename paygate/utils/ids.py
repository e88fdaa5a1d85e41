import threading
import time

_lock = threading.Lock()
_last_ms = 0


def _next_tick() -> int:
    """Millisecond clock that never repeats or goes backwards within the process."""
    global _last_ms
    with _lock:
        now = int(time.time() * 1000)
        _last_ms = now if now > _last_ms else _last_ms + 1
        return _last_ms


def next_reference(prefix: str, donation_id: str) -> str:
    return f"{prefix}-{donation_id}-{_next_tick()}"
