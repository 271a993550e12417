import time

from tilegrid.utils.settings import DEFAULT_SETTINGS, settings

_flow_log_last: dict[str, float] = {}


def log_flow(component: str, message: str, *, level: str = "DEBUG",
             throttle_key: str | None = None, every_s: float | None = None):
    """Timestamped, optionally throttled flow logging for pagination/masonry diagnostics."""
    if level == "DEBUG":
        # Set `trace_logs` to True in settings to see the full flow.
        try:
            trace = bool(settings.value("trace_logs", DEFAULT_SETTINGS['trace_logs'], type=bool))
        except Exception:
            trace = False
        if not trace:
            return

    now = time.time()
    if throttle_key and every_s is not None:
        last = _flow_log_last.get(throttle_key, 0.0)
        if (now - last) < every_s:
            return
        _flow_log_last[throttle_key] = now
    ts = time.strftime("%H:%M:%S", time.localtime(now)) + f".{int((now % 1) * 1000):03d}"
    print(f"[{ts}][TRACE][{component}][{level}] {message}")
