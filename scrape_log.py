"""
Diagnostic sink helpers.

Callers hand a `callbacks` value down through the scraper: either a dict with
optional "log" / "progress" callables (CLI, tests) or an object exposing
`log` / `progress` signals with an `emit` method (Qt front ends). Logging is
fire-and-forget: a failing sink never interrupts scraping.
"""
from typing import Any, Callable, Dict, Optional


def _dict_callback(callbacks, name: str) -> Optional[Callable]:
    if isinstance(callbacks, dict):
        cb = callbacks.get(name)
        if callable(cb):
            return cb
    return None


def emit_log(callbacks, msg: str):
    if callbacks is None:
        return
    if isinstance(callbacks, dict):
        cb = _dict_callback(callbacks, "log")
        if cb is not None:
            try:
                cb(msg)
            except Exception:
                pass
    elif hasattr(callbacks, "log"):
        try:
            callbacks.log.emit(msg)
        except Exception:
            pass


def emit_progress(callbacks, done: int, total: int):
    if callbacks is None:
        return
    if isinstance(callbacks, dict):
        cb = _dict_callback(callbacks, "progress")
        if cb is not None:
            try:
                cb(done, total)
            except Exception:
                pass
    elif hasattr(callbacks, "progress"):
        try:
            callbacks.progress.emit(done, total)
        except Exception:
            pass


def print_callbacks(verbose: bool = False) -> Dict[str, Any]:
    """Callbacks that write to stdout; [DEBUG] lines only when verbose."""
    def _log(msg: str):
        if not verbose and "[DEBUG]" in msg:
            return
        print(msg)

    def _progress(done: int, total: int):
        print(f"[PROGRESS] {done}/{total}")

    return {"log": _log, "progress": _progress}
