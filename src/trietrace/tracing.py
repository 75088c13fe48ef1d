"""
Optional Tracing Hooks

Verification code reports intermediate values through a Tracer instead of
printing them. A Tracer with no hooks attached does nothing, so tracing is
never required for correctness.

Events:
    hash             one compression call (role, left, right, result)
    path.level       one level of a path walk (level, direction, digest)
    path.root        final digest of a path walk (root)
    proof.assembled  a Proof was built (address, claim)
    record.verified  batch record passed (index, claim)
    record.failed    batch record failed (index, kind, level, message)
"""

from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

from .field import Fr


Hook = Callable[[str, Dict[str, Any]], None]


class Tracer:
    """Fan-out of trace events to caller-supplied hooks."""

    def __init__(self, hooks: Optional[List[Hook]] = None):
        self._hooks: List[Hook] = list(hooks or [])

    @property
    def enabled(self) -> bool:
        return bool(self._hooks)

    def attach(self, hook: Hook) -> Hook:
        """Attach a hook; returns it so this can be used as a decorator."""
        self._hooks.append(hook)
        return hook

    def detach(self, hook: Hook) -> None:
        self._hooks.remove(hook)

    def emit(self, event: str, **fields: Any) -> None:
        for hook in self._hooks:
            hook(event, fields)


def logging_hook(logger: logging.Logger, level: int = logging.DEBUG) -> Hook:
    """Build a hook that writes every event as one log line."""

    def hook(event: str, fields: Dict[str, Any]) -> None:
        if logger.isEnabledFor(level):
            details = ' '.join(f"{k}={_render(v)}" for k, v in fields.items())
            logger.log(level, "%s %s", event, details)

    return hook


def _render(value: Any) -> str:
    if isinstance(value, Fr):
        return value.hex()
    if isinstance(value, bytes):
        return '0x' + value.hex()
    return str(value)
