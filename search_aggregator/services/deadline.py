from __future__ import annotations

import asyncio


class Deadline:
    """A point on the event-loop clock after which a job (or one of its calls) is abandoned.

    A `child()` never extends past its parent.
    """

    __slots__ = ("when",)

    def __init__(self, when: float):
        self.when = when

    @staticmethod
    def _now() -> float:
        return asyncio.get_running_loop().time()

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(cls._now() + max(seconds, 0.0))

    def remaining(self) -> float:
        return max(self.when - self._now(), 0.0)

    @property
    def expired(self) -> bool:
        return self._now() >= self.when

    def child(self, timeout: float) -> "Deadline":
        """Sub-deadline of `min(remaining budget, timeout)`."""
        return Deadline(min(self.when, self._now() + max(timeout, 0.0)))

    def scope(self) -> asyncio.Timeout:
        return asyncio.timeout_at(self.when)

    def __repr__(self) -> str:
        return f"Deadline(when={self.when:.3f})"
