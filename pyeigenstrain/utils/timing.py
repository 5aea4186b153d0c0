"""pyeigenstrain.utils.timing
Scoped wall-clock timing, passed explicitly to whoever wants to be profiled.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict


class TimingCollector:
    """
    Accumulates wall time and call counts per named phase.

    >>> timer = TimingCollector()
    >>> with timer.phase("reduce"):
    ...     pass
    >>> timer.counts["reduce"]
    1
    """

    def __init__(self) -> None:
        self.times: Dict[str, float] = {}
        self.counts: Dict[str, int] = {}
        self._t_start = time.perf_counter()

    @contextmanager
    def phase(self, name: str):
        t0 = time.perf_counter()
        try:
            yield self
        finally:
            dt = time.perf_counter() - t0
            self.times[name] = self.times.get(name, 0.0) + dt
            self.counts[name] = self.counts.get(name, 0) + 1

    @property
    def total_elapsed(self) -> float:
        return time.perf_counter() - self._t_start

    def reset(self) -> None:
        self.times.clear()
        self.counts.clear()
        self._t_start = time.perf_counter()

    def as_dict(self) -> dict:
        d = {k: round(v, 6) for k, v in self.times.items()}
        d['counts'] = dict(self.counts)
        return d

    def summary(self, label: str = "Eigenstrain reduction") -> str:
        total = self.total_elapsed
        lines = [f"  {label} ({total:.3f}s total)"]
        for k in sorted(self.times, key=self.times.get, reverse=True):
            t = self.times[k]
            pct = 100.0 * t / total if total > 0 else 0.0
            lines.append(f"    {k:20s}  {t:8.4f}s  ({pct:5.1f}%)  [{self.counts[k]} calls]")
        return "\n".join(lines)
