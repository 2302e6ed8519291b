from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from adc_qc.calculation.objects import IndexRange


@dataclass
class MetricSummary:

    """
    Running sums for one channel: count, sum and sum of squares.

    The sums are accumulated directly, so for very many entries with large
    values the variance loses precision.
    """

    count: int = 0
    sum: float = 0.0
    sumsq: float = 0.0

    def add(self, val: float) -> None:
        self.count += 1
        self.sum += val
        self.sumsq += val * val

    @property
    def mean(self) -> float:
        return self.sum / self.count if self.count else 0.0

    @property
    def meansq(self) -> float:
        return self.sumsq / self.count if self.count else 0.0

    @property
    def variance(self) -> float:
        valm = self.mean
        return max(self.meansq - valm * valm, 0.0)

    @property
    def rms(self) -> float:
        return math.sqrt(self.variance)

    @property
    def dmean(self) -> float:
        """Standard error of the mean."""
        return math.sqrt(self.variance / self.count) if self.count else 0.0


@dataclass
class State:

    """Everything in the metric tool that changes after construction."""

    call_count: int = 0
    first_run: int = 0
    last_run: int = 0
    first_event: int = 0
    last_event: int = 0
    event_count: int = 0
    run_count: int = 0
    summaries: Dict[IndexRange, List[MetricSummary]] = field(default_factory=dict)

    def update(self, run: int, event: int) -> None:
        """Count a call and advance the run/event bookkeeping on a new event."""
        self.call_count += 1
        if self.event_count == 0:
            self.first_run = run
            self.first_event = event
            self.run_count = 1
            self.event_count = 1
        elif run != self.last_run:
            self.run_count += 1
            self.event_count += 1
        elif event != self.last_event:
            self.event_count += 1
        self.last_run = run
        self.last_event = event


class StateBorrowError(RuntimeError):
    """Raised when the tool state is borrowed while another lease is out."""


class StateLease:

    """
    Exclusive access to a :class:`State`, released on exit or by :meth:`release`.

    Using the lease after release raises :class:`StateBorrowError`.
    """

    def __init__(self, handle: 'StateHandle'):
        self._handle = handle
        self._active = True

    @property
    def state(self) -> State:
        if not self._active:
            raise StateBorrowError('State lease used after release.')
        return self._handle._state

    def release(self) -> None:
        if self._active:
            self._active = False
            self._handle._lease = None

    def __enter__(self) -> State:
        return self.state

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class StateHandle:

    """Owner of the tool state. Only one lease may be out at any time."""

    def __init__(self, state: Optional[State] = None):
        self._state = state if state is not None else State()
        self._lease: Optional[StateLease] = None

    @property
    def borrowed(self) -> bool:
        return self._lease is not None

    def borrow(self) -> StateLease:
        if self._lease is not None:
            raise StateBorrowError('State is already borrowed.')
        self._lease = StateLease(self)
        return self._lease


class StatisticsAggregator:

    """
    Per-channel metric statistics for each channel range, kept across calls.

    Parameters
    ----------
    handle : StateHandle, optional
        State owner. A new one is made if not given.

    """

    def __init__(self, handle: Optional[StateHandle] = None):
        self.handle = handle if handle is not None else StateHandle()

    def begin_event(self, run: int, event: int) -> None:
        with self.handle.borrow() as state:
            state.update(run, event)

    def update(self, ran: IndexRange, offset: int, value: float) -> None:
        if offset < 0 or offset >= ran.size:
            raise IndexError(f'Channel offset {offset} outside range {ran.name!r} of size {ran.size}')
        with self.handle.borrow() as state:
            sums = state.summaries.get(ran)
            if sums is None:
                sums = [MetricSummary() for _ in range(ran.size)]
                state.summaries[ran] = sums
            sums[offset].add(value)

    def snapshot(self, ran: IndexRange) -> Tuple[MetricSummary, ...]:
        """Copies of the summaries of a range in channel offset order."""
        with self.handle.borrow() as state:
            sums = state.summaries.get(ran)
            if sums is None:
                return tuple(MetricSummary() for _ in range(ran.size))
            return tuple(copy.copy(s) for s in sums)

    def state_copy(self) -> State:
        with self.handle.borrow() as state:
            return copy.deepcopy(state)

    def summary_frame(self, ran: IndexRange) -> pd.DataFrame:

        """
        Table of the accumulated statistics for one range.

        Returns
        -------
        pd.DataFrame
            One row per channel with columns channel, count, mean, rms, dmean.

        """

        sums = self.snapshot(ran)
        return pd.DataFrame({
            'channel': np.arange(ran.first, ran.last + 1),
            'count': [s.count for s in sums],
            'mean': [s.mean for s in sums],
            'rms': [s.rms for s in sums],
            'dmean': [s.dmean for s in sums],
        })
