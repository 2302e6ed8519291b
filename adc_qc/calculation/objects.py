from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional

import numpy as np


class ConfigurationError(Exception):
    """Raised when the tool cannot be set up from its configuration."""


@dataclass(frozen=True)
class IndexRange:

    """
    Named, inclusive interval of channel numbers.

    Parameters
    ----------
    first : int
        First channel in the range.
    last : int
        Last channel in the range (inclusive).
    name : str
        Short name used in output names, e.g. 'apa1'.
    label : str
        Human readable label used in titles, e.g. 'APA 1'.

    """

    first: int
    last: int
    name: str = ''
    label: str = ''

    def __post_init__(self):
        if self.first < 0 or self.last < self.first:
            raise ValueError(f'Invalid channel range {self.name!r}: [{self.first}, {self.last}]')

    @property
    def size(self) -> int:
        return self.last - self.first + 1

    def __contains__(self, channel) -> bool:
        return self.first <= channel <= self.last

    def channels(self) -> Iterator[int]:
        return iter(range(self.first, self.last + 1))


@dataclass
class ChannelData:

    """
    Prepared data for one readout channel in one event.

    ``femb_id`` and ``femb_channel`` are filled by a channel map when one is
    available; otherwise they are derived from the channel number.
    """

    channel: int
    run: int = 0
    subrun: int = 0
    event: int = 0
    pedestal: float = 0.0
    pedestal_rms: float = 0.0
    samples: np.ndarray = field(default_factory=lambda: np.zeros(0))
    metadata: Dict[str, float] = field(default_factory=dict)
    femb_id: Optional[int] = None
    femb_channel: Optional[int] = None

    def __post_init__(self):
        self.samples = np.asarray(self.samples, dtype=float).reshape(-1)


@dataclass(frozen=True)
class MetricValue:
    value: float
    units: str = ''


class ChannelHealth(Enum):
    GOOD = 'good'
    BAD = 'bad'
    NOISY = 'noisy'

    @property
    def label(self) -> str:
        return self.value

    @property
    def title(self) -> str:
        return self.value.capitalize()


class QC_derivative:

    """
    Plot (or other output) produced by the QC tools.

    Parameters
    ----------
    content : object
        The figure itself, usually a plotly Figure.
    name : str
        Unique name of the derivative, also used as the key in figure stores.
    content_type : str
        'plotly' for plotly figures.
    description_for_user : str, optional
        Free text shown next to the figure in reports.
    fig_order : float, optional
        Ordering key when several derivatives are shown together.

    """

    def __init__(self, content, name: str, content_type: str, description_for_user: str = '', fig_order: float = 0):
        self.content = content
        self.name = name
        self.content_type = content_type
        self.description_for_user = description_for_user
        self.fig_order = fig_order

    def __repr__(self):
        return f'QC_derivative(name={self.name!r}, content_type={self.content_type!r})'
