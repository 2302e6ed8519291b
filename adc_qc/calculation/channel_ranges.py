from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from adc_qc.calculation.objects import ConfigurationError, IndexRange

ALL_RANGE_NAMES = ('', 'all')

# Wire planes of one protoDUNE APA: (name, label, first offset, channel count).
APA_PLANES: Tuple[Tuple[str, str, int, int], ...] = (
    ('u', 'U', 0, 800),
    ('v', 'V', 800, 800),
    ('z', 'Z', 1600, 960),
)
CHANNELS_PER_APA = 2560


class DictChannelRangeProvider:

    """
    Look up channel ranges by name from a fixed collection.

    The full range spans the lowest to the highest channel of all known
    ranges unless it is given explicitly.
    """

    def __init__(self, ranges: Iterable[IndexRange], full: Optional[IndexRange] = None):
        self._ranges: Dict[str, IndexRange] = {}
        for ran in ranges:
            self._ranges[ran.name] = ran
        if full is None:
            if not self._ranges:
                raise ConfigurationError('A channel range provider needs at least one range.')
            first = min(r.first for r in self._ranges.values())
            last = max(r.last for r in self._ranges.values())
            full = IndexRange(first, last, 'all', 'All')
        self._full = full

    def get(self, name: str) -> Optional[IndexRange]:
        return self._ranges.get(name)

    def full_range(self) -> IndexRange:
        return self._full

    def names(self) -> List[str]:
        return list(self._ranges)


def make_detector_ranges(apa_count: int = 6, channels_per_apa: int = CHANNELS_PER_APA) -> DictChannelRangeProvider:

    """
    Build the APA and wire plane ranges of a protoDUNE-like detector.

    Parameters
    ----------
    apa_count : int
        Number of APAs.
    channels_per_apa : int
        Channels in one APA. The plane ranges are only added for the
        standard 2560 channel layout.

    Returns
    -------
    DictChannelRangeProvider
        Provider with ranges 'apa1', 'apa1u', 'apa1v', 'apa1z', 'apa2', ...

    """

    if apa_count <= 0 or channels_per_apa <= 0:
        raise ConfigurationError('apa_count and channels_per_apa must be positive')
    ranges = []
    for iapa in range(apa_count):
        ch0 = iapa * channels_per_apa
        num = iapa + 1
        ranges.append(IndexRange(ch0, ch0 + channels_per_apa - 1, f'apa{num}', f'APA {num}'))
        if channels_per_apa == CHANNELS_PER_APA:
            for pname, plabel, offset, count in APA_PLANES:
                first = ch0 + offset
                ranges.append(IndexRange(first, first + count - 1, f'apa{num}{pname}', f'APA {num}{plabel}'))
    full = IndexRange(0, apa_count * channels_per_apa - 1, 'all', 'All')
    return DictChannelRangeProvider(ranges, full=full)


class ChannelRangeResolver:

    """Expand configured range names into concrete channel ranges."""

    def __init__(self, provider):
        self.provider = provider

    def all_range(self) -> IndexRange:
        full = self.provider.full_range()
        return IndexRange(full.first, full.last, 'all', 'All')

    def resolve(self, names: Sequence[str]) -> List[IndexRange]:
        if not names:
            return [self.all_range()]
        resolved = []
        for name in names:
            if name in ALL_RANGE_NAMES:
                ran = self.all_range()
            else:
                ran = self.provider.get(name)
                if ran is None:
                    raise ConfigurationError(f'Channel range not found: {name!r}')
            # a repeated range would be aggregated twice per event
            if ran not in resolved:
                resolved.append(ran)
        return resolved
