from __future__ import annotations

from typing import Dict, Iterable, List, Mapping

from adc_qc.calculation.objects import ChannelHealth


class StaticChannelStatusProvider:

    """
    Channel health from fixed lists of bad and noisy channels.

    A channel listed as both bad and noisy is reported as bad.
    """

    def __init__(self, bad: Iterable[int] = (), noisy: Iterable[int] = ()):
        self.bad = frozenset(int(ch) for ch in bad)
        self.noisy = frozenset(int(ch) for ch in noisy)

    def is_bad(self, channel: int) -> bool:
        return channel in self.bad

    def is_noisy(self, channel: int) -> bool:
        return channel in self.noisy

    def status(self, channel: int) -> ChannelHealth:
        if self.is_bad(channel):
            return ChannelHealth.BAD
        if self.is_noisy(channel):
            return ChannelHealth.NOISY
        return ChannelHealth.GOOD


def split_by_health(channels: Iterable[int], provider) -> Dict[ChannelHealth, List[int]]:
    """Group channels by health, keeping their order. Every variant is present."""
    groups: Dict[ChannelHealth, List[int]] = {health: [] for health in ChannelHealth}
    for ch in channels:
        groups[provider.status(ch)].append(ch)
    return groups


def health_counts(groups: Mapping[ChannelHealth, List[int]]) -> Dict[str, int]:
    return {health.label: len(chans) for health, chans in groups.items()}
