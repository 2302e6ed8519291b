"""Tests for channel ranges, range resolution and channel status."""

from __future__ import annotations

import pytest

from adc_qc.calculation.channel_ranges import (
    ChannelRangeResolver,
    DictChannelRangeProvider,
    make_detector_ranges,
)
from adc_qc.calculation.channel_status import StaticChannelStatusProvider, health_counts, split_by_health
from adc_qc.calculation.objects import ChannelHealth, ConfigurationError, IndexRange


class TestIndexRange:
    """Tests for IndexRange."""

    def test_size_and_contains(self):
        ran = IndexRange(10, 19, "r", "R")
        assert ran.size == 10
        assert 10 in ran
        assert 19 in ran
        assert 20 not in ran
        assert list(ran.channels())[:2] == [10, 11]

    def test_single_channel(self):
        assert IndexRange(5, 5).size == 1

    def test_invalid(self):
        with pytest.raises(ValueError):
            IndexRange(10, 9, "bad")

    def test_hashable(self):
        assert {IndexRange(0, 1, "a", "A"): 1}[IndexRange(0, 1, "a", "A")] == 1


class TestDetectorRanges:
    """Tests for the protoDUNE-like range builder."""

    def test_apa_ranges(self):
        provider = make_detector_ranges(apa_count=6)
        assert provider.get("apa1") == IndexRange(0, 2559, "apa1", "APA 1")
        assert provider.get("apa6") == IndexRange(12800, 15359, "apa6", "APA 6")
        assert provider.full_range() == IndexRange(0, 15359, "all", "All")

    def test_plane_ranges(self):
        provider = make_detector_ranges(apa_count=2)
        assert provider.get("apa2u") == IndexRange(2560, 3359, "apa2u", "APA 2U")
        assert provider.get("apa2v") == IndexRange(3360, 4159, "apa2v", "APA 2V")
        assert provider.get("apa2z") == IndexRange(4160, 5119, "apa2z", "APA 2Z")

    def test_non_standard_apa_has_no_planes(self):
        provider = make_detector_ranges(apa_count=1, channels_per_apa=100)
        assert provider.names() == ["apa1"]

    def test_invalid(self):
        with pytest.raises(ConfigurationError):
            make_detector_ranges(apa_count=0)


class TestChannelRangeResolver:
    """Tests for ChannelRangeResolver."""

    def setup_method(self):
        self.provider = DictChannelRangeProvider([
            IndexRange(0, 99, "first", "First"),
            IndexRange(100, 199, "second", "Second"),
        ])
        self.resolver = ChannelRangeResolver(self.provider)

    def test_empty_list_is_all(self):
        assert self.resolver.resolve([]) == [IndexRange(0, 199, "all", "All")]

    @pytest.mark.parametrize("name", ["", "all"])
    def test_sentinel_is_all(self, name):
        ranges = self.resolver.resolve([name])
        assert len(ranges) == 1
        assert ranges[0].label == "All"
        assert (ranges[0].first, ranges[0].last) == (0, 199)

    def test_named_ranges_keep_order(self):
        ranges = self.resolver.resolve(["second", "first"])
        assert [r.name for r in ranges] == ["second", "first"]

    def test_mixed(self):
        ranges = self.resolver.resolve(["first", "all"])
        assert [r.name for r in ranges] == ["first", "all"]

    @pytest.mark.parametrize("names", [["", "all"], ["all", ""], ["all", "all"]])
    def test_repeated_all_resolved_once(self, names):
        assert self.resolver.resolve(names) == [IndexRange(0, 199, "all", "All")]

    def test_repeated_name_keeps_first(self):
        ranges = self.resolver.resolve(["second", "first", "second"])
        assert [r.name for r in ranges] == ["second", "first"]

    def test_unknown_range(self):
        with pytest.raises(ConfigurationError, match="nope"):
            self.resolver.resolve(["first", "nope"])

    def test_empty_provider(self):
        with pytest.raises(ConfigurationError):
            DictChannelRangeProvider([])


class TestChannelStatus:
    """Tests for the static channel status provider."""

    def test_status(self):
        provider = StaticChannelStatusProvider(bad=[1, 3], noisy=[3, 4])
        assert provider.status(0) is ChannelHealth.GOOD
        assert provider.status(1) is ChannelHealth.BAD
        # bad wins over noisy
        assert provider.status(3) is ChannelHealth.BAD
        assert provider.status(4) is ChannelHealth.NOISY

    def test_split(self):
        provider = StaticChannelStatusProvider(bad=[1], noisy=[4])
        groups = split_by_health([0, 1, 2, 4], provider)
        assert groups[ChannelHealth.GOOD] == [0, 2]
        assert groups[ChannelHealth.BAD] == [1]
        assert groups[ChannelHealth.NOISY] == [4]
        assert health_counts(groups) == {"good": 2, "bad": 1, "noisy": 1}

    def test_split_empty(self):
        groups = split_by_health([], StaticChannelStatusProvider())
        assert set(groups) == set(ChannelHealth)
        assert all(chans == [] for chans in groups.values())
