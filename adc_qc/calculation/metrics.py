from __future__ import annotations

from typing import Callable, List, Optional

import numpy as np

from adc_qc.calculation.objects import ChannelData, MetricValue

# Signature shared by the built-in evaluator and custom ones.
# None means the metric is not known for this channel.
MetricFunction = Callable[[ChannelData, str], Optional[MetricValue]]

ADC_UNITS = 'ADC count'

# protoDUNE-SP: 128 channels per FEMB, 20 FEMBs per APA, 120 FEMBs in total.
CHANNELS_PER_FEMB = 128
FEMBS_PER_APA = 20

BUILTIN_METRICS = (
    'pedestal',
    'pedestalRms',
    'fembID',
    'apaFembID',
    'fembChannel',
    'rawRms',
    'rawTailFraction',
)


def raw_rms(samples: np.ndarray, pedestal: float) -> float:

    """
    RMS of the pedestal subtracted raw samples.

    Returns 0 when there are no samples.
    """

    samples = np.asarray(samples, dtype=float)
    if samples.size == 0:
        return 0.0
    dev = samples - pedestal
    return float(np.sqrt(np.mean(dev * dev)))


def raw_tail_fraction(samples: np.ndarray, pedestal: float, noise: float, nsigma: float = 3.0) -> float:

    """
    Fraction of samples with abs(sample - pedestal) > nsigma*noise.

    With zero noise every sample away from the pedestal is in the tail.
    Returns 0 when there are no samples.
    """

    samples = np.asarray(samples, dtype=float)
    if samples.size == 0:
        return 0.0
    ntail = np.count_nonzero(np.abs(samples - pedestal) > nsigma * noise)
    return float(ntail) / samples.size


class MetricEvaluator:

    """
    Evaluate a named metric for one channel.

    Custom evaluators registered with :meth:`add_evaluator` are asked first,
    in the order they were added. The first one returning a value wins,
    otherwise the built-in metrics and finally the channel metadata are used.

    Parameters
    ----------
    channels_per_femb : int
        Number of channels read out by one front-end board.
    fembs_per_apa : int
        Number of front-end boards in one APA.

    """

    def __init__(self, channels_per_femb: int = CHANNELS_PER_FEMB, fembs_per_apa: int = FEMBS_PER_APA):
        if channels_per_femb <= 0 or fembs_per_apa <= 0:
            raise ValueError('channels_per_femb and fembs_per_apa must be positive')
        self.channels_per_femb = channels_per_femb
        self.fembs_per_apa = fembs_per_apa
        self._custom: List[MetricFunction] = []

    def add_evaluator(self, func: MetricFunction) -> MetricFunction:
        """Register a custom evaluator. Can be used as a decorator."""
        self._custom.append(func)
        return func

    def femb_id(self, acd: ChannelData) -> int:
        if acd.femb_id is not None:
            return int(acd.femb_id)
        return acd.channel // self.channels_per_femb

    def femb_channel(self, acd: ChannelData) -> int:
        if acd.femb_channel is not None:
            return int(acd.femb_channel)
        return acd.channel % self.channels_per_femb

    def evaluate(self, acd: ChannelData, metric: str) -> Optional[MetricValue]:
        for func in self._custom:
            res = func(acd, metric)
            if res is not None:
                return res
        return self.evaluate_builtin(acd, metric)

    def evaluate_builtin(self, acd: ChannelData, metric: str) -> Optional[MetricValue]:
        if metric == 'pedestal':
            return MetricValue(float(acd.pedestal), ADC_UNITS)
        if metric == 'pedestalRms':
            return MetricValue(float(acd.pedestal_rms), ADC_UNITS)
        if metric == 'fembID':
            return MetricValue(float(self.femb_id(acd)))
        if metric == 'apaFembID':
            return MetricValue(float(self.femb_id(acd) % self.fembs_per_apa))
        if metric == 'fembChannel':
            return MetricValue(float(self.femb_channel(acd)))
        if metric == 'rawRms':
            return MetricValue(raw_rms(acd.samples, acd.pedestal), ADC_UNITS)
        if metric == 'rawTailFraction':
            return MetricValue(raw_tail_fraction(acd.samples, acd.pedestal, acd.pedestal_rms))
        if metric in acd.metadata:
            return MetricValue(float(acd.metadata[metric]))
        return None
