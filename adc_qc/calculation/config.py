"""Configuration of the ADC channel metric tool.

Settings are read with configparser from an ini file. The default file is
``adc_qc/settings/settings.ini``; the tool options live in the
``[AdcChannelMetric]`` section and the detector description in ``[Detector]``.
Option names are CamelCase (``LogLevel``, ``Metric``, ...).
"""

from __future__ import annotations

import configparser
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from adc_qc.calculation.objects import ConfigurationError

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[1] / 'settings' / 'settings.ini'
TOOL_SECTION = 'AdcChannelMetric'
DETECTOR_SECTION = 'Detector'
STATUS_FIELD = '%STATUS%'

# Option name in the settings -> dataclass attribute.
TOOL_OPTIONS = {
    'LogLevel': 'log_level',
    'Metric': 'metric',
    'ChannelRanges': 'channel_ranges',
    'MetricMin': 'metric_min',
    'MetricMax': 'metric_max',
    'ChannelLineModulus': 'channel_line_modulus',
    'ChannelLinePattern': 'channel_line_pattern',
    'HistName': 'hist_name',
    'HistTitle': 'hist_title',
    'MetricLabel': 'metric_label',
    'PlotSizeX': 'plot_size_x',
    'PlotSizeY': 'plot_size_y',
    'PlotFileName': 'plot_file_name',
    'RootFileName': 'root_file_name',
}

DETECTOR_OPTIONS = {
    'ApaCount': 'apa_count',
    'ChannelsPerApa': 'channels_per_apa',
    'ChannelsPerFemb': 'channels_per_femb',
    'FembsPerApa': 'fembs_per_apa',
    'BadChannels': 'bad_channels',
    'NoisyChannels': 'noisy_channels',
}


def _split_list(value) -> List[str]:
    if isinstance(value, str):
        # An explicitly empty entry ("" or '') selects all channels.
        items = [item.strip() for item in value.split(',')]
        if items == ['']:
            return []
        return [item.strip('"\'') for item in items]
    return [str(item) for item in value]


def _to_int(key: str, value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f'{key} must be an integer, got {value!r}')


def _to_optional_float(key: str, value) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f'{key} must be a number, got {value!r}')


def _to_int_list(key: str, value) -> List[int]:
    return [_to_int(key, item) for item in _split_list(value) if str(item).strip()]


def check_template(key: str, template: str) -> None:
    """Templates must have balanced '%' delimiters."""
    if template.count('%') % 2:
        raise ConfigurationError(f'{key} has an unmatched % in {template!r}')


@dataclass
class MetricToolConfig:

    """
    Options of one metric tool instance.

    Attributes
    ----------
    log_level : int
        0 = silent, 1 = construction, 2 = each event, >2 = each channel.
    metric : str
        Name of the plotted metric.
    channel_ranges : list of str
        Names of the channel ranges to plot. Empty, '' or 'all' means all channels.
    metric_min, metric_max : float or None
        Metric axis range. Values outside are shown at the nearest limit.
    channel_line_modulus : int
        Repeat spacing of the channel boundary lines (0 = no repetition).
    channel_line_pattern : list of int
        Channel offsets of the boundary lines.
    hist_name, hist_title, metric_label : str
        Templates for the figure name, title and metric axis label.
    plot_size_x, plot_size_y : int
        Figure size in pixels. 0 keeps the plotly default.
    plot_file_name : str
        Template for the plot file. Blank means no file.
    root_file_name : str
        Figure store file that is created or updated. Blank means no store.

    """

    log_level: int = 1
    metric: str = 'pedestal'
    channel_ranges: List[str] = field(default_factory=list)
    metric_min: Optional[float] = None
    metric_max: Optional[float] = None
    channel_line_modulus: int = 0
    channel_line_pattern: List[int] = field(default_factory=list)
    hist_name: str = 'hadcmet_%CRNAME%_run%RUN%_evt%EVENT%'
    hist_title: str = 'Run %RUN% event %EVENT% %CRLABEL%'
    metric_label: str = ''
    plot_size_x: int = 0
    plot_size_y: int = 0
    plot_file_name: str = ''
    root_file_name: str = ''

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if not self.metric:
            raise ConfigurationError('Metric must not be empty.')
        if self.plot_size_x < 0 or self.plot_size_y < 0:
            raise ConfigurationError('PlotSizeX and PlotSizeY must not be negative.')
        if self.channel_line_modulus < 0 or any(p < 0 for p in self.channel_line_pattern):
            raise ConfigurationError('ChannelLineModulus and ChannelLinePattern must not be negative.')
        for key in ('HistName', 'HistTitle', 'MetricLabel', 'PlotFileName', 'RootFileName'):
            check_template(key, getattr(self, TOOL_OPTIONS[key]))
        if not self.hist_name:
            raise ConfigurationError('HistName must not be empty.')

    @property
    def use_status(self) -> bool:
        return STATUS_FIELD in self.hist_name

    @property
    def has_metric_range(self) -> bool:
        lo, hi = self.metric_min, self.metric_max
        return lo is not None and hi is not None and math.isfinite(lo) and math.isfinite(hi) and lo < hi

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> 'MetricToolConfig':
        """Build from a mapping keyed by option names (``LogLevel``) or attribute names."""
        attrs = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            attr = TOOL_OPTIONS.get(key, key)
            if attr not in attrs:
                raise ConfigurationError(f'Unknown option {key!r}')
            kwargs[attr] = value
        return cls(**_convert_tool_values(kwargs))

    @classmethod
    def from_ini(cls, path=None, section: str = TOOL_SECTION) -> 'MetricToolConfig':
        cfg = read_settings(path)
        if section not in cfg:
            raise ConfigurationError(f'Section [{section}] not found in settings.')
        values = {}
        lowered = {opt.lower(): opt for opt in TOOL_OPTIONS}
        for key, value in cfg[section].items():
            # configparser lower-cases the option names
            if key in lowered:
                values[lowered[key]] = value
            elif key not in cfg.defaults():
                raise ConfigurationError(f'Unknown option {key!r} in [{section}]')
        return cls.from_mapping(values)


def _convert_tool_values(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(kwargs)
    for attr in ('log_level', 'channel_line_modulus', 'plot_size_x', 'plot_size_y'):
        if attr in out:
            out[attr] = _to_int(attr, out[attr])
    for attr in ('metric_min', 'metric_max'):
        if attr in out:
            out[attr] = _to_optional_float(attr, out[attr])
    if 'channel_ranges' in out:
        out['channel_ranges'] = _split_list(out['channel_ranges'])
    if 'channel_line_pattern' in out:
        out['channel_line_pattern'] = _to_int_list('channel_line_pattern', out['channel_line_pattern'])
    for attr in ('metric', 'hist_name', 'hist_title', 'metric_label', 'plot_file_name', 'root_file_name'):
        if attr in out:
            out[attr] = '' if out[attr] is None else str(out[attr]).strip()
    return out


@dataclass
class DetectorConfig:

    """Detector layout and channel health lists."""

    apa_count: int = 6
    channels_per_apa: int = 2560
    channels_per_femb: int = 128
    fembs_per_apa: int = 20
    bad_channels: List[int] = field(default_factory=list)
    noisy_channels: List[int] = field(default_factory=list)

    @classmethod
    def from_ini(cls, path=None, section: str = DETECTOR_SECTION) -> 'DetectorConfig':
        cfg = read_settings(path)
        if section not in cfg:
            return cls()
        sec = cfg[section]
        kwargs: Dict[str, Any] = {}
        for opt, attr in DETECTOR_OPTIONS.items():
            if opt.lower() not in sec:
                continue
            if attr.endswith('_channels'):
                kwargs[attr] = _to_int_list(opt, sec[opt])
            else:
                kwargs[attr] = _to_int(opt, sec[opt])
        return cls(**kwargs)


def read_settings(path=None) -> configparser.ConfigParser:
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    if not settings_path.is_file():
        raise ConfigurationError(f'Settings file not found: {settings_path}')
    # Templates use %...% fields, so no interpolation.
    cfg = configparser.ConfigParser(interpolation=None)
    try:
        cfg.read(settings_path)
    except configparser.Error as exc:
        raise ConfigurationError(f'Cannot parse settings file {settings_path}: {exc}')
    return cfg
