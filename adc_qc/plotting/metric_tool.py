"""ADC channel metric tool.

Evaluates one metric for every channel of an event, accumulates the values
per channel across events and makes a metric vs. channel figure for each
configured channel range.

Tools are created by name through :data:`TOOL_REGISTRY`, e.g.::

    tool = make_tool('AdcChannelMetric', config, range_provider=make_detector_ranges())
    result = tool.view_map(channel_map)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from adc_qc.calculation.channel_ranges import ChannelRangeResolver
from adc_qc.calculation.config import STATUS_FIELD, MetricToolConfig
from adc_qc.calculation.metrics import MetricEvaluator
from adc_qc.calculation.objects import ChannelData, ConfigurationError, IndexRange, QC_derivative
from adc_qc.calculation.summary import State, StatisticsAggregator
from adc_qc.plotting.channel_lines import lines_for
from adc_qc.plotting.metric_plots import RangeRenderer, make_summary_figure, metric_axis_label
from adc_qc.plotting.name_templates import NameContext, substitute

LOG_PREFIX = '___ADCqc___: '


@dataclass
class MetricResult:

    """
    Outcome of one call of the tool.

    ``status`` is 0 when everything worked and 1 if any output file could not
    be written. Channels whose metric could not be evaluated are counted in
    ``error_count`` and do not change the status.
    """

    derivatives: Dict[str, QC_derivative] = field(default_factory=dict)
    values: Dict[str, object] = field(default_factory=dict)
    error_count: int = 0
    io_errors: List[str] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    status: int = 0

    def figure(self, name: str):
        return self.derivatives[name].content


class AdcChannelMetric:

    """
    Metric vs. channel plots for ranges of channels.

    Parameters
    ----------
    config : MetricToolConfig
        Tool options.
    range_provider :
        Object with ``get(name) -> IndexRange | None`` and ``full_range()``.
    status_provider : optional
        Object with ``status(channel) -> ChannelHealth``; needed when the
        histogram name contains %STATUS%.
    evaluator : MetricEvaluator, optional
        Metric evaluation. Custom metrics are added with
        ``evaluator.add_evaluator``.

    Raises
    ------
    ConfigurationError
        If a channel range cannot be found or a status provider is missing
        for status plots.

    """

    def __init__(self, config: MetricToolConfig, range_provider, status_provider=None,
                 evaluator: Optional[MetricEvaluator] = None):
        self.config = config
        self.evaluator = evaluator if evaluator is not None else MetricEvaluator()
        self.aggregator = StatisticsAggregator()
        self.use_status = config.use_status
        if self.use_status and status_provider is None:
            raise ConfigurationError('HistName has %STATUS% but no channel status provider was given.')
        self.status_provider = status_provider
        self.ranges: List[IndexRange] = ChannelRangeResolver(range_provider).resolve(config.channel_ranges)
        self._messages: List[str] = []
        self.renderer = RangeRenderer(config, self.evaluator, self.aggregator, status_provider, log=self._log)

        self._log(1, 'Configuration:')
        self._log(1, f'  Metric: {config.metric}')
        self._log(1, f'  Channel ranges: {", ".join(ran.name for ran in self.ranges)}')
        if config.has_metric_range:
            self._log(1, f'  Metric range: [{config.metric_min}, {config.metric_max}]')
        self._log(1, f'  HistName: {config.hist_name}')
        if self.use_status:
            self._log(1, '  Separate plots are made for good, bad and noisy channels.')
        self._log(1, f'  PlotFileName: {config.plot_file_name or "<none>"}')
        self._log(1, f'  RootFileName: {config.root_file_name or "<none>"}')
        self.init_messages = self._take_messages()

    def _log(self, level: int, msg: str) -> None:
        if self.config.log_level >= level:
            print(LOG_PREFIX + msg)
            self._messages.append(msg)

    def _take_messages(self) -> List[str]:
        msgs, self._messages = self._messages, []
        return msgs

    def get_metric(self, acd: ChannelData):
        """Metric value and units for one channel, or None if the metric is unknown."""
        return self.evaluator.evaluate(acd, self.config.metric)

    @property
    def state(self) -> State:
        """Copy of the accumulated state."""
        return self.aggregator.state_copy()

    def view(self, acd: ChannelData) -> MetricResult:
        """Evaluate the metric for a single channel. Nothing is accumulated or plotted."""
        res = MetricResult()
        self.aggregator.begin_event(acd.run, acd.event)
        metric = self.get_metric(acd)
        if metric is None:
            res.error_count = 1
            self._log(2, f'Unable to find metric {self.config.metric} for channel {acd.channel}.')
        else:
            res.values = {'channel': acd.channel, 'metricValue': metric.value, 'metricUnits': metric.units}
        res.messages = self._take_messages()
        return res

    def view_map(self, acds: Mapping[int, ChannelData]) -> MetricResult:

        """
        Evaluate, accumulate and plot the metric for all channels of one event.

        Parameters
        ----------
        acds : mapping
            Channel number -> ChannelData for one event.

        Returns
        -------
        MetricResult
            Figures keyed by their resolved names, the number of channels
            whose metric could not be evaluated and any file write errors.

        """

        res = MetricResult()
        if not acds:
            self._log(2, 'Input channel map is empty.')
            res.messages = self._take_messages()
            return res
        acd0 = next(iter(acds.values()))
        self.aggregator.begin_event(acd0.run, acd0.event)
        self._log(2, f'Processing run {acd0.run} event {acd0.event} with {len(acds)} channels.')
        for ran in self.ranges:
            out = self.renderer.render(acds, ran)
            res.derivatives.update(out.derivatives)
            res.error_count += out.error_count
            res.io_errors.extend(out.io_errors)
        if res.error_count:
            self._log(2, f'Metric {self.config.metric} not found for {res.error_count} channel(s).')
        res.status = 1 if res.io_errors else 0
        res.values = {'channelCount': len(acds), 'rangeCount': len(self.ranges)}
        res.messages = self._take_messages()
        return res

    def summary_frame(self, ran: IndexRange):
        return self.aggregator.summary_frame(ran)

    def summary_derivatives(self) -> Dict[str, QC_derivative]:

        """
        Mean of the metric over all processed events with its error, one
        figure per range. Names are the histogram names for the last event
        with '_mean' appended.
        """

        cfg = self.config
        state = self.state
        derivs = {}
        for ran in self.ranges:
            ctx = NameContext(run=state.last_run, event=state.last_event, chan1=ran.first, chan2=ran.last,
                              range_name=ran.name, range_label=ran.label)
            name = substitute(cfg.hist_name, ctx)
            title = substitute(cfg.hist_title, ctx)
            # the mean covers all channels whatever their status
            name = name.replace(STATUS_FIELD, 'all')
            title = title.replace(STATUS_FIELD, 'All')
            name = name + '_mean'
            label = metric_axis_label(substitute(cfg.metric_label, ctx), cfg.metric, '')
            lines = lines_for(ran, cfg.channel_line_modulus, cfg.channel_line_pattern)
            fig = make_summary_figure(ran, self.summary_frame(ran), f'{title} (mean of {state.event_count} events)',
                                      label, lines=lines)
            derivs[name] = QC_derivative(content=fig, name=name, content_type='plotly',
                                         description_for_user=f'Mean {cfg.metric} per channel with the error on the mean.')
        return derivs


ToolFactory = Callable[..., AdcChannelMetric]

TOOL_REGISTRY: Dict[str, ToolFactory] = {}


def register_tool(name: str, factory: ToolFactory) -> None:
    if name in TOOL_REGISTRY:
        raise ValueError(f'Tool {name!r} is already registered.')
    TOOL_REGISTRY[name] = factory


def make_tool(name: str, config: MetricToolConfig, **collaborators) -> AdcChannelMetric:
    try:
        factory = TOOL_REGISTRY[name]
    except KeyError:
        raise ConfigurationError(f'Unknown tool type {name!r}')
    return factory(config, **collaborators)


register_tool('AdcChannelMetric', AdcChannelMetric)
