from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from adc_qc.calculation.channel_status import health_counts, split_by_health
from adc_qc.calculation.config import STATUS_FIELD, MetricToolConfig
from adc_qc.calculation.metrics import MetricEvaluator
from adc_qc.calculation.objects import ChannelData, ChannelHealth, IndexRange, QC_derivative
from adc_qc.calculation.summary import StatisticsAggregator
from adc_qc.plotting.channel_lines import lines_for
from adc_qc.plotting.figure_store import FigureStore
from adc_qc.plotting.name_templates import NameContext, substitute, substitute_status


@dataclass
class RangeOutput:
    derivatives: Dict[str, QC_derivative] = field(default_factory=dict)
    error_count: int = 0
    io_errors: List[str] = field(default_factory=list)


def metric_axis_label(label: str, metric: str, units: str) -> str:
    if label:
        return label
    return f'{metric} [{units}]' if units else metric


def make_metric_figure(
        ran: IndexRange,
        values: Mapping[int, float],
        title: str,
        metric_label: str,
        graph: bool = False,
        lines: Sequence[int] = (),
        metric_range: Optional[Sequence[float]] = None,
        size: Sequence[int] = (0, 0)):

    """
    Plot a metric against channel number for one channel range.

    Parameters
    ----------
    ran : IndexRange
        Channel range on the x axis.
    values : dict
        Channel -> metric value. Channels without a value are left empty.
    title : str
        Figure title.
    metric_label : str
        Y axis title.
    graph : bool
        If True the values are drawn as markers, otherwise as a histogram
        with one bin per channel.
    lines : sequence of int
        Channels where vertical boundary lines are drawn.
    metric_range : (float, float), optional
        Fixed y axis range. Autoscaled if not given.
    size : (int, int)
        Width and height in pixels. Plotly default if either is 0.

    Returns
    -------
    fig : plotly.graph_objects.Figure

    """

    fig = go.Figure()
    if graph:
        chans = sorted(values)
        fig.add_trace(go.Scatter(
            x=chans,
            y=[values[ch] for ch in chans],
            mode='markers',
            marker=dict(size=4, color='#1f77b4'),
            name=metric_label,
            hovertemplate='Channel %{x}<br>' + metric_label + ': %{y}<extra></extra>',
        ))
    else:
        chans = list(range(ran.first, ran.last + 1))
        # None leaves a gap for channels without a value
        yvals = [values.get(ch) for ch in chans]
        fig.add_trace(go.Scatter(
            x=chans,
            y=yvals,
            mode='lines',
            line=dict(shape='hvh', width=1, color='#1f77b4'),
            connectgaps=False,
            name=metric_label,
            hovertemplate='Channel %{x}<br>' + metric_label + ': %{y}<extra></extra>',
        ))

    for ch in lines:
        fig.add_vline(x=ch, line_width=1, line_dash='dot', line_color='rgba(108,117,125,0.60)')

    fig.update_layout(
        title={
            'text': title,
            'x': 0.5,
            'xanchor': 'center'},
        xaxis_title='Channel',
        yaxis_title=metric_label,
        showlegend=False)
    # keep the drawn channel range fixed, as for a histogram
    fig.update_xaxes(range=[ran.first - 0.5, ran.last + 0.5])
    if metric_range is not None:
        fig.update_yaxes(range=list(metric_range))
    if size[0] > 0 and size[1] > 0:
        fig.update_layout(width=size[0], height=size[1])
    return fig


def make_summary_figure(ran: IndexRange, frame: pd.DataFrame, title: str, metric_label: str, lines: Sequence[int] = ()):

    """
    Mean of the metric over all calls with the error on the mean, per channel.

    Channels that were never filled are not drawn.
    """

    df = frame[frame['count'] > 0]
    fig = go.Figure(go.Scatter(
        x=df['channel'],
        y=df['mean'],
        error_y=dict(type='data', array=df['dmean'], visible=True, thickness=1),
        mode='markers',
        marker=dict(size=4),
        customdata=np.column_stack([df['count'], df['rms']]) if len(df) else None,
        hovertemplate='Channel %{x}<br>mean: %{y}<br>count: %{customdata[0]}<br>rms: %{customdata[1]}<extra></extra>',
    ))
    for ch in lines:
        fig.add_vline(x=ch, line_width=1, line_dash='dot', line_color='rgba(108,117,125,0.60)')
    fig.update_layout(
        title={'text': title, 'x': 0.5, 'xanchor': 'center'},
        xaxis_title='Channel',
        yaxis_title=metric_label,
        showlegend=False)
    fig.update_xaxes(range=[ran.first - 0.5, ran.last + 0.5])
    return fig


def write_figure(fig: go.Figure, path) -> None:
    """Write a figure, replacing any existing file. The format follows the suffix."""
    path = Path(path)
    if path.parent and not path.parent.exists():
        os.makedirs(path.parent, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix in ('.html', '.htm'):
        fig.write_html(str(path), include_plotlyjs='cdn')
    elif suffix == '.json':
        fig.write_json(str(path))
    else:
        # png, pdf, svg, ... need kaleido
        fig.write_image(str(path))


def status_file_name(file_name: str, health: ChannelHealth) -> str:
    if STATUS_FIELD in file_name:
        return substitute_status(file_name, health)
    path = Path(file_name)
    return str(path.with_name(f'{path.stem}_{health.label}{path.suffix}'))


class RangeRenderer:

    """
    Make the metric figure(s) for one channel range and one event.

    Parameters
    ----------
    config : MetricToolConfig
        Tool options.
    evaluator : MetricEvaluator
        Metric evaluation for single channels.
    aggregator : StatisticsAggregator
        Receives every evaluated value.
    status_provider : optional
        Object with ``status(channel) -> ChannelHealth``. Required when the
        histogram name contains %STATUS%.
    log : callable, optional
        ``log(level, message)``; messages are printed by the tool.

    """

    def __init__(self, config: MetricToolConfig, evaluator: MetricEvaluator, aggregator: StatisticsAggregator,
                 status_provider=None, log: Optional[Callable[[int, str], None]] = None):
        self.config = config
        self.evaluator = evaluator
        self.aggregator = aggregator
        self.status_provider = status_provider
        self._log = log if log is not None else (lambda level, msg: None)
        self.use_status = config.use_status

    def clip(self, val: float) -> float:
        if not self.config.has_metric_range:
            return val
        return min(max(val, self.config.metric_min), self.config.metric_max)

    def evaluate_range(self, acds: Mapping[int, ChannelData], ran: IndexRange, out: RangeOutput):
        """Evaluate, clip and record the metric for the channels of the range in the map."""
        values: Dict[int, float] = {}
        units = ''
        for ch in sorted(ch for ch in acds if ch in ran):
            acd = acds[ch]
            res = self.evaluator.evaluate(acd, self.config.metric)
            if res is None:
                out.error_count += 1
                self._log(2, f'Unable to find metric {self.config.metric} for channel {ch}.')
                continue
            if not np.isfinite(res.value):
                out.error_count += 1
                self._log(2, f'Metric {self.config.metric} for channel {ch} is not finite: {res.value}.')
                continue
            val = self.clip(res.value)
            self.aggregator.update(ran, ch - ran.first, val)
            values[ch] = val
            units = units or res.units
            self._log(3, f'{ran.name} channel {ch}: {self.config.metric} = {val}')
        return values, units

    def render(self, acds: Mapping[int, ChannelData], ran: IndexRange) -> RangeOutput:
        out = RangeOutput()
        if not acds:
            return out
        values, units = self.evaluate_range(acds, ran, out)

        cfg = self.config
        acd0 = next(iter(acds.values()))
        ctx = NameContext.for_range(acd0, ran)
        name = substitute(cfg.hist_name, ctx)
        title = substitute(cfg.hist_title, ctx)
        metric_label = metric_axis_label(substitute(cfg.metric_label, ctx), cfg.metric, units)
        plot_file = substitute(cfg.plot_file_name, ctx)
        lines = lines_for(ran, cfg.channel_line_modulus, cfg.channel_line_pattern)
        metric_range = (cfg.metric_min, cfg.metric_max) if cfg.has_metric_range else None
        graph = bool(plot_file)

        if self.use_status:
            groups = split_by_health(values, self.status_provider)
            self._log(2, f'{ran.name} channel status counts: {health_counts(groups)}')
            jobs = [
                (substitute_status(name, health),
                 substitute_status(title, health, title=True),
                 {ch: values[ch] for ch in groups[health]},
                 status_file_name(plot_file, health) if plot_file else '')
                for health in ChannelHealth
            ]
        else:
            jobs = [(name, title, values, plot_file)]

        figures = {}
        for hname, htitle, hvalues, hfile in jobs:
            fig = make_metric_figure(ran, hvalues, htitle, metric_label, graph=graph, lines=lines,
                                     metric_range=metric_range, size=(cfg.plot_size_x, cfg.plot_size_y))
            out.derivatives[hname] = QC_derivative(content=fig, name=hname, content_type='plotly',
                                                   description_for_user=f'{cfg.metric} for {ran.label}')
            figures[hname] = fig
            if hfile:
                try:
                    write_figure(fig, hfile)
                    self._log(2, f'Wrote plot {hfile}')
                except (OSError, ValueError) as exc:
                    msg = f'Unable to write plot {hfile}: {exc}'
                    out.io_errors.append(msg)
                    self._log(1, msg)

        if cfg.root_file_name:
            store_name = substitute(cfg.root_file_name, ctx)
            try:
                FigureStore(store_name).update(figures)
                self._log(2, f'Wrote {len(figures)} figure(s) to {store_name}')
            except (OSError, ValueError) as exc:
                msg = f'Unable to write figure store {store_name}: {exc}'
                out.io_errors.append(msg)
                self._log(1, msg)
        return out
