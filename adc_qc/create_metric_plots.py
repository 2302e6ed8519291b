"""Command-line helper to run the ADC channel metric tool over a channel table."""

from __future__ import annotations

import argparse
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from adc_qc.calculation.channel_ranges import make_detector_ranges
from adc_qc.calculation.channel_status import StaticChannelStatusProvider
from adc_qc.calculation.config import TOOL_SECTION, DetectorConfig, MetricToolConfig
from adc_qc.calculation.metrics import MetricEvaluator
from adc_qc.calculation.objects import ChannelData
from adc_qc.plotting.metric_plots import write_figure
from adc_qc.plotting.metric_tool import make_tool

REQUIRED_COLUMNS = ('run', 'subrun', 'event', 'channel', 'pedestal', 'pedestal_rms')
SAMPLE_COLUMN = 'samples'
EventKey = Tuple[int, int, int]


def _parse_samples(text) -> np.ndarray:
    if text is None or (isinstance(text, float) and np.isnan(text)):
        return np.zeros(0)
    return np.array(str(text).split(), dtype=float)


def load_channel_table(path) -> Dict[EventKey, Dict[int, ChannelData]]:

    """
    Read a tab separated channel table and group it by event.

    Required columns are run, subrun, event, channel, pedestal and
    pedestal_rms. An optional 'samples' column holds the raw ADC samples
    separated by spaces. Every other numeric column becomes channel metadata.

    Returns
    -------
    dict
        (run, subrun, event) -> {channel: ChannelData}, in file order.

    """

    df = pd.read_csv(path, sep='\t')
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f'Missing columns in {path}: {", ".join(missing)}')
    meta_cols = [col for col in df.columns
                 if col not in REQUIRED_COLUMNS and col != SAMPLE_COLUMN and pd.api.types.is_numeric_dtype(df[col])]

    events: Dict[EventKey, Dict[int, ChannelData]] = OrderedDict()
    for rec in df.to_dict(orient="records"):
        key = (int(rec['run']), int(rec['subrun']), int(rec['event']))
        acd = ChannelData(
            channel=int(rec['channel']),
            run=key[0],
            subrun=key[1],
            event=key[2],
            pedestal=float(rec['pedestal']),
            pedestal_rms=float(rec['pedestal_rms']),
            samples=_parse_samples(rec.get(SAMPLE_COLUMN)),
            metadata={col: float(rec[col]) for col in meta_cols if pd.notna(rec[col])},
        )
        events.setdefault(key, {})[acd.channel] = acd
    return events


def make_metric_plots(input_tsv: str, settings: Optional[str] = None, section: str = TOOL_SECTION,
                      output_dir: Optional[str] = None) -> int:

    """
    Run the metric tool event by event and write the summary outputs.

    Parameters
    ----------
    input_tsv : str
        Channel table, see :func:`load_channel_table`.
    settings : str, optional
        Settings ini file. The packaged settings are used if not given.
    section : str
        Settings section holding the tool options.
    output_dir : str, optional
        Folder for the per-range summary tables and mean plots.

    Returns
    -------
    int
        Number of channels whose metric could not be evaluated plus the
        number of failed file writes.

    """

    config = MetricToolConfig.from_ini(settings, section=section)
    detector = DetectorConfig.from_ini(settings)
    tool = make_tool(
        'AdcChannelMetric',
        config,
        range_provider=make_detector_ranges(detector.apa_count, detector.channels_per_apa),
        status_provider=StaticChannelStatusProvider(detector.bad_channels, detector.noisy_channels),
        evaluator=MetricEvaluator(detector.channels_per_femb, detector.fembs_per_apa),
    )

    nerr = 0
    events = load_channel_table(input_tsv)
    for acds in events.values():
        result = tool.view_map(acds)
        nerr += result.error_count + len(result.io_errors)

    state = tool.state
    print(f'___ADCqc___: Processed {state.event_count} event(s) from {state.run_count} run(s).')

    if output_dir is not None:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        for ran in tool.ranges:
            tsv_path = out / f'{config.metric}_{ran.name}_summary.tsv'
            tool.summary_frame(ran).to_csv(tsv_path, sep='\t', index=False)
        for name, deriv in tool.summary_derivatives().items():
            try:
                write_figure(deriv.content, out / f'{name}.html')
            except (OSError, ValueError) as exc:
                print(f'___ADCqc___: Unable to write summary plot {name}: {exc}')
                nerr += 1
        print(f'___ADCqc___: Summaries written to {out}')
    return nerr


def get_metric_plots() -> None:
    parser = argparse.ArgumentParser(
        description=(
            "Plot one ADC channel metric vs. channel for each event of a channel table: "
            "--inputdata <table.tsv> [--settings <ini>] [--section <name>] [--output_dir <folder>]"
        )
    )
    parser.add_argument("--inputdata", type=str, required=True,
                        help="Tab separated channel table (run, subrun, event, channel, pedestal, pedestal_rms, samples)")
    parser.add_argument("--settings", type=str, required=False,
                        help="Optional settings ini file. The packaged settings.ini is used by default.")
    parser.add_argument("--section", type=str, required=False, default=TOOL_SECTION,
                        help="Settings section with the tool options.")
    parser.add_argument("--output_dir", type=str, required=False,
                        help="Optional folder for per-range summary tables and mean plots.")
    args = parser.parse_args()

    nerr = make_metric_plots(args.inputdata, settings=args.settings, section=args.section, output_dir=args.output_dir)
    if nerr:
        print(f"___ADCqc___: {nerr} channel(s) or file(s) could not be processed.")


if __name__ == "__main__":
    get_metric_plots()
