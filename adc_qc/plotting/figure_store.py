from __future__ import annotations

import json
from pathlib import Path
from typing import Dict

import plotly.graph_objects as go
import plotly.io as pio
from plotly.utils import PlotlyJSONEncoder


class FigureStore:

    """
    JSON file holding plotly figures by name.

    An existing file is updated: figures with a new name are added, figures
    with an existing name are replaced, all others are kept.
    """

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            raise ValueError(f'Figure store {self.path} does not hold a name -> figure mapping.')
        return payload

    def names(self):
        return sorted(self.load())

    def get(self, name: str) -> go.Figure:
        return pio.from_json(json.dumps(self.load()[name]))

    def update(self, figures: Dict[str, go.Figure]) -> None:
        payload = self.load()
        for name, fig in figures.items():
            payload[name] = fig.to_plotly_json()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        tmp_path.write_text(json.dumps(payload, cls=PlotlyJSONEncoder), encoding='utf-8')
        tmp_path.replace(self.path)
