from __future__ import annotations

from typing import Any, Dict

import altair as alt

alt.data_transformers.disable_max_rows()

BAR_COLOR = "#3B82F6"
ALERT_COLOR = "#F43F5E"


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart (or layered chart) into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()
