# reports/charts.py
"""
Gráficos (matplotlib) dos relatórios em PDF.

- Barras agrupadas a partir de uma seção do modelo (Section.chart).
- Devolve PNG em bytes para ser embutido pelo reportlab.
"""

from __future__ import annotations

from io import BytesIO
from typing import Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from gestobra_shared.backend import as_decimal  # noqa: E402
from reports.models import Section  # noqa: E402

CORES = ("#1f4e79", "#dc3545", "#28a745", "#ff8c00")
MAX_BARRAS = 12


def _fig_to_png(fig) -> bytes:
    """Converte figura matplotlib em PNG."""
    buf = BytesIO()
    fig.savefig(buf, format="png", bbox_inches="tight", dpi=160)
    plt.close(fig)
    return buf.getvalue()


def section_chart_png(section: Section) -> Optional[bytes]:
    """Barras da seção (no máximo MAX_BARRAS rótulos); None se não houver gráfico."""
    chart = section.chart
    if chart is None or not section.rows:
        return None

    rows = list(section.rows)[:MAX_BARRAS]
    labels = [str(r.get(chart.label_key) or "") for r in rows]
    titulos = {c.key: c.label for c in section.columns}

    fig, ax = plt.subplots(figsize=(8, 3.2))
    n = len(chart.value_keys)
    largura = 0.8 / n
    for i, key in enumerate(chart.value_keys):
        valores = [float(as_decimal(r.get(key))) for r in rows]
        xs = [x + (i - (n - 1) / 2) * largura for x in range(len(rows))]
        ax.bar(xs, valores, width=largura, color=CORES[i % len(CORES)], label=titulos.get(key, key))

    ax.set_xticks(range(len(rows)))
    ax.set_xticklabels(labels, rotation=35, ha="right", fontsize=8)
    ax.set_title(chart.title or section.title)
    ax.grid(axis="y", alpha=0.3)
    if n > 1:
        ax.legend(fontsize=8)
    return _fig_to_png(fig)
