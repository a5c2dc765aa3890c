# reports/render_csv.py
"""
CSV dos relatórios: UTF-8 com BOM (abre certo no Excel), separador vírgula.

Título e período no topo; cada seção vira um bloco (DataFrame.to_csv) com
título e cabeçalho, separado por uma linha em branco. Campos com vírgula,
aspas ou quebra de linha saem entre aspas (aspas internas duplicadas).
"""
from __future__ import annotations

from io import StringIO

import pandas as pd

from reports.formatting import date_br, format_cell
from reports.models import ReportModel, Section


def _linha(buffer: StringIO, texto: str) -> None:
    pd.DataFrame([[texto]]).to_csv(buffer, index=False, header=False, lineterminator="\n")


def _bloco(section: Section) -> pd.DataFrame:
    dados = [[format_cell(row.get(c.key), c.kind, row) for c in section.columns] for row in section.rows]
    return pd.DataFrame(dados, columns=[c.label for c in section.columns], dtype=object)


def render_csv(model: ReportModel) -> bytes:
    buffer = StringIO()

    _linha(buffer, model.titulo)
    _linha(buffer, f"Período: {model.periodo}")
    if model.filtro:
        _linha(buffer, model.filtro)

    for section in model.sections:
        buffer.write("\n")
        _linha(buffer, section.title)
        _bloco(section).to_csv(buffer, index=False, lineterminator="\n")

    buffer.write("\n")
    _linha(buffer, f"Gerado em {date_br(model.gerado_em)}")
    return buffer.getvalue().encode("utf-8-sig")
