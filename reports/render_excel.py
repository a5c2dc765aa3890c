# reports/render_excel.py
"""
Excel dos relatórios: uma aba por seção.

Linhas 1-3: título, período e data de geração. Linha 5: cabeçalho da tabela.
Valores monetários ficam numéricos, com formato de moeda.
"""
from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List, Set

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from reports.formatting import cell_kind, date_br
from reports.models import DATE, DAYS, INT, MONEY, NUMBER, PERCENT, ReportModel, Section

HEADER_ROW = 5  # 1-based
FORMATOS_EXCEL = {
    MONEY: '"R$" #,##0.00',
    INT: "0",
    NUMBER: "#,##0.00",
    PERCENT: '0.00"%"',
    DAYS: '0.00" dias"',
    DATE: "DD/MM/YYYY",
}
HEADER_FILL = PatternFill("solid", fgColor="2864A0")
HEADER_FONT = Font(bold=True, color="FFFFFF")
MAX_LARGURA = 60


def _sheet_name(title: str, usados: Set[str]) -> str:
    base = re.sub(r"[\[\]\*\?/\\:]", " ", title).strip()[:31] or "Dados"
    nome, n = base, 2
    while nome.lower() in usados:
        sufixo = f" ({n})"
        nome = base[: 31 - len(sufixo)] + sufixo
        n += 1
    usados.add(nome.lower())
    return nome


def _excel_value(value: Any) -> Any:
    # openpyxl grava float; Decimal vira float só aqui, na saída
    if isinstance(value, Decimal):
        return float(value)
    return value


def _frame(section: Section) -> pd.DataFrame:
    registros: List[Dict[str, Any]] = []
    for row in section.rows:
        registros.append({
            c.label: _excel_value(row.get(c.key)) for c in section.columns
        })
    return pd.DataFrame(registros, columns=[c.label for c in section.columns])


def _largura(value: Any) -> int:
    if isinstance(value, date):
        return 10
    if isinstance(value, float):
        return len(f"{value:,.2f}") + 4
    return len(str(value)) if value is not None else 0


def _formatar_aba(ws, model: ReportModel, section: Section) -> None:
    ws.cell(row=1, column=1, value=model.titulo).font = Font(bold=True, size=14)
    ws.cell(row=2, column=1, value=f"Período: {model.periodo}")
    ws.cell(row=3, column=1, value=f"Gerado em {date_br(model.gerado_em)}" + (f" | {model.filtro}" if model.filtro else ""))

    for j, col in enumerate(section.columns, start=1):
        cell = ws.cell(row=HEADER_ROW, column=j)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center", vertical="center")

        larguras = [len(col.label)]
        for i, row in enumerate(section.rows, start=HEADER_ROW + 1):
            c = ws.cell(row=i, column=j)
            fmt = FORMATOS_EXCEL.get(cell_kind(col.kind, row))
            if fmt and c.value is not None:
                c.number_format = fmt
            larguras.append(_largura(c.value))
        ws.column_dimensions[get_column_letter(j)].width = min(MAX_LARGURA, max(larguras) + 2)

    ws.freeze_panes = ws.cell(row=HEADER_ROW + 1, column=1)


def render_excel(model: ReportModel) -> bytes:
    output = BytesIO()
    usados: Set[str] = set()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for section in model.sections:
            nome = _sheet_name(section.title, usados)
            _frame(section).to_excel(writer, sheet_name=nome, index=False, startrow=HEADER_ROW - 1)
            _formatar_aba(writer.sheets[nome], model, section)
    return output.getvalue()
