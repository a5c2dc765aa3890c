import copy
import csv
import io
from datetime import date, datetime
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from reports.formatting import format_cell, money_br, number_br, percent_br
from reports.models import AUTO, DATE, DAYS, INT, MONEY, PERCENT, Chart, Column, ReportModel, Section
from reports.render import RENDERERS, nome_arquivo, render_report

DESCRICAO = 'Cimento, areia e "brita"'


@pytest.fixture
def model():
    return ReportModel(
        tipo="financeiro",
        titulo="Relatório Financeiro",
        periodo="01/03/2025 até 31/03/2025",
        contexto="geral",
        totais={"saldo": Decimal("700")},
        sections=(
            Section("resumo", "Resumo Financeiro",
                    (Column("indicador", "Indicador"), Column("valor", "Valor", AUTO)),
                    ({"indicador": "Saldo", "valor": Decimal("700"), "formato": MONEY},
                     {"indicador": "Transações", "valor": 2, "formato": INT})),
            Section(
                "transacoes",
                "Transações",
                (Column("data", "Data", DATE), Column("descricao", "Descrição"),
                 Column("valor", "Valor", MONEY), Column("percentual", "%", PERCENT)),
                ({"data": date(2025, 3, 10), "descricao": DESCRICAO, "valor": Decimal("1234.5"),
                  "percentual": Decimal("12.5")},
                 {"data": date(2025, 3, 11), "descricao": "Areia", "valor": Decimal("100"),
                  "percentual": Decimal("87.5")}),
                chart=Chart("descricao", ("valor",), "Valores"),
            ),
            Section("vazia", "Seção Vazia", (Column("nome", "Nome"),), (), "Nada por aqui."),
        ),
        gerado_em=datetime(2025, 3, 15, 10, 30),
    )


def test_csv_quotes_and_bom(model):
    res = render_report(model, "csv")

    assert res.ok
    assert res.content.startswith(b"\xef\xbb\xbf")
    assert res.mime_type.startswith("text/csv")
    linhas = list(csv.reader(io.StringIO(res.content.decode("utf-8-sig"))))
    assert linhas[0] == ["Relatório Financeiro"]
    assert linhas[1] == ["Período: 01/03/2025 até 31/03/2025"]
    assert ["10/03/2025", DESCRICAO, "R$ 1.234,50", "12,50%"] in linhas
    assert ["Saldo", "R$ 700,00"] in linhas
    assert linhas[-1] == ["Gerado em 15/03/2025 10:30"]


def test_excel_layout(model):
    res = render_report(model, "excel")
    assert res.ok

    wb = load_workbook(io.BytesIO(res.content))
    assert len(wb.sheetnames) == 3
    ws = wb["Transações"]
    assert ws["A1"].value == "Relatório Financeiro"
    assert ws["A2"].value == "Período: 01/03/2025 até 31/03/2025"
    assert [c.value for c in ws[5]] == ["Data", "Descrição", "Valor", "%"]
    assert ws["B6"].value == DESCRICAO
    assert ws["C6"].value == pytest.approx(1234.5)
    assert "R$" in ws["C6"].number_format
    assert ws.freeze_panes == "A6"


def test_pdf_is_generated(model):
    res = render_report(model, "pdf")

    assert res.ok
    assert res.content.startswith(b"%PDF")
    assert res.filename == "relatorio_financeiro_geral_2025-03-15.pdf"


def test_renderers_do_not_mutate_model(model):
    antes = copy.deepcopy(model)
    for formato in RENDERERS:
        assert render_report(model, formato).ok
    assert model == antes


def test_renderer_failure_is_reported(model, monkeypatch):
    def quebrado(_model):
        raise RuntimeError("sem espaço")

    monkeypatch.setitem(RENDERERS, "pdf", quebrado)
    res = render_report(model, "pdf")

    assert not res.ok
    assert res.content is None
    assert "sem espaço" in res.error


def test_unknown_format(model):
    with pytest.raises(ValueError):
        render_report(model, "docx")


def test_filenames(model):
    assert nome_arquivo(model, "excel") == "relatorio_financeiro_geral_2025-03-15.xlsx"
    assert nome_arquivo(model, "csv") == "relatorio_financeiro_geral_2025-03-15.csv"


def test_formatting_helpers():
    assert money_br(Decimal("1234.567")) == "R$ 1.234,57"
    assert money_br(None) == "R$ 0,00"
    assert number_br(Decimal("12")) == "12"
    assert number_br(Decimal("12.5")) == "12,50"
    assert percent_br(Decimal("7")) == "7,00%"
    assert format_cell(Decimal("3"), DAYS) == "3 dias"
    assert format_cell(None, MONEY) == ""
    assert format_cell(Decimal("10"), AUTO, {"formato": MONEY}) == "R$ 10,00"
