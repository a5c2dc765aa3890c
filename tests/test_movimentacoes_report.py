import csv
import io
from datetime import date
from decimal import Decimal

from gestobra_shared.materiais import create_material, registrar_entrada, registrar_saida
from reports.models import ReportParams
from reports.render import render_report
from reports.service import montar_relatorio

CRIAR_PLURAL = """
    CREATE TABLE movimentacoes_materiais (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        material_id INTEGER NOT NULL,
        obra_id INTEGER,
        data DATE NOT NULL,
        tipo TEXT NOT NULL,
        quantidade NUMERIC NOT NULL,
        valor_unitario NUMERIC,
        responsavel TEXT,
        observacao TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
"""


def test_balances_and_values(engine, nova_obra, novo_material):
    obra_id = nova_obra()
    cimento = novo_material("Cimento CP-II", preco="35.50")
    registrar_entrada(engine, cimento, "50", valor_unitario="30", data_mov=date(2025, 3, 1)).unwrap()
    registrar_saida(engine, cimento, "20", obra_id=obra_id, data_mov=date(2025, 3, 5)).unwrap()
    registrar_saida(engine, cimento, "5", obra_id=obra_id, data_mov=date(2026, 1, 5)).unwrap()

    model = montar_relatorio(engine, "movimentacoes",
                             ReportParams(data_inicio=date(2025, 1, 1), data_fim=date(2025, 12, 31)))

    mat = model.section("por_material").rows[0]
    assert mat["entradas"] == Decimal("50")
    assert mat["saidas"] == Decimal("20")
    assert mat["saldo"] == Decimal("30")
    assert mat["valor_total"] == Decimal("1065")

    assert model.totais["total_movimentacoes"] == 2
    assert model.totais["valor_entradas"] == Decimal("1500")
    assert model.totais["valor_saidas"] == Decimal("710")

    obras = {r["obra"]: r for r in model.section("por_obra").rows}
    assert obras["Residencial Alfa"]["valor_consumido"] == Decimal("710")
    assert obras["Sem obra"]["entradas"] == Decimal("50")


def test_reads_plural_table(engine_minimo, sql):
    sql(engine_minimo, CRIAR_PLURAL)
    mid = create_material(engine_minimo, {"nome": "Areia", "preco_unitario": "80"}).unwrap()["id"]
    registrar_entrada(engine_minimo, mid, "3", data_mov=date(2025, 2, 1)).unwrap()

    model = montar_relatorio(engine_minimo, "movimentacoes", ReportParams())

    assert model.totais["total_movimentacoes"] == 1
    assert model.totais["valor_estoque"] == Decimal("240")


def test_missing_table_gives_empty_report(engine_minimo):
    model = montar_relatorio(engine_minimo, "movimentacoes", ReportParams(formato="csv"))

    assert model.is_empty
    assert model.totais["total_movimentacoes"] == 0
    assert model.totais["valor_estoque"] == 0

    res = render_report(model, "csv")
    assert res.ok
    linhas = list(csv.reader(io.StringIO(res.content.decode("utf-8-sig"))))
    assert linhas[0] == ["Relatório de Movimentações de Materiais"]
    assert ["Total de Movimentações", "0"] in linhas
    assert ["Valor das Entradas", "R$ 0,00"] in linhas
    assert ["Material", "Unidade", "Entradas", "Saídas", "Saldo", "Preço Unitário", "Valor Total"] in linhas


def test_no_movements_in_period_gives_headers_and_zero_summary(engine, novo_material):
    cimento = novo_material("Cimento CP-II", preco="35.50")
    registrar_entrada(engine, cimento, "10", data_mov=date(2024, 6, 1)).unwrap()

    model = montar_relatorio(engine, "movimentacoes",
                             ReportParams(data_inicio=date(2025, 1, 1), data_fim=date(2025, 12, 31)))

    assert model.totais["total_movimentacoes"] == 0
    assert model.section("movimentacoes").rows == ()

    res = render_report(model, "csv")
    assert res.ok
    linhas = list(csv.reader(io.StringIO(res.content.decode("utf-8-sig"))))
    assert ["Total de Movimentações", "0"] in linhas
    assert ["Valor das Entradas", "R$ 0,00"] in linhas
    assert ["Data", "Material", "Obra", "Tipo", "Quantidade", "Valor Unitário",
            "Valor Total", "Responsável", "Observação"] in linhas
    assert ["Obra", "Entradas", "Saídas", "Saldo", "Valor Consumido"] in linhas
