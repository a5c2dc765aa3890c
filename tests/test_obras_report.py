from datetime import date
from decimal import Decimal

import pytest

from gestobra_shared.backend import BackendError
from reports.aggregators import STATUS_DENTRO, STATUS_EXCEDIDO
from reports.models import ReportParams
from reports.service import montar_relatorio

PERIODO_2025 = ReportParams(data_inicio=date(2025, 1, 1), data_fim=date(2025, 12, 31))


def _por_nome(model):
    return {r["nome"]: r for r in model.section("obras").rows}


def test_obra_within_budget(engine, nova_obra, nova_transacao):
    obra_id = nova_obra("Residencial Alfa", "10000")
    nova_transacao("3000", obra_id=obra_id)
    nova_transacao("4000", obra_id=obra_id, data=date(2025, 6, 1))

    model = montar_relatorio(engine, "obras", PERIODO_2025)
    row = _por_nome(model)["Residencial Alfa"]

    assert row["total_despesas"] == Decimal("7000")
    assert row["orcamento_restante"] == Decimal("3000")
    assert row["percentual_gasto"] == Decimal("70.00")
    assert row["status_orcamento"] == STATUS_DENTRO
    assert model.section("excedidas").rows == ()


def test_obra_over_budget(engine, nova_obra, nova_transacao):
    obra_id = nova_obra("Galpão Beta", "5000")
    nova_transacao("6000", obra_id=obra_id)

    model = montar_relatorio(engine, "obras", PERIODO_2025)
    row = _por_nome(model)["Galpão Beta"]

    assert row["status_orcamento"] == STATUS_EXCEDIDO
    assert row["excesso"] == Decimal("1000")
    assert row["orcamento_restante"] == Decimal("-1000")
    assert [r["nome"] for r in model.section("excedidas").rows] == ["Galpão Beta"]
    assert model.totais["obras_excedidas"] == 1


def test_revenue_and_out_of_period_rows_are_ignored(engine, nova_obra, nova_transacao):
    obra_id = nova_obra("Residencial Alfa", "10000")
    nova_transacao("1000", obra_id=obra_id)
    nova_transacao("5000", tipo="receita", obra_id=obra_id)
    nova_transacao("999", obra_id=obra_id, data=date(2024, 12, 31))
    nova_transacao("50", obra_id=obra_id, data=date(2025, 12, 31))

    model = montar_relatorio(engine, "obras", PERIODO_2025)

    assert _por_nome(model)["Residencial Alfa"]["total_despesas"] == Decimal("1050")


def test_totals_and_obra_filter(engine, nova_obra, nova_transacao):
    a = nova_obra("Residencial Alfa", "10000")
    b = nova_obra("Galpão Beta", "5000")
    nova_transacao("2000", obra_id=a)
    nova_transacao("1000", obra_id=b)

    model = montar_relatorio(engine, "obras", PERIODO_2025)
    assert model.totais["total_obras"] == 2
    assert model.totais["orcamento_total"] == Decimal("15000")
    assert model.totais["despesas_total"] == Decimal("3000")
    assert model.totais["saldo_total"] == Decimal("12000")
    assert model.totais["percentual_gasto"] == Decimal("20.00")

    filtrado = montar_relatorio(engine, "obras", ReportParams(obra_id=b))
    assert [r["nome"] for r in filtrado.section("obras").rows] == ["Galpão Beta"]
    assert filtrado.contexto == "galpao-beta"
    assert filtrado.filtro == "Obra: Galpão Beta"


def test_zero_budget_gives_zero_percent(engine, nova_obra, nova_transacao):
    obra_id = nova_obra("Reforma Gama", "0")
    nova_transacao("100", obra_id=obra_id)

    row = _por_nome(montar_relatorio(engine, "obras", PERIODO_2025))["Reforma Gama"]

    assert row["percentual_gasto"] == 0
    assert row["status_orcamento"] == STATUS_EXCEDIDO


def test_empty_database(engine):
    model = montar_relatorio(engine, "obras", ReportParams())

    assert model.totais["total_obras"] == 0
    assert model.totais["despesas_total"] == 0
    assert model.totais["percentual_gasto"] == 0
    assert model.is_empty
    assert model.contexto == "geral"


def test_missing_expenses_table_aborts_report(engine, nova_obra, sql):
    nova_obra()
    sql(engine, "DROP TABLE despesas")

    with pytest.raises(BackendError) as exc:
        montar_relatorio(engine, "obras", PERIODO_2025)
    assert exc.value.is_missing_table


def test_filters_not_applied_are_not_described(engine, nova_obra, novo_material):
    nova_obra()
    mid = novo_material()

    model = montar_relatorio(engine, "obras", ReportParams(categoria="Material", material_id=mid))

    assert model.contexto == "geral"
    assert model.filtro == ""
    assert len(model.section("obras").rows) == 1
