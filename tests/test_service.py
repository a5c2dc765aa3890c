from datetime import date, datetime

import pytest

from reports.models import TIPOS_RELATORIO, ReportParams
from reports.service import gerar_relatorio, montar_relatorio, painel_obras

AGORA = datetime(2025, 4, 2, 9, 0)


@pytest.mark.parametrize("tipo", TIPOS_RELATORIO)
def test_every_report_renders_pdf(engine, nova_obra, nova_transacao, novo_material, tipo):
    obra_id = nova_obra()
    nova_transacao("1500", obra_id=obra_id, categoria="Material")
    novo_material()

    res = gerar_relatorio(engine, tipo, ReportParams(), agora=AGORA)

    assert res.ok, res.error
    assert res.content.startswith(b"%PDF")
    assert res.filename == f"relatorio_{tipo}_geral_2025-04-02.pdf"


@pytest.mark.parametrize("formato", ["excel", "csv"])
def test_other_formats(engine, nova_obra, formato):
    obra_id = nova_obra()

    res = gerar_relatorio(engine, "obras", ReportParams(obra_id=obra_id, formato=formato), agora=AGORA)

    assert res.ok
    assert res.filename.startswith("relatorio_obras_residencial-alfa_2025-04-02.")


def test_invalid_report_type(engine):
    with pytest.raises(ValueError):
        montar_relatorio(engine, "vendas", ReportParams())


def test_report_params_validation():
    with pytest.raises(ValueError):
        ReportParams(formato="docx")
    with pytest.raises(ValueError):
        ReportParams(data_inicio=date(2025, 5, 1), data_fim=date(2025, 4, 1))


def test_period_label():
    assert ReportParams().periodo_label() == "Início até Hoje"
    p = ReportParams(data_inicio="2025-01-01", data_fim=date(2025, 1, 31))
    assert p.data_inicio == date(2025, 1, 1)
    assert p.periodo_label() == "01/01/2025 até 31/01/2025"
    assert p.inicio == date(2025, 1, 1)
    assert ReportParams().fim == date(2100, 12, 31)


def test_dashboard_reports_backend_failure(engine, nova_obra, sql):
    nova_obra()
    sql(engine, "DROP TABLE despesas")

    res = painel_obras(engine)

    assert not res.ok
    assert res.error.is_missing_table


def test_dashboard_lists_obras(engine, nova_obra):
    nova_obra()

    res = painel_obras(engine)

    assert [r["nome"] for r in res.unwrap().section("obras").rows] == ["Residencial Alfa"]
