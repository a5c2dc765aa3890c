# reports/service.py
"""
Ponto de entrada dos relatórios.

    res = gerar_relatorio(engine, "financeiro", ReportParams(data_inicio=..., formato="excel"))
    if res.ok:
        st.download_button(..., data=res.content, file_name=res.filename, mime=res.mime_type)

Erros de consulta obrigatória sobem como BackendError (o relatório inteiro é
abortado); erro de renderização volta como RenderResult(ok=False).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.engine import Engine

from gestobra_shared.backend import BackendError, Result
from gestobra_shared.table_probe import TableResolver
from reports.aggregators import AGREGADORES, ReportContext
from reports.models import TIPOS_RELATORIO, ReportModel, ReportParams
from reports.render import RenderResult, render_report

logger = logging.getLogger(__name__)


def montar_relatorio(engine: Engine, tipo: str, params: ReportParams,
                     agora: Optional[datetime] = None) -> ReportModel:
    if tipo not in AGREGADORES:
        raise ValueError(f"Tipo de relatório inválido: {tipo} (use {', '.join(TIPOS_RELATORIO)})")

    ctx = ReportContext(engine, params, TableResolver(engine), gerado_em=agora or datetime.now())
    logger.info("Gerando relatório %s (%s)", tipo, params.periodo_label())
    try:
        return AGREGADORES[tipo](ctx)
    except BackendError as e:
        logger.error("Relatório %s abortado [%s]: %s", tipo, e.code, e.message)
        raise


def gerar_relatorio(engine: Engine, tipo: str, params: ReportParams,
                    agora: Optional[datetime] = None) -> RenderResult:
    model = montar_relatorio(engine, tipo, params, agora=agora)
    return render_report(model, params.formato)


def painel_obras(engine: Engine) -> Result:
    """Relatório de obras para o painel da Home; falha de consulta volta em Result.error."""
    try:
        return Result(data=montar_relatorio(engine, "obras", ReportParams()))
    except BackendError as e:
        return Result(error=e)
