# reports/render.py
"""
Renderização dos relatórios: escolhe PDF, Excel ou CSV e devolve um
RenderResult. Erro da biblioteca de geração vira RenderResult(ok=False); quem
chama sempre sabe se recebeu um arquivo de verdade.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from reports.models import ReportModel
from reports.render_csv import render_csv
from reports.render_excel import render_excel
from reports.render_pdf import render_pdf

logger = logging.getLogger(__name__)

MIME_TYPES = {
    "pdf": "application/pdf",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv;charset=utf-8",
}
EXTENSOES = {"pdf": "pdf", "excel": "xlsx", "csv": "csv"}

RENDERERS: Dict[str, Callable[[ReportModel], bytes]] = {
    "pdf": render_pdf,
    "excel": render_excel,
    "csv": render_csv,
}


@dataclass(frozen=True)
class RenderResult:
    ok: bool
    formato: str
    filename: str
    mime_type: str
    content: Optional[bytes] = None
    error: Optional[str] = None


def nome_arquivo(model: ReportModel, formato: str) -> str:
    """relatorio_<tipo>_<contexto>_<AAAA-MM-DD>.<ext>"""
    return f"relatorio_{model.tipo}_{model.contexto}_{model.gerado_em.strftime('%Y-%m-%d')}.{EXTENSOES[formato]}"


def render_report(model: ReportModel, formato: str) -> RenderResult:
    if formato not in RENDERERS:
        raise ValueError(f"Formato de relatório inválido: {formato}")

    filename = nome_arquivo(model, formato)
    try:
        content = RENDERERS[formato](model)
    except Exception as e:  # falha da biblioteca (reportlab/openpyxl/matplotlib)
        logger.exception("Falha ao gerar %s do relatório %s", formato, model.tipo)
        return RenderResult(False, formato, filename, MIME_TYPES[formato],
                            error=f"Falha ao gerar o arquivo {formato.upper()}: {e}")

    logger.info("Relatório %s gerado: %s (%d bytes)", model.tipo, filename, len(content))
    return RenderResult(True, formato, filename, MIME_TYPES[formato], content=content)
