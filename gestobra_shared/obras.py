"""
GestObra - Obras (projetos) e etapas
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from sqlalchemy.engine import Engine

from gestobra_shared.backend import (
    INVALID_INPUT,
    ZERO,
    Result,
    as_decimal,
    delete_row,
    fail,
    fetch_all,
    fetch_one,
    insert_row,
    pick_fields,
    quote_table,
    update_row,
    utcnow_iso,
)
from gestobra_shared.schema import STATUS_OBRA

logger = logging.getLogger(__name__)

CAMPOS_OBRA = (
    "nome", "status", "orcamento", "progresso", "endereco",
    "data_inicio", "data_previsao_termino", "responsavel",
)

STATUS_LABEL = {
    "planejada": "Planejada",
    "em_andamento": "Em andamento",
    "pausada": "Pausada",
    "concluida": "Concluída",
}


def _validar_obra(dados: Mapping[str, Any], parcial: bool) -> Optional[str]:
    if not parcial and not str(dados.get("nome") or "").strip():
        return "Informe o nome da obra"
    if "status" in dados and dados["status"] not in STATUS_OBRA:
        return f"Status inválido: {dados['status']}"
    if "progresso" in dados:
        try:
            p = int(dados["progresso"])
        except (TypeError, ValueError):
            return "Progresso deve ser um número inteiro"
        if not 0 <= p <= 100:
            return "Progresso deve estar entre 0 e 100"
    if "orcamento" in dados and as_decimal(dados["orcamento"]) < 0:
        return "Orçamento não pode ser negativo"
    return None


def list_obras(engine: Engine, obra_id: Optional[int] = None, status: Optional[str] = None) -> Result:
    where, params = [], {}
    if obra_id is not None:
        where.append("id = :obra_id")
        params["obra_id"] = obra_id
    if status:
        where.append("status = :status")
        params["status"] = status
    sql = "SELECT * FROM obras"
    if where:
        sql += " WHERE " + " AND ".join(where)
    return fetch_all(engine, sql + " ORDER BY nome", params)


def get_obra(engine: Engine, obra_id: int) -> Result:
    return fetch_one(engine, "SELECT * FROM obras WHERE id = :id", {"id": obra_id})


def obras_recentes(engine: Engine, limite: int = 5) -> Result:
    return fetch_all(engine, "SELECT * FROM obras ORDER BY created_at DESC, id DESC LIMIT :lim", {"lim": limite})


def create_obra(engine: Engine, dados: Mapping[str, Any], user_id: Optional[str] = None) -> Result:
    erro = _validar_obra(dados, parcial=False)
    if erro:
        return fail(INVALID_INPUT, erro)
    values = pick_fields(dados, CAMPOS_OBRA)
    values.setdefault("status", "planejada")
    values.setdefault("progresso", 0)
    values["user_id"] = user_id
    res = insert_row(engine, "obras", values)
    if res.ok:
        logger.info("Obra criada: %s (id=%s)", res.data["nome"], res.data["id"])
    return res


def update_obra(engine: Engine, obra_id: int, dados: Mapping[str, Any]) -> Result:
    values = pick_fields(dados, CAMPOS_OBRA)
    erro = _validar_obra(values, parcial=True)
    if erro:
        return fail(INVALID_INPUT, erro)
    if values:
        values["updated_at"] = utcnow_iso()
    return update_row(engine, "obras", obra_id, values)


def atualizar_progresso(engine: Engine, obra_id: int, progresso: int) -> Result:
    return update_obra(engine, obra_id, {"progresso": progresso})


def delete_obra(engine: Engine, obra_id: int) -> Result:
    """Falha com 23503 se a obra ainda tiver despesas/documentos vinculados."""
    return delete_row(engine, "obras", obra_id)


def estatisticas_obras(engine: Engine) -> Result:
    res = fetch_all(engine, "SELECT status, orcamento, progresso FROM obras")
    if not res.ok:
        return res
    stats: Dict[str, Any] = {s: 0 for s in STATUS_OBRA}
    orcamento_total = ZERO
    soma_progresso = 0
    for o in res.data:
        stats[o["status"]] = stats.get(o["status"], 0) + 1
        orcamento_total += as_decimal(o["orcamento"])
        soma_progresso += int(o["progresso"] or 0)
    stats["total"] = len(res.data)
    stats["orcamento_total"] = orcamento_total
    stats["media_progresso"] = round(soma_progresso / len(res.data), 1) if res.data else 0
    return Result(data=stats)


def obras_com_orcamento_excedido(engine: Engine) -> Result:
    """Obras cujas despesas (todas as datas) passam do orçamento."""
    res = fetch_all(
        engine,
        """
        SELECT o.id, o.nome, o.orcamento, COALESCE(SUM(d.valor), 0) AS total_despesas
        FROM obras o
        JOIN despesas d ON d.obra_id = o.id AND d.tipo = 'despesa'
        GROUP BY o.id, o.nome, o.orcamento
        ORDER BY o.nome
        """,
    )
    if not res.ok:
        return res
    excedidas = []
    for r in res.data:
        orcamento = as_decimal(r["orcamento"])
        total = as_decimal(r["total_despesas"])
        if total > orcamento:
            excedidas.append({
                "id": r["id"], "nome": r["nome"], "orcamento": orcamento,
                "total_despesas": total, "excesso": total - orcamento,
            })
    return Result(data=excedidas)


def list_etapas(engine: Engine, table: str, obra_ids: Optional[Sequence[int]] = None) -> Result:
    sql = f"SELECT * FROM {quote_table(table)}"
    if obra_ids is not None:
        if not obra_ids:
            return Result(data=[])
        return fetch_all(engine, sql + " WHERE obra_id IN :obra_ids ORDER BY obra_id, id",
                         {"obra_ids": list(obra_ids)}, expanding=("obra_ids",))
    return fetch_all(engine, sql + " ORDER BY obra_id, id")


def create_etapa(engine: Engine, table: str, dados: Mapping[str, Any]) -> Result:
    values = pick_fields(dados, ("obra_id", "nome", "status", "ordem", "progresso",
                                 "data_inicio", "data_fim_prevista", "data_fim_real"))
    if not values.get("obra_id") or not str(values.get("nome") or "").strip():
        return fail(INVALID_INPUT, "Informe a obra e o nome da etapa")
    return insert_row(engine, table, values)
