"""
GestObra - Financeiro (tabela despesas: receitas e despesas das obras)

Sinal nos relatórios: receita soma, despesa subtrai.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.engine import Engine

from gestobra_shared import storage
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
    update_row,
)
from gestobra_shared.settings import DEFAULT_STORAGE_URL

logger = logging.getLogger(__name__)

TIPOS_TRANSACAO = ("despesa", "receita")
STATUS_PAGAMENTO = ("pendente", "pago")

CAMPOS_TRANSACAO = (
    "obra_id", "descricao", "data", "valor", "tipo", "categoria",
    "status_pagamento", "material_id", "etapa_id", "comprovante_url",
)


def signed_amount(tipo: str, valor: Any) -> Decimal:
    v = abs(as_decimal(valor))
    return v if tipo == "receita" else -v


def _validar_transacao(dados: Mapping[str, Any], parcial: bool) -> Optional[str]:
    if not parcial:
        if not dados.get("data"):
            return "Informe a data"
        if "valor" not in dados:
            return "Informe o valor"
    if "valor" in dados and as_decimal(dados["valor"]) < 0:
        return "Valor não pode ser negativo"
    if "tipo" in dados and dados["tipo"] not in TIPOS_TRANSACAO:
        return f"Tipo inválido: {dados['tipo']}"
    if "status_pagamento" in dados and dados["status_pagamento"] not in STATUS_PAGAMENTO:
        return f"Status de pagamento inválido: {dados['status_pagamento']}"
    return None


def list_transacoes(
    engine: Engine,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
    obra_id: Optional[int] = None,
    obra_ids: Optional[Sequence[int]] = None,
    tipo: Optional[str] = None,
    categoria: Optional[str] = None,
    status_pagamento: Optional[str] = None,
) -> Result:
    """Transações filtradas; limites de data inclusivos."""
    where, params, expanding = [], {}, []
    if inicio:
        where.append("d.data >= :inicio")
        params["inicio"] = inicio
    if fim:
        where.append("d.data <= :fim")
        params["fim"] = fim
    if obra_id is not None:
        where.append("d.obra_id = :obra_id")
        params["obra_id"] = obra_id
    if obra_ids is not None:
        if not obra_ids:
            return Result(data=[])
        where.append("d.obra_id IN :obra_ids")
        params["obra_ids"] = list(obra_ids)
        expanding.append("obra_ids")
    if tipo:
        where.append("d.tipo = :tipo")
        params["tipo"] = tipo
    if categoria:
        where.append("d.categoria = :categoria")
        params["categoria"] = categoria
    if status_pagamento:
        where.append("d.status_pagamento = :status_pagamento")
        params["status_pagamento"] = status_pagamento

    sql = """
        SELECT d.*, o.nome AS obra_nome
        FROM despesas d
        LEFT JOIN obras o ON o.id = d.obra_id
    """
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY d.data, d.id"
    return fetch_all(engine, sql, params, expanding=expanding)


def get_transacao(engine: Engine, transacao_id: int) -> Result:
    return fetch_one(engine, "SELECT * FROM despesas WHERE id = :id", {"id": transacao_id})


def create_transacao(engine: Engine, dados: Mapping[str, Any], user_id: Optional[str] = None) -> Result:
    erro = _validar_transacao(dados, parcial=False)
    if erro:
        return fail(INVALID_INPUT, erro)
    values = pick_fields(dados, CAMPOS_TRANSACAO)
    values["valor"] = as_decimal(values["valor"])
    values.setdefault("tipo", "despesa")
    values.setdefault("status_pagamento", "pendente")
    values["user_id"] = user_id
    return insert_row(engine, "despesas", values)


def update_transacao(engine: Engine, transacao_id: int, dados: Mapping[str, Any]) -> Result:
    values = pick_fields(dados, CAMPOS_TRANSACAO)
    erro = _validar_transacao(values, parcial=True)
    if erro:
        return fail(INVALID_INPUT, erro)
    return update_row(engine, "despesas", transacao_id, values)


def delete_transacao(engine: Engine, transacao_id: int) -> Result:
    return delete_row(engine, "despesas", transacao_id)


def contas_pendentes(engine: Engine) -> Result:
    """Despesas a pagar e receitas a receber ainda pendentes."""
    res = fetch_all(
        engine,
        """
        SELECT d.*, o.nome AS obra_nome
        FROM despesas d
        LEFT JOIN obras o ON o.id = d.obra_id
        WHERE d.status_pagamento = 'pendente'
        ORDER BY d.data, d.id
        """,
    )
    if not res.ok:
        return res
    pagar = [t for t in res.data if t["tipo"] == "despesa"]
    receber = [t for t in res.data if t["tipo"] == "receita"]
    return Result(data={
        "contas_pagar": pagar,
        "contas_receber": receber,
        "total_pagar": sum((as_decimal(t["valor"]) for t in pagar), ZERO),
        "total_receber": sum((as_decimal(t["valor"]) for t in receber), ZERO),
    })


def upload_comprovante(engine: Engine, transacao_id: int, obra_id: Optional[int], nome_arquivo: str,
                       conteudo: bytes, content_type: Optional[str] = None,
                       storage_url: str = DEFAULT_STORAGE_URL) -> Result:
    """Guarda o comprovante e grava a URL pública na transação."""
    path = storage.object_path(obra_id or "geral", nome_arquivo)
    res = storage.upload(engine, storage.BUCKET_COMPROVANTES, path, conteudo, content_type)
    if not res.ok:
        return res
    url = storage.public_url(storage.BUCKET_COMPROVANTES, path, storage_url)
    res = update_row(engine, "despesas", transacao_id, {"comprovante_url": url})
    if not res.ok:
        return res
    return Result(data={"public_url": url, "path": path})
