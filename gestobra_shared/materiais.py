"""
GestObra - Materiais, estoque e movimentações

Entrada/saída grava a movimentação e ajusta quantidade_estoque na mesma
transação. O nome da tabela de movimentações vem do TableResolver
(singular ou plural, conforme a base).
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from gestobra_shared.backend import (
    INVALID_INPUT,
    NOT_FOUND,
    UNDEFINED_TABLE,
    Result,
    as_decimal,
    classify_error,
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
from gestobra_shared.table_probe import MOVIMENTACAO_TABLES, probe_tables

logger = logging.getLogger(__name__)

CAMPOS_MATERIAL = (
    "nome", "unidade", "preco_unitario", "categoria",
    "quantidade_estoque", "estoque_minimo", "estoque_maximo",
)


def list_materiais(engine: Engine, categoria: Optional[str] = None) -> Result:
    if categoria:
        return fetch_all(engine, "SELECT * FROM materiais WHERE categoria = :cat ORDER BY nome", {"cat": categoria})
    return fetch_all(engine, "SELECT * FROM materiais ORDER BY nome")


def get_material(engine: Engine, material_id: int) -> Result:
    return fetch_one(engine, "SELECT * FROM materiais WHERE id = :id", {"id": material_id})


def _validar_material(values: Mapping[str, Any], parcial: bool) -> Optional[str]:
    if not parcial and not str(values.get("nome") or "").strip():
        return "Informe o nome do material"
    for campo in ("preco_unitario", "quantidade_estoque", "estoque_minimo"):
        if campo in values and as_decimal(values[campo]) < 0:
            return f"{campo} não pode ser negativo"
    return None


def create_material(engine: Engine, dados: Mapping[str, Any]) -> Result:
    values = pick_fields(dados, CAMPOS_MATERIAL)
    erro = _validar_material(values, parcial=False)
    if erro:
        return fail(INVALID_INPUT, erro)
    return insert_row(engine, "materiais", values)


def update_material(engine: Engine, material_id: int, dados: Mapping[str, Any]) -> Result:
    values = pick_fields(dados, CAMPOS_MATERIAL)
    erro = _validar_material(values, parcial=True)
    if erro:
        return fail(INVALID_INPUT, erro)
    if values:
        values["updated_at"] = utcnow_iso()
    return update_row(engine, "materiais", material_id, values)


def delete_material(engine: Engine, material_id: int) -> Result:
    return delete_row(engine, "materiais", material_id)


def materiais_estoque_baixo(engine: Engine) -> Result:
    res = list_materiais(engine)
    if not res.ok:
        return res
    baixos = [m for m in res.data
              if as_decimal(m["quantidade_estoque"]) < as_decimal(m["estoque_minimo"])]
    return Result(data=baixos)


# -------------------------
# Movimentações
# -------------------------
def _tabela_movimentacao(engine: Engine, tabela: Optional[str]) -> Result:
    if tabela:
        return Result(data=tabela)
    probe = probe_tables(engine, MOVIMENTACAO_TABLES)
    if not probe.table_exists:
        return fail(UNDEFINED_TABLE, probe.reason or "Tabela de movimentações não encontrada")
    return Result(data=probe.table_name)


def _registrar(engine: Engine, tipo: str, material_id: int, quantidade: Any, obra_id: Optional[int],
               data_mov: Optional[date], valor_unitario: Any, responsavel: Optional[str],
               observacao: Optional[str], tabela: Optional[str]) -> Result:
    qtd = as_decimal(quantidade)
    if qtd <= 0:
        return fail(INVALID_INPUT, "Quantidade deve ser maior que zero")

    res = _tabela_movimentacao(engine, tabela)
    if not res.ok:
        return res
    tabela = quote_table(res.data)

    res = get_material(engine, material_id)
    if not res.ok:
        return res
    if tipo == "saida" and qtd > as_decimal(res.data["quantidade_estoque"]):
        return fail(INVALID_INPUT, "Quantidade insuficiente em estoque")

    # estoque ajustado e conferido no mesmo UPDATE, dentro da transação do registro
    if tipo == "entrada":
        sql_estoque = """
            UPDATE materiais SET quantidade_estoque = quantidade_estoque + :q, updated_at = :u
            WHERE id = :id
            RETURNING quantidade_estoque
        """
    else:
        sql_estoque = """
            UPDATE materiais SET quantidade_estoque = quantidade_estoque - :q, updated_at = :u
            WHERE id = :id AND quantidade_estoque >= :q
            RETURNING quantidade_estoque
        """

    mov = {
        "material_id": material_id,
        "obra_id": obra_id,
        "data": (data_mov or date.today()).isoformat(),
        "tipo": tipo,
        "quantidade": str(qtd),
        "valor_unitario": None if valor_unitario is None else str(as_decimal(valor_unitario)),
        "responsavel": responsavel,
        "observacao": observacao,
    }
    row = saldo = None
    try:
        with engine.begin() as conn:
            saldo = conn.execute(
                text(sql_estoque),
                {"q": str(qtd), "u": utcnow_iso(), "id": material_id},
            ).mappings().first()
            if saldo is not None:
                row = conn.execute(
                    text(f"""
                        INSERT INTO {tabela}
                            (material_id, obra_id, data, tipo, quantidade, valor_unitario, responsavel, observacao)
                        VALUES (:material_id, :obra_id, :data, :tipo, :quantidade, :valor_unitario, :responsavel, :observacao)
                        RETURNING *
                    """),
                    mov,
                ).mappings().first()
    except SQLAlchemyError as e:
        err = classify_error(e)
        logger.error("Falha ao registrar %s do material %s [%s]: %s", tipo, material_id, err.code, err.message)
        return Result(error=err)

    if saldo is None and tipo == "entrada":
        return fail(NOT_FOUND, "Material não encontrado")
    if saldo is None:
        logger.warning("Saída recusada: estoque do material %s mudou e não cobre %s", material_id, qtd)
        return fail(INVALID_INPUT, "Quantidade insuficiente em estoque")

    logger.info("Movimentação de %s registrada: material=%s qtd=%s", tipo, material_id, qtd)
    return Result(data={"movimentacao": dict(row), "quantidade_estoque": as_decimal(saldo["quantidade_estoque"])})


def registrar_entrada(engine: Engine, material_id: int, quantidade: Any, obra_id: Optional[int] = None,
                      data_mov: Optional[date] = None, valor_unitario: Any = None,
                      responsavel: Optional[str] = None, observacao: Optional[str] = None,
                      tabela: Optional[str] = None) -> Result:
    return _registrar(engine, "entrada", material_id, quantidade, obra_id, data_mov,
                      valor_unitario, responsavel, observacao, tabela)


def registrar_saida(engine: Engine, material_id: int, quantidade: Any, obra_id: Optional[int] = None,
                    data_mov: Optional[date] = None, valor_unitario: Any = None,
                    responsavel: Optional[str] = None, observacao: Optional[str] = None,
                    tabela: Optional[str] = None) -> Result:
    return _registrar(engine, "saida", material_id, quantidade, obra_id, data_mov,
                      valor_unitario, responsavel, observacao, tabela)


def list_movimentacoes(
    engine: Engine,
    tabela: str,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
    obra_id: Optional[int] = None,
    material_id: Optional[int] = None,
) -> Result:
    """Movimentações com nome/unidade/preço do material e nome da obra."""
    where, params = [], {}
    if inicio:
        where.append("m.data >= :inicio")
        params["inicio"] = inicio
    if fim:
        where.append("m.data <= :fim")
        params["fim"] = fim
    if obra_id is not None:
        where.append("m.obra_id = :obra_id")
        params["obra_id"] = obra_id
    if material_id is not None:
        where.append("m.material_id = :material_id")
        params["material_id"] = material_id

    sql = f"""
        SELECT m.*, mat.nome AS material_nome, mat.unidade AS unidade,
               mat.preco_unitario AS preco_unitario, o.nome AS obra_nome
        FROM {quote_table(tabela)} m
        LEFT JOIN materiais mat ON mat.id = m.material_id
        LEFT JOIN obras o ON o.id = m.obra_id
    """
    if where:
        sql += " WHERE " + " AND ".join(where)
    return fetch_all(engine, sql + " ORDER BY m.data, m.id", params)


def historico_material(engine: Engine, material_id: int, tabela: Optional[str] = None) -> Result:
    res = _tabela_movimentacao(engine, tabela)
    if not res.ok:
        return res
    return list_movimentacoes(engine, res.data, material_id=material_id)


def list_requisicoes(
    engine: Engine,
    tabela: str,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
    obra_id: Optional[int] = None,
    material_id: Optional[int] = None,
) -> Result:
    where, params = [], {}
    if inicio:
        where.append("data >= :inicio")
        params["inicio"] = inicio
    if fim:
        where.append("data <= :fim")
        params["fim"] = fim
    if obra_id is not None:
        where.append("obra_id = :obra_id")
        params["obra_id"] = obra_id
    if material_id is not None:
        where.append("material_id = :material_id")
        params["material_id"] = material_id
    sql = f"SELECT * FROM {quote_table(tabela)}"
    if where:
        sql += " WHERE " + " AND ".join(where)
    return fetch_all(engine, sql + " ORDER BY data, id", params)
