# reports/aggregators.py
"""
Agregadores dos relatórios (obras, financeiro, materiais, desempenho, movimentações).

Regras comuns:
- o filtro de período vai na consulta (limites inclusivos);
- agrupamentos numa passada só: o balde nasce zerado na primeira ocorrência da
  chave e acumula; saldos e percentuais são calculados depois, no fim;
- divisão por zero dá 0;
- valores em Decimal; a formatação só acontece no renderizador;
- tabelas secundárias opcionais (requisições, etapas, movimentações) ausentes
  geram seções vazias. Falha numa consulta obrigatória levanta BackendError.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.engine import Engine

from gestobra_shared.backend import ZERO, Result, as_date, as_decimal
from gestobra_shared.financeiro import list_transacoes
from gestobra_shared.materiais import get_material, list_materiais, list_movimentacoes, list_requisicoes
from gestobra_shared.obras import STATUS_LABEL, get_obra, list_etapas, list_obras
from gestobra_shared.table_probe import ETAPA_TABLES, REQUISICAO_TABLES, TableResolver
from reports.models import (
    AUTO,
    DATE,
    DAYS,
    INT,
    MONEY,
    NUMBER,
    PERCENT,
    Chart,
    Column,
    ReportModel,
    ReportParams,
    Section,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

STATUS_DENTRO = "Dentro do orçamento"
STATUS_EXCEDIDO = "Excedido"
SEM_CATEGORIA = "Sem categoria"

RESUMO_COLS = (Column("indicador", "Indicador"), Column("valor", "Valor", AUTO))


@dataclass
class ReportContext:
    engine: Engine
    params: ReportParams
    resolver: TableResolver
    gerado_em: datetime = field(default_factory=datetime.now)


# -------------------------
# Helpers
# -------------------------
def percentual(parte: Any, total: Any) -> Decimal:
    total = as_decimal(total)
    if total == 0:
        return ZERO
    return (as_decimal(parte) / total * 100).quantize(CENT, rounding=ROUND_HALF_UP)


def media(soma: Any, n: int) -> Decimal:
    if not n:
        return ZERO
    return (as_decimal(soma) / n).quantize(CENT, rounding=ROUND_HALF_UP)


def slugify(s: str) -> str:
    s = unicodedata.normalize("NFKD", s or "").encode("ascii", "ignore").decode("ascii")
    s = re.sub(r"[^a-zA-Z0-9]+", "-", s).strip("-").lower()
    return s or "geral"


def _linha_resumo(indicador: str, valor: Any, formato: str) -> Dict[str, Any]:
    return {"indicador": indicador, "valor": valor, "formato": formato}


def _resumo(titulo: str, linhas: Sequence[Dict[str, Any]]) -> Section:
    return Section("resumo", titulo, RESUMO_COLS, tuple(linhas))


def _filtro(ctx: ReportContext, aplicados: Sequence[str]) -> Tuple[str, str]:
    """(contexto para o nome do arquivo, descrição do filtro).

    Só entram os filtros que o agregador de fato aplicou (`aplicados`).
    """
    p = ctx.params
    slugs: List[str] = []
    partes: List[str] = []
    if "obra" in aplicados and p.obra_id is not None:
        res = get_obra(ctx.engine, p.obra_id)
        nome = res.data["nome"] if res.ok else f"obra {p.obra_id}"
        slugs.append(slugify(nome))
        partes.append(f"Obra: {nome}")
    if "material" in aplicados and p.material_id is not None:
        res = get_material(ctx.engine, p.material_id)
        nome = res.data["nome"] if res.ok else f"material {p.material_id}"
        slugs.append(slugify(nome))
        partes.append(f"Material: {nome}")
    if "categoria" in aplicados and p.categoria:
        slugs.append(slugify(p.categoria))
        partes.append(f"Categoria: {p.categoria}")
    return ("_".join(slugs) or "geral", " | ".join(partes))


def _modelo(ctx: ReportContext, tipo: str, titulo: str, totais: Dict[str, Any],
            sections: Sequence[Section], filtros: Sequence[str]) -> ReportModel:
    contexto, filtro = _filtro(ctx, filtros)
    return ReportModel(
        tipo=tipo,
        titulo=titulo,
        periodo=ctx.params.periodo_label(),
        contexto=contexto,
        totais=totais,
        sections=tuple(sections),
        gerado_em=ctx.gerado_em,
        filtro=filtro,
    )


def _opcional(ctx: ReportContext, candidatos: Sequence[str],
              consulta: Callable[[str], Result]) -> List[Dict[str, Any]]:
    """Linhas de uma tabela secundária; ausente ou com erro vira lista vazia."""
    probe = ctx.resolver.resolve(candidatos)
    if not probe.table_exists:
        logger.info("Tabela opcional ausente (%s); seção vazia.", ", ".join(candidatos))
        return []
    res = consulta(probe.table_name)
    if not res.ok:
        logger.warning("Falha ao ler %s [%s]: %s; seção vazia.", probe.table_name, res.error.code, res.error.message)
        return []
    return res.data


# -------------------------
# Obras
# -------------------------
def agregar_obras(ctx: ReportContext) -> ReportModel:
    p = ctx.params
    obras = list_obras(ctx.engine, obra_id=p.obra_id).unwrap()
    ids = [o["id"] for o in obras]
    despesas = list_transacoes(ctx.engine, inicio=p.inicio, fim=p.fim, obra_ids=ids, tipo="despesa").unwrap()

    gasto: Dict[int, Decimal] = {}
    for d in despesas:
        oid = d["obra_id"]
        if oid not in gasto:
            gasto[oid] = ZERO
        gasto[oid] += as_decimal(d["valor"])

    rows = []
    for o in obras:
        orcamento = as_decimal(o["orcamento"])
        total = gasto.get(o["id"], ZERO)
        excedido = total > orcamento
        rows.append({
            "id": o["id"],
            "nome": o["nome"],
            "status": o["status"],
            "status_label": STATUS_LABEL.get(o["status"], o["status"]),
            "progresso": int(o["progresso"] or 0),
            "orcamento": orcamento,
            "total_despesas": total,
            "orcamento_restante": orcamento - total,
            "percentual_gasto": percentual(total, orcamento),
            "status_orcamento": STATUS_EXCEDIDO if excedido else STATUS_DENTRO,
            "excesso": total - orcamento if excedido else ZERO,
        })

    excedidas = [r for r in rows if r["status_orcamento"] == STATUS_EXCEDIDO]
    orcamento_total = sum((r["orcamento"] for r in rows), ZERO)
    despesas_total = sum((r["total_despesas"] for r in rows), ZERO)
    totais = {
        "total_obras": len(rows),
        "orcamento_total": orcamento_total,
        "despesas_total": despesas_total,
        "saldo_total": orcamento_total - despesas_total,
        "percentual_gasto": percentual(despesas_total, orcamento_total),
        "obras_excedidas": len(excedidas),
    }

    sections = [
        _resumo("Resumo das Obras", [
            _linha_resumo("Total de Obras", totais["total_obras"], INT),
            _linha_resumo("Orçamento Total", orcamento_total, MONEY),
            _linha_resumo("Despesas no Período", despesas_total, MONEY),
            _linha_resumo("Saldo", totais["saldo_total"], MONEY),
            _linha_resumo("% do Orçamento Gasto", totais["percentual_gasto"], PERCENT),
            _linha_resumo("Obras com Orçamento Excedido", totais["obras_excedidas"], INT),
        ]),
        Section(
            "obras",
            "Obras",
            (
                Column("nome", "Nome"),
                Column("status_label", "Status"),
                Column("progresso", "Progresso", PERCENT),
                Column("orcamento", "Orçamento", MONEY),
                Column("total_despesas", "Despesas", MONEY),
                Column("orcamento_restante", "Saldo", MONEY),
                Column("percentual_gasto", "% Gasto", PERCENT),
                Column("status_orcamento", "Status Orçamento"),
            ),
            tuple(rows),
            "Nenhuma obra cadastrada.",
            chart=Chart("nome", ("orcamento", "total_despesas"), "Orçamento x Despesas"),
        ),
        Section(
            "excedidas",
            "Obras com Orçamento Excedido",
            (
                Column("nome", "Obra"),
                Column("orcamento", "Orçamento", MONEY),
                Column("total_despesas", "Despesas", MONEY),
                Column("excesso", "Excesso", MONEY),
            ),
            tuple(excedidas),
            "Nenhuma obra excedeu o orçamento.",
        ),
    ]
    return _modelo(ctx, "obras", "Relatório de Obras", totais, sections, ("obra",))


# -------------------------
# Financeiro
# -------------------------
def agregar_financeiro(ctx: ReportContext) -> ReportModel:
    p = ctx.params
    transacoes = list_transacoes(
        ctx.engine, inicio=p.inicio, fim=p.fim, obra_id=p.obra_id, categoria=p.categoria,
    ).unwrap()

    categorias: Dict[str, Dict[str, Any]] = {}
    fluxo: Dict[Any, Dict[str, Decimal]] = {}
    a_pagar = ZERO
    a_receber = ZERO
    detalhes = []

    for t in transacoes:
        valor = as_decimal(t["valor"])
        receita = t["tipo"] == "receita"
        cat = t.get("categoria") or SEM_CATEGORIA
        dia = as_date(t["data"])

        bucket = categorias.get(cat)
        if bucket is None:
            bucket = categorias[cat] = {"receitas": ZERO, "despesas": ZERO, "quantidade": 0}
        bucket["receitas" if receita else "despesas"] += valor
        bucket["quantidade"] += 1

        dia_bucket = fluxo.get(dia)
        if dia_bucket is None:
            dia_bucket = fluxo[dia] = {"entradas": ZERO, "saidas": ZERO}
        dia_bucket["entradas" if receita else "saidas"] += valor

        if t.get("status_pagamento") == "pendente":
            if receita:
                a_receber += valor
            else:
                a_pagar += valor

        detalhes.append({
            "data": dia,
            "descricao": t.get("descricao") or "",
            "obra": t.get("obra_nome") or "",
            "categoria": cat,
            "tipo": "Receita" if receita else "Despesa",
            "status_pagamento": "Pago" if t.get("status_pagamento") == "pago" else "Pendente",
            "valor": valor,
        })

    total_entradas = sum((b["receitas"] for b in categorias.values()), ZERO)
    total_saidas = sum((b["despesas"] for b in categorias.values()), ZERO)

    cat_rows = []
    for nome in sorted(categorias):
        b = categorias[nome]
        cat_rows.append({
            "categoria": nome,
            "receitas": b["receitas"],
            "despesas": b["despesas"],
            "saldo": b["receitas"] - b["despesas"],
            "percentual_despesas": percentual(b["despesas"], total_saidas),
            "quantidade": b["quantidade"],
        })

    fluxo_rows = []
    acumulado = ZERO
    for dia in sorted(fluxo, key=lambda d: (d is None, d)):
        b = fluxo[dia]
        saldo_dia = b["entradas"] - b["saidas"]
        acumulado += saldo_dia
        fluxo_rows.append({
            "data": dia,
            "entradas": b["entradas"],
            "saidas": b["saidas"],
            "saldo": saldo_dia,
            "saldo_acumulado": acumulado,
        })

    totais = {
        "total_entradas": total_entradas,
        "total_saidas": total_saidas,
        "saldo": total_entradas - total_saidas,
        "a_pagar": a_pagar,
        "a_receber": a_receber,
        "total_transacoes": len(transacoes),
    }

    sections = [
        _resumo("Resumo Financeiro", [
            _linha_resumo("Total de Receitas", total_entradas, MONEY),
            _linha_resumo("Total de Despesas", total_saidas, MONEY),
            _linha_resumo("Saldo", totais["saldo"], MONEY),
            _linha_resumo("Contas a Pagar (pendentes)", a_pagar, MONEY),
            _linha_resumo("Contas a Receber (pendentes)", a_receber, MONEY),
            _linha_resumo("Transações", len(transacoes), INT),
        ]),
        Section(
            "categorias",
            "Despesas por Categoria",
            (
                Column("categoria", "Categoria"),
                Column("receitas", "Receitas", MONEY),
                Column("despesas", "Despesas", MONEY),
                Column("saldo", "Saldo", MONEY),
                Column("percentual_despesas", "% das Despesas", PERCENT),
                Column("quantidade", "Transações", INT),
            ),
            tuple(cat_rows),
            chart=Chart("categoria", ("despesas",), "Despesas por Categoria"),
        ),
        Section(
            "fluxo",
            "Fluxo de Caixa Diário",
            (
                Column("data", "Data", DATE),
                Column("entradas", "Entradas", MONEY),
                Column("saidas", "Saídas", MONEY),
                Column("saldo", "Saldo do Dia", MONEY),
                Column("saldo_acumulado", "Saldo Acumulado", MONEY),
            ),
            tuple(fluxo_rows),
        ),
        Section(
            "transacoes",
            "Transações",
            (
                Column("data", "Data", DATE),
                Column("descricao", "Descrição"),
                Column("obra", "Obra"),
                Column("categoria", "Categoria"),
                Column("tipo", "Tipo"),
                Column("status_pagamento", "Status"),
                Column("valor", "Valor", MONEY),
            ),
            tuple(detalhes),
        ),
    ]
    return _modelo(ctx, "financeiro", "Relatório Financeiro", totais, sections, ("obra", "categoria"))


# -------------------------
# Materiais
# -------------------------
def agregar_materiais(ctx: ReportContext) -> ReportModel:
    p = ctx.params
    materiais = list_materiais(ctx.engine, categoria=p.categoria).unwrap()
    if p.material_id is not None:
        materiais = [m for m in materiais if m["id"] == p.material_id]

    requisicoes = _opcional(
        ctx, REQUISICAO_TABLES,
        lambda tabela: list_requisicoes(ctx.engine, tabela, inicio=p.inicio, fim=p.fim,
                                        obra_id=p.obra_id, material_id=p.material_id),
    )
    precos = {m["id"]: as_decimal(m["preco_unitario"]) for m in materiais}

    stats: Dict[int, Dict[str, Any]] = {}
    for r in requisicoes:
        mid = r["material_id"]
        if mid not in precos:
            continue
        b = stats.get(mid)
        if b is None:
            b = stats[mid] = {"requisicoes": 0, "quantidade": ZERO, "valor": ZERO}
        qtd = as_decimal(r["quantidade"])
        unit = as_decimal(r["valor_unitario"]) if r.get("valor_unitario") is not None else precos[mid]
        b["requisicoes"] += 1
        b["quantidade"] += qtd
        b["valor"] += qtd * unit

    rows = []
    baixo = []
    for m in materiais:
        s = stats.get(m["id"], {"requisicoes": 0, "quantidade": ZERO, "valor": ZERO})
        estoque = as_decimal(m["quantidade_estoque"])
        minimo = as_decimal(m["estoque_minimo"])
        row = {
            "id": m["id"],
            "nome": m["nome"],
            "categoria": m.get("categoria") or SEM_CATEGORIA,
            "unidade": m.get("unidade") or "",
            "preco_unitario": precos[m["id"]],
            "quantidade_estoque": estoque,
            "estoque_minimo": minimo,
            "total_requisicoes": s["requisicoes"],
            "quantidade_requisitada": s["quantidade"],
            "valor_requisitado": s["valor"],
        }
        rows.append(row)
        if estoque < minimo:
            baixo.append(dict(row, deficit=minimo - estoque))

    mais_requisitados = sorted(
        (r for r in rows if r["total_requisicoes"] > 0),
        key=lambda r: (-r["total_requisicoes"], -r["quantidade_requisitada"], r["nome"]),
    )[:10]

    totais = {
        "total_materiais": len(rows),
        "total_requisicoes": sum(r["total_requisicoes"] for r in rows),
        "quantidade_requisitada": sum((r["quantidade_requisitada"] for r in rows), ZERO),
        "valor_total": sum((r["valor_requisitado"] for r in rows), ZERO),
        "estoque_baixo": len(baixo),
    }

    sections = [
        _resumo("Estatísticas de Materiais", [
            _linha_resumo("Total de Materiais", totais["total_materiais"], INT),
            _linha_resumo("Total de Requisições", totais["total_requisicoes"], INT),
            _linha_resumo("Quantidade Requisitada", totais["quantidade_requisitada"], NUMBER),
            _linha_resumo("Valor Total Requisitado", totais["valor_total"], MONEY),
            _linha_resumo("Materiais com Estoque Baixo", totais["estoque_baixo"], INT),
        ]),
        Section(
            "mais_requisitados",
            "Materiais mais Requisitados",
            (
                Column("nome", "Material"),
                Column("unidade", "Unidade"),
                Column("total_requisicoes", "Requisições", INT),
                Column("quantidade_requisitada", "Quantidade", NUMBER),
                Column("valor_requisitado", "Valor Total", MONEY),
            ),
            tuple(mais_requisitados),
            "Nenhuma requisição no período.",
            chart=Chart("nome", ("valor_requisitado",), "Valor requisitado por material"),
        ),
        Section(
            "materiais",
            "Materiais",
            (
                Column("nome", "Material"),
                Column("categoria", "Categoria"),
                Column("unidade", "Unidade"),
                Column("preco_unitario", "Preço Unitário", MONEY),
                Column("quantidade_estoque", "Estoque Atual", NUMBER),
                Column("estoque_minimo", "Estoque Mínimo", NUMBER),
                Column("total_requisicoes", "Requisições", INT),
                Column("valor_requisitado", "Valor Requisitado", MONEY),
            ),
            tuple(rows),
            "Nenhum material cadastrado.",
        ),
        Section(
            "estoque_baixo",
            "Materiais com Estoque Baixo",
            (
                Column("nome", "Material"),
                Column("unidade", "Unidade"),
                Column("quantidade_estoque", "Estoque Atual", NUMBER),
                Column("estoque_minimo", "Estoque Mínimo", NUMBER),
                Column("deficit", "Déficit", NUMBER),
            ),
            tuple(baixo),
            "Nenhum material abaixo do estoque mínimo.",
        ),
    ]
    return _modelo(ctx, "materiais", "Relatório de Materiais", totais, sections, ("obra", "material", "categoria"))


# -------------------------
# Desempenho
# -------------------------
def _dias_atraso(etapa: Mapping[str, Any]) -> Optional[int]:
    real = as_date(etapa.get("data_fim_real"))
    prevista = as_date(etapa.get("data_fim_prevista"))
    if real is None or prevista is None or real <= prevista:
        return None
    return (real - prevista).days


def agregar_desempenho(ctx: ReportContext) -> ReportModel:
    p = ctx.params
    obras = list_obras(ctx.engine, obra_id=p.obra_id).unwrap()
    ids = [o["id"] for o in obras]
    etapas = _opcional(ctx, ETAPA_TABLES, lambda tabela: list_etapas(ctx.engine, tabela, obra_ids=ids))

    acc: Dict[int, Dict[str, int]] = {}
    for e in etapas:
        b = acc.get(e["obra_id"])
        if b is None:
            b = acc[e["obra_id"]] = {"total": 0, "concluidas": 0, "atrasadas": 0, "dias_atraso": 0}
        b["total"] += 1
        if e.get("status") == "concluida":
            b["concluidas"] += 1
        dias = _dias_atraso(e)
        if dias is not None:
            b["atrasadas"] += 1
            b["dias_atraso"] += dias

    rows = []
    for o in obras:
        b = acc.get(o["id"], {"total": 0, "concluidas": 0, "atrasadas": 0, "dias_atraso": 0})
        if b["total"]:
            concluido = percentual(b["concluidas"], b["total"])
        else:
            concluido = Decimal(int(o["progresso"] or 0))
        rows.append({
            "id": o["id"],
            "nome": o["nome"],
            "status": o["status"],
            "status_label": STATUS_LABEL.get(o["status"], o["status"]),
            "total_etapas": b["total"],
            "etapas_concluidas": b["concluidas"],
            "percentual_concluido": concluido,
            "etapas_atrasadas": b["atrasadas"],
            "atraso_medio_dias": media(b["dias_atraso"], b["atrasadas"]),
            "percentual_atrasadas": percentual(b["atrasadas"], b["total"]),
        })

    atrasos = sorted(
        (r for r in rows if r["etapas_atrasadas"] > 0),
        key=lambda r: (-r["etapas_atrasadas"], -r["atraso_medio_dias"], r["nome"]),
    )[:5]

    totais = {
        "total_obras": len(rows),
        "em_andamento": sum(1 for r in rows if r["status"] == "em_andamento"),
        "concluidas": sum(1 for r in rows if r["status"] == "concluida"),
        "media_conclusao": media(sum((r["percentual_concluido"] for r in rows), ZERO), len(rows)),
        "media_atraso": media(sum((r["atraso_medio_dias"] for r in rows), ZERO), len(rows)),
    }

    sections = [
        _resumo("Estatísticas de Desempenho", [
            _linha_resumo("Total de Obras", totais["total_obras"], INT),
            _linha_resumo("Obras em Andamento", totais["em_andamento"], INT),
            _linha_resumo("Obras Concluídas", totais["concluidas"], INT),
            _linha_resumo("Média de Conclusão", totais["media_conclusao"], PERCENT),
            _linha_resumo("Média de Atraso", totais["media_atraso"], DAYS),
        ]),
        Section(
            "desempenho",
            "Desempenho por Obra",
            (
                Column("nome", "Obra"),
                Column("status_label", "Status"),
                Column("total_etapas", "Etapas", INT),
                Column("etapas_concluidas", "Concluídas", INT),
                Column("percentual_concluido", "% Concluído", PERCENT),
                Column("etapas_atrasadas", "Atrasadas", INT),
                Column("atraso_medio_dias", "Atraso Médio", DAYS),
            ),
            tuple(rows),
            "Nenhuma obra cadastrada.",
            chart=Chart("nome", ("percentual_concluido",), "% Concluído por obra"),
        ),
        Section(
            "atrasos",
            "Obras com Mais Atrasos",
            (
                Column("nome", "Obra"),
                Column("etapas_atrasadas", "Etapas Atrasadas", INT),
                Column("percentual_atrasadas", "% Atrasada", PERCENT),
                Column("atraso_medio_dias", "Atraso Médio", DAYS),
            ),
            tuple(atrasos),
            "Nenhuma etapa atrasada.",
        ),
    ]
    return _modelo(ctx, "desempenho", "Relatório de Desempenho", totais, sections, ("obra",))


# -------------------------
# Movimentações
# -------------------------
def agregar_movimentacoes(ctx: ReportContext) -> ReportModel:
    p = ctx.params
    probe = ctx.resolver.movimentacoes()
    if probe.table_exists:
        movs = list_movimentacoes(
            ctx.engine, probe.table_name, inicio=p.inicio, fim=p.fim,
            obra_id=p.obra_id, material_id=p.material_id,
        ).unwrap()
    else:
        logger.warning("Tabela de movimentações não encontrada: %s", probe.reason)
        movs = []

    por_material: Dict[Any, Dict[str, Any]] = {}
    por_obra: Dict[Any, Dict[str, Any]] = {}
    detalhes = []
    qtd_entradas = qtd_saidas = ZERO
    valor_entradas = valor_saidas = ZERO

    for m in movs:
        qtd = as_decimal(m["quantidade"])
        entrada = m["tipo"] == "entrada"
        preco = as_decimal(m.get("preco_unitario"))
        unit = as_decimal(m["valor_unitario"]) if m.get("valor_unitario") is not None else preco
        valor = qtd * unit

        mb = por_material.get(m["material_id"])
        if mb is None:
            mb = por_material[m["material_id"]] = {
                "material": m.get("material_nome") or f"Material {m['material_id']}",
                "unidade": m.get("unidade") or "",
                "preco_unitario": preco,
                "entradas": ZERO,
                "saidas": ZERO,
                "movimentacoes": 0,
            }
        mb["entradas" if entrada else "saidas"] += qtd
        mb["movimentacoes"] += 1

        ob = por_obra.get(m.get("obra_id"))
        if ob is None:
            ob = por_obra[m.get("obra_id")] = {
                "obra": m.get("obra_nome") or "Sem obra",
                "entradas": ZERO,
                "saidas": ZERO,
                "valor_consumido": ZERO,
                "movimentacoes": 0,
            }
        ob["entradas" if entrada else "saidas"] += qtd
        ob["movimentacoes"] += 1
        if not entrada:
            ob["valor_consumido"] += valor

        if entrada:
            qtd_entradas += qtd
            valor_entradas += valor
        else:
            qtd_saidas += qtd
            valor_saidas += valor

        detalhes.append({
            "data": as_date(m["data"]),
            "material": mb["material"],
            "obra": ob["obra"],
            "tipo": "Entrada" if entrada else "Saída",
            "quantidade": qtd,
            "valor_unitario": unit,
            "valor_total": valor,
            "responsavel": m.get("responsavel") or "",
            "observacao": m.get("observacao") or "",
        })

    mat_rows = []
    for mb in sorted(por_material.values(), key=lambda b: b["material"]):
        saldo = mb["entradas"] - mb["saidas"]
        mat_rows.append(dict(mb, saldo=saldo, valor_total=saldo * mb["preco_unitario"]))

    obra_rows = [dict(ob, saldo=ob["entradas"] - ob["saidas"])
                 for ob in sorted(por_obra.values(), key=lambda b: b["obra"])]

    totais = {
        "total_movimentacoes": len(movs),
        "quantidade_entradas": qtd_entradas,
        "quantidade_saidas": qtd_saidas,
        "valor_entradas": valor_entradas,
        "valor_saidas": valor_saidas,
        "valor_estoque": sum((r["valor_total"] for r in mat_rows), ZERO),
    }

    sections = [
        _resumo("Resumo das Movimentações", [
            _linha_resumo("Total de Movimentações", totais["total_movimentacoes"], INT),
            _linha_resumo("Quantidade de Entradas", qtd_entradas, NUMBER),
            _linha_resumo("Quantidade de Saídas", qtd_saidas, NUMBER),
            _linha_resumo("Valor das Entradas", valor_entradas, MONEY),
            _linha_resumo("Valor das Saídas", valor_saidas, MONEY),
            _linha_resumo("Valor do Saldo em Estoque", totais["valor_estoque"], MONEY),
        ]),
        Section(
            "por_material",
            "Saldo por Material",
            (
                Column("material", "Material"),
                Column("unidade", "Unidade"),
                Column("entradas", "Entradas", NUMBER),
                Column("saidas", "Saídas", NUMBER),
                Column("saldo", "Saldo", NUMBER),
                Column("preco_unitario", "Preço Unitário", MONEY),
                Column("valor_total", "Valor Total", MONEY),
            ),
            tuple(mat_rows),
            "Nenhuma movimentação no período.",
        ),
        Section(
            "por_obra",
            "Materiais por Obra",
            (
                Column("obra", "Obra"),
                Column("entradas", "Entradas", NUMBER),
                Column("saidas", "Saídas", NUMBER),
                Column("saldo", "Saldo", NUMBER),
                Column("valor_consumido", "Valor Consumido", MONEY),
            ),
            tuple(obra_rows),
            "Nenhuma movimentação no período.",
            chart=Chart("obra", ("valor_consumido",), "Valor consumido por obra"),
        ),
        Section(
            "movimentacoes",
            "Movimentações",
            (
                Column("data", "Data", DATE),
                Column("material", "Material"),
                Column("obra", "Obra"),
                Column("tipo", "Tipo"),
                Column("quantidade", "Quantidade", NUMBER),
                Column("valor_unitario", "Valor Unitário", MONEY),
                Column("valor_total", "Valor Total", MONEY),
                Column("responsavel", "Responsável"),
                Column("observacao", "Observação"),
            ),
            tuple(detalhes),
            "Nenhuma movimentação no período.",
        ),
    ]
    return _modelo(ctx, "movimentacoes", "Relatório de Movimentações de Materiais", totais, sections, ("obra", "material"))


AGREGADORES: Dict[str, Callable[[ReportContext], ReportModel]] = {
    "obras": agregar_obras,
    "financeiro": agregar_financeiro,
    "materiais": agregar_materiais,
    "desempenho": agregar_desempenho,
    "movimentacoes": agregar_movimentacoes,
}
