"""
GestObra - Verificação de existência de tabelas

Bases antigas têm a tabela de movimentações com o nome no plural
(movimentacoes_materiais). Antes de consultar uma tabela opcional, os relatórios
perguntam qual dos nomes candidatos existe. A consulta de teste não devolve
linhas (COUNT(*) ... LIMIT 0).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from sqlalchemy.engine import Engine

from gestobra_shared.backend import fetch_all, quote_table

logger = logging.getLogger(__name__)

MOVIMENTACAO_TABLES = ("movimentacao_materiais", "movimentacoes_materiais")
REQUISICAO_TABLES = ("requisicoes_materiais",)
ETAPA_TABLES = ("etapas_obra", "etapas")


@dataclass(frozen=True)
class TableProbe:
    table_exists: bool
    table_name: Optional[str] = None
    reason: Optional[str] = None


def probe_tables(engine: Engine, candidates: Sequence[str]) -> TableProbe:
    """Devolve o primeiro candidato que existe, na ordem dada.

    Só "tabela inexistente" descarta um candidato. Qualquer outro erro
    (permissão, timeout) conta como existente: a consulta real do relatório vai
    mostrar o erro verdadeiro.
    """
    if not candidates:
        return TableProbe(False, None, "nenhuma tabela candidata informada")

    motivos = []
    for name in candidates:
        res = fetch_all(engine, f"SELECT COUNT(*) AS total FROM {quote_table(name)} LIMIT 0")
        if res.ok:
            return TableProbe(True, name)
        if res.error.is_missing_table:
            motivos.append(f"{name}: {res.error.message}")
            continue
        logger.warning("Erro ao verificar a tabela %s (%s); considerando existente.", name, res.error.code)
        return TableProbe(True, name, res.error.message)

    reason = "Nenhuma das tabelas existe: " + "; ".join(motivos)
    logger.info(reason)
    return TableProbe(False, None, reason)


class TableResolver:
    """Cache de verificações; uma instância por geração de relatório."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._cache: Dict[Tuple[str, ...], TableProbe] = {}

    def resolve(self, candidates: Sequence[str]) -> TableProbe:
        key = tuple(candidates)
        if key not in self._cache:
            self._cache[key] = probe_tables(self.engine, key)
        return self._cache[key]

    def movimentacoes(self) -> TableProbe:
        return self.resolve(MOVIMENTACAO_TABLES)
