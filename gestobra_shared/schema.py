"""
GestObra - Criação das tabelas (idempotente)

Cria as tabelas do app com CREATE TABLE IF NOT EXISTS, com tipos por dialeto
(Postgres/Neon ou SQLite local). A tabela de movimentações existe em bases
antigas com o nome no plural; por isso o nome é parametrizável.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from gestobra_shared.backend import quote_table

logger = logging.getLogger(__name__)

STATUS_OBRA = ("planejada", "em_andamento", "pausada", "concluida")


def _types(engine: Engine) -> dict:
    if engine.dialect.name == "sqlite":
        return dict(id_col="INTEGER PRIMARY KEY AUTOINCREMENT", ts="DATETIME", money="NUMERIC",
                    qty="NUMERIC", blob="BLOB", dt="DATE")
    return dict(id_col="SERIAL PRIMARY KEY", ts="TIMESTAMP", money="NUMERIC(14,2)",
                qty="NUMERIC(14,3)", blob="BYTEA", dt="DATE")


def _statements(t: dict, movimentacao_table: Optional[str], opcionais: bool) -> List[str]:
    status_in = ", ".join(f"'{s}'" for s in STATUS_OBRA)
    stmts = [
        # -------------------------
        # OBRAS
        # -------------------------
        f"""
        CREATE TABLE IF NOT EXISTS obras (
            id {t['id_col']},
            nome TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'planejada' CHECK (status IN ({status_in})),
            orcamento {t['money']} DEFAULT 0,
            progresso INTEGER DEFAULT 0 CHECK (progresso BETWEEN 0 AND 100),
            endereco TEXT,
            data_inicio {t['dt']},
            data_previsao_termino {t['dt']},
            responsavel TEXT,
            user_id TEXT,
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP,
            updated_at {t['ts']}
        );
        """,
        # -------------------------
        # MATERIAIS (cadastro + estoque)
        # -------------------------
        f"""
        CREATE TABLE IF NOT EXISTS materiais (
            id {t['id_col']},
            nome TEXT NOT NULL,
            unidade TEXT DEFAULT 'un',
            preco_unitario {t['money']} DEFAULT 0,
            categoria TEXT,
            quantidade_estoque {t['qty']} DEFAULT 0,
            estoque_minimo {t['qty']} DEFAULT 0,
            estoque_maximo {t['qty']},
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP,
            updated_at {t['ts']}
        );
        """,
        # -------------------------
        # DESPESAS (receitas e despesas)
        # -------------------------
        f"""
        CREATE TABLE IF NOT EXISTS despesas (
            id {t['id_col']},
            obra_id INTEGER NULL REFERENCES obras(id),
            descricao TEXT,
            data {t['dt']} NOT NULL,
            valor {t['money']} NOT NULL DEFAULT 0 CHECK (valor >= 0),
            tipo TEXT NOT NULL DEFAULT 'despesa' CHECK (tipo IN ('despesa', 'receita')),
            categoria TEXT,
            status_pagamento TEXT NOT NULL DEFAULT 'pendente' CHECK (status_pagamento IN ('pendente', 'pago')),
            material_id INTEGER NULL REFERENCES materiais(id),
            etapa_id INTEGER NULL,
            comprovante_url TEXT,
            user_id TEXT,
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP
        );
        """,
        # -------------------------
        # DOCUMENTOS (metadados; arquivo fica no storage)
        # -------------------------
        f"""
        CREATE TABLE IF NOT EXISTS documentos (
            id {t['id_col']},
            obra_id INTEGER NOT NULL REFERENCES obras(id),
            titulo TEXT NOT NULL,
            descricao TEXT,
            tipo TEXT,
            arquivo_url TEXT,
            arquivo_nome TEXT,
            content_type TEXT,
            user_id TEXT,
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP,
            updated_at {t['ts']}
        );
        """,
        # -------------------------
        # STORAGE (bucket/path -> bytes)
        # -------------------------
        f"""
        CREATE TABLE IF NOT EXISTS storage_objects (
            id {t['id_col']},
            bucket TEXT NOT NULL,
            path TEXT NOT NULL,
            content_type TEXT,
            size INTEGER DEFAULT 0,
            data {t['blob']},
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (bucket, path)
        );
        """,
    ]

    if movimentacao_table:
        stmts.append(f"""
        CREATE TABLE IF NOT EXISTS {quote_table(movimentacao_table)} (
            id {t['id_col']},
            material_id INTEGER NOT NULL REFERENCES materiais(id),
            obra_id INTEGER NULL REFERENCES obras(id),
            data {t['dt']} NOT NULL,
            tipo TEXT NOT NULL CHECK (tipo IN ('entrada', 'saida')),
            quantidade {t['qty']} NOT NULL CHECK (quantidade > 0),
            valor_unitario {t['money']},
            responsavel TEXT,
            observacao TEXT,
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP
        );
        """)

    if opcionais:
        stmts.append(f"""
        CREATE TABLE IF NOT EXISTS requisicoes_materiais (
            id {t['id_col']},
            material_id INTEGER NOT NULL REFERENCES materiais(id),
            obra_id INTEGER NULL REFERENCES obras(id),
            data {t['dt']} NOT NULL,
            quantidade {t['qty']} NOT NULL DEFAULT 0,
            valor_unitario {t['money']},
            status TEXT DEFAULT 'pendente',
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP
        );
        """)
        stmts.append(f"""
        CREATE TABLE IF NOT EXISTS etapas_obra (
            id {t['id_col']},
            obra_id INTEGER NOT NULL REFERENCES obras(id),
            nome TEXT NOT NULL,
            status TEXT DEFAULT 'pendente',
            ordem INTEGER DEFAULT 0,
            progresso INTEGER DEFAULT 0,
            data_inicio {t['dt']},
            data_fim_prevista {t['dt']},
            data_fim_real {t['dt']},
            created_at {t['ts']} DEFAULT CURRENT_TIMESTAMP
        );
        """)
    return stmts


def ensure_gestobra_tables(engine: Engine, movimentacao_table: Optional[str] = "movimentacao_materiais",
                           opcionais: bool = True) -> None:
    """Cria as tabelas que ainda não existem.

    movimentacao_table=None não cria a tabela de movimentações (bases onde ela
    é gerenciada fora do app); opcionais=False pula requisições e etapas.
    """
    t = _types(engine)
    with engine.begin() as conn:
        for sql in _statements(t, movimentacao_table, opcionais):
            conn.execute(text(sql))
    logger.info("Tabelas verificadas (%s).", engine.dialect.name)
