"""
GestObra - Conexão compartilhada das páginas Streamlit

- Um engine por processo (st.cache_resource), injetado nas funções de dados.
- Cria as tabelas que faltam. A tabela de movimentações só é criada quando
  nenhum dos dois nomes (singular/plural) existe.

Observação: este arquivo não contém senhas. Tudo vem de DATABASE_URL
(+ PGPASSWORD opcional) ou do .streamlit/secrets.toml.
"""
from __future__ import annotations

import logging

import streamlit as st
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from gestobra_shared.backend import create_backend_engine
from gestobra_shared.schema import ensure_gestobra_tables
from gestobra_shared.settings import Settings, configure_logging, load_settings, mask_db_url
from gestobra_shared.table_probe import MOVIMENTACAO_TABLES, TableResolver, probe_tables

logger = logging.getLogger(__name__)


def bootstrap_engine(settings: Settings) -> Engine:
    engine = create_backend_engine(settings.database_url)
    probe = probe_tables(engine, MOVIMENTACAO_TABLES)
    ensure_gestobra_tables(engine, movimentacao_table=None if probe.table_exists else MOVIMENTACAO_TABLES[0])
    return engine


@st.cache_resource
def get_settings() -> Settings:
    settings = load_settings()
    configure_logging(settings.log_level)
    return settings


@st.cache_resource
def get_engine() -> Engine:
    settings = get_settings()
    if settings.is_local:
        st.warning(
            "DATABASE_URL não configurado; usando SQLite local (gestobra_local.db). "
            "Para usar o Postgres, configure .streamlit/secrets.toml ou a variável de ambiente DATABASE_URL."
        )
    try:
        return bootstrap_engine(settings)
    except SQLAlchemyError as e:
        st.error("Falha ao conectar no banco de dados.")
        st.caption("Diagnóstico (sem senha):")
        st.code(mask_db_url(settings.database_url), language="json")
        st.exception(e)
        st.stop()


def get_resolver(engine: Engine) -> TableResolver:
    """Um TableResolver por sessão do usuário."""
    if "table_resolver" not in st.session_state:
        st.session_state["table_resolver"] = TableResolver(engine)
    return st.session_state["table_resolver"]
