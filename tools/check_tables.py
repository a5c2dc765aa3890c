"""
GestObra - Verificar quais tabelas existem no banco

Uso:
  python tools/check_tables.py            # só verifica
  python tools/check_tables.py --criar    # cria as tabelas que faltam

Lê DATABASE_URL (ou .streamlit/secrets.toml). Sai com código 1 se faltar
alguma tabela obrigatória.
"""
from __future__ import annotations

import sys

from gestobra_shared.backend import create_backend_engine
from gestobra_shared.schema import ensure_gestobra_tables
from gestobra_shared.settings import configure_logging, load_settings, mask_db_url
from gestobra_shared.table_probe import (
    ETAPA_TABLES,
    MOVIMENTACAO_TABLES,
    REQUISICAO_TABLES,
    probe_tables,
)

OBRIGATORIAS = [
    ("obras",),
    ("despesas",),
    ("documentos",),
    ("materiais",),
    ("storage_objects",),
    MOVIMENTACAO_TABLES,
]
OPCIONAIS = [REQUISICAO_TABLES, ETAPA_TABLES]


def verificar(engine) -> bool:
    ok = True
    for grupo, obrigatoria in [(g, True) for g in OBRIGATORIAS] + [(g, False) for g in OPCIONAIS]:
        probe = probe_tables(engine, grupo)
        rotulo = " / ".join(grupo)
        if probe.table_exists:
            print(f"  OK       {rotulo} -> {probe.table_name}")
        elif obrigatoria:
            ok = False
            print(f"  FALTANDO {rotulo}")
        else:
            print(f"  ausente  {rotulo} (opcional)")
    return ok


def main():
    settings = load_settings()
    configure_logging("WARNING")
    criar = "--criar" in sys.argv[1:]

    if not settings.is_local:
        print(mask_db_url(settings.database_url))
    engine = create_backend_engine(settings.database_url)

    if criar:
        mov = probe_tables(engine, MOVIMENTACAO_TABLES)
        ensure_gestobra_tables(engine, movimentacao_table=None if mov.table_exists else MOVIMENTACAO_TABLES[0])
        print("Tabelas criadas/verificadas.")

    print("Tabelas:")
    if not verificar(engine):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
