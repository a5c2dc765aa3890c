from datetime import date

import pytest
from sqlalchemy import text

from gestobra_shared.backend import create_backend_engine
from gestobra_shared.financeiro import create_transacao
from gestobra_shared.materiais import create_material
from gestobra_shared.obras import create_obra
from gestobra_shared.schema import ensure_gestobra_tables


@pytest.fixture
def engine():
    eng = create_backend_engine("sqlite://")
    ensure_gestobra_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def engine_minimo():
    """Só as tabelas principais: sem movimentações, requisições e etapas."""
    eng = create_backend_engine("sqlite://")
    ensure_gestobra_tables(eng, movimentacao_table=None, opcionais=False)
    yield eng
    eng.dispose()


@pytest.fixture
def nova_obra(engine):
    def _criar(nome="Residencial Alfa", orcamento="10000", **kw):
        res = create_obra(engine, dict(nome=nome, orcamento=orcamento, **kw))
        assert res.ok, res.error
        return res.data["id"]
    return _criar


@pytest.fixture
def nova_transacao(engine):
    def _criar(valor, tipo="despesa", data=date(2025, 3, 10), **kw):
        res = create_transacao(engine, dict(valor=valor, tipo=tipo, data=data, **kw))
        assert res.ok, res.error
        return res.data["id"]
    return _criar


@pytest.fixture
def novo_material(engine):
    def _criar(nome="Cimento CP-II", preco="35.50", estoque="100", minimo="20", **kw):
        res = create_material(engine, dict(
            nome=nome, preco_unitario=preco, quantidade_estoque=estoque, estoque_minimo=minimo,
            unidade=kw.pop("unidade", "sc"), **kw,
        ))
        assert res.ok, res.error
        return res.data["id"]
    return _criar


def run_sql(engine, sql, params=None):
    with engine.begin() as conn:
        conn.execute(text(sql), params or {})


@pytest.fixture
def sql():
    return run_sql
