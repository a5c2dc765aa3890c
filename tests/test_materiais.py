from datetime import date
from decimal import Decimal

from gestobra_shared.backend import INVALID_INPUT, NOT_FOUND, UNDEFINED_TABLE
from gestobra_shared.materiais import (
    create_material,
    get_material,
    historico_material,
    materiais_estoque_baixo,
    registrar_entrada,
    registrar_saida,
)

CRIAR_PLURAL = """
    CREATE TABLE movimentacoes_materiais (
        id INTEGER PRIMARY KEY AUTOINCREMENT, material_id INTEGER NOT NULL, obra_id INTEGER,
        data DATE NOT NULL, tipo TEXT NOT NULL, quantidade NUMERIC NOT NULL, valor_unitario NUMERIC,
        responsavel TEXT, observacao TEXT, created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
"""


def _estoque(engine, material_id):
    return Decimal(str(get_material(engine, material_id).unwrap()["quantidade_estoque"]))


def test_entry_and_exit_update_stock(engine, nova_obra, novo_material):
    obra_id = nova_obra()
    mid = novo_material(estoque="100")

    res = registrar_entrada(engine, mid, "25", responsavel="Carlos", data_mov=date(2025, 3, 1)).unwrap()
    assert res["quantidade_estoque"] == Decimal("125")
    registrar_saida(engine, mid, "40", obra_id=obra_id).unwrap()

    assert _estoque(engine, mid) == Decimal("85")
    historico = historico_material(engine, mid).unwrap()
    assert [m["tipo"] for m in historico] == ["entrada", "saida"]
    assert historico[1]["obra_nome"] == "Residencial Alfa"


def test_exit_above_stock_is_rejected(engine, novo_material):
    mid = novo_material(estoque="10")

    res = registrar_saida(engine, mid, "11")

    assert res.error.code == INVALID_INPUT
    assert "insuficiente" in res.error.message
    assert _estoque(engine, mid) == Decimal("10")
    assert historico_material(engine, mid).unwrap() == []


def test_exit_rechecks_stock_when_writing(engine, novo_material, sql, monkeypatch):
    from gestobra_shared import materiais

    mid = novo_material(estoque="10")
    original = materiais.get_material

    def leitura_antiga(eng, material_id):
        res = original(eng, material_id)
        # outra sessão baixa o estoque entre a leitura e a gravação
        sql(engine, "UPDATE materiais SET quantidade_estoque = 2 WHERE id = :id", {"id": mid})
        return res

    monkeypatch.setattr(materiais, "get_material", leitura_antiga)

    res = registrar_saida(engine, mid, "8")

    assert res.error.code == INVALID_INPUT
    assert _estoque(engine, mid) == Decimal("2")
    assert historico_material(engine, mid).unwrap() == []


def test_second_exit_cannot_oversell(engine, novo_material):
    mid = novo_material(estoque="10")

    assert registrar_saida(engine, mid, "8").ok
    assert registrar_saida(engine, mid, "8").error.code == INVALID_INPUT
    assert _estoque(engine, mid) == Decimal("2")
    assert len(historico_material(engine, mid).unwrap()) == 1


def test_entry_for_unknown_material(engine):
    assert registrar_entrada(engine, 999, "1").error.code == NOT_FOUND


def test_quantity_must_be_positive(engine, novo_material):
    mid = novo_material()
    assert registrar_entrada(engine, mid, "0").error.code == INVALID_INPUT
    assert registrar_entrada(engine, mid, "-3").error.code == INVALID_INPUT


def test_uses_plural_table_when_singular_is_missing(engine_minimo, sql):
    sql(engine_minimo, CRIAR_PLURAL)
    mid = create_material(engine_minimo, {"nome": "Areia", "quantidade_estoque": "2"}).unwrap()["id"]

    registrar_entrada(engine_minimo, mid, "3").unwrap()

    assert _estoque(engine_minimo, mid) == Decimal("5")
    assert len(historico_material(engine_minimo, mid).unwrap()) == 1


def test_no_movement_table(engine_minimo):
    mid = create_material(engine_minimo, {"nome": "Areia"}).unwrap()["id"]

    res = registrar_entrada(engine_minimo, mid, "3")

    assert res.error.code == UNDEFINED_TABLE


def test_low_stock_list(engine, novo_material):
    novo_material("Cimento CP-II", estoque="100", minimo="20")
    novo_material("Brita 1", estoque="3", minimo="10")

    assert [m["nome"] for m in materiais_estoque_baixo(engine).unwrap()] == ["Brita 1"]


def test_negative_price_is_rejected(engine):
    assert create_material(engine, {"nome": "Cal", "preco_unitario": "-1"}).error.code == INVALID_INPUT
