"""
GestObra - Documentos das obras

Fluxo de envio: primeiro o arquivo vai para o storage (bucket "documentos",
path <obra_id>/<aleatório>.<ext>), depois a linha é gravada com a URL pública.
Não é transacional: se a gravação da linha falhar, o arquivo fica órfão.

Na exclusão, a remoção do arquivo é "melhor esforço": uma falha é registrada
no log e a linha é excluída mesmo assim.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.engine import Engine

from gestobra_shared import storage
from gestobra_shared.backend import (
    INVALID_INPUT,
    NOT_FOUND,
    Result,
    delete_row,
    fail,
    fetch_all,
    fetch_one,
    insert_row,
    pick_fields,
    update_row,
    utcnow_iso,
)
from gestobra_shared.settings import DEFAULT_STORAGE_URL

logger = logging.getLogger(__name__)

TIPOS_DOCUMENTO = ("projeto", "contrato", "nota_fiscal", "licenca", "foto", "relatorio", "outro")

CAMPOS_DOCUMENTO = ("obra_id", "titulo", "descricao", "tipo")


def list_documentos(engine: Engine, obra_id: Optional[int] = None, tipo: Optional[str] = None) -> Result:
    where, params = [], {}
    if obra_id is not None:
        where.append("d.obra_id = :obra_id")
        params["obra_id"] = obra_id
    if tipo:
        where.append("d.tipo = :tipo")
        params["tipo"] = tipo
    sql = """
        SELECT d.*, o.nome AS obra_nome
        FROM documentos d
        LEFT JOIN obras o ON o.id = d.obra_id
    """
    if where:
        sql += " WHERE " + " AND ".join(where)
    return fetch_all(engine, sql + " ORDER BY d.created_at DESC, d.id DESC", params)


def get_documento(engine: Engine, documento_id: int) -> Result:
    return fetch_one(engine, "SELECT * FROM documentos WHERE id = :id", {"id": documento_id})


def upload_documento(
    engine: Engine,
    dados: Mapping[str, Any],
    nome_arquivo: str,
    conteudo: bytes,
    content_type: Optional[str] = None,
    documento_id: Optional[int] = None,
    user_id: Optional[str] = None,
    storage_url: str = DEFAULT_STORAGE_URL,
) -> Result:
    """Envia o arquivo e cria o documento (ou substitui o arquivo de documento_id)."""
    values = pick_fields(dados, CAMPOS_DOCUMENTO)
    if documento_id is None and (not values.get("obra_id") or not str(values.get("titulo") or "").strip()):
        return fail(INVALID_INPUT, "Informe a obra e o título do documento")

    anterior = None
    if documento_id is not None:
        res = get_documento(engine, documento_id)
        if not res.ok:
            return res
        anterior = res.data
        values.setdefault("obra_id", anterior["obra_id"])

    path = storage.object_path(values["obra_id"], nome_arquivo)
    ctype = content_type or storage.guess_content_type(nome_arquivo)
    res = storage.upload(engine, storage.BUCKET_DOCUMENTOS, path, conteudo, ctype)
    if not res.ok:
        return res

    values["arquivo_url"] = storage.public_url(storage.BUCKET_DOCUMENTOS, path, storage_url)
    values["arquivo_nome"] = nome_arquivo
    values["content_type"] = ctype

    if anterior is None:
        values["user_id"] = user_id
        res = insert_row(engine, "documentos", values)
    else:
        values["updated_at"] = utcnow_iso()
        res = update_row(engine, "documentos", documento_id, values)
        if res.ok:
            _remover_arquivo(engine, anterior.get("arquivo_url"))

    if not res.ok:
        logger.error("Arquivo %s enviado, mas o documento não foi gravado.", path)
    return res


def update_documento(engine: Engine, documento_id: int, dados: Mapping[str, Any]) -> Result:
    values = pick_fields(dados, ("titulo", "descricao", "tipo"))
    if "titulo" in values and not str(values["titulo"] or "").strip():
        return fail(INVALID_INPUT, "O título não pode ficar vazio")
    if values:
        values["updated_at"] = utcnow_iso()
    return update_row(engine, "documentos", documento_id, values)


def _remover_arquivo(engine: Engine, arquivo_url: Optional[str]) -> bool:
    path = storage.path_from_url(arquivo_url or "")
    if not path:
        return False
    res = storage.remove(engine, storage.BUCKET_DOCUMENTOS, [path])
    if not res.ok:
        logger.warning("Não foi possível remover o arquivo %s: %s", path, res.error.message)
        return False
    if not res.data:
        logger.warning("Arquivo %s não encontrado no storage.", path)
        return False
    return True


def delete_documento(engine: Engine, documento_id: int) -> Result:
    res = get_documento(engine, documento_id)
    if not res.ok:
        return res
    arquivo_removido = _remover_arquivo(engine, res.data.get("arquivo_url"))
    res = delete_row(engine, "documentos", documento_id)
    if not res.ok:
        return res
    return Result(data={"id": documento_id, "arquivo_removido": arquivo_removido})


def download_documento(engine: Engine, documento_id: int) -> Result:
    """URL pública do arquivo do documento."""
    res = fetch_one(engine, "SELECT arquivo_url FROM documentos WHERE id = :id", {"id": documento_id})
    if not res.ok:
        return res
    if not res.data.get("arquivo_url"):
        return fail(NOT_FOUND, "URL do arquivo não encontrada")
    return Result(data={"download_url": res.data["arquivo_url"]})


def baixar_arquivo(engine: Engine, documento_id: int) -> Result:
    """Bytes do arquivo (para o botão de download)."""
    res = get_documento(engine, documento_id)
    if not res.ok:
        return res
    path = storage.path_from_url(res.data.get("arquivo_url") or "")
    if not path:
        return fail(NOT_FOUND, "URL do arquivo não encontrada")
    res_arq = storage.download(engine, storage.BUCKET_DOCUMENTOS, path)
    if not res_arq.ok:
        return res_arq
    return Result(data={
        "nome": res.data.get("arquivo_nome") or path.rsplit("/", 1)[-1],
        "content_type": res_arq.data["content_type"],
        "data": res_arq.data["data"],
    })
