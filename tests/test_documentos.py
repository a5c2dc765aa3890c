from gestobra_shared import storage
from gestobra_shared.backend import INVALID_INPUT, NOT_FOUND, fetch_all
from gestobra_shared.documentos import (
    baixar_arquivo,
    delete_documento,
    download_documento,
    get_documento,
    list_documentos,
    update_documento,
    upload_documento,
)

PDF = b"%PDF-1.4 planta baixa"


def _objetos(engine):
    return fetch_all(engine, "SELECT bucket, path FROM storage_objects").unwrap()


def _enviar(engine, obra_id, nome="planta.pdf", conteudo=PDF):
    return upload_documento(engine, {"obra_id": obra_id, "titulo": "Planta baixa", "tipo": "projeto"},
                            nome, conteudo).unwrap()


def test_upload_and_download(engine, nova_obra):
    obra_id = nova_obra()

    doc = _enviar(engine, obra_id)

    assert doc["arquivo_url"].startswith(f"/storage/v1/object/public/documentos/{obra_id}/")
    assert doc["arquivo_url"].endswith(".pdf")
    assert doc["content_type"] == "application/pdf"
    arquivo = baixar_arquivo(engine, doc["id"]).unwrap()
    assert arquivo["data"] == PDF
    assert arquivo["nome"] == "planta.pdf"
    assert download_documento(engine, doc["id"]).unwrap() == {"download_url": doc["arquivo_url"]}
    assert [d["id"] for d in list_documentos(engine, obra_id=obra_id).unwrap()] == [doc["id"]]


def test_delete_removes_file_and_row(engine, nova_obra):
    doc = _enviar(engine, nova_obra())

    res = delete_documento(engine, doc["id"]).unwrap()

    assert res == {"id": doc["id"], "arquivo_removido": True}
    assert get_documento(engine, doc["id"]).error.code == NOT_FOUND
    assert _objetos(engine) == []


def test_delete_when_file_is_already_gone(engine, nova_obra):
    doc = _enviar(engine, nova_obra())
    storage.remove(engine, storage.BUCKET_DOCUMENTOS, [storage.path_from_url(doc["arquivo_url"])]).unwrap()

    res = delete_documento(engine, doc["id"])

    assert res.ok
    assert res.data["arquivo_removido"] is False
    assert get_documento(engine, doc["id"]).error.code == NOT_FOUND


def test_invalid_document_stores_nothing(engine, nova_obra):
    obra_id = nova_obra()

    res = upload_documento(engine, {"obra_id": obra_id, "titulo": "  "}, "foto.jpg", b"jpg")

    assert res.error.code == INVALID_INPUT
    assert _objetos(engine) == []


def test_replace_file_removes_old_one(engine, nova_obra):
    doc = _enviar(engine, nova_obra())
    antigo = storage.path_from_url(doc["arquivo_url"])

    novo = upload_documento(engine, {}, "planta_v2.dwg", b"dwg", documento_id=doc["id"]).unwrap()

    assert novo["id"] == doc["id"]
    assert novo["arquivo_nome"] == "planta_v2.dwg"
    assert novo["titulo"] == "Planta baixa"
    assert storage.download(engine, storage.BUCKET_DOCUMENTOS, antigo).error.code == NOT_FOUND
    assert [o["path"] for o in _objetos(engine)] == [storage.path_from_url(novo["arquivo_url"])]


def test_update_metadata(engine, nova_obra):
    doc = _enviar(engine, nova_obra())

    assert update_documento(engine, doc["id"], {"titulo": "Planta revisada"}).unwrap()["titulo"] == "Planta revisada"
    assert update_documento(engine, doc["id"], {"titulo": ""}).error.code == INVALID_INPUT


def test_download_missing_document(engine):
    res = download_documento(engine, 404)
    assert res.error.code == NOT_FOUND


def test_duplicate_storage_path(engine):
    storage.upload(engine, "documentos", "1/a.txt", b"a").unwrap()

    assert storage.upload(engine, "documentos", "1/a.txt", b"b").error.code == "23505"
    assert storage.upload(engine, "documentos", "1/a.txt", b"b", upsert=True).ok
    assert storage.download(engine, "documentos", "1/a.txt").unwrap()["data"] == b"b"
