"""
GestObra - Armazenamento de arquivos (bucket/path)

Os arquivos ficam na tabela storage_objects. A URL pública é montada a partir
do bucket e do path: <base>/<bucket>/<path>. Os dois últimos segmentos da URL
formam o path dentro do bucket (<obra_id>/<arquivo>).
"""
from __future__ import annotations

import logging
import mimetypes
import uuid
from typing import Iterable, Optional

from sqlalchemy.engine import Engine

from gestobra_shared.backend import (
    UNIQUE_VIOLATION,
    Result,
    execute,
    fail,
    fetch_one,
)
from gestobra_shared.settings import DEFAULT_STORAGE_URL

logger = logging.getLogger(__name__)

BUCKET_DOCUMENTOS = "documentos"
BUCKET_COMPROVANTES = "comprovantes"


def guess_content_type(nome: str) -> str:
    return mimetypes.guess_type(nome)[0] or "application/octet-stream"


def object_path(pasta, nome_original: str) -> str:
    """<pasta>/<aleatório>.<ext> (mantém a extensão do arquivo enviado)."""
    ext = nome_original.rsplit(".", 1)[-1].lower() if "." in nome_original else "bin"
    return f"{pasta}/{uuid.uuid4().hex}.{ext}"


def public_url(bucket: str, path: str, base_url: str = DEFAULT_STORAGE_URL) -> str:
    return f"{base_url.rstrip('/')}/{bucket}/{path}"


def path_from_url(url: str) -> Optional[str]:
    parts = [p for p in (url or "").split("/") if p]
    if len(parts) < 2:
        return None
    return "/".join(parts[-2:])


def upload(engine: Engine, bucket: str, path: str, data: bytes,
           content_type: Optional[str] = None, upsert: bool = False) -> Result:
    ctype = content_type or guess_content_type(path)
    params = {"bucket": bucket, "path": path, "ctype": ctype, "size": len(data), "data": data}

    if upsert:
        res = execute(engine, "DELETE FROM storage_objects WHERE bucket = :bucket AND path = :path",
                      {"bucket": bucket, "path": path})
        if not res.ok:
            return res

    res = execute(
        engine,
        """
        INSERT INTO storage_objects (bucket, path, content_type, size, data)
        VALUES (:bucket, :path, :ctype, :size, :data)
        """,
        params,
    )
    if not res.ok:
        if res.error.code == UNIQUE_VIOLATION:
            return fail(UNIQUE_VIOLATION, f"O arquivo {bucket}/{path} já existe")
        return res
    logger.info("Arquivo armazenado: %s/%s (%d bytes)", bucket, path, len(data))
    return Result(data={"bucket": bucket, "path": path, "content_type": ctype, "size": len(data)})


def download(engine: Engine, bucket: str, path: str) -> Result:
    res = fetch_one(
        engine,
        "SELECT content_type, data FROM storage_objects WHERE bucket = :bucket AND path = :path",
        {"bucket": bucket, "path": path},
    )
    if not res.ok:
        return res
    return Result(data={"content_type": res.data["content_type"], "data": bytes(res.data["data"] or b"")})


def remove(engine: Engine, bucket: str, paths: Iterable[str]) -> Result:
    total = 0
    for path in paths:
        res = execute(engine, "DELETE FROM storage_objects WHERE bucket = :bucket AND path = :path",
                      {"bucket": bucket, "path": path})
        if not res.ok:
            return res
        total += res.data or 0
    return Result(data=total)
