"""
GestObra - Configuração

Prioridade para a URL do banco:
  env DATABASE_URL -> st.secrets["general"]["database_url"] -> .streamlit/secrets.toml
Sem URL configurada, usa SQLite local (gestobra_local.db).

Observação: este arquivo não contém senhas. Tudo vem de variáveis de ambiente
ou do secrets.toml (DATABASE_URL + PGPASSWORD opcional).
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

try:
    import tomllib  # py3.11+
except ImportError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

logger = logging.getLogger(__name__)

LOCAL_SQLITE = "sqlite:///gestobra_local.db"
DEFAULT_STORAGE_URL = "/storage/v1/object/public"
APP_NAME = "gestobra"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str
    storage_url: str = DEFAULT_STORAGE_URL
    log_level: str = "INFO"

    @property
    def is_local(self) -> bool:
        return self.database_url.startswith("sqlite")


def _secrets_candidates():
    return [
        Path.cwd() / ".streamlit" / "secrets.toml",
        Path(__file__).resolve().parent.parent / ".streamlit" / "secrets.toml",
    ]


def _read_database_url_from_secrets_file() -> str:
    """Lê .streamlit/secrets.toml sem depender do Streamlit runtime (útil para a CLI)."""
    for p in _secrets_candidates():
        if not p.exists():
            continue
        try:
            data = tomllib.loads(p.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Não foi possível ler %s: %s", p, e)
            continue
        return str(data.get("general", {}).get("database_url", "")).strip()
    return ""


def _read_database_url_from_streamlit() -> str:
    # st.secrets levanta erro fora do runtime quando não há secrets.toml
    try:
        import streamlit as st

        general = st.secrets.get("general", {})
        return str(general.get("database_url", "")).strip()
    except Exception:
        return ""


def resolve_database_url() -> str:
    """Prioridade: env DATABASE_URL -> st.secrets -> arquivo secrets.toml."""
    db_url = os.getenv("DATABASE_URL", "").strip()
    if db_url:
        return db_url

    db_url = _read_database_url_from_streamlit()
    if db_url:
        return db_url

    return _read_database_url_from_secrets_file()


def load_settings() -> Settings:
    db_url = resolve_database_url()
    if not db_url:
        logger.warning("DATABASE_URL não configurado; usando SQLite local (%s).", LOCAL_SQLITE)
        db_url = LOCAL_SQLITE
    return Settings(
        database_url=db_url,
        storage_url=os.getenv("GESTOBRA_STORAGE_URL", DEFAULT_STORAGE_URL).strip() or DEFAULT_STORAGE_URL,
        log_level=os.getenv("GESTOBRA_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=_LOG_FORMAT)


# -------------------------
# URL do Postgres/Neon
# -------------------------
def mask_db_url(db_url: str) -> str:
    """Diagnóstico SEM expor senha."""
    p = urlparse(db_url)
    q = dict(parse_qsl(p.query))
    has_pwd = "sim" if (p.password or "").strip() else "não"
    return json.dumps({
        "dialeto": p.scheme,
        "hospedagem": p.hostname,
        "porta": p.port or 5432,
        "banco_de_dados": (p.path or "").lstrip("/"),
        "modo_ssl": q.get("sslmode", "(ausente)"),
        "usuário": p.username,
        "senha_na_url": has_pwd,
        "PGPASSWORD_setado": "sim" if (os.getenv("PGPASSWORD") or "").strip() else "não",
    }, ensure_ascii=False, indent=2)


def ensure_sslmode_require(db_url: str) -> str:
    p = urlparse(db_url)
    if p.scheme.startswith("sqlite"):
        return db_url
    q = dict(parse_qsl(p.query))
    if q.get("sslmode"):
        return db_url
    q["sslmode"] = "require"
    return urlunparse((p.scheme, p.netloc, p.path, p.params, urlencode(q), p.fragment))


def inject_password_if_missing(db_url: str) -> str:
    """Se a URL não tiver senha e existir PGPASSWORD, injeta user:senha@host."""
    p = urlparse(db_url)
    if p.scheme.startswith("sqlite"):
        return db_url
    if (p.password or "").strip():
        return db_url

    pgpwd = (os.getenv("PGPASSWORD") or "").strip()
    if not pgpwd or not p.username or not p.hostname:
        return db_url

    netloc = f"{p.username}:{pgpwd}@{p.hostname}"
    if p.port:
        netloc = f"{netloc}:{p.port}"
    return urlunparse((p.scheme, netloc, p.path, p.params, p.query, p.fragment))
