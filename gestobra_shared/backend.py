"""
GestObra - Cliente do banco (Postgres/Neon ou SQLite local)

Todas as funções de acesso a dados recebem o engine como primeiro argumento e
devolvem Result(data, error). Erros esperados do banco viram valores
(BackendError), nunca exceções; o chamador decide o que fazer.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import bindparam, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from gestobra_shared.settings import APP_NAME, ensure_sslmode_require, inject_password_if_missing

logger = logging.getLogger(__name__)

# Códigos no padrão SQLSTATE do Postgres (+ PGRST116 para "nenhuma linha")
UNDEFINED_TABLE = "42P01"
UNDEFINED_COLUMN = "42703"
FOREIGN_KEY_VIOLATION = "23503"
UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"
NOT_NULL_VIOLATION = "23502"
INVALID_INPUT = "22023"
NOT_FOUND = "PGRST116"
CONNECTION_FAILURE = "08006"
UNKNOWN_ERROR = "XX000"

ZERO = Decimal("0")

ENGINE_KW = dict(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_recycle=1800)

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Mensagens do SQLite -> SQLSTATE equivalente
_SQLITE_PATTERNS = (
    ("no such table", UNDEFINED_TABLE),
    ("no such column", UNDEFINED_COLUMN),
    ("has no column named", UNDEFINED_COLUMN),
    ("foreign key constraint failed", FOREIGN_KEY_VIOLATION),
    ("unique constraint failed", UNIQUE_VIOLATION),
    ("check constraint failed", CHECK_VIOLATION),
    ("not null constraint failed", NOT_NULL_VIOLATION),
    ("unable to open database", CONNECTION_FAILURE),
)


class BackendError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def is_missing_table(self) -> bool:
        return self.code == UNDEFINED_TABLE

    def __repr__(self) -> str:
        return f"BackendError(code={self.code!r}, message={self.message!r})"


@dataclass
class Result:
    data: Any = None
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.data


def fail(code: str, message: str) -> Result:
    return Result(error=BackendError(code, message))


def classify_error(exc: BaseException) -> BackendError:
    """Converte uma exceção do driver em BackendError com código SQLSTATE."""
    orig = getattr(exc, "orig", None) or exc
    message = str(orig).strip().splitlines()[0] if str(orig).strip() else exc.__class__.__name__

    # psycopg2 expõe pgcode; psycopg 3 expõe sqlstate
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode:
        return BackendError(str(pgcode), message)

    low = message.lower()
    if "relation" in low and "does not exist" in low:
        return BackendError(UNDEFINED_TABLE, message)
    for pattern, code in _SQLITE_PATTERNS:
        if pattern in low:
            return BackendError(code, message)
    return BackendError(UNKNOWN_ERROR, message)


# -------------------------
# Normalização de valores (SQLite devolve texto/float, Postgres devolve date/Decimal)
# -------------------------
def as_decimal(v: Any) -> Decimal:
    if v is None or v == "":
        return ZERO
    if isinstance(v, Decimal):
        return v
    if isinstance(v, float):
        return Decimal(str(v))
    try:
        return Decimal(v)
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("Valor numérico inválido ignorado: %r", v)
        return ZERO


def as_date(v: Any) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _db_value(v: Any) -> Any:
    # sqlite3 não aceita Decimal; datas vão como ISO para os dois dialetos
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, datetime):
        return v.strftime("%Y-%m-%dT%H:%M:%S")
    if isinstance(v, date):
        return v.isoformat()
    if isinstance(v, (list, tuple)):
        return [_db_value(x) for x in v]
    return v


def _bind(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return {k: _db_value(v) for k, v in (params or {}).items()}


def quote_table(name: str) -> str:
    """Valida o nome da tabela antes de interpolar no SQL."""
    if not _IDENT_RE.match(name or ""):
        raise ValueError(f"Nome de tabela inválido: {name!r}")
    return name


def _statement(sql: str, expanding: Iterable[str] = ()):
    stmt = text(sql)
    names = list(expanding)
    if names:
        stmt = stmt.bindparams(*[bindparam(n, expanding=True) for n in names])
    return stmt


# -------------------------
# Consultas
# -------------------------
def fetch_all(engine: Engine, sql: str, params: Optional[Mapping[str, Any]] = None,
              expanding: Iterable[str] = ()) -> Result:
    try:
        with engine.connect() as conn:
            rows = conn.execute(_statement(sql, expanding), _bind(params)).mappings().all()
    except SQLAlchemyError as e:
        err = classify_error(e)
        logger.error("Falha na consulta [%s]: %s", err.code, err.message)
        return Result(error=err)
    return Result(data=[dict(r) for r in rows])


def fetch_one(engine: Engine, sql: str, params: Optional[Mapping[str, Any]] = None) -> Result:
    res = fetch_all(engine, sql, params)
    if not res.ok:
        return res
    if not res.data:
        return fail(NOT_FOUND, "Nenhum registro encontrado")
    return Result(data=res.data[0])


def execute(engine: Engine, sql: str, params: Optional[Mapping[str, Any]] = None,
            returning: bool = False) -> Result:
    """INSERT/UPDATE/DELETE numa transação. Com returning=True devolve as linhas do RETURNING."""
    try:
        with engine.begin() as conn:
            res = conn.execute(text(sql), _bind(params))
            if returning:
                data: Any = [dict(r) for r in res.mappings().all()]
            else:
                data = res.rowcount
    except SQLAlchemyError as e:
        err = classify_error(e)
        logger.error("Falha ao gravar [%s]: %s", err.code, err.message)
        return Result(error=err)
    return Result(data=data)


def insert_row(engine: Engine, table: str, values: Mapping[str, Any]) -> Result:
    cols = list(values.keys())
    sql = (
        f"INSERT INTO {quote_table(table)} ({', '.join(cols)}) "
        f"VALUES ({', '.join(':' + c for c in cols)}) RETURNING *"
    )
    res = execute(engine, sql, values, returning=True)
    if not res.ok:
        return res
    return Result(data=res.data[0] if res.data else None)


def update_row(engine: Engine, table: str, row_id: int, values: Mapping[str, Any]) -> Result:
    if not values:
        return fail(INVALID_INPUT, "Nenhum campo para atualizar")
    sets = ", ".join(f"{c} = :{c}" for c in values.keys())
    params = dict(values)
    params["_id"] = row_id
    res = execute(engine, f"UPDATE {quote_table(table)} SET {sets} WHERE id = :_id RETURNING *", params, returning=True)
    if not res.ok:
        return res
    if not res.data:
        return fail(NOT_FOUND, "Nenhum registro encontrado")
    return Result(data=res.data[0])


def delete_row(engine: Engine, table: str, row_id: int) -> Result:
    res = execute(engine, f"DELETE FROM {quote_table(table)} WHERE id = :id", {"id": row_id})
    if not res.ok:
        return res
    if not res.data:
        return fail(NOT_FOUND, "Nenhum registro encontrado")
    return Result(data=True)


def pick_fields(dados: Mapping[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    return {k: dados[k] for k in allowed if k in dados}


# -------------------------
# Engine
# -------------------------
def _enable_sqlite_fk(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def create_backend_engine(db_url: str) -> Engine:
    if db_url.startswith("sqlite"):
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(db_url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        else:
            engine = create_engine(db_url, connect_args={"check_same_thread": False})
        _enable_sqlite_fk(engine)
        return engine

    db_url = inject_password_if_missing(db_url)
    db_url = ensure_sslmode_require(db_url)
    engine = create_engine(db_url, **ENGINE_KW, connect_args={"application_name": APP_NAME})

    # teste de conexão (se falhar, o erro aparece)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return engine


def id_list(rows: List[Mapping[str, Any]], key: str = "id") -> List[int]:
    return [r[key] for r in rows if r.get(key) is not None]
