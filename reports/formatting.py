# reports/formatting.py
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from gestobra_shared.backend import as_decimal
from reports.models import AUTO, DATE, DAYS, INT, MONEY, NUMBER, PERCENT

NUMERIC_KINDS = (MONEY, INT, NUMBER, PERCENT, DAYS)


def _br(s: str) -> str:
    # Formato pt-BR simples sem locale global
    return s.replace(",", "X").replace(".", ",").replace("X", ".")


def money_br(v: Any) -> str:
    v = as_decimal(v).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"R$ {_br(f'{v:,.2f}')}"


def number_br(v: Any, casas: int = 2) -> str:
    v = as_decimal(v)
    if casas == 2 and v == v.to_integral_value():
        return _br(f"{v:,.0f}")
    return _br(f"{v:,.{casas}f}")


def percent_br(v: Any) -> str:
    return f"{_br(f'{as_decimal(v):,.2f}')}%"


def date_br(v: Any) -> str:
    if isinstance(v, datetime):
        return v.strftime("%d/%m/%Y %H:%M")
    if isinstance(v, date):
        return v.strftime("%d/%m/%Y")
    return "" if v is None else str(v)


def cell_kind(kind: str, row: Optional[Mapping[str, Any]] = None) -> str:
    if kind == AUTO:
        return (row or {}).get("formato", "text")
    return kind


def format_cell(value: Any, kind: str, row: Optional[Mapping[str, Any]] = None) -> str:
    """Texto de exibição de uma célula (PDF e CSV)."""
    kind = cell_kind(kind, row)
    if value is None:
        return ""
    if kind == MONEY:
        return money_br(value)
    if kind == PERCENT:
        return percent_br(value)
    if kind == INT:
        return _br(f"{int(value):,}")
    if kind == NUMBER:
        return number_br(value)
    if kind == DAYS:
        return f"{number_br(value)} dias"
    if kind == DATE:
        return date_br(value)
    return str(value)
