# reports/models.py
"""
Modelo de relatório: dados crus (Decimal, int, date, str) organizados em seções.
Os agregadores montam o modelo; os renderizadores só leem.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from gestobra_shared.backend import as_date

DATA_INICIO_PADRAO = date(1900, 1, 1)
DATA_FIM_PADRAO = date(2100, 12, 31)

FORMATOS = ("pdf", "excel", "csv")
TIPOS_RELATORIO = ("obras", "financeiro", "materiais", "desempenho", "movimentacoes")

# tipos de coluna (definem a formatação na hora de renderizar)
TEXT = "text"
MONEY = "money"
INT = "int"
NUMBER = "number"
PERCENT = "percent"
DAYS = "days"
DATE = "date"
AUTO = "auto"  # o formato vem da chave "formato" da própria linha


@dataclass(frozen=True)
class ReportParams:
    data_inicio: Optional[date] = None
    data_fim: Optional[date] = None
    obra_id: Optional[int] = None
    material_id: Optional[int] = None
    categoria: Optional[str] = None
    formato: str = "pdf"

    def __post_init__(self):
        object.__setattr__(self, "data_inicio", as_date(self.data_inicio))
        object.__setattr__(self, "data_fim", as_date(self.data_fim))
        if self.formato not in FORMATOS:
            raise ValueError(f"Formato de relatório inválido: {self.formato}")
        if self.data_inicio and self.data_fim and self.data_inicio > self.data_fim:
            raise ValueError("A data inicial deve ser anterior à data final")

    @property
    def inicio(self) -> date:
        return self.data_inicio or DATA_INICIO_PADRAO

    @property
    def fim(self) -> date:
        return self.data_fim or DATA_FIM_PADRAO

    def periodo_label(self) -> str:
        ini = self.data_inicio.strftime("%d/%m/%Y") if self.data_inicio else "Início"
        fim = self.data_fim.strftime("%d/%m/%Y") if self.data_fim else "Hoje"
        return f"{ini} até {fim}"


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    kind: str = TEXT


@dataclass(frozen=True)
class Chart:
    """Gráfico de barras opcional de uma seção (só no PDF)."""
    label_key: str
    value_keys: Tuple[str, ...]
    title: str = ""


@dataclass(frozen=True)
class Section:
    key: str
    title: str
    columns: Tuple[Column, ...]
    rows: Tuple[Mapping[str, Any], ...] = ()
    empty_message: str = "Nenhum registro no período."
    chart: Optional[Chart] = None


@dataclass(frozen=True)
class ReportModel:
    tipo: str
    titulo: str
    periodo: str
    contexto: str
    totais: Dict[str, Any]
    sections: Tuple[Section, ...]
    gerado_em: datetime = field(default_factory=datetime.now)
    filtro: str = ""  # descrição do filtro aplicado (obra, categoria, material)

    def section(self, key: str) -> Section:
        for s in self.sections:
            if s.key == key:
                return s
        raise KeyError(key)

    @property
    def is_empty(self) -> bool:
        return all(not s.rows for s in self.sections if s.key != "resumo")
