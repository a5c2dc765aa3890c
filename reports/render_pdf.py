# reports/render_pdf.py
"""
PDF dos relatórios (reportlab).

- Cabeçalho com título, período e filtro.
- Uma tabela por seção (cabeçalho azul, linhas zebradas, cabeçalho repetido a cada página).
- Gráfico de barras (matplotlib) nas seções que declaram um.
- Rodapé em todas as páginas: "Página X de Y - Gerado em dd/mm/aaaa HH:MM".
"""
from __future__ import annotations

from io import BytesIO
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas as pdfcanvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from reports.charts import section_chart_png
from reports.formatting import NUMERIC_KINDS, cell_kind, format_cell
from reports.models import TEXT, ReportModel, Section

AZUL = HexColor("#2864a0")
AZUL_CLARO = HexColor("#eef3f9")
CINZA = HexColor("#4a5568")
BORDA = HexColor("#d5dde8")

MARGEM = 1.5 * cm


class _NumberedCanvas(pdfcanvas.Canvas):
    """Guarda as páginas para escrever "Página X de Y" no final."""

    def __init__(self, *args, rodape: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self._rodape = rodape
        self._paginas = []

    def showPage(self):
        self._paginas.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._paginas)
        for estado in self._paginas:
            self.__dict__.update(estado)
            self._desenhar_rodape(total)
            super().showPage()
        super().save()

    def _desenhar_rodape(self, total: int):
        largura, _ = self._pagesize
        self.saveState()
        self.setFont("Helvetica", 8)
        self.setFillColor(CINZA)
        self.setStrokeColor(BORDA)
        self.line(MARGEM, 1.1 * cm, largura - MARGEM, 1.1 * cm)
        self.drawRightString(largura - MARGEM, 0.7 * cm,
                             f"Página {self._pageNumber} de {total} - {self._rodape}")
        self.restoreState()


def _styles():
    base = getSampleStyleSheet()
    return {
        "titulo": base["Title"],
        "normal": base["Normal"],
        "secao": ParagraphStyle("secao", parent=base["Heading2"], textColor=AZUL, spaceBefore=10),
        "vazio": ParagraphStyle("vazio", parent=base["Italic"], textColor=CINZA),
        "cel": ParagraphStyle("cel", parent=base["Normal"], fontSize=8, leading=10),
        "cel_num": ParagraphStyle("cel_num", parent=base["Normal"], fontSize=8, leading=10, alignment=TA_RIGHT),
        "head": ParagraphStyle("head", parent=base["Normal"], fontSize=8, leading=10,
                               textColor=colors.white, fontName="Helvetica-Bold"),
    }


def _col_widths(section: Section, disponivel: float) -> List[float]:
    pesos = [2.0 if c.kind == TEXT else 1.0 for c in section.columns]
    total = sum(pesos)
    return [disponivel * p / total for p in pesos]


def _tabela(section: Section, st: dict, disponivel: float) -> Table:
    data = [[Paragraph(escape(c.label), st["head"]) for c in section.columns]]
    for row in section.rows:
        linha = []
        for c in section.columns:
            numerico = cell_kind(c.kind, row) in NUMERIC_KINDS
            texto = escape(format_cell(row.get(c.key), c.kind, row))
            linha.append(Paragraph(texto, st["cel_num"] if numerico else st["cel"]))
        data.append(linha)

    tabela = Table(data, colWidths=_col_widths(section, disponivel), repeatRows=1)
    tabela.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), AZUL),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, AZUL_CLARO]),
        ("GRID", (0, 0), (-1, -1), 0.5, BORDA),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return tabela


def render_pdf(model: ReportModel) -> bytes:
    buffer = BytesIO()
    largo = any(len(s.columns) > 6 for s in model.sections)
    pagesize = landscape(A4) if largo else A4
    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        leftMargin=MARGEM,
        rightMargin=MARGEM,
        topMargin=MARGEM,
        bottomMargin=2 * cm,
        title=model.titulo,
        author="GestObra",
        invariant=1,
    )
    st = _styles()
    disponivel = pagesize[0] - 2 * MARGEM

    elements = [
        Paragraph(escape(model.titulo), st["titulo"]),
        Paragraph(escape(f"Período: {model.periodo}"), st["normal"]),
    ]
    if model.filtro:
        elements.append(Paragraph(escape(model.filtro), st["normal"]))
    elements.append(Spacer(1, 0.4 * cm))

    for section in model.sections:
        elements.append(Paragraph(escape(section.title), st["secao"]))
        if not section.rows:
            elements.append(Paragraph(escape(section.empty_message), st["vazio"]))
            continue
        png = section_chart_png(section)
        if png:
            img = Image(BytesIO(png))
            escala = min(1.0, disponivel / img.drawWidth, (7 * cm) / img.drawHeight)
            img.drawWidth *= escala
            img.drawHeight *= escala
            elements.append(img)
            elements.append(Spacer(1, 0.2 * cm))
        elements.append(_tabela(section, st, disponivel))

    rodape = f"Gerado em {model.gerado_em.strftime('%d/%m/%Y %H:%M')}"

    def _canvas(*args, **kwargs):
        return _NumberedCanvas(*args, rodape=rodape, **kwargs)

    doc.build(elements, canvasmaker=_canvas)
    return buffer.getvalue()
