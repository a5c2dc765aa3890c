# gestobra_shared/theme.py
# Tema compartilhado do GestObra
# --------------------------------------------------------------------------------
# - Layout consistente em todas as páginas (cartões, bordas suaves, sombras leves).
# - Barra lateral em cinza-azulado claro.
# - Inputs com fundo branco.
# - Não aplica CSS genérico (ex.: `table {}`) para não afetar os relatórios.
#
# Logo: assets/logo_gestobra.svg | assets/logo_gestobra.png. Sem arquivo, usa o
# monograma "GO".
# --------------------------------------------------------------------------------

from __future__ import annotations

import base64
from pathlib import Path
from typing import Optional

import streamlit as st

_MIME = {
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def _file_to_data_uri(path: str) -> Optional[str]:
    p = Path(path)
    mime = _MIME.get(p.suffix.lower())
    if mime is None or not p.exists():
        return None
    b64 = base64.b64encode(p.read_bytes()).decode("utf-8")
    return f"data:{mime};base64,{b64}"


def _default_monogram_svg() -> str:
    svg = r'''
    <svg xmlns="http://www.w3.org/2000/svg" width="96" height="96" viewBox="0 0 96 96">
      <rect x="6" y="6" width="84" height="84" rx="22" fill="#2864A0"/>
      <text x="48" y="58" text-anchor="middle" font-size="34" font-weight="800"
            font-family="system-ui, -apple-system, Segoe UI, Roboto, Arial" fill="#ffffff">GO</text>
    </svg>
    '''.strip()
    b64 = base64.b64encode(svg.encode("utf-8")).decode("utf-8")
    return f"data:image/svg+xml;base64,{b64}"


def _pick_brand_logo() -> str:
    for c in ("assets/logo_gestobra.svg", "assets/logo_gestobra.png"):
        uri = _file_to_data_uri(c)
        if uri:
            return uri
    return _default_monogram_svg()


_CSS = """
<style>
  :root{
    --go-primary: #2864A0;
    --go-bg:      #F5F7FB;
    --go-card:    #FFFFFF;
    --go-text:    #0F172A;
    --go-muted:   #64748B;
    --go-border:  rgba(15, 23, 42, 0.10);
    --go-radius:  16px;
  }
  .stApp{ background: var(--go-bg); color: var(--go-text); }
  section.main > div.block-container{ max-width: 1280px; padding-top: 1.2rem; }

  .go-card{
    background: var(--go-card);
    border-radius: var(--go-radius);
    border: 1px solid var(--go-border);
    box-shadow: 0 18px 42px rgba(2, 6, 23, 0.06);
    padding: 18px 20px;
    margin-bottom: 12px;
  }
  .go-title{ font-size: 28px; font-weight: 900; color: var(--go-primary); margin: 0 0 2px 0; }
  .go-subtitle{ font-size: 13px; color: var(--go-muted); margin: 0; }

  .stButton>button{ border-radius: 14px !important; }

  section[data-testid="stSidebar"], section[data-testid="stSidebar"] > div{
    background: #E3ECF6 !important;
  }

  div[data-baseweb="input"] > div,
  div[data-baseweb="select"] > div,
  div[data-baseweb="textarea"] textarea,
  div[data-baseweb="datepicker"] > div {
    background: #FFFFFF !important;
    border: 1px solid #CBD5E1 !important;
    border-radius: 12px !important;
  }

  .go-topbar{
    display:flex; align-items:center; gap: 12px;
    border: 1px solid rgba(15,23,42,0.08);
    border-radius: 18px;
    padding: 12px 14px;
    margin: 6px 0 14px 0;
    background: rgba(40,100,160,0.08);
  }
  .go-topbar img{ width: 46px; height: 46px; border-radius: 14px; }
  .go-brand-title{ font-weight: 900; font-size: 18px; }
  .go-brand-sub{ color: var(--go-muted); font-size: 12px; }
</style>
"""


def apply_theme(show_brand_bar: bool = True, brand_title: str = "GestObra"):
    """Injeta o CSS do tema (não altera fontes nem ícones)."""
    st.markdown(_CSS, unsafe_allow_html=True)

    if show_brand_bar:
        st.markdown(
            f'''
            <div class="go-topbar">
              <img src="{_pick_brand_logo()}" alt="GestObra"/>
              <div>
                <div class="go-brand-title">{brand_title}</div>
                <div class="go-brand-sub">Obras • Financeiro • Materiais • Documentos • Relatórios</div>
              </div>
            </div>
            ''',
            unsafe_allow_html=True,
        )
