import streamlit as st
import pandas as pd
import plotly.express as px

from gestobra_shared.theme import apply_theme
from gestobra_shared.erp_db import get_engine
from gestobra_shared.financeiro import contas_pendentes
from gestobra_shared.materiais import materiais_estoque_baixo
from gestobra_shared.obras import STATUS_LABEL, estatisticas_obras, obras_recentes
from reports.formatting import money_br
from reports.service import painel_obras

st.set_page_config(page_title="GestObra", layout="wide")

apply_theme()
engine = get_engine()

st.markdown(
    """
    <div class="go-card">
        <div class="go-title">GestObra</div>
        <div class="go-subtitle">Gestão de obras • Orçamento • Despesas • Materiais • Documentos • Relatórios</div>
    </div>
    """,
    unsafe_allow_html=True,
)

res_stats = estatisticas_obras(engine)
res_contas = contas_pendentes(engine)
if not res_stats.ok or not res_contas.ok:
    st.error((res_stats.error or res_contas.error).message)
    st.stop()

stats = res_stats.data
contas = res_contas.data

# ---- Cards
c1, c2, c3, c4 = st.columns(4)
with c1:
    st.metric("Obras", stats["total"])
    st.caption(f"Em andamento: {stats['em_andamento']} • Concluídas: {stats['concluida']}")
with c2:
    st.metric("Orçamento total", money_br(stats["orcamento_total"]))
    st.caption(f"Progresso médio: {stats['media_progresso']}%")
with c3:
    st.metric("A pagar (pendente)", money_br(contas["total_pagar"]))
    st.caption(f"{len(contas['contas_pagar'])} despesa(s) pendente(s)")
with c4:
    st.metric("A receber (pendente)", money_br(contas["total_receber"]))
    st.caption(f"{len(contas['contas_receber'])} receita(s) pendente(s)")

# ---- Gráficos
st.markdown("## 📊 Painel")

g1, g2 = st.columns([1.4, 1])
with g1:
    st.subheader("Orçamento x Despesas por obra")
    res_painel = painel_obras(engine)
    if not res_painel.ok:
        st.error(f"Não foi possível montar o painel: {res_painel.error.message}")
    elif not res_painel.data.section("obras").rows:
        st.caption("Cadastre obras para visualizar.")
    else:
        linhas = res_painel.data.section("obras").rows
        df = pd.DataFrame(
            [{"Obra": r["nome"], "Orçamento": float(r["orcamento"]), "Despesas": float(r["total_despesas"])} for r in linhas]
        )
        fig = px.bar(df, x="Obra", y=["Orçamento", "Despesas"], barmode="group")
        fig.update_layout(height=360, margin=dict(l=20, r=20, t=40, b=20), legend_title_text="")
        st.plotly_chart(fig, use_container_width=True)
        excedidas = res_painel.data.totais["obras_excedidas"]
        if excedidas:
            st.warning(f"{excedidas} obra(s) com orçamento excedido.")

with g2:
    st.subheader("Obras recentes")
    res = obras_recentes(engine, 5)
    if not res.ok:
        st.error(res.error.message)
    elif not res.data:
        st.caption("Sem registros.")
    else:
        df = pd.DataFrame(res.data)[["nome", "status", "progresso"]]
        df["status"] = df["status"].map(lambda s: STATUS_LABEL.get(s, s))
        df.columns = ["Obra", "Status", "Progresso (%)"]
        st.dataframe(df, use_container_width=True, hide_index=True)

# ---- Estoque
st.subheader("Materiais abaixo do estoque mínimo")
res = materiais_estoque_baixo(engine)
if not res.ok:
    st.error(res.error.message)
elif not res.data:
    st.caption("Nenhum material abaixo do mínimo.")
else:
    df = pd.DataFrame(res.data)[["nome", "unidade", "quantidade_estoque", "estoque_minimo"]]
    df.columns = ["Material", "Unidade", "Estoque", "Mínimo"]
    st.dataframe(df, use_container_width=True, hide_index=True)
