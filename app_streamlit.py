from __future__ import annotations

import streamlit as st

from lottery_optimizer.ai_client import ClaudeClient
from lottery_optimizer.config import LOTTERY_TYPES, STRATEGY_MODES, configure_logging, get_spec, load_config
from lottery_optimizer.data_caixa import CaixaClient
from lottery_optimizer.engine import StrategyEngine
from lottery_optimizer.errors import LotteryOptimizerError
from lottery_optimizer.health import check_connections
from lottery_optimizer.models import UserPreferences
from lottery_optimizer.strategy_export import (
    build_html_report,
    df_to_csv_bytes,
    stats_to_df,
    strategy_to_df,
    strategy_to_json_bytes,
)
from lottery_optimizer.ui import MODE_LABELS, lottery_label, money_ptbr, parse_lista

st.set_page_config(page_title="Lottery Optimizer", page_icon="🎰", layout="wide")


@st.cache_resource(show_spinner=False)
def get_engine() -> tuple[StrategyEngine, CaixaClient, ClaudeClient | None]:
    """Um motor por processo; o HistoryStore interno guarda os snapshots por 1h."""
    config = load_config()
    configure_logging(config)
    caixa = CaixaClient(config)
    claude = ClaudeClient(config) if config.has_api_key else None
    return StrategyEngine(caixa, claude, config), caixa, claude


engine, caixa, claude = get_engine()

# --------------------------
# Sidebar
# --------------------------
st.sidebar.title("Preferências")

tipos = st.sidebar.multiselect(
    "Loterias",
    list(LOTTERY_TYPES),
    default=["megasena"],
    format_func=lottery_label,
)
budget = st.sidebar.number_input("Orçamento (R$)", min_value=0.0, max_value=1_000_000.0, value=60.0, step=10.0)
modo = st.sidebar.radio(
    "Estratégia",
    list(STRATEGY_MODES),
    index=STRATEGY_MODES.index("balanced"),
    format_func=lambda m: MODE_LABELS[m],
)
evitar = st.sidebar.checkbox("Evitar padrões recentes", value=False)

with st.sidebar.expander("Dezenas", expanded=False):
    fav_txt = st.text_input("Favoritas", placeholder="Ex: 10, 11, 12")
    exc_txt = st.text_input("Excluídas", placeholder="Ex: 1, 2, 3")

with st.sidebar.expander("Dezenas por jogo", expanded=False):
    # 0 = tamanho padrão do modo
    por_jogo = {}
    for t in tipos:
        spec = get_spec(t)
        n = st.number_input(lottery_label(t), min_value=0, max_value=spec.n_max, value=0, step=1, key=f"n_{t}")
        if n:
            por_jogo[t] = int(n)

with st.sidebar.expander("Conexões", expanded=False):
    if st.button("Testar conexões"):
        with st.spinner("Testando..."):
            status = check_connections(caixa, claude)
        engine.preflight(status)
        st.session_state["connection_status"] = status
    status = st.session_state.get("connection_status")
    if status is not None:
        st.write("CAIXA:", "✅" if status.caixa_api else f"❌ {status.caixa_error}")
        st.write("Claude:", "✅" if status.claude_api else f"❌ {status.claude_error}")

st.title("Lottery Optimizer")
st.caption("Estratégias de apostas a partir do histórico da CAIXA, dentro do seu orçamento.")

prefs = UserPreferences(
    lottery_types=tuple(tipos),
    budget=float(budget),
    strategy=modo,
    avoid_patterns=evitar,
    favorite_numbers=tuple(parse_lista(fav_txt)),
    exclude_numbers=tuple(parse_lista(exc_txt)),
    numbers_per_game=por_jogo,
)

if st.button("Gerar estratégia", type="primary"):
    with st.spinner("Analisando histórico e montando jogos..."):
        st.session_state["last_response"] = engine.generate_strategy(prefs)

resp = st.session_state.get("last_response")
if resp is None:
    st.info("Escolha as preferências no menu lateral e clique em Gerar estratégia.")
    st.stop()

if not resp.success:
    st.error(resp.error)
    if resp.failed_lotteries:
        st.caption("Indisponíveis: " + ", ".join(lottery_label(t) for t in resp.failed_lotteries))
    st.stop()

strategy = resp.strategy
if resp.failed_lotteries:
    st.warning("Sem dados nesta geração: " + ", ".join(lottery_label(t) for t in resp.failed_lotteries))

c1, c2, c3, c4 = st.columns(4)
c1.metric("Jogos", len(strategy.games))
c2.metric("Custo total", money_ptbr(strategy.total_cost))
c3.metric("Retorno esperado", money_ptbr(strategy.expected_return))
c4.metric("Confiança", f"{resp.confidence:.0%}")

st.subheader("Explicação")
st.write(strategy.reasoning)

st.subheader("Jogos")
df_games = strategy_to_df(strategy)
st.dataframe(df_games, use_container_width=True, hide_index=True)

d1, d2, d3 = st.columns(3)
d1.download_button("CSV", df_to_csv_bytes(df_games), file_name="estrategia.csv", mime="text/csv")
d2.download_button(
    "JSON",
    strategy_to_json_bytes(resp.to_dict()),
    file_name="estrategia.json",
    mime="application/json",
)
d3.download_button(
    "Relatório HTML",
    build_html_report(strategy, confidence=resp.confidence, failed=resp.failed_lotteries),
    file_name="estrategia.html",
    mime="text/html",
)

st.subheader("Estatísticas")
for lottery_type in resp.available_lotteries:
    try:
        stats = strategy.statistics.get(lottery_type) or engine.get_statistics(lottery_type)
    except LotteryOptimizerError as e:
        st.warning(f"{lottery_label(lottery_type)}: {e}")
        continue
    with st.expander(f"{lottery_label(lottery_type)} - {stats.analyzed_draws} sorteios", expanded=False):
        st.write("Quentes:", list(stats.hot_numbers))
        st.write("Frias:", list(stats.cold_numbers))
        st.write("Somas recentes:", list(stats.recent_trends))
        st.write("Padrões:", stats.flagged_patterns or "nenhum")
        df_stats = stats_to_df(stats)
        st.bar_chart(df_stats.set_index("dezena")["freq"])
        st.dataframe(df_stats, use_container_width=True, hide_index=True)

st.subheader("Conferir resultado")
for lottery_type in resp.available_lotteries:
    try:
        proximo = engine.next_draw(lottery_type)
    except LotteryOptimizerError as e:
        st.warning(f"{lottery_label(lottery_type)}: {e}")
        continue
    if proximo is not None:
        quando = proximo.data.strftime("%d/%m/%Y") if proximo.data else "data a confirmar"
        st.caption(f"Próximo sorteio {lottery_label(lottery_type)}: concurso {proximo.concurso} ({quando})")

concurso_txt = st.text_input("Concurso (vazio = último)", key="concurso_conferir")
if st.button("Conferir jogos"):
    try:
        resultados = engine.check_games(strategy.games, int(concurso_txt) if concurso_txt.strip().isdigit() else None)
    except LotteryOptimizerError as e:
        st.error(str(e))
    else:
        st.dataframe([r.to_dict() for r in resultados], use_container_width=True, hide_index=True)
        st.metric("Prêmio estimado", money_ptbr(sum(r.premio for r in resultados)))
