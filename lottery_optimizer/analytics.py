from __future__ import annotations

import logging
from typing import Optional

import pandas as pd

from .config import HOT_COLD_K, MIN_DRAWS, PATTERN_THRESHOLD, TREND_WINDOW, get_spec
from .domain_lottery import baixos_altos, pares_impares, tem_sequencia_longa
from .errors import InsufficientDataError
from .models import DrawHistory, Stats

logger = logging.getLogger(__name__)

def frequencias(df: pd.DataFrame, n_dezenas_sorteio: int, n_universo: int) -> pd.DataFrame:
    dezenas_cols = [f"d{i}" for i in range(1, n_dezenas_sorteio + 1)]
    todas = df[dezenas_cols].values.ravel()
    freq = pd.Series(todas, dtype="int64").value_counts().reindex(range(1, n_universo + 1), fill_value=0).sort_index()
    out = freq.reset_index()
    out.columns = ["dezena", "frequencia"]
    out["dezena"] = out["dezena"].astype(int)
    out["frequencia"] = out["frequencia"].astype(int)
    return out

def atraso(freq_df: pd.DataFrame, df: pd.DataFrame, n_dezenas_sorteio: int, n_universo: int) -> pd.DataFrame:
    dezenas_cols = [f"d{i}" for i in range(1, n_dezenas_sorteio + 1)]
    ultimo: dict[int, int] = {}
    for _, row in df[["concurso"] + dezenas_cols].iterrows():
        conc = int(row["concurso"])
        for d in row[dezenas_cols]:
            ultimo[int(d)] = conc

    max_conc = int(df["concurso"].max())
    freq_por_dezena = dict(zip(freq_df["dezena"], freq_df["frequencia"]))
    linhas = []
    for dezena in range(1, n_universo + 1):
        ult = ultimo.get(dezena)
        linhas.append(
            {
                "dezena": dezena,
                "frequencia": int(freq_por_dezena.get(dezena, 0)),
                "ultimo_concurso": ult,
                "atraso_atual": (None if ult is None else max_conc - ult),
            }
        )
    return pd.DataFrame(linhas)

def ranking_dezenas(atraso_df: pd.DataFrame) -> list[int]:
    """
    Ordena o universo do mais quente ao mais frio: frequência decrescente,
    depois aparição mais recente, depois menor dezena.
    """
    d = atraso_df.copy()
    # nunca sorteada fica atrás de qualquer concurso
    d["_ultimo"] = d["ultimo_concurso"].fillna(-1).astype(int)
    d = d.sort_values(["frequencia", "_ultimo", "dezena"], ascending=[False, False, True], kind="mergesort")
    return [int(x) for x in d["dezena"]]

def padroes_par_impar_baixa_alta(df: pd.DataFrame, n_dezenas_sorteio: int, limite_baixo: int):
    dezenas_cols = [f"d{i}" for i in range(1, n_dezenas_sorteio + 1)]
    registros = []
    for _, row in df[["concurso"] + dezenas_cols].iterrows():
        dezenas = [int(row[c]) for c in dezenas_cols]
        pares, impares = pares_impares(dezenas)
        baixos, altos = baixos_altos(dezenas, limite_baixo)
        registros.append(
            {
                "concurso": int(row["concurso"]),
                "pares": pares,
                "impares": impares,
                "baixos": baixos,
                "altos": altos,
                "sequencia": tem_sequencia_longa(dezenas, limite=3),
            }
        )
    return pd.DataFrame(registros, columns=["concurso", "pares", "impares", "baixos", "altos", "sequencia"])

def somas(df: pd.DataFrame, n_dezenas_sorteio: int) -> pd.DataFrame:
    dezenas_cols = [f"d{i}" for i in range(1, n_dezenas_sorteio + 1)]
    dfx = df[["concurso"]].copy()
    dfx["soma"] = df[dezenas_cols].sum(axis=1).astype(int)
    return dfx.sort_values("concurso").reset_index(drop=True)

def pattern_flags(dfp: pd.DataFrame, n_dezenas_sorteio: int, threshold: float = PATTERN_THRESHOLD) -> dict[str, bool]:
    if dfp.empty:
        return {k: False for k in ("consecutive", "all_even", "all_odd", "even_heavy", "odd_heavy", "low_heavy", "high_heavy")}
    def taxa(mask: pd.Series) -> float:
        return float(mask.mean())
    return {
        "consecutive": taxa(dfp["sequencia"]) > threshold,
        "all_even": bool((dfp["pares"] == n_dezenas_sorteio).any()),
        "all_odd": bool((dfp["impares"] == n_dezenas_sorteio).any()),
        "even_heavy": taxa(dfp["pares"] > dfp["impares"]) > threshold,
        "odd_heavy": taxa(dfp["impares"] > dfp["pares"]) > threshold,
        "low_heavy": taxa(dfp["baixos"] > dfp["altos"]) > threshold,
        "high_heavy": taxa(dfp["altos"] > dfp["baixos"]) > threshold,
    }

def analyze(history: DrawHistory, lookback: int, k: int = HOT_COLD_K, trend_window: int = TREND_WINDOW) -> Stats:
    """
    Estatísticas de um histórico. Função pura: mesma entrada, mesmas Stats
    (inclusive a ordem dos desempates).
    """
    if len(history) < MIN_DRAWS:
        raise InsufficientDataError(
            f"Histórico insuficiente para {history.lottery_type}: {len(history)} sorteios (mínimo {MIN_DRAWS}).",
            available=len(history),
            required=MIN_DRAWS,
        )
    spec = get_spec(history.lottery_type)
    janela = history.tail(lookback) if lookback > 0 else history
    df = janela.to_frame()

    freq_df = frequencias(df, spec.n_dezenas_sorteio, spec.n_universo)
    atraso_df = atraso(freq_df, df, spec.n_dezenas_sorteio, spec.n_universo)
    ranking = ranking_dezenas(atraso_df)

    dfs = somas(df, spec.n_dezenas_sorteio)
    sum_distribution = {int(s): int(q) for s, q in dfs["soma"].value_counts().sort_index().items()}
    recentes = df.tail(trend_window)
    trend = tuple(int(s) for s in dfs["soma"].tail(trend_window))

    dfp = padroes_par_impar_baixa_alta(recentes, spec.n_dezenas_sorteio, spec.limite_baixo)

    last_seen: dict[int, Optional[int]] = {
        int(r.dezena): (None if pd.isna(r.ultimo_concurso) else int(r.ultimo_concurso))
        for r in atraso_df.itertuples(index=False)
    }

    stats = Stats(
        lottery_type=history.lottery_type,
        total_draws=len(history),
        analyzed_draws=len(janela),
        number_frequency={int(r.dezena): int(r.frequencia) for r in freq_df.itertuples(index=False)},
        sum_distribution=sum_distribution,
        recent_trends=trend,
        hot_numbers=tuple(ranking[:k]),
        cold_numbers=tuple(list(reversed(ranking))[:k]),
        patterns=pattern_flags(dfp, spec.n_dezenas_sorteio),
        ranking=tuple(ranking),
        last_seen=last_seen,
    )
    logger.debug(
        "Stats %s: %d/%d sorteios, quentes=%s, frias=%s, padrões=%s",
        history.lottery_type, stats.analyzed_draws, stats.total_draws,
        list(stats.hot_numbers), list(stats.cold_numbers), stats.flagged_patterns,
    )
    return stats
