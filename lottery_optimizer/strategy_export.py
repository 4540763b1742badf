from __future__ import annotations

import html
import json
from typing import Any, TypedDict

import pandas as pd

from .config import get_spec
from .domain_lottery import baixos_altos, contar_primos, pares_impares, prob_premio_maximo_aprox
from .models import Stats, Strategy


class GameRow(TypedDict, total=False):
    jogo_id: int
    loteria: str
    soma: int
    pares: int
    impares: int
    baixos: int
    altos: int
    nprimos: int
    custo: float
    retorno_esperado: float
    probabilidade: float
    # d1..dN entram dinamicamente (total=False)


BASE_COLS: list[tuple[str, str]] = [
    ("jogo_id", "int64"),
    ("loteria", "object"),
    ("soma", "int64"),
    ("pares", "int64"),
    ("impares", "int64"),
    ("baixos", "int64"),
    ("altos", "int64"),
    ("nprimos", "int64"),
    ("custo", "float64"),
    ("retorno_esperado", "float64"),
    ("probabilidade", "float64"),
]


def strategy_to_df(strategy: Strategy) -> pd.DataFrame:
    rows: list[GameRow] = []
    max_dezenas = 0

    for i, g in enumerate(strategy.games, start=1):
        spec = get_spec(g.lottery_type)
        j = sorted(g.numbers)
        max_dezenas = max(max_dezenas, len(j))

        r: GameRow = {"jogo_id": i, "loteria": spec.nome}
        for k, d in enumerate(j, start=1):
            r[f"d{k}"] = int(d)  # type: ignore[literal-required]

        pares, imp = pares_impares(j)
        baixos, altos = baixos_altos(j, spec.limite_baixo)
        r.update(
            {
                "soma": int(sum(j)),
                "pares": int(pares),
                "impares": int(imp),
                "baixos": int(baixos),
                "altos": int(altos),
                "nprimos": int(contar_primos(j)),
                "custo": float(g.cost),
                "retorno_esperado": float(g.expected_return),
                "probabilidade": float(g.probability),
            }
        )
        rows.append(r)

    df = pd.DataFrame(rows)

    # Schema mínimo (mesmo vazio) para não quebrar export
    for col, dtype in BASE_COLS:
        if col not in df.columns:
            df[col] = pd.Series(dtype=dtype)

    d_cols = [f"d{k}" for k in range(1, max_dezenas + 1)]
    ordered = ["jogo_id", "loteria", *d_cols, *(c for c, _ in BASE_COLS[2:])]
    return df.reindex(columns=ordered)


def stats_to_df(stats: Stats) -> pd.DataFrame:
    """Uma linha por dezena: frequência, último concurso e marcação quente/fria."""
    hot, cold = set(stats.hot_numbers), set(stats.cold_numbers)
    rows = []
    for posicao, dezena in enumerate(stats.ranking or sorted(stats.number_frequency), start=1):
        rows.append(
            {
                "dezena": int(dezena),
                "freq": int(stats.number_frequency.get(dezena, 0)),
                "ultimo_concurso": stats.last_seen.get(dezena),
                "posicao": posicao,
                "grupo": "quente" if dezena in hot else ("fria" if dezena in cold else ""),
            }
        )
    return pd.DataFrame(rows, columns=["dezena", "freq", "ultimo_concurso", "posicao", "grupo"])


def _html_table(df: pd.DataFrame, max_rows: int = 200) -> str:
    if df is None or df.empty:
        return "<p><em>Sem dados.</em></p>"
    return df.head(max_rows).to_html(index=False, escape=True)


def build_html_report(strategy: Strategy, *, confidence: float, failed: tuple[str, ...] = ()) -> bytes:
    summary = {
        "Jogos": str(len(strategy.games)),
        "Custo total": f"R$ {strategy.total_cost:.2f}",
        "Orçamento": f"R$ {strategy.budget:.2f}",
        "Retorno esperado": f"R$ {strategy.expected_return:.2f}",
        "Confiança": f"{confidence:.0%}",
    }
    for lottery_type in strategy.statistics:
        spec = get_spec(lottery_type)
        jogos = [list(g.numbers) for g in strategy.games if g.lottery_type == lottery_type]
        p = prob_premio_maximo_aprox(jogos, spec.n_min, spec.comb_target)
        summary[f"Chance do prêmio máximo ({spec.nome})"] = f"1 em {1 / p:,.0f}" if p > 0 else "-"
    if failed:
        summary["Indisponíveis"] = ", ".join(get_spec(t).nome for t in failed)  # type: ignore[arg-type]

    summary_html = "".join(f"<li><b>{k}:</b> {html.escape(v)}</li>" for k, v in summary.items())
    tables_html = ["<h3>Jogos</h3>", _html_table(strategy_to_df(strategy))]
    for lottery_type, stats in strategy.statistics.items():
        tables_html.append(f"<h3>Estatísticas - {get_spec(lottery_type).nome}</h3>")
        tables_html.append(_html_table(stats_to_df(stats)))
    reasoning_html = html.escape(strategy.reasoning).replace("\n", "<br>")
    ts = strategy.created_at.isoformat(sep=" ", timespec="seconds")

    doc = f"""<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Estratégia de apostas</title>
<style>
body {{ font-family: Arial, sans-serif; margin: 24px; }}
table {{ border-collapse: collapse; width: 100%; margin: 10px 0 24px 0; }}
th, td {{ border: 1px solid #ddd; padding: 8px; font-size: 12px; }}
th {{ background: #f4f4f4; text-align: left; }}
small {{ color: #666; }}
</style>
</head>
<body>
<h1>Estratégia de apostas</h1>
<small>Gerado em {ts}</small>

<h3>Resumo</h3>
<ul>{summary_html}</ul>

<h3>Explicação</h3>
<p>{reasoning_html}</p>

{''.join(tables_html)}
</body>
</html>
"""
    return doc.encode("utf-8")


def df_to_csv_bytes(df: pd.DataFrame) -> bytes:
    if df is None:
        df = pd.DataFrame()
    # UTF-8 com BOM (mais "Excel-friendly")
    return df.to_csv(index=False).encode("utf-8-sig")


def strategy_to_json_bytes(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
