import pytest

from lottery_optimizer.analytics import analyze, frequencias, ranking_dezenas, atraso
from lottery_optimizer.config import HOT_COLD_K, TREND_WINDOW
from lottery_optimizer.errors import InsufficientDataError


def test_analyze_is_deterministic(mega_history):
    assert analyze(mega_history, 100) == analyze(mega_history, 100)


def test_insufficient_history(fakes):
    h = fakes.history("megasena", 4)
    with pytest.raises(InsufficientDataError) as exc:
        analyze(h, 100)
    assert exc.value.available == 4
    assert exc.value.required == 5


def test_minimum_history_is_accepted(fakes):
    stats = analyze(fakes.history("lotofacil", 5), 100)
    assert stats.analyzed_draws == 5


def test_frequency_covers_universe(mega_history):
    stats = analyze(mega_history, 100)
    assert set(stats.number_frequency) == set(range(1, 61))
    assert sum(stats.number_frequency.values()) == 6 * len(mega_history)


def test_lookback_limits_window(mega_history):
    stats = analyze(mega_history, 12)
    assert stats.total_draws == 40
    assert stats.analyzed_draws == 12
    assert sum(stats.sum_distribution.values()) == 12
    assert len(stats.recent_trends) == min(TREND_WINDOW, 12)


def test_recent_trends_are_last_sums(mega_history):
    stats = analyze(mega_history, 100)
    esperado = tuple(d.soma for d in mega_history.draws[-TREND_WINDOW:])
    assert stats.recent_trends == esperado


def test_hot_and_cold_are_disjoint(mega_history, loto_history):
    for h in (mega_history, loto_history):
        stats = analyze(h, 100)
        assert len(stats.hot_numbers) == HOT_COLD_K
        assert len(stats.cold_numbers) == HOT_COLD_K
        assert not set(stats.hot_numbers) & set(stats.cold_numbers)


def test_ties_break_by_recency_then_number(fakes):
    stats = analyze(fakes.blocks(), 100)
    # todas as dezenas 1-30 saíram uma vez; a mais recente vence o empate
    assert stats.hot_numbers == (25, 26, 27, 28, 29, 30, 19, 20, 21, 22)
    # nunca sorteadas: a maior dezena é a mais fria
    assert stats.cold_numbers == tuple(range(60, 50, -1))
    assert stats.last_seen[1] == 1
    assert stats.last_seen[60] is None


def test_pattern_flags(fakes):
    stats = analyze(fakes.blocks(), 100)
    assert stats.patterns["consecutive"] is True
    assert stats.patterns["low_heavy"] is True
    assert stats.patterns["high_heavy"] is False
    assert stats.patterns["all_even"] is False
    assert stats.flagged_patterns == ["consecutive", "low_heavy"]


def test_ranking_helper_orders_frequency_first(fakes):
    df = fakes.blocks().to_frame()
    freq = frequencias(df, 6, 60)
    ranking = ranking_dezenas(atraso(freq, df, 6, 60))
    assert len(ranking) == 60
    assert ranking[:6] == [25, 26, 27, 28, 29, 30]
    assert ranking[-1] == 60


def test_stats_to_dict_keys(mega_history):
    d = analyze(mega_history, 100).to_dict()
    assert {"totalDraws", "numberFrequency", "sumDistribution", "recentTrends", "hotNumbers", "coldNumbers", "patterns"} <= set(d)
