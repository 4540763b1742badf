import asyncio
import time
from datetime import date

import pytest

from lottery_optimizer.config import FALLBACK_CONFIDENCE, ConfigData
from lottery_optimizer.engine import StrategyEngine
from lottery_optimizer.errors import DataUnavailableError, ReasoningUnavailableError, ValidationError
from lottery_optimizer.health import ConnectionStatus
from lottery_optimizer.models import StrategyFailure, StrategySuccess, UserPreferences
from lottery_optimizer.selector import make_game


def make_engine(fakes, histories, config, *, failures=None, ai=None, delay=0.0):
    adapter = fakes.DataAdapter(histories, failures=failures, delay=delay)
    return StrategyEngine(adapter, ai, config), adapter


def test_single_type_fills_budget(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=60.0))
    assert isinstance(resp, StrategySuccess)
    assert len(resp.strategy.games) == 10
    assert resp.strategy.total_cost == pytest.approx(60.0)
    assert resp.available_lotteries == ("megasena",)
    assert resp.failed_lotteries == ()
    assert len({g.numbers for g in resp.strategy.games}) == 10


def test_budget_too_low(fakes, histories, config):
    engine, adapter = make_engine(fakes, histories, config)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=3.0))
    assert isinstance(resp, StrategyFailure)
    assert resp.success is False
    assert resp.stage == "validating"
    assert "R$ 6.00" in resp.error
    assert adapter.calls == []


def test_one_type_fails(fakes, histories, config):
    failures = {"lotofacil": DataUnavailableError("API retornou status 503", reason="unavailable")}
    engine, _ = make_engine(fakes, histories, config, failures=failures)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena", "lotofacil"), budget=60.0))
    assert resp.success is True
    assert resp.failed_lotteries == ("lotofacil",)
    assert resp.available_lotteries == ("megasena",)
    assert {g.lottery_type for g in resp.strategy.games} == {"megasena"}
    assert resp.strategy.total_cost <= 60.0
    assert "Lotofácil" in resp.strategy.reasoning


def test_ai_timeout_uses_fallback(fakes, histories, tmp_path):
    config = ConfigData(cache_dir=tmp_path, timeout_sec=0.1, type_timeout_sec=5.0)
    ai = fakes.AIAdapter(delay=0.4)
    engine, _ = make_engine(fakes, histories, config, ai=ai)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("lotofacil",), budget=35.0))
    assert resp.success is True
    assert resp.strategy.reasoning.strip()
    assert resp.confidence == FALLBACK_CONFIDENCE


def test_ai_error_uses_fallback(fakes, histories, config):
    ai = fakes.AIAdapter(error=ReasoningUnavailableError("Tempo esgotado", reason="timeout"))
    engine, _ = make_engine(fakes, histories, config, ai=ai)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=30.0))
    assert resp.success is True
    assert resp.confidence == FALLBACK_CONFIDENCE
    assert "Mega-Sena" in resp.strategy.reasoning


def test_ai_reply_is_used(fakes, histories, config):
    ai = fakes.AIAdapter(reply=("Explicação da IA", 1.7))
    engine, _ = make_engine(fakes, histories, config, ai=ai)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=30.0))
    assert resp.strategy.reasoning == "Explicação da IA"
    assert resp.confidence == 1.0


def test_all_types_fail(fakes, config):
    engine, _ = make_engine(fakes, {}, config)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena", "lotofacil"), budget=60.0))
    assert resp.success is False
    assert resp.stage == "fetching_history"
    assert set(resp.failed_lotteries) == {"megasena", "lotofacil"}
    assert resp.available_lotteries == ()
    assert "Mega-Sena: sem dados" in resp.error
    assert "Lotofácil: sem dados" in resp.error


def test_insufficient_history_demotes_type(fakes, histories, config):
    histories = dict(histories, lotofacil=fakes.history("lotofacil", 3))
    engine, _ = make_engine(fakes, histories, config)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena", "lotofacil"), budget=40.0))
    assert resp.success is True
    assert resp.failed_lotteries == ("lotofacil",)


def test_unexpected_adapter_error_demotes_type(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config, failures={"megasena": RuntimeError("boom")})
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena", "lotofacil"), budget=35.0))
    assert resp.success is True
    assert resp.failed_lotteries == ("megasena",)
    assert all(g.lottery_type == "lotofacil" for g in resp.strategy.games)


def test_per_type_deadline(fakes, histories, tmp_path):
    config = ConfigData(cache_dir=tmp_path, type_timeout_sec=0.2)
    engine, _ = make_engine(fakes, histories, config, delay=3.0)
    inicio = time.monotonic()
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=30.0))
    # a chamada presa continua na sua thread; a resposta não espera por ela
    assert time.monotonic() - inicio < 1.5
    assert resp.success is False
    assert resp.failed_lotteries == ("megasena",)
    assert "tempo esgotado após 0.2s" in resp.error


@pytest.mark.parametrize(
    "prefs",
    [
        UserPreferences(lottery_types=(), budget=50.0),
        UserPreferences(lottery_types=("quina",), budget=50.0),
        UserPreferences(lottery_types=("megasena",), budget=0.0),
        UserPreferences(lottery_types=("megasena",), budget=50.0, favorite_numbers=(61,)),
        UserPreferences(lottery_types=("megasena",), budget=50.0, favorite_numbers=(5,), exclude_numbers=(5,)),
        UserPreferences(lottery_types=("megasena",), budget=50.0, strategy="yolo"),
    ],
)
def test_validation_failures(fakes, histories, config, prefs):
    engine, adapter = make_engine(fakes, histories, config)
    resp = engine.generate_strategy(prefs)
    assert resp.success is False
    assert resp.stage == "validating"
    assert resp.error
    assert adapter.calls == []


def test_repeated_requests_are_identical(fakes, histories, config):
    engine, adapter = make_engine(fakes, histories, config)
    prefs = UserPreferences(lottery_types=("megasena", "lotofacil"), budget=80.0, avoid_patterns=True)
    r1 = engine.generate_strategy(prefs)
    r2 = engine.generate_strategy(prefs)
    assert r1.strategy.games == r2.strategy.games
    # snapshot reaproveitado
    assert len(adapter.calls) == 2


def test_games_respect_preferences(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    prefs = UserPreferences(
        lottery_types=("megasena", "lotofacil"),
        budget=100.0,
        strategy="aggressive",
        favorite_numbers=(10,),
        exclude_numbers=(1, 2),
    )
    resp = engine.generate_strategy(prefs)
    assert resp.success is True
    for g in resp.strategy.games:
        assert 10 in g.numbers
        assert not {1, 2} & set(g.numbers)
    assert resp.strategy.total_cost <= 100.0
    assert set(resp.strategy.statistics) == {"megasena", "lotofacil"}


def test_response_to_dict(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    d = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=12.0)).to_dict()
    assert d["success"] is True
    assert len(d["strategy"]["games"]) == 2
    assert d["availableLotteries"] == ["megasena"]


def test_get_statistics(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    stats = engine.get_statistics("megasena", 20)
    assert stats.analyzed_draws == 20
    with pytest.raises(ValidationError):
        engine.get_statistics("quina")


def test_preflight_toggles_ai(fakes, histories, config):
    ai = fakes.AIAdapter(reply=("Explicação da IA", 0.9))
    engine, _ = make_engine(fakes, histories, config, ai=ai)
    engine.preflight(ConnectionStatus(caixa_api=True, claude_api=False, claude_error="401"))
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=12.0))
    assert resp.confidence == FALLBACK_CONFIDENCE
    assert ai.calls == 0

    engine.preflight(ConnectionStatus(caixa_api=True, claude_api=True))
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=12.0))
    assert resp.strategy.reasoning == "Explicação da IA"


def test_favorites_apply_per_universe(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    resp = engine.generate_strategy(
        UserPreferences(lottery_types=("megasena", "lotofacil"), budget=60.0, favorite_numbers=(40,))
    )
    assert resp.success is True
    assert resp.failed_lotteries == ()
    mega = [g for g in resp.strategy.games if g.lottery_type == "megasena"]
    loto = [g for g in resp.strategy.games if g.lottery_type == "lotofacil"]
    assert mega and loto
    assert all(40 in g.numbers for g in mega)
    assert all(max(g.numbers) <= 25 for g in loto)


def test_aggressive_mode_buys_larger_bets(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    resp = engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=84.0, strategy="aggressive"))
    assert resp.success is True
    assert len(resp.strategy.games) == 2
    for g in resp.strategy.games:
        assert len(g.numbers) == 7
        assert g.cost == pytest.approx(42.0)
    assert resp.strategy.total_cost == pytest.approx(84.0)


def test_explicit_numbers_per_game(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    prefs = UserPreferences(lottery_types=("megasena",), budget=200.0, numbers_per_game={"megasena": 8})
    resp = engine.generate_strategy(prefs)
    assert resp.success is True
    (game,) = resp.strategy.games
    assert len(game.numbers) == 8
    assert game.cost == pytest.approx(168.0)


def test_budget_check_uses_bet_size(fakes, histories, config):
    engine, adapter = make_engine(fakes, histories, config)
    prefs = UserPreferences(lottery_types=("megasena",), budget=100.0, numbers_per_game={"megasena": 8})
    resp = engine.generate_strategy(prefs)
    assert resp.success is False
    assert resp.stage == "validating"
    assert "R$ 168.00" in resp.error
    assert adapter.calls == []


def test_selection_infeasible_demotes_type(fakes, histories, config):
    # Lotofácil sem 1-10 só tem uma combinação; a cota pede oito jogos
    engine, _ = make_engine(fakes, histories, config)
    prefs = UserPreferences(lottery_types=("megasena", "lotofacil"), budget=60.0, exclude_numbers=tuple(range(1, 11)))
    resp = engine.generate_strategy(prefs)
    assert resp.success is True
    assert resp.failed_lotteries == ("lotofacil",)
    assert resp.available_lotteries == ("megasena",)
    assert len(resp.strategy.games) == 5
    assert all(g.lottery_type == "megasena" for g in resp.strategy.games)
    assert resp.strategy.total_cost == pytest.approx(30.0)


def test_cancellation_propagates(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config, delay=1.0)
    prefs = UserPreferences(lottery_types=("megasena", "lotofacil"), budget=60.0)

    async def cenario():
        tarefa = asyncio.create_task(engine.agenerate_strategy(prefs))
        await asyncio.sleep(0.1)
        tarefa.cancel()
        with pytest.raises(asyncio.CancelledError):
            await tarefa

    inicio = time.monotonic()
    asyncio.run(cenario())
    assert time.monotonic() - inicio < 0.8


def test_sync_call_inside_running_loop(fakes, histories, config):
    engine, adapter = make_engine(fakes, histories, config)

    async def cenario():
        return engine.generate_strategy(UserPreferences(lottery_types=("megasena",), budget=12.0))

    resp = asyncio.run(cenario())
    assert isinstance(resp, StrategyFailure)
    assert "agenerate_strategy" in resp.error
    assert adapter.calls == []

    async def assincrono():
        return await engine.agenerate_strategy(UserPreferences(lottery_types=("megasena",), budget=12.0))

    assert asyncio.run(assincrono()).success is True


def test_check_games(fakes, histories, config, mega_history):
    engine, _ = make_engine(fakes, histories, config)
    ultimo = mega_history.draws[-1]
    primeiro = mega_history.draws[0]
    jogos = [make_game("megasena", ultimo.dezenas), make_game("megasena", primeiro.dezenas)]

    resultados = engine.check_games(jogos)
    assert [r.concurso for r in resultados] == [ultimo.concurso, ultimo.concurso]
    assert resultados[0].n_acertos == 6
    assert resultados[0].premio == pytest.approx(50_000_000.0)

    (r,) = engine.check_games(jogos[1:], concurso=primeiro.concurso)
    assert r.acertos == primeiro.dezenas
    with pytest.raises(ValidationError, match="não encontrado"):
        engine.check_games(jogos, concurso=5)


def test_next_draw(fakes, histories, config):
    engine, _ = make_engine(fakes, histories, config)
    proximo = engine.next_draw("megasena")
    # último sorteio do histórico falso: sábado, 29/04/2023
    assert proximo.concurso == 1040
    assert proximo.data == date(2023, 5, 2)
    with pytest.raises(ValidationError):
        engine.next_draw("quina")
