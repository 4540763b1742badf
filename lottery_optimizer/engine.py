from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from .analytics import analyze
from .budget import allocate, cheapest_game
from .config import LOTTERY_TYPES, ConfigData, LotteryType, get_spec
from .domain_lottery import preco_aposta, retorno_por_custo
from .errors import (
    BudgetTooLowError,
    LotteryOptimizerError,
    NoDataAvailableError,
    ValidationError,
)
from .health import ConnectionStatus
from .history import HistoryStore, LotteryDataAdapter
from .models import (
    Game,
    Stats,
    Strategy,
    StrategyFailure,
    StrategyResponse,
    StrategySuccess,
    UserPreferences,
)
from .reasoning import ReasoningAdapter, ReasoningComposer, ReasoningContext
from .results import GameResult, NextDraw, conferir_jogos, proximo_sorteio
from .selector import select_games, tamanho_jogo

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Stage(str, Enum):
    VALIDATING = "validating"
    FETCHING_HISTORY = "fetching_history"
    ANALYZING = "analyzing"
    ALLOCATING = "allocating"
    SELECTING = "selecting"
    COMPOSING = "composing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class TypeOutcome(Generic[T]):
    """Resultado de uma etapa para uma loteria: valor ou erro, nunca os dois."""
    lottery_type: LotteryType
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StrategyEngine:
    """
    Orquestra validação, histórico, estatísticas, orçamento, seleção e
    explicação. Toda chamada devolve uma StrategyResponse; falhas por
    loteria viram `failed_lotteries` sem derrubar as demais.
    """

    def __init__(
        self,
        data_adapter: LotteryDataAdapter,
        ai_adapter: Optional[ReasoningAdapter] = None,
        config: Optional[ConfigData] = None,
        *,
        store: Optional[HistoryStore] = None,
    ):
        self.config = config or ConfigData()
        self.store = store or HistoryStore(data_adapter)
        self.ai_adapter = ai_adapter
        self.composer = ReasoningComposer(ai_adapter, timeout=float(self.config.timeout_sec))

    def preflight(self, status: ConnectionStatus) -> None:
        if not status.claude_api and self.composer.adapter is not None:
            logger.info("IA indisponível no pré-teste (%s); usando explicação padrão", status.claude_error)
            self.composer = ReasoningComposer(None, timeout=self.composer.timeout)
        elif status.claude_api and self.composer.adapter is None and self.ai_adapter is not None:
            self.composer = ReasoningComposer(self.ai_adapter, timeout=self.composer.timeout)

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def generate_strategy(self, prefs: UserPreferences) -> StrategyResponse:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.agenerate_strategy(prefs))
        # asyncio.run não pode ser chamado de dentro de um loop ativo
        logger.error("generate_strategy chamado dentro de um loop de eventos ativo")
        return StrategyFailure(
            error="Chamada síncrona dentro de um loop de eventos ativo; use agenerate_strategy.",
            stage=Stage.VALIDATING.value,
        )

    def get_statistics(self, lottery_type: LotteryType, lookback: Optional[int] = None) -> Stats:
        if lottery_type not in LOTTERY_TYPES:
            raise ValidationError(f"Loteria desconhecida: {lottery_type!r}")
        lookback = lookback or self.config.history_size
        history = self.store.snapshot(lottery_type, max(lookback, self.config.history_size))
        return analyze(history, lookback)

    def check_games(self, games: Iterable[Game], concurso: Optional[int] = None) -> list[GameResult]:
        """Confere jogos contra um concurso (o mais recente, se omitido)."""
        games = list(games)
        resultados: list[GameResult] = []
        for lottery_type in dict.fromkeys(g.lottery_type for g in games):
            history = self.store.snapshot(lottery_type, self.config.history_size)
            if not history.draws:
                raise ValidationError(f"{get_spec(lottery_type).nome}: nenhum sorteio disponível para conferir.")
            if concurso is None:
                draw = history.draws[-1]
            else:
                draw = next((d for d in history.draws if d.concurso == concurso), None)
                if draw is None:
                    raise ValidationError(f"{get_spec(lottery_type).nome}: concurso {concurso} não encontrado.")
            resultados.extend(conferir_jogos([g for g in games if g.lottery_type == lottery_type], draw))
        logger.info("Conferidos %d jogos; %d premiados", len(resultados), sum(r.premiado for r in resultados))
        return resultados

    def next_draw(self, lottery_type: LotteryType) -> Optional[NextDraw]:
        if lottery_type not in LOTTERY_TYPES:
            raise ValidationError(f"Loteria desconhecida: {lottery_type!r}")
        return proximo_sorteio(self.store.snapshot(lottery_type, self.config.history_size))

    async def agenerate_strategy(self, prefs: UserPreferences) -> StrategyResponse:
        stage = Stage.VALIDATING
        failed: dict[LotteryType, str] = {}
        # threads próprias: uma chamada presa não segura o encerramento do loop
        executor = ThreadPoolExecutor(max_workers=max(4, 2 * len(prefs.lottery_types)), thread_name_prefix="lottery")
        try:
            self._validate(prefs)
            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.config.type_timeout_sec
            custo_jogo = {t: self._custo_jogo(prefs, t) for t in prefs.lottery_types}

            stage = self._enter(Stage.FETCHING_HISTORY)
            histories = await self._fan_out(
                executor, prefs.lottery_types, deadline, lambda t: self.store.snapshot(t, self.config.history_size)
            )
            for o in histories:
                if not o.ok:
                    failed[o.lottery_type] = o.error or ""
            fetched = {o.lottery_type: o.value for o in histories if o.ok}
            if not fetched:
                raise NoDataAvailableError(self._aggregate("Não foi possível obter dados de nenhuma loteria", failed))

            stage = self._enter(Stage.ANALYZING)
            stats = self._collect(
                await self._fan_out(executor, list(fetched), deadline, lambda t: analyze(fetched[t], self.config.history_size)),
                failed,
            )
            if not stats:
                raise NoDataAvailableError(self._aggregate("Nenhuma loteria com dados suficientes", failed))

            stage = self._enter(Stage.ALLOCATING)
            counts = allocate(
                prefs.budget,
                list(stats),
                {t: custo_jogo[t] for t in stats},
                prefs.strategy,
                return_per_cost={t: retorno_por_custo(get_spec(t)) for t in stats},
                sum_variance={t: s.sum_variance for t, s in stats.items()},
            )

            stage = self._enter(Stage.SELECTING)
            selected = self._collect(
                await self._fan_out(
                    executor,
                    [t for t in stats if counts.get(t, 0) > 0],
                    deadline,
                    lambda t: select_games(stats[t], prefs, t, counts[t]),
                ),
                failed,
            )
            games = tuple(g for t in prefs.lottery_types for g in selected.get(t, ()))
            available = [t for t in prefs.lottery_types if t not in failed]
            if not games:
                raise LotteryOptimizerError(self._aggregate("Nenhum jogo pôde ser gerado", failed))

            stage = self._enter(Stage.COMPOSING)
            used_stats = {t: stats[t] for t in prefs.lottery_types if t in stats and t not in failed}
            total_cost = sum(g.cost for g in games)
            context = ReasoningContext(
                games=games,
                total_cost=total_cost,
                budget=prefs.budget,
                mode=prefs.strategy,
                avoid_patterns=prefs.avoid_patterns,
                statistics=used_stats,
                failed_lotteries=tuple(failed),
            )
            reasoning, confidence = await self.composer.acompose(context)

            strategy = Strategy(
                games=games,
                total_cost=total_cost,
                budget=prefs.budget,
                expected_return=sum(g.expected_return for g in games),
                reasoning=reasoning,
                statistics=used_stats,
                created_at=datetime.now(),
            )
            self._enter(Stage.DONE)
            logger.info(
                "Estratégia final: %d jogos, custo R$ %.2f de R$ %.2f, falhas=%s",
                len(games), total_cost, prefs.budget, list(failed),
            )
            return StrategySuccess(
                strategy=strategy,
                confidence=confidence,
                available_lotteries=tuple(available),
                failed_lotteries=tuple(failed),
            )
        except LotteryOptimizerError as e:
            logger.warning("Falha em %s: %s", stage.value, e)
            return self._failure(str(e), stage, prefs, failed)
        except Exception as e:
            logger.exception("Erro inesperado em %s", stage.value)
            return self._failure(f"Erro interno: {e}", stage, prefs, failed)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # etapas
    # ------------------------------------------------------------------
    @staticmethod
    def _enter(stage: Stage) -> Stage:
        logger.debug("Etapa: %s", stage.value)
        return stage

    @staticmethod
    def _custo_jogo(prefs: UserPreferences, lottery_type: LotteryType) -> float:
        spec = get_spec(lottery_type)
        return preco_aposta(tamanho_jogo(prefs, spec), spec.n_min, spec.preco_base)

    @classmethod
    def _validate(cls, prefs: UserPreferences) -> None:
        prefs.validate()
        menor = cheapest_game(prefs.lottery_types, {t: cls._custo_jogo(prefs, t) for t in prefs.lottery_types})
        if prefs.budget < menor:
            raise BudgetTooLowError(
                f"Orçamento R$ {prefs.budget:.2f} não cobre nem um jogo (mínimo R$ {menor:.2f}).",
                budget=prefs.budget,
                cheapest=menor,
            )

    async def _run_for_type(
        self, executor: ThreadPoolExecutor, lottery_type: LotteryType, deadline: float, fn: Callable[[LotteryType], T]
    ) -> TypeOutcome[T]:
        loop = asyncio.get_running_loop()
        restante = max(0.0, deadline - loop.time())
        try:
            value = await asyncio.wait_for(loop.run_in_executor(executor, fn, lottery_type), timeout=restante)
        except asyncio.TimeoutError:
            logger.warning("%s: tempo esgotado (%gs)", lottery_type, self.config.type_timeout_sec)
            return TypeOutcome(lottery_type, error=f"tempo esgotado após {self.config.type_timeout_sec:g}s")
        except LotteryOptimizerError as e:
            logger.warning("%s rebaixada: %s", lottery_type, e)
            return TypeOutcome(lottery_type, error=str(e))
        except Exception as e:
            logger.exception("%s: erro inesperado", lottery_type)
            return TypeOutcome(lottery_type, error=f"erro inesperado: {e}")
        return TypeOutcome(lottery_type, value=value)

    async def _fan_out(
        self,
        executor: ThreadPoolExecutor,
        lottery_types: list[LotteryType] | tuple[LotteryType, ...],
        deadline: float,
        fn: Callable[[LotteryType], T],
    ) -> list[TypeOutcome[T]]:
        return list(await asyncio.gather(*(self._run_for_type(executor, t, deadline, fn) for t in lottery_types)))

    @staticmethod
    def _collect(outcomes: list[TypeOutcome[Any]], failed: dict[LotteryType, str]) -> dict[LotteryType, Any]:
        for o in outcomes:
            if not o.ok:
                failed[o.lottery_type] = o.error or ""
        return {o.lottery_type: o.value for o in outcomes if o.ok}

    @staticmethod
    def _aggregate(prefixo: str, failed: dict[LotteryType, str]) -> str:
        if not failed:
            return prefixo + "."
        detalhes = "; ".join(f"{get_spec(t).nome}: {erro}" for t, erro in failed.items())
        return f"{prefixo}: {detalhes}"

    @staticmethod
    def _failure(error: str, stage: Stage, prefs: UserPreferences, failed: dict[LotteryType, str]) -> StrategyFailure:
        logger.debug("Etapa: %s -> %s", stage.value, Stage.FAILED.value)
        if stage == Stage.VALIDATING:
            return StrategyFailure(error=error, stage=stage.value)
        return StrategyFailure(
            error=error,
            stage=stage.value,
            available_lotteries=tuple(t for t in prefs.lottery_types if t not in failed),
            failed_lotteries=tuple(failed),
        )
