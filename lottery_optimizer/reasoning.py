from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from collections import Counter
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence

from .config import FALLBACK_CONFIDENCE, LotteryType, get_spec
from .domain_lottery import formatar_jogo
from .models import Game, Stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReasoningContext:
    """Resumo da estratégia em montagem, enviado ao adaptador de IA."""
    games: tuple[Game, ...]
    total_cost: float
    budget: float
    mode: str
    avoid_patterns: bool
    statistics: Mapping[LotteryType, Stats]
    failed_lotteries: tuple[LotteryType, ...] = ()


class ReasoningAdapter(Protocol):
    def explain(self, context: ReasoningContext, timeout: float) -> tuple[str, float]: ...


def clamp_confidence(value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return FALLBACK_CONFIDENCE
    if v != v:  # NaN
        return FALLBACK_CONFIDENCE
    return min(1.0, max(0.0, v))


def _dezenas_usadas(games: Sequence[Game], lottery_type: LotteryType) -> set[int]:
    return {n for g in games if g.lottery_type == lottery_type for n in g.numbers}


def fallback_reasoning(context: ReasoningContext) -> str:
    linhas = [
        f"Estratégia {context.mode} para orçamento de R$ {context.budget:.2f} "
        f"(custo total R$ {context.total_cost:.2f}).",
        "",
    ]
    por_tipo = Counter(g.lottery_type for g in context.games)
    for lottery_type, qtd in sorted(por_tipo.items()):
        spec = get_spec(lottery_type)
        linhas.append(f"• {qtd} jogo(s) da {spec.nome}")
        stats = context.statistics.get(lottery_type)
        if stats is None:
            continue
        usadas = _dezenas_usadas(context.games, lottery_type)
        quentes = [n for n in stats.hot_numbers if n in usadas]
        frias = [n for n in stats.cold_numbers if n in usadas]
        linhas.append(f"  - {stats.analyzed_draws} sorteios analisados")
        if quentes:
            linhas.append(f"  - Dezenas quentes usadas: {formatar_jogo(quentes)}")
        if frias:
            linhas.append(f"  - Dezenas frias usadas: {formatar_jogo(frias)}")
        if stats.flagged_patterns:
            acao = "evitados" if context.avoid_patterns else "observados"
            linhas.append(f"  - Padrões recentes {acao}: {', '.join(stats.flagged_patterns)}")
    if context.failed_lotteries:
        nomes = ", ".join(get_spec(t).nome for t in context.failed_lotteries)
        linhas.append("")
        linhas.append(f"Loterias indisponíveis nesta geração: {nomes}.")
    linhas.append("")
    linhas.append("Critérios: frequência histórica, cobertura equilibrada de dezenas e limite de orçamento.")
    return "\n".join(linhas)


class ReasoningComposer:
    """
    Texto explicativo e confiança da estratégia.

    Tenta o adaptador de IA com timeout próprio; qualquer falha cai no
    texto determinístico com FALLBACK_CONFIDENCE. Nunca levanta exceção.
    """

    def __init__(self, adapter: Optional[ReasoningAdapter], timeout: float):
        self.adapter = adapter
        self.timeout = timeout

    def compose(self, context: ReasoningContext) -> tuple[str, float]:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.acompose(context))
        logger.warning("compose chamado dentro de um loop de eventos ativo; usando explicação padrão")
        return self._fallback(context)

    async def acompose(self, context: ReasoningContext) -> tuple[str, float]:
        if self.adapter is not None:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reasoning")
            try:
                text, confidence = await asyncio.wait_for(
                    asyncio.get_running_loop().run_in_executor(executor, self.adapter.explain, context, self.timeout),
                    timeout=self.timeout,
                )
                if text and text.strip():
                    return text.strip(), clamp_confidence(confidence)
                logger.warning("IA retornou texto vazio; usando explicação padrão")
            except asyncio.TimeoutError:
                logger.warning("IA não respondeu em %gs; usando explicação padrão", self.timeout)
            except Exception as e:
                logger.warning("IA indisponível (%s); usando explicação padrão", e)
            finally:
                executor.shutdown(wait=False, cancel_futures=True)
        return self._fallback(context)

    def _fallback(self, context: ReasoningContext) -> tuple[str, float]:
        try:
            return fallback_reasoning(context), FALLBACK_CONFIDENCE
        except Exception:
            logger.exception("Falha ao montar explicação padrão")
            return "Estratégia gerada a partir das estatísticas históricas.", FALLBACK_CONFIDENCE
