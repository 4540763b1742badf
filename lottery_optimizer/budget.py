from __future__ import annotations

import logging
import math
from typing import Iterable, Mapping, Optional

from .config import LotteryType, StrategyMode
from .errors import AllocationError, BudgetTooLowError, ValidationError

logger = logging.getLogger(__name__)

EPS = 1e-9
# fração da cota que segue a métrica do modo; o resto é divisão igual
SKEW = 0.5

def cheapest_game(requested_types: Iterable[LotteryType], per_game_cost: Mapping[LotteryType, float]) -> float:
    return min(per_game_cost[t] for t in requested_types)

def shares(
    requested_types: list[LotteryType],
    mode: StrategyMode,
    return_per_cost: Optional[Mapping[LotteryType, float]] = None,
    sum_variance: Optional[Mapping[LotteryType, float]] = None,
) -> dict[LotteryType, float]:
    n = len(requested_types)
    igual = {t: 1.0 / n for t in requested_types}

    metrica: Optional[dict[LotteryType, float]] = None
    if mode == "aggressive" and return_per_cost:
        metrica = {t: max(0.0, float(return_per_cost.get(t, 0.0))) for t in requested_types}
    elif mode == "conservative" and sum_variance:
        # menor variância -> maior peso
        metrica = {t: 1.0 / (1.0 + max(0.0, float(sum_variance.get(t, 0.0)))) for t in requested_types}

    if not metrica or sum(metrica.values()) <= 0:
        return igual
    total = sum(metrica.values())
    return {t: (1 - SKEW) * igual[t] + SKEW * metrica[t] / total for t in requested_types}

def allocate(
    budget: float,
    requested_types: Iterable[LotteryType],
    per_game_cost: Mapping[LotteryType, float],
    mode: StrategyMode = "balanced",
    *,
    return_per_cost: Optional[Mapping[LotteryType, float]] = None,
    sum_variance: Optional[Mapping[LotteryType, float]] = None,
) -> dict[LotteryType, int]:
    """
    Quantidade de jogos por loteria cabendo no orçamento.

    Cada loteria recebe sua cota (arredondada para baixo em jogos inteiros);
    a sobra vira jogos extras da loteria de menor custo enquanto couber.
    Empate de custo: ordem alfabética do tipo.
    """
    tipos = sorted(dict.fromkeys(requested_types))
    if not tipos:
        raise ValidationError("Nenhuma loteria para distribuir o orçamento.")
    for t in tipos:
        if t not in per_game_cost or not per_game_cost[t] > 0:
            raise ValidationError(f"Custo por jogo inválido para {t}.")

    menor = cheapest_game(tipos, per_game_cost)
    if budget + EPS < menor:
        raise BudgetTooLowError(
            f"Orçamento R$ {budget:.2f} não cobre nem um jogo (mínimo R$ {menor:.2f}).",
            budget=budget,
            cheapest=menor,
        )

    cotas = shares(tipos, mode, return_per_cost, sum_variance)
    counts = {t: int(math.floor(budget * cotas[t] / per_game_cost[t] + EPS)) for t in tipos}

    gasto = sum(counts[t] * per_game_cost[t] for t in tipos)
    sobra = budget - gasto
    por_custo = sorted(tipos, key=lambda t: (per_game_cost[t], t))
    barato = por_custo[0]
    if per_game_cost[barato] <= sobra + EPS:
        extra = int(math.floor(sobra / per_game_cost[barato] + EPS))
        counts[barato] += extra

    total = sum(counts[t] * per_game_cost[t] for t in tipos)
    if total > budget + EPS:
        raise AllocationError(f"Alocação de R$ {total:.2f} excede o orçamento de R$ {budget:.2f}.")

    logger.info("Alocação (%s) para R$ %.2f: %s, sobra R$ %.2f", mode, budget, counts, budget - total)
    return counts
