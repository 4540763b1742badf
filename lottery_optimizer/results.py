from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from .config import LotteryType, get_spec
from .models import Draw, DrawHistory, Game

# dias de sorteio (segunda = 0)
DIAS_SORTEIO: dict[LotteryType, frozenset[int]] = {
    "megasena": frozenset({1, 3, 5}),
    "lotofacil": frozenset({0, 1, 2, 3, 4, 5}),
}


@dataclass(frozen=True)
class GameResult:
    game: Game
    concurso: int
    acertos: tuple[int, ...]
    premio: float

    @property
    def n_acertos(self) -> int:
        return len(self.acertos)

    @property
    def premiado(self) -> bool:
        return self.premio > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.game.lottery_type,
            "numbers": list(self.game.numbers),
            "contestNumber": self.concurso,
            "matches": list(self.acertos),
            "hitCount": self.n_acertos,
            "prizeAmount": self.premio,
        }


@dataclass(frozen=True)
class NextDraw:
    lottery_type: LotteryType
    concurso: int
    data: Optional[date]


def premio_estimado(lottery_type: LotteryType, n_dezenas: int, n_acertos: int) -> float:
    """
    Prêmio estimado de uma aposta com `n_dezenas` que acertou `n_acertos`.

    Aposta com mais dezenas que o mínimo concorre como C(k, n_min) apostas
    simples; cada faixa paga pelas simples que acertam exatamente aquela
    quantidade.
    """
    spec = get_spec(lottery_type)
    if n_dezenas < spec.n_min:
        return 0.0
    erros = n_dezenas - n_acertos
    total = 0.0
    for faixa, premio in spec.premios:
        if faixa > n_acertos or spec.n_min - faixa > erros:
            continue
        total += math.comb(n_acertos, faixa) * math.comb(erros, spec.n_min - faixa) * premio
    return total


def conferir_jogo(game: Game, draw: Draw) -> GameResult:
    if game.lottery_type != draw.lottery_type:
        raise ValueError(f"Jogo de {game.lottery_type} conferido contra sorteio de {draw.lottery_type}")
    sorteadas = set(draw.dezenas)
    acertos = tuple(sorted(n for n in game.numbers if n in sorteadas))
    return GameResult(
        game=game,
        concurso=draw.concurso,
        acertos=acertos,
        premio=premio_estimado(game.lottery_type, len(game.numbers), len(acertos)),
    )


def conferir_jogos(games: Iterable[Game], draw: Draw) -> list[GameResult]:
    return [conferir_jogo(g, draw) for g in games]


def proximo_sorteio(history: DrawHistory) -> Optional[NextDraw]:
    if not history.draws:
        return None
    ultimo = history.draws[-1]
    data = None
    if ultimo.data is not None:
        dias = DIAS_SORTEIO[history.lottery_type]
        data = ultimo.data + timedelta(days=1)
        while data.weekday() not in dias:
            data += timedelta(days=1)
    return NextDraw(lottery_type=history.lottery_type, concurso=ultimo.concurso + 1, data=data)
