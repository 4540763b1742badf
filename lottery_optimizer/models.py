from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Literal, Optional, Union

import pandas as pd

from .config import LOTTERY_TYPES, STRATEGY_MODES, LotteryType, StrategyMode, get_spec
from .errors import ValidationError

# alias vindo da interface
MODE_ALIASES: dict[str, StrategyMode] = {"intelligent": "balanced"}

@dataclass(frozen=True)
class Draw:
    lottery_type: LotteryType
    concurso: int
    data: Optional[date]
    dezenas: tuple[int, ...]
    especiais: tuple[int, ...] = ()

    @property
    def soma(self) -> int:
        return sum(self.dezenas)

@dataclass(frozen=True)
class DrawHistory:
    lottery_type: LotteryType
    draws: tuple[Draw, ...]

    @classmethod
    def build(cls, lottery_type: LotteryType, draws: Iterable[Draw]) -> "DrawHistory":
        # ordem cronológica, um registro por concurso (o último vence)
        por_concurso: dict[int, Draw] = {}
        for d in draws:
            if d.lottery_type != lottery_type:
                raise ValueError(f"Sorteio de {d.lottery_type} em histórico de {lottery_type}")
            por_concurso[d.concurso] = d
        return cls(lottery_type=lottery_type, draws=tuple(por_concurso[c] for c in sorted(por_concurso)))

    @classmethod
    def from_frame(cls, lottery_type: LotteryType, df: pd.DataFrame) -> "DrawHistory":
        spec = get_spec(lottery_type)
        dezenas_cols = [f"d{i}" for i in range(1, spec.n_dezenas_sorteio + 1)]
        draws = []
        for row in df[["concurso", "data"] + dezenas_cols].itertuples(index=False):
            data = row[1]
            draws.append(
                Draw(
                    lottery_type=lottery_type,
                    concurso=int(row[0]),
                    data=(None if pd.isna(data) else pd.Timestamp(data).date()),
                    dezenas=tuple(sorted(int(d) for d in row[2:])),
                )
            )
        return cls.build(lottery_type, draws)

    def to_frame(self) -> pd.DataFrame:
        spec = get_spec(self.lottery_type)
        dezenas_cols = [f"d{i}" for i in range(1, spec.n_dezenas_sorteio + 1)]
        rows = []
        for d in self.draws:
            r: dict[str, Any] = {"concurso": d.concurso, "data": pd.Timestamp(d.data) if d.data else pd.NaT}
            r.update({c: int(v) for c, v in zip(dezenas_cols, sorted(d.dezenas))})
            rows.append(r)
        df = pd.DataFrame(rows, columns=["concurso", "data"] + dezenas_cols)
        return df.astype({c: "int64" for c in ["concurso"] + dezenas_cols})

    def tail(self, n: int) -> "DrawHistory":
        if n <= 0 or n >= len(self.draws):
            return self
        return DrawHistory(lottery_type=self.lottery_type, draws=self.draws[-n:])

    def __len__(self) -> int:
        return len(self.draws)

    @property
    def last_concurso(self) -> Optional[int]:
        return self.draws[-1].concurso if self.draws else None

@dataclass(frozen=True)
class Stats:
    lottery_type: LotteryType
    total_draws: int
    analyzed_draws: int
    number_frequency: dict[int, int]
    sum_distribution: dict[int, int]
    recent_trends: tuple[int, ...]
    hot_numbers: tuple[int, ...]
    cold_numbers: tuple[int, ...]
    patterns: dict[str, bool]
    # universo completo, do mais "quente" ao mais "frio"
    ranking: tuple[int, ...] = ()
    last_seen: dict[int, Optional[int]] = field(default_factory=dict)

    @property
    def sum_mean(self) -> float:
        total = sum(self.sum_distribution.values())
        if total == 0:
            return 0.0
        return sum(s * q for s, q in self.sum_distribution.items()) / total

    @property
    def sum_variance(self) -> float:
        total = sum(self.sum_distribution.values())
        if total == 0:
            return 0.0
        media = self.sum_mean
        return sum(q * (s - media) ** 2 for s, q in self.sum_distribution.items()) / total

    @property
    def flagged_patterns(self) -> list[str]:
        return sorted(k for k, v in self.patterns.items() if v)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lotteryType": self.lottery_type,
            "totalDraws": self.total_draws,
            "analyzedDraws": self.analyzed_draws,
            "numberFrequency": dict(self.number_frequency),
            "sumDistribution": dict(self.sum_distribution),
            "recentTrends": list(self.recent_trends),
            "hotNumbers": list(self.hot_numbers),
            "coldNumbers": list(self.cold_numbers),
            "patterns": dict(self.patterns),
        }

@dataclass(frozen=True)
class UserPreferences:
    lottery_types: tuple[LotteryType, ...]
    budget: float
    strategy: StrategyMode = "balanced"
    avoid_patterns: bool = False
    favorite_numbers: tuple[int, ...] = ()
    exclude_numbers: tuple[int, ...] = ()
    # dezenas por jogo, por loteria; ausente = tamanho do modo
    numbers_per_game: dict[LotteryType, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # normaliza coleções vindas da interface (listas, sets)
        object.__setattr__(self, "lottery_types", tuple(dict.fromkeys(self.lottery_types)))
        object.__setattr__(self, "favorite_numbers", tuple(int(n) for n in self.favorite_numbers))
        object.__setattr__(self, "exclude_numbers", tuple(int(n) for n in self.exclude_numbers))
        object.__setattr__(self, "strategy", MODE_ALIASES.get(self.strategy, self.strategy))
        object.__setattr__(self, "numbers_per_game", {t: int(n) for t, n in dict(self.numbers_per_game).items()})

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "UserPreferences":
        return cls(
            lottery_types=tuple(payload.get("lotteryTypes", ())),
            budget=float(payload.get("budget", 0.0)),
            strategy=payload.get("strategy", "balanced"),
            avoid_patterns=bool(payload.get("avoidPatterns", False)),
            favorite_numbers=tuple(payload.get("favoriteNumbers", ())),
            exclude_numbers=tuple(payload.get("excludeNumbers", ())),
            numbers_per_game=dict(payload.get("numbersPerGame") or {}),
        )

    def validate(self) -> None:
        if not self.lottery_types:
            raise ValidationError("Selecione ao menos uma loteria.")
        desconhecidas = [t for t in self.lottery_types if t not in LOTTERY_TYPES]
        if desconhecidas:
            raise ValidationError(f"Loterias desconhecidas: {desconhecidas}")
        if not self.budget > 0:
            raise ValidationError("O orçamento deve ser maior que zero.")
        if self.strategy not in STRATEGY_MODES:
            raise ValidationError(f"Estratégia inválida: {self.strategy!r}")
        # cada loteria filtra as dezenas do seu universo; aqui só o maior universo pedido
        n_universo = max(get_spec(t).n_universo for t in self.lottery_types)
        for nome, lista in (("Favoritas", self.favorite_numbers), ("Excluídas", self.exclude_numbers)):
            if len(set(lista)) != len(lista):
                raise ValidationError(f"{nome}: há dezenas repetidas.")
            if any(d < 1 or d > n_universo for d in lista):
                raise ValidationError(f"{nome}: há dezenas fora do intervalo 1–{n_universo}.")
        for t, n in self.numbers_per_game.items():
            if t not in LOTTERY_TYPES:
                raise ValidationError(f"Dezenas por jogo para loteria desconhecida: {t!r}")
            spec = get_spec(t)
            if n < spec.n_min or n > spec.n_max:
                raise ValidationError(
                    f"{spec.nome}: jogos devem ter entre {spec.n_min} e {spec.n_max} dezenas (pedido: {n})."
                )
        conflito = set(self.favorite_numbers) & set(self.exclude_numbers)
        if conflito:
            raise ValidationError(f"Conflito favoritas/excluídas: {sorted(conflito)}")

@dataclass(frozen=True)
class Game:
    lottery_type: LotteryType
    numbers: tuple[int, ...]
    cost: float
    expected_return: float
    probability: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.lottery_type,
            "numbers": list(self.numbers),
            "cost": self.cost,
            "expectedReturn": self.expected_return,
            "probability": self.probability,
        }

@dataclass(frozen=True)
class Strategy:
    games: tuple[Game, ...]
    total_cost: float
    budget: float
    expected_return: float
    reasoning: str
    statistics: dict[LotteryType, Stats]
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "games": [g.to_dict() for g in self.games],
            "totalCost": self.total_cost,
            "budget": self.budget,
            "expectedReturn": self.expected_return,
            "reasoning": self.reasoning,
            "statistics": {t: s.to_dict() for t, s in self.statistics.items()},
            "createdAt": self.created_at.isoformat(timespec="seconds"),
        }

@dataclass(frozen=True)
class StrategySuccess:
    strategy: Strategy
    confidence: float
    available_lotteries: tuple[LotteryType, ...]
    failed_lotteries: tuple[LotteryType, ...] = ()
    success: Literal[True] = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "strategy": self.strategy.to_dict(),
            "confidence": self.confidence,
            "availableLotteries": list(self.available_lotteries),
            "failedLotteries": list(self.failed_lotteries),
        }

@dataclass(frozen=True)
class StrategyFailure:
    error: str
    stage: str
    available_lotteries: tuple[LotteryType, ...] = ()
    failed_lotteries: tuple[LotteryType, ...] = ()
    success: Literal[False] = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.error,
            "availableLotteries": list(self.available_lotteries),
            "failedLotteries": list(self.failed_lotteries),
        }

StrategyResponse = Union[StrategySuccess, StrategyFailure]
