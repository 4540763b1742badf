from __future__ import annotations

import itertools
import logging
import math
from typing import Iterator

from .config import LotterySpec, LotteryType, get_spec
from .domain_lottery import (
    baixos_altos,
    pares_impares,
    preco_aposta,
    prob_premio_maximo,
    retorno_esperado,
    tem_sequencia_longa,
    validar_jogo,
)
from .errors import SelectionInfeasibleError
from .models import Game, Stats, UserPreferences

logger = logging.getLogger(__name__)

# candidatos examinados antes de aceitar jogos que repetem padrões
SCAN_FACTOR = 50
MIN_SCAN = 5_000
# dezenas além do mínimo por modo
EXTRA_DEZENAS = {"conservative": 0, "balanced": 0, "aggressive": 1}

def repete_padrao(jogo: tuple[int, ...], patterns: dict[str, bool], spec: LotterySpec) -> bool:
    """True se o jogo reproduz algum padrão marcado nas estatísticas."""
    pares, impares = pares_impares(list(jogo))
    baixos, altos = baixos_altos(list(jogo), spec.limite_baixo)
    checks = {
        "consecutive": tem_sequencia_longa(list(jogo), limite=3),
        "all_even": impares == 0,
        "all_odd": pares == 0,
        "even_heavy": pares > impares,
        "odd_heavy": impares > pares,
        "low_heavy": baixos > altos,
        "high_heavy": altos > baixos,
    }
    return any(checks.get(nome, False) for nome, ativo in patterns.items() if ativo)

def ordem_preferencia(stats: Stats, spec: LotterySpec) -> list[int]:
    if stats.ranking:
        return list(stats.ranking)
    # sem ranking: frequência decrescente, menor dezena no empate
    return sorted(range(1, spec.n_universo + 1), key=lambda d: (-stats.number_frequency.get(d, 0), d))

def _candidatos(pool: list[int], vagas: int) -> Iterator[tuple[int, ...]]:
    # janelas rotativas pelo ranking espalham a cobertura; depois, todas as combinações
    n = len(pool)
    if vagas == 0:
        yield ()
        return
    for inicio in range(0, n, vagas):
        yield tuple(pool[(inicio + j) % n] for j in range(vagas))
    for passo in range(1, n):
        for inicio in range(n):
            idx = [(inicio + j * passo) % n for j in range(vagas)]
            if len(set(idx)) == vagas:
                yield tuple(pool[i] for i in idx)
    yield from itertools.combinations(pool, vagas)

def tamanho_jogo(prefs: UserPreferences, spec: LotterySpec) -> int:
    """Dezenas por jogo: escolha explícita do usuário ou o padrão do modo."""
    pedido = prefs.numbers_per_game.get(spec.lottery_type)
    if pedido:
        return pedido
    return min(spec.n_min + EXTRA_DEZENAS.get(prefs.strategy, 0), spec.n_max)

def _restricoes(prefs: UserPreferences, spec: LotterySpec, tamanho: int) -> tuple[list[int], set[int]]:
    # favoritas fora do universo desta loteria são ignoradas aqui
    fixas = sorted(d for d in dict.fromkeys(prefs.favorite_numbers) if 1 <= d <= spec.n_universo)[:tamanho]
    proibidas = {d for d in prefs.exclude_numbers if 1 <= d <= spec.n_universo}
    return fixas, proibidas

def max_combinacoes(prefs: UserPreferences, spec: LotterySpec, tamanho: int | None = None) -> int:
    tamanho = tamanho or tamanho_jogo(prefs, spec)
    fixas, proibidas = _restricoes(prefs, spec, tamanho)
    livres = spec.n_universo - len(proibidas) - len(fixas)
    vagas = tamanho - len(fixas)
    if livres < vagas:
        return 0
    return math.comb(livres, vagas)

def make_game(lottery_type: LotteryType, numbers: tuple[int, ...]) -> Game:
    spec = get_spec(lottery_type)
    jogo = tuple(sorted(numbers))
    validar_jogo(list(jogo), spec)
    return Game(
        lottery_type=lottery_type,
        numbers=jogo,
        cost=preco_aposta(len(jogo), spec.n_min, spec.preco_base),
        expected_return=retorno_esperado(len(jogo), spec),
        probability=prob_premio_maximo(len(jogo), spec.n_min, spec.comb_target),
    )

def select_games(stats: Stats, prefs: UserPreferences, lottery_type: LotteryType, count: int) -> list[Game]:
    """
    Gera exatamente `count` jogos distintos para uma loteria.

    Favoritas entram em todos os jogos (até o tamanho da aposta); as vagas
    restantes seguem o ranking das estatísticas. Com `avoid_patterns`, jogos
    que repetem padrões marcados ficam por último (preferência, não garantia).
    Excluídas nunca entram.
    """
    spec = get_spec(lottery_type)
    if count <= 0:
        return []

    tamanho = tamanho_jogo(prefs, spec)
    fixas, proibidas = _restricoes(prefs, spec, tamanho)
    pool = [d for d in ordem_preferencia(stats, spec) if d not in proibidas and d not in fixas]
    vagas = tamanho - len(fixas)

    viaveis = max_combinacoes(prefs, spec, tamanho)
    if count > viaveis:
        raise SelectionInfeasibleError(
            f"{spec.nome}: {count} jogos pedidos, mas só {viaveis} combinações possíveis com as restrições.",
            requested=count,
            feasible=viaveis,
        )

    evitar = prefs.avoid_patterns and any(stats.patterns.values())
    limite_busca = max(count * SCAN_FACTOR, MIN_SCAN)

    escolhidos: list[tuple[int, ...]] = []
    adiados: list[tuple[int, ...]] = []
    vistos: set[tuple[int, ...]] = set()
    candidatos = _candidatos(pool, vagas)

    def proximo_distinto() -> tuple[int, ...] | None:
        for combo in candidatos:
            jogo = tuple(sorted(fixas + list(combo)))
            if jogo not in vistos:
                vistos.add(jogo)
                return jogo
        return None

    examinados = 0
    while len(escolhidos) < count and examinados < limite_busca:
        jogo = proximo_distinto()
        if jogo is None:
            break
        examinados += 1
        if evitar and repete_padrao(jogo, stats.patterns, spec):
            if len(adiados) < count:
                adiados.append(jogo)
            continue
        escolhidos.append(jogo)

    if len(escolhidos) < count and adiados:
        logger.info("%s: %d jogos repetem padrões marcados (evitação é preferencial)", spec.nome, min(len(adiados), count - len(escolhidos)))
        escolhidos.extend(adiados[: count - len(escolhidos)])

    while len(escolhidos) < count:
        jogo = proximo_distinto()
        if jogo is None:
            break
        escolhidos.append(jogo)

    if len(escolhidos) < count:
        raise SelectionInfeasibleError(
            f"{spec.nome}: só foi possível montar {len(escolhidos)} de {count} jogos distintos.",
            requested=count,
            feasible=len(escolhidos),
        )
    return [make_game(lottery_type, jogo) for jogo in escolhidos]
