import math

from .config import LotterySpec

PRIMOS_ATE_60 = {2,3,5,7,11,13,17,19,23,29,31,37,41,43,47,53,59}

def formatar_jogo(jogo: list[int]) -> str:
    return " - ".join(f"{d:02d}" for d in sorted(jogo))

def pares_impares(jogo: list[int]) -> tuple[int,int]:
    pares = sum(1 for d in jogo if d % 2 == 0)
    return pares, len(jogo) - pares

def baixos_altos(jogo: list[int], limite_baixo: int) -> tuple[int,int]:
    baixos = sum(1 for d in jogo if 1 <= d <= limite_baixo)
    return baixos, len(jogo) - baixos

def tem_sequencia_longa(jogo: list[int], limite: int = 3) -> bool:
    j = sorted(jogo)
    atual = 1
    for i in range(1, len(j)):
        if j[i] == j[i-1] + 1:
            atual += 1
            if atual >= limite:
                return True
        else:
            atual = 1
    return False

def contar_primos(jogo: list[int]) -> int:
    return sum(1 for d in jogo if d in PRIMOS_ATE_60)

def validar_jogo(jogo: list[int], spec: LotterySpec) -> None:
    if len(jogo) < spec.n_min or len(jogo) > spec.n_max:
        raise ValueError(
            f"Número de dezenas inválido para {spec.nome}: deve estar entre {spec.n_min} e {spec.n_max}."
        )
    fora = [d for d in jogo if d < 1 or d > spec.n_universo]
    if fora:
        raise ValueError(f"Dezenas fora do intervalo 1–{spec.n_universo} para {spec.nome}: {fora}")
    if len(set(jogo)) != len(jogo):
        raise ValueError(f"Jogo de {spec.nome} com dezenas repetidas.")

def preco_aposta(n_dezenas: int, n_min_base: int, preco_base: float) -> float:
    if n_dezenas < n_min_base:
        return 0.0
    return math.comb(n_dezenas, n_min_base) * preco_base

def prob_premio_maximo(n_dezenas: int, n_min_base: int, comb_target: int) -> float:
    if n_dezenas < n_min_base:
        return 0.0
    return math.comb(n_dezenas, n_min_base) / comb_target

def prob_premio_maximo_aprox(jogos: list[list[int]], n_min_base: int, comb_target: int) -> float:
    prob_nao = 1.0
    for j in jogos:
        if len(j) < n_min_base:
            continue
        p = prob_premio_maximo(len(j), n_min_base, comb_target)
        prob_nao *= (1.0 - p)
    return 1.0 - prob_nao

def prob_acertos(acertos: int, spec: LotterySpec) -> float:
    """Probabilidade hipergeométrica de uma aposta simples acertar exatamente `acertos` dezenas."""
    n, sorteadas, tam = spec.n_universo, spec.n_dezenas_sorteio, spec.n_min
    if acertos < 0 or acertos > min(sorteadas, tam):
        return 0.0
    return math.comb(sorteadas, acertos) * math.comb(n - sorteadas, tam - acertos) / math.comb(n, tam)

def retorno_esperado(n_dezenas: int, spec: LotterySpec) -> float:
    # uma aposta com k dezenas equivale a C(k, n_min) apostas simples
    simples = sum(prob_acertos(acertos, spec) * premio for acertos, premio in spec.premios)
    return math.comb(n_dezenas, spec.n_min) * simples if n_dezenas >= spec.n_min else 0.0

def retorno_por_custo(spec: LotterySpec) -> float:
    return retorno_esperado(spec.n_min, spec) / spec.preco_base
