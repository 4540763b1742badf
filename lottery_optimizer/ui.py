import re

from .config import LOTTERY_TYPES, get_spec

MODE_LABELS = {
    "conservative": "Conservadora",
    "balanced": "Equilibrada",
    "aggressive": "Agressiva",
}

def money_ptbr(v: float) -> str:
    return f"R$ {v:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")

def parse_lista(texto: str) -> list[int]:
    if not texto:
        return []
    tokens = re.split(r"[,\s;]+", texto.strip())
    out: list[int] = []
    for t in tokens:
        if t.isdigit():
            out.append(int(t))
    return out

def lottery_label(lottery_type: str) -> str:
    if lottery_type in LOTTERY_TYPES:
        return get_spec(lottery_type).nome  # type: ignore[arg-type]
    return lottery_type
