from __future__ import annotations

import logging
import math
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Mapping

LotteryType = Literal["megasena", "lotofacil"]
StrategyMode = Literal["conservative", "balanced", "aggressive"]

LOTTERY_TYPES: tuple[LotteryType, ...] = ("megasena", "lotofacil")
STRATEGY_MODES: tuple[StrategyMode, ...] = ("conservative", "balanced", "aggressive")

@dataclass(frozen=True)
class LotterySpec:
    lottery_type: LotteryType
    nome: str
    n_universo: int
    n_min: int
    n_max: int
    n_dezenas_sorteio: int
    preco_base: float
    limite_baixo: int
    comb_target: int
    # acertos -> prêmio estimado (R$)
    premios: tuple[tuple[int, float], ...]

PRECO_BASE_MEGA = 6.00
PRECO_BASE_LOTO = 3.50

# Faixas fixas da Lotofácil (11-13) e estimativas médias das faixas variáveis.
PREMIOS_MEGA: tuple[tuple[int, float], ...] = ((4, 1_000.0), (5, 50_000.0), (6, 50_000_000.0))
PREMIOS_LOTO: tuple[tuple[int, float], ...] = (
    (11, 7.0),
    (12, 14.0),
    (13, 35.0),
    (14, 1_500.0),
    (15, 1_500_000.0),
)

URL_LOTOFACIL_DOWNLOAD = (
    "https://servicebus2.caixa.gov.br/portaldeloterias/api/resultados/download"
    "?modalidade=Lotof%C3%A1cil"
)
URL_MEGA_DOWNLOAD = (
    "https://servicebus2.caixa.gov.br/portaldeloterias/api/resultados/download"
    "?modalidade=Mega-Sena"
)
URL_CAIXA_API = "https://servicebus2.caixa.gov.br/portaldeloterias/api"
URL_CLAUDE_MESSAGES = "https://api.anthropic.com/v1/messages"

# Análise
MIN_DRAWS = 5
HOT_COLD_K = 10
TREND_WINDOW = 10
PATTERN_THRESHOLD = 0.5
DEFAULT_LOOKBACK = 100

# Raciocínio
FALLBACK_CONFIDENCE = 0.5

def get_spec(lottery_type: LotteryType) -> LotterySpec:
    if lottery_type == "megasena":
        return LotterySpec(
            lottery_type="megasena",
            nome="Mega-Sena",
            n_universo=60,
            n_min=6,
            n_max=15,
            n_dezenas_sorteio=6,
            preco_base=PRECO_BASE_MEGA,
            limite_baixo=30,
            comb_target=math.comb(60, 6),
            premios=PREMIOS_MEGA,
        )
    if lottery_type == "lotofacil":
        return LotterySpec(
            lottery_type="lotofacil",
            nome="Lotofácil",
            n_universo=25,
            n_min=15,
            n_max=20,
            n_dezenas_sorteio=15,
            preco_base=PRECO_BASE_LOTO,
            limite_baixo=13,
            comb_target=math.comb(25, 15),
            premios=PREMIOS_LOTO,
        )
    raise ValueError(f"Loteria desconhecida: {lottery_type!r}")

def download_url(lottery_type: LotteryType) -> str:
    return URL_MEGA_DOWNLOAD if lottery_type == "megasena" else URL_LOTOFACIL_DOWNLOAD


@dataclass(frozen=True)
class ConfigData:
    """
    Configuração já resolvida. O motor só lê estes valores; persistência e
    validação ficam com quem fornece a configuração.
    """
    claude_api_key: str = ""
    claude_model: str = "claude-3-5-sonnet-20241022"
    timeout_sec: int = 30
    max_tokens: int = 4000
    verbose: bool = False
    log_level: str = "INFO"
    data_source_url: str = URL_CAIXA_API
    cache_enabled: bool = True
    cache_dir: Path = Path.home() / ".lottery-optimizer" / "cache"
    cache_max_age_days: int = 30
    history_size: int = DEFAULT_LOOKBACK
    type_timeout_sec: float = 90.0

    @property
    def has_api_key(self) -> bool:
        return bool(self.claude_api_key.strip())


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on", "sim")


def _env_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Valor inteiro inválido na configuração: {value!r}") from None


def load_config(environ: Mapping[str, str] | None = None) -> ConfigData:
    env = os.environ if environ is None else environ
    defaults = ConfigData()
    cache_dir = env.get("LOTTERY_CACHE_DIR")
    return ConfigData(
        claude_api_key=env.get("CLAUDE_API_KEY", ""),
        claude_model=env.get("CLAUDE_MODEL") or defaults.claude_model,
        timeout_sec=_env_int(env.get("CLAUDE_TIMEOUT_SEC"), defaults.timeout_sec),
        max_tokens=_env_int(env.get("CLAUDE_MAX_TOKENS"), defaults.max_tokens),
        verbose=_env_bool(env.get("LOTTERY_VERBOSE"), defaults.verbose),
        log_level=(env.get("LOTTERY_LOG_LEVEL") or defaults.log_level).upper(),
        data_source_url=(env.get("LOTTERY_DATA_URL") or defaults.data_source_url).rstrip("/"),
        cache_enabled=_env_bool(env.get("LOTTERY_CACHE_ENABLED"), defaults.cache_enabled),
        cache_dir=Path(cache_dir) if cache_dir else defaults.cache_dir,
        history_size=_env_int(env.get("LOTTERY_HISTORY_SIZE"), defaults.history_size),
        type_timeout_sec=float(_env_int(env.get("LOTTERY_TYPE_TIMEOUT_SEC"), int(defaults.type_timeout_sec))),
    )


def configure_logging(config: ConfigData) -> None:
    level = logging.DEBUG if config.verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
