from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta
from io import BytesIO
from pathlib import Path
from typing import Optional
import zipfile

import numpy as np
import pandas as pd
import requests

from .config import ConfigData, LotteryType, download_url, get_spec
from .errors import DataUnavailableError
from .http_client import get_session
from .models import Draw, DrawHistory

logger = logging.getLogger(__name__)

DATA_COLS = ("Data do Sorteio", "Data Sorteio")

def baixar_xlsx(session: requests.Session, url: str, timeout: float) -> BytesIO:
    try:
        r = session.get(url, timeout=timeout)
    except requests.Timeout as e:
        raise DataUnavailableError(f"Tempo esgotado ao baixar {url}", reason="unavailable") from e
    except requests.RequestException as e:
        raise DataUnavailableError(f"Erro de conectividade: {e}", reason="unavailable") from e
    if r.status_code == 429:
        raise DataUnavailableError("API da CAIXA limitou as requisições (429)", reason="rate_limited")
    if r.status_code == 403:
        raise DataUnavailableError("API da CAIXA bloqueada (403)", reason="unavailable")
    if r.status_code != 200:
        raise DataUnavailableError(f"API retornou status {r.status_code}", reason="unavailable")
    return BytesIO(r.content)


def _limpar_concurso_data(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df["concurso"] = pd.to_numeric(df["concurso"], errors="coerce")
    df["data"] = pd.to_datetime(df["data"], dayfirst=True, errors="coerce")
    df = df.dropna(subset=["concurso", "data"])

    hoje = pd.Timestamp.today().normalize()
    df = df[(df["data"] >= "1996-01-01") & (df["data"] <= hoje)]
    df["concurso"] = df["concurso"].astype(int)

    df = df.sort_values(["concurso", "data"]).drop_duplicates(subset=["concurso"], keep="last")
    df = df.sort_values("concurso").reset_index(drop=True)
    return df


def normalizar(df_raw: pd.DataFrame, lottery_type: LotteryType) -> pd.DataFrame:
    """Planilha da Caixa -> colunas concurso, data, d1..dN (dezenas ordenadas)."""
    spec = get_spec(lottery_type)
    bolas = [f"Bola{i}" for i in range(1, spec.n_dezenas_sorteio + 1)]
    col_data = next((c for c in DATA_COLS if c in df_raw.columns), None)
    faltando = [c for c in ["Concurso"] + bolas if c not in df_raw.columns]
    if col_data is None:
        faltando.append("Data do Sorteio")
    if faltando:
        raise DataUnavailableError(
            f"XLSX {spec.nome} inválido; colunas ausentes: {faltando}",
            reason="malformed",
            lottery_type=lottery_type,
        )

    df = df_raw[["Concurso", col_data] + bolas].copy()
    df.rename(columns={"Concurso": "concurso", col_data: "data"}, inplace=True)
    df = _limpar_concurso_data(df)

    for c in bolas:
        df[c] = pd.to_numeric(df[c], errors="coerce")
    df = df.dropna(subset=bolas)

    for c in bolas:
        df[c] = df[c].astype(int)
        df = df[df[c].between(1, spec.n_universo)]

    df.rename(columns={f"Bola{i}": f"d{i}" for i in range(1, spec.n_dezenas_sorteio + 1)}, inplace=True)
    dezenas = [f"d{i}" for i in range(1, spec.n_dezenas_sorteio + 1)]
    df[dezenas] = np.sort(df[dezenas].values, axis=1)

    return df[["concurso", "data"] + dezenas].sort_values("concurso").reset_index(drop=True)


class DrawCache:
    """Últimos sorteios por loteria em JSON, válidos por `max_age`."""

    def __init__(self, cache_dir: Path, max_age: timedelta):
        self.cache_dir = Path(cache_dir)
        self.max_age = max_age

    def _path(self, lottery_type: LotteryType) -> Path:
        return self.cache_dir / f"{lottery_type}.json"

    def save(self, history: DrawHistory) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        payload = {
            "lotteryType": history.lottery_type,
            "cachedAt": datetime.now().isoformat(timespec="seconds"),
            "draws": [
                {"concurso": d.concurso, "data": d.data.isoformat() if d.data else None, "dezenas": list(d.dezenas)}
                for d in history.draws
            ],
        }
        self._path(history.lottery_type).write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def load(self, lottery_type: LotteryType) -> Optional[tuple[DrawHistory, datetime]]:
        path = self._path(lottery_type)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            cached_at = datetime.fromisoformat(payload["cachedAt"])
            draws = [
                Draw(
                    lottery_type=lottery_type,
                    concurso=int(item["concurso"]),
                    data=date.fromisoformat(item["data"]) if item.get("data") else None,
                    dezenas=tuple(sorted(int(n) for n in item["dezenas"])),
                )
                for item in payload["draws"]
            ]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Cache de %s ilegível (%s): ignorado", lottery_type, e)
            return None
        if datetime.now() - cached_at > self.max_age:
            logger.info("Cache de %s expirado (salvo em %s)", lottery_type, f"{cached_at:%d/%m/%Y %H:%M}")
            return None
        return DrawHistory.build(lottery_type, draws), cached_at

    def clear(self, lottery_type: LotteryType) -> None:
        self._path(lottery_type).unlink(missing_ok=True)


class CaixaClient:
    """Adaptador de dados: histórico oficial da Caixa, com cache local como reserva."""

    def __init__(self, config: ConfigData, session: Optional[requests.Session] = None, timeout: float = 60.0):
        self.config = config
        self.session = session or get_session()
        self.timeout = timeout
        self.cache = (
            DrawCache(config.cache_dir, timedelta(days=config.cache_max_age_days)) if config.cache_enabled else None
        )

    def load_history_from_caixa(self, lottery_type: LotteryType) -> pd.DataFrame:
        buf = baixar_xlsx(self.session, download_url(lottery_type), self.timeout)
        try:
            df_raw = pd.read_excel(buf)
        except (ValueError, OSError, KeyError, zipfile.BadZipFile) as e:
            raise DataUnavailableError(
                f"Planilha de {lottery_type} ilegível: {e}", reason="malformed", lottery_type=lottery_type
            ) from e
        return normalizar(df_raw, lottery_type)

    def fetch_history(self, lottery_type: LotteryType, since_n: int) -> DrawHistory:
        try:
            df = self.load_history_from_caixa(lottery_type)
            history = DrawHistory.from_frame(lottery_type, df).tail(since_n)
        except DataUnavailableError as e:
            e.lottery_type = lottery_type
            logger.warning("API falhou para %s: %s", lottery_type, e)
            cached = self.cache.load(lottery_type) if self.cache else None
            if cached is None:
                raise
            history, cached_at = cached
            logger.info("Usando dados do cache para %s (salvos em %s)", lottery_type, f"{cached_at:%d/%m/%Y %H:%M}")
            return history.tail(since_n)

        if self.cache:
            try:
                self.cache.save(history)
            except OSError as e:
                logger.warning("Erro ao salvar cache de %s: %s", lottery_type, e)
        logger.info("%d sorteios de %s obtidos da Caixa", len(history), lottery_type)
        return history

    def test_connection(self) -> None:
        url = f"{self.config.data_source_url}/megasena/"
        try:
            r = self.session.get(url, timeout=min(self.timeout, 15.0))
        except requests.RequestException as e:
            raise DataUnavailableError(f"Erro de conectividade: {e}", reason="unavailable") from e
        if r.status_code == 429:
            raise DataUnavailableError("API da CAIXA limitou as requisições (429)", reason="rate_limited")
        if r.status_code != 200:
            raise DataUnavailableError(f"API retornou status {r.status_code}", reason="unavailable")
