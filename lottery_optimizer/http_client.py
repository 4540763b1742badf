from __future__ import annotations

from functools import lru_cache
from typing import Final, Iterable, Mapping

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

DEFAULT_HEADERS: Final[dict[str, str]] = {
    "User-Agent": "Mozilla/5.0 (compatible; LotteryOptimizer/1.0)",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8",
    "Referer": "https://loterias.caixa.gov.br/",
    "Origin": "https://loterias.caixa.gov.br",
}

def build_session(
    *,
    total: int = 3,
    backoff_factor: float = 0.8,
    allowed_methods: Iterable[str] = ("GET",),
    headers: Mapping[str, str] | None = None,
) -> requests.Session:
    s = requests.Session()
    retry = Retry(
        total=total,
        backoff_factor=backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=tuple(allowed_methods),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    if headers:
        s.headers.update(headers)
    return s

@lru_cache(maxsize=1)
def get_session() -> requests.Session:
    """Sessão compartilhada para a API da Caixa."""
    return build_session(headers=DEFAULT_HEADERS)
