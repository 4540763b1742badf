from __future__ import annotations

import random
import time
from datetime import date, timedelta

import pytest

from lottery_optimizer.config import ConfigData, get_spec
from lottery_optimizer.errors import DataUnavailableError
from lottery_optimizer.models import Draw, DrawHistory


def build_history(lottery_type: str, n_draws: int, seed: int = 7, first: int = 1000) -> DrawHistory:
    spec = get_spec(lottery_type)
    rnd = random.Random(seed)
    inicio = date(2023, 1, 2)
    draws = [
        Draw(
            lottery_type=lottery_type,
            concurso=first + i,
            data=inicio + timedelta(days=3 * i),
            dezenas=tuple(sorted(rnd.sample(range(1, spec.n_universo + 1), spec.n_dezenas_sorteio))),
        )
        for i in range(n_draws)
    ]
    return DrawHistory.build(lottery_type, draws)


def blocks_history() -> DrawHistory:
    """Cinco sorteios da Mega com blocos consecutivos: 1-6, 7-12, ..., 25-30."""
    draws = [
        Draw(
            lottery_type="megasena",
            concurso=i + 1,
            data=date(2024, 1, 1) + timedelta(days=i),
            dezenas=tuple(range(6 * i + 1, 6 * i + 7)),
        )
        for i in range(5)
    ]
    return DrawHistory.build("megasena", draws)


class FakeDataAdapter:
    def __init__(self, histories=None, failures=None, delay=0.0):
        self.histories = histories or {}
        self.failures = failures or {}
        self.delay = delay
        self.calls: list[tuple[str, int]] = []

    def fetch_history(self, lottery_type, since_n):
        self.calls.append((lottery_type, since_n))
        if self.delay:
            time.sleep(self.delay)
        if lottery_type in self.failures:
            raise self.failures[lottery_type]
        if lottery_type not in self.histories:
            raise DataUnavailableError(f"sem dados para {lottery_type}", reason="unavailable")
        return self.histories[lottery_type].tail(since_n)

    def test_connection(self):
        if self.failures:
            raise DataUnavailableError("API retornou status 503", reason="unavailable")


class FakeAIAdapter:
    def __init__(self, reply=("Estratégia baseada nas dezenas quentes.", 0.8), error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = 0

    def explain(self, context, timeout):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    def test_connection(self):
        if self.error is not None:
            raise self.error


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=b""):
        self.status_code = status_code
        self._payload = payload
        self.content = content

    def json(self):
        if self._payload is None:
            raise ValueError("not json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.requests: list[dict] = []

    def _send(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        return self._send("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._send("POST", url, **kwargs)


@pytest.fixture
def mega_history():
    return build_history("megasena", 40, seed=1)


@pytest.fixture
def loto_history():
    return build_history("lotofacil", 40, seed=2)


@pytest.fixture
def histories(mega_history, loto_history):
    return {"megasena": mega_history, "lotofacil": loto_history}


@pytest.fixture
def config(tmp_path):
    return ConfigData(cache_dir=tmp_path / "cache", timeout_sec=1, type_timeout_sec=5.0)


@pytest.fixture
def fakes():
    """Acesso às classes falsas a partir dos testes."""
    class _Fakes:
        DataAdapter = FakeDataAdapter
        AIAdapter = FakeAIAdapter
        Response = FakeResponse
        Session = FakeSession
        history = staticmethod(build_history)
        blocks = staticmethod(blocks_history)

    return _Fakes
