from __future__ import annotations

import logging
import threading
import time
from typing import Protocol

from .config import LotteryType
from .models import DrawHistory

logger = logging.getLogger(__name__)


class LotteryDataAdapter(Protocol):
    def fetch_history(self, lottery_type: LotteryType, since_n: int) -> DrawHistory: ...


class HistoryStore:
    """
    Snapshots imutáveis do histórico por loteria.

    Cada pedido recebe o snapshot vigente; depois de `ttl` segundos o
    próximo pedido busca de novo no adaptador. Erros do adaptador sobem
    sem tratamento (a degradação é decisão do motor).
    """

    def __init__(self, adapter: LotteryDataAdapter, ttl: float = 60 * 60):
        self.adapter = adapter
        self.ttl = ttl
        self._snapshots: dict[tuple[LotteryType, int], tuple[float, DrawHistory]] = {}
        self._lock = threading.Lock()

    def snapshot(self, lottery_type: LotteryType, since_n: int) -> DrawHistory:
        key = (lottery_type, since_n)
        with self._lock:
            hit = self._snapshots.get(key)
        if hit is not None and time.monotonic() - hit[0] <= self.ttl:
            return hit[1]

        history = self.adapter.fetch_history(lottery_type, since_n)
        with self._lock:
            self._snapshots[key] = (time.monotonic(), history)
        logger.debug("Snapshot de %s: %d sorteios (último concurso %s)", lottery_type, len(history), history.last_concurso)
        return history

    def clear(self, lottery_type: LotteryType | None = None) -> None:
        with self._lock:
            if lottery_type is None:
                self._snapshots.clear()
            else:
                for key in [k for k in self._snapshots if k[0] == lottery_type]:
                    del self._snapshots[key]
