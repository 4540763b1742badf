from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Checkable(Protocol):
    def test_connection(self) -> None: ...


@dataclass(frozen=True)
class ConnectionStatus:
    caixa_api: bool
    claude_api: bool
    caixa_error: Optional[str] = None
    claude_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "caixaAPI": self.caixa_api,
            "caixaError": self.caixa_error or "",
            "claudeAPI": self.claude_api,
            "claudeError": self.claude_error or "",
        }


def _probe(nome: str, adapter: Optional[Checkable]) -> tuple[bool, Optional[str]]:
    if adapter is None:
        return False, "não configurado"
    try:
        adapter.test_connection()
    except Exception as e:
        logger.warning("Teste de conexão %s falhou: %s", nome, e)
        return False, str(e)
    return True, None


def check_connections(data_adapter: Optional[Checkable], ai_adapter: Optional[Checkable]) -> ConnectionStatus:
    caixa_ok, caixa_err = _probe("Caixa", data_adapter)
    claude_ok, claude_err = _probe("Claude", ai_adapter)
    return ConnectionStatus(caixa_api=caixa_ok, claude_api=claude_ok, caixa_error=caixa_err, claude_error=claude_err)
