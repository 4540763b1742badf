from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import requests

from .config import FALLBACK_CONFIDENCE, URL_CLAUDE_MESSAGES, ConfigData, get_spec
from .domain_lottery import formatar_jogo
from .errors import ReasoningUnavailableError
from .http_client import build_session
from .reasoning import ReasoningContext

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
_JSON_FENCE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


def extract_json(text: str) -> Optional[str]:
    m = _JSON_FENCE.search(text)
    if m:
        return m.group(1)
    inicio, fim = text.find("{"), text.rfind("}")
    if inicio == -1 or fim <= inicio:
        return None
    return text[inicio : fim + 1]


def build_prompt(context: ReasoningContext) -> str:
    partes = [
        "Você é um analista de loterias da Caixa. Explique, em português e de forma objetiva, "
        "por que a estratégia abaixo foi montada assim. Não prometa ganhos.",
        "",
        f"Modo: {context.mode} | Orçamento: R$ {context.budget:.2f} | Custo: R$ {context.total_cost:.2f}",
        f"Evitar padrões: {'sim' if context.avoid_patterns else 'não'}",
        "",
    ]
    for lottery_type, stats in context.statistics.items():
        spec = get_spec(lottery_type)
        partes.append(f"{spec.nome.upper()} - {stats.analyzed_draws} sorteios analisados")
        partes.append(f"• Quentes: {list(stats.hot_numbers)}")
        partes.append(f"• Frias: {list(stats.cold_numbers)}")
        partes.append(f"• Somas recentes: {list(stats.recent_trends)}")
        partes.append(f"• Padrões marcados: {stats.flagged_patterns or 'nenhum'}")
        partes.append("")
    partes.append("JOGOS:")
    for i, g in enumerate(context.games, start=1):
        partes.append(f"{i:02d}. {get_spec(g.lottery_type).nome}: {formatar_jogo(list(g.numbers))} (R$ {g.cost:.2f})")
    partes.append("")
    partes.append(
        'Responda APENAS com JSON no formato {"reasoning": "texto", "confidence": 0.0-1.0}.'
    )
    return "\n".join(partes)


def parse_reply(text: str) -> tuple[str, float]:
    bruto = extract_json(text)
    if bruto is None:
        if not text.strip():
            raise ReasoningUnavailableError("Resposta vazia da IA", reason="invalid_response")
        return text.strip(), FALLBACK_CONFIDENCE
    try:
        payload = json.loads(bruto)
    except json.JSONDecodeError as e:
        if _JSON_FENCE.search(text):
            raise ReasoningUnavailableError(f"JSON inválido na resposta da IA: {e}", reason="invalid_response") from e
        # chaves soltas no meio do texto não são JSON: vale o texto puro
        logger.debug("Resposta da IA sem JSON válido; usando o texto como explicação")
        return text.strip(), FALLBACK_CONFIDENCE
    reasoning = payload.get("reasoning") if isinstance(payload, dict) else None
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise ReasoningUnavailableError("Resposta da IA sem campo 'reasoning'", reason="invalid_response")
    try:
        confidence = float(payload.get("confidence", FALLBACK_CONFIDENCE))
    except (TypeError, ValueError):
        raise ReasoningUnavailableError("Campo 'confidence' inválido", reason="invalid_response") from None
    return reasoning.strip(), confidence


class ClaudeClient:
    """Adaptador de raciocínio via API de mensagens da Anthropic."""

    def __init__(self, config: ConfigData, session: Optional[requests.Session] = None, base_url: str = URL_CLAUDE_MESSAGES):
        self.api_key = config.claude_api_key
        self.model = config.claude_model
        self.max_tokens = config.max_tokens
        self.timeout = float(config.timeout_sec)
        self.base_url = base_url
        self.session = session or build_session(total=2, allowed_methods=("POST",))

    def _post(self, prompt: str, max_tokens: int, timeout: float) -> dict[str, Any]:
        if not self.api_key:
            raise ReasoningUnavailableError("Chave da API do Claude não configurada", reason="unavailable")
        body = {"model": self.model, "max_tokens": max_tokens, "messages": [{"role": "user", "content": prompt}]}
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        try:
            r = self.session.post(self.base_url, json=body, headers=headers, timeout=timeout)
        except requests.Timeout as e:
            raise ReasoningUnavailableError(f"Tempo esgotado ({timeout:.0f}s)", reason="timeout") from e
        except requests.RequestException as e:
            raise ReasoningUnavailableError(f"Erro de conectividade: {e}", reason="unavailable") from e
        if r.status_code == 401:
            raise ReasoningUnavailableError("Chave da API do Claude inválida (401)", reason="unavailable")
        if r.status_code != 200:
            raise ReasoningUnavailableError(f"API do Claude retornou status {r.status_code}", reason="unavailable")
        try:
            return r.json()
        except ValueError as e:
            raise ReasoningUnavailableError("Resposta da API não é JSON", reason="invalid_response") from e

    def explain(self, context: ReasoningContext, timeout: float) -> tuple[str, float]:
        data = self._post(build_prompt(context), self.max_tokens, min(timeout, self.timeout))
        content = data.get("content") or []
        textos = [c.get("text", "") for c in content if isinstance(c, dict) and c.get("type") == "text"]
        if not textos:
            raise ReasoningUnavailableError("Resposta da IA sem conteúdo", reason="invalid_response")
        usage = data.get("usage") or {}
        logger.debug("Tokens usados: %s input + %s output", usage.get("input_tokens"), usage.get("output_tokens"))
        return parse_reply("\n".join(textos))

    def test_connection(self) -> None:
        self._post("ping", 10, min(self.timeout, 15.0))
