from __future__ import annotations

from typing import Literal

DataErrorReason = Literal["unavailable", "rate_limited", "malformed"]
ReasoningErrorReason = Literal["unavailable", "timeout", "invalid_response"]


class LotteryOptimizerError(Exception):
    """Base de todos os erros do otimizador."""


class ValidationError(LotteryOptimizerError, ValueError):
    """Entrada inválida: falha imediata, sem resposta parcial."""


class DataUnavailableError(LotteryOptimizerError):
    def __init__(self, message: str, *, reason: DataErrorReason = "unavailable", lottery_type: str | None = None):
        super().__init__(message)
        self.reason = reason
        self.lottery_type = lottery_type


class NoDataAvailableError(DataUnavailableError):
    """Nenhuma loteria solicitada retornou histórico."""


class InsufficientDataError(LotteryOptimizerError):
    def __init__(self, message: str, *, available: int, required: int):
        super().__init__(message)
        self.available = available
        self.required = required


class SelectionInfeasibleError(LotteryOptimizerError):
    def __init__(self, message: str, *, requested: int, feasible: int):
        super().__init__(message)
        self.requested = requested
        self.feasible = feasible


class BudgetTooLowError(LotteryOptimizerError):
    def __init__(self, message: str, *, budget: float, cheapest: float):
        super().__init__(message)
        self.budget = budget
        self.cheapest = cheapest


class AllocationError(LotteryOptimizerError):
    """Pós-condição do orçamento violada."""


class ReasoningUnavailableError(LotteryOptimizerError):
    def __init__(self, message: str, *, reason: ReasoningErrorReason = "unavailable"):
        super().__init__(message)
        self.reason = reason
