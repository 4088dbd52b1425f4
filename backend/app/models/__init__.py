from .facts import DailyOrderFact, DailyAdSpendFact

__all__ = [
    "DailyOrderFact","DailyAdSpendFact"
]
