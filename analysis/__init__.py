"""Derived investment metrics."""

from .analyzer import InvestmentAnalyzer, estimate_yield

__all__ = [
    "InvestmentAnalyzer",
    "estimate_yield",
]
