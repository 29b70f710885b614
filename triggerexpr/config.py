"""Tuning knobs for compiling and running user expressions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

__all__ = ["ExpressionConfig"]


@dataclass(frozen=True)
class ExpressionConfig:
    """Settings shared by the compiler and the evaluator."""

    max_depth: int = 200
    filename: str = "<expression>"
    log_tracebacks: bool = True

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.max_depth <= 0:
            warnings.append("max_depth must be positive")
        if not self.filename:
            warnings.append("filename should name the expression for diagnostics")
        return warnings
