from __future__ import annotations

from ._base import BaseEngine, Completion, OperationOptions, TransportStats

__all__ = ["BaseEngine", "Completion", "OperationOptions", "TransportStats"]
