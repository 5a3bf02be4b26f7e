"""Observability: logging and metrics for the hub."""

from patsub.observability.logger import get_logger
from patsub.observability.metrics import Metrics

__all__ = ["get_logger", "Metrics"]
