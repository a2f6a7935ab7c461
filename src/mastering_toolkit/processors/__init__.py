"""Mastering processors built on the core pipeline."""

from .mastering_processor import MasteringProcessor, build_orchestrator
from .orchestrator import MasteringOrchestrator

__all__ = [
    "MasteringOrchestrator",
    "MasteringProcessor",
    "build_orchestrator",
]
