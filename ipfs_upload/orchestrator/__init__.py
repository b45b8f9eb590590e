"""Orchestrator package - coordinates the upload workflow."""
from .core import UploadOrchestrator

__all__ = ["UploadOrchestrator"]
