"""Pipeline orchestration module shared by client handles."""

from .pipeline_orchestrator import PipelineOrchestrator

__all__ = ["PipelineOrchestrator"]
