"""
Pipeline execution layer.

High-level executor that wires together all components.
"""

from .executor import PipelineExecutor, AnalysisResult

__all__ = ["PipelineExecutor", "AnalysisResult"]
