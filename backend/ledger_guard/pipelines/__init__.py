"""
Per-collection validation pipelines.

Importing this package registers every pipeline with pipeline_registry.
"""
from .base import (
    CollectionPipeline,
    PipelineRegistry,
    WriteContext,
    pipeline_registry,
    register_pipeline,
)

from . import banking, expenses, fees, payments, payroll, students  # noqa: F401

__all__ = [
    'CollectionPipeline',
    'PipelineRegistry',
    'WriteContext',
    'pipeline_registry',
    'register_pipeline',
]
