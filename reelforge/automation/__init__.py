"""
Automation System

Runs the narrated-video pipeline and its stand-alone split and stitch steps.
"""

from .automation_models import PipelineRequest, PipelineResult, PipelineState, SplitAudioResult
from .orchestrator import PipelineOrchestrator

__all__ = [
    'PipelineOrchestrator',
    'PipelineRequest',
    'PipelineResult',
    'PipelineState',
    'SplitAudioResult'
]
