"""
Video Assembly Pipeline

This module handles the split and stitch stages:
- Wrapping raw speech samples in a WAV container
- Lossless slicing of narration at segment boundaries
- Concurrent download of generated clips
- Order-preserving concatenation with stream copy
"""

from .audio_slicer import AudioSlicer
from .media_fetcher import MediaFetcher
from .video_concatenator import MediaConcatenator
from .video_models import AudioSegment, SplitPlan
from .wav_container import AudioContainerWriter

__all__ = [
    'AudioContainerWriter',
    'AudioSlicer',
    'MediaFetcher',
    'MediaConcatenator',
    'AudioSegment',
    'SplitPlan'
]
