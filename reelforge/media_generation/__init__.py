"""
Media Generation

Clients for the speech synthesis and video generation services.
"""

from .media_models import SpeechResult, VideoGenerationRequest, VideoSegmentRef, WordTimestamp
from .tts_engine import CartesiaSpeechSynthesizer, SpeechSynthesizer
from .video_generator import FalVideoGenerator, VideoGenerator

__all__ = [
    'SpeechResult',
    'VideoGenerationRequest',
    'VideoSegmentRef',
    'WordTimestamp',
    'SpeechSynthesizer',
    'CartesiaSpeechSynthesizer',
    'VideoGenerator',
    'FalVideoGenerator'
]
