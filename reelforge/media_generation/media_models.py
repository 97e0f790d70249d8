"""Data models exchanged with the speech and video generation services"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


class WordTimestamp(BaseModel):
    """One spoken word and where it sits in the narration"""
    word: str
    start: float = Field(ge=0.0)  # seconds
    end: float  # seconds

    @model_validator(mode='after')
    def _check_order(self) -> "WordTimestamp":
        if self.end < self.start:
            raise ValueError(f"Word '{self.word}' ends ({self.end}) before it starts ({self.start})")
        return self

    @property
    def is_sentence_final(self) -> bool:
        return self.word.endswith(('.', '!', '?'))


class SpeechResult(BaseModel):
    """Raw synthesized speech plus word-level timing"""
    samples: bytes = b""
    sample_rate: int = 44100
    channels: int = 1
    bit_depth: int = 32
    timestamps: List[WordTimestamp] = []
    # False when the stream was cut off by the safety timeout
    complete: bool = True

    @property
    def total_duration(self) -> float:
        return self.timestamps[-1].end if self.timestamps else 0.0

    @property
    def audio_duration(self) -> float:
        frame_size = self.channels * self.bit_depth // 8
        return len(self.samples) / (self.sample_rate * frame_size)


class VideoGenerationRequest(BaseModel):
    """Input for one generated clip"""
    prompt: str
    duration_seconds: int = 10
    aspect_ratio: str = "9:16"
    model: Optional[str] = None
    audio_url: Optional[str] = None
    image_url: Optional[str] = None

    def to_vendor_input(self, include_audio: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": self.prompt,
            "aspect_ratio": self.aspect_ratio,
            "duration_seconds": int(self.duration_seconds),
        }
        if self.image_url:
            payload["image_url"] = self.image_url
        if self.audio_url and include_audio:
            payload["audio_url"] = self.audio_url
        return payload


class VideoSegmentRef(BaseModel):
    """Finished remote clip for one audio segment"""
    index: int = Field(ge=0)
    remote_url: str
