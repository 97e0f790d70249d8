"""
Automation Data Models

Pydantic models for pipeline requests, per-run state and results.
"""

import base64
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..video_assembly.video_models import AudioSegment


class PipelineState(str, Enum):
    """Stages of one pipeline run"""
    START = "start"
    SYNTHESIZING = "synthesizing"
    SEGMENTING = "segmenting"
    SLICING = "slicing"
    GENERATING_VIDEO = "generating_video"
    DOWNLOADING = "downloading"
    CONCATENATING = "concatenating"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)


class PipelineRequest(BaseModel):
    """What the caller wants narrated and visualised"""
    model_config = ConfigDict(protected_namespaces=())

    script_text: str
    prompt: str
    language: Optional[str] = None
    voice: Optional[str] = None
    voice_id: Optional[str] = None
    image_url: Optional[str] = None
    model: Optional[str] = None
    aspect_ratio: Optional[str] = None
    target_duration: Optional[float] = None
    output_path: Optional[Path] = None


class PipelineRun(BaseModel):
    """Mutable state of a run in progress"""
    run_id: str
    state: PipelineState = PipelineState.START
    history: List[PipelineState] = Field(default_factory=lambda: [PipelineState.START])
    split_points: List[float] = Field(default_factory=list)
    segment_count: int = 0
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def transition(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        if state.is_terminal:
            self.finished_at = datetime.now()


class PipelineResult(BaseModel):
    """Final artifact of a successful run"""
    run_id: str
    video_url: Optional[str] = None
    video_bytes: Optional[bytes] = None
    video_path: Optional[Path] = None
    split_points: List[float] = Field(default_factory=list)
    segment_count: int = 0
    render_time_seconds: float = 0.0

    @property
    def is_remote(self) -> bool:
        return self.video_bytes is None and self.video_url is not None

    def to_transport(self) -> Dict[str, Any]:
        """URL for a single clip, base64 for a stitched one"""
        payload: Dict[str, Any] = {}
        if self.video_bytes is not None:
            payload["video_base64"] = base64.b64encode(self.video_bytes).decode('ascii')
        else:
            payload["video_url"] = self.video_url
        payload["split_points"] = list(self.split_points)
        payload["segment_count"] = self.segment_count
        return payload


class SplitAudioResult(BaseModel):
    segments: List[AudioSegment] = Field(default_factory=list)
    split_points: List[float] = Field(default_factory=list)

    def to_transport(self) -> Dict[str, Any]:
        return {
            "success": True,
            "segments": [segment.to_base64() for segment in self.segments],
            "splitPoints": list(self.split_points),
        }
