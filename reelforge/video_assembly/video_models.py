"""
Video Assembly Data Models

Pydantic models for the split and stitch stages.
"""

import base64
from typing import List, Tuple
from pydantic import BaseModel, Field


class SplitPlan(BaseModel):
    """Ordered boundary times (seconds) at which narration is cut"""
    boundaries: List[float] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.boundaries

    def normalized(self, total_duration: float) -> "SplitPlan":
        """Strictly increasing plan inside (0, total_duration).

        Boundaries repeated by the planner (two targets resolving to the same
        word) or not advancing past the previous one are dropped, so no
        zero-length segment is ever sliced.
        """
        kept: List[float] = []
        for boundary in self.boundaries:
            if boundary <= 0.0 or boundary >= total_duration:
                continue
            if kept and boundary <= kept[-1]:
                continue
            kept.append(boundary)
        return SplitPlan(boundaries=kept)

    def intervals(self, total_duration: float) -> List[Tuple[float, float]]:
        """Half-open (start, end) pairs covering [0, total_duration)"""
        edges = [0.0] + list(self.boundaries) + [total_duration]
        return [(edges[i], edges[i + 1]) for i in range(len(edges) - 1)]


class AudioSegment(BaseModel):
    """A time-bounded, independently playable slice of the narration"""
    index: int = Field(ge=0)
    start_time: float
    end_time: float
    samples: bytes  # complete WAV container

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_base64(self) -> str:
        return base64.b64encode(self.samples).decode('ascii')

    def to_data_uri(self) -> str:
        return f"data:audio/wav;base64,{self.to_base64()}"
