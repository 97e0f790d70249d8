"""Alignment utilities

Maps word-level narration timestamps to segment boundaries. Boundaries are
always taken from a real word end, so a cut never lands inside a word.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..media_generation.media_models import WordTimestamp
from ..utils.errors import InputError
from ..utils.logger import LoggerMixin
from ..video_assembly.video_models import SplitPlan

# A pause longer than this after a word counts as a natural break
PAUSE_THRESHOLD_SECONDS = 0.3
# A sentence end may be this much farther from the target than the best word so far
SENTENCE_END_TOLERANCE = 1.5


def is_sentence_end(timestamps: Sequence[WordTimestamp], index: int) -> bool:
    """True for a non-final word ending in terminal punctuation or followed by a pause."""
    if index >= len(timestamps) - 1:
        return False
    word = timestamps[index]
    gap = timestamps[index + 1].start - word.end
    return word.is_sentence_final or gap > PAUSE_THRESHOLD_SECONDS


def split_targets(total_duration: float, target_duration: float) -> List[float]:
    """target, 2*target, ... strictly below the total duration"""
    targets = []
    k = 1
    while k * target_duration < total_duration:
        targets.append(k * target_duration)
        k += 1
    return targets


def closest_word_end(timestamps: Sequence[WordTimestamp], target: float) -> int:
    """Index of the word whose end is chosen as the boundary for ``target``.

    Scans left to right. A word replaces the current best when it is closer,
    or when it is a sentence end within SENTENCE_END_TOLERANCE times the best
    distance so far. The later sentence end wins inside that band even when
    an earlier word is strictly closer.
    """
    best_index = 0
    best_diff = float('inf')
    for i, word in enumerate(timestamps):
        diff = abs(word.end - target)
        if diff < best_diff or (diff < best_diff * SENTENCE_END_TOLERANCE and is_sentence_end(timestamps, i)):
            best_diff = diff
            best_index = i
    return best_index


def find_split_points(timestamps: Sequence[WordTimestamp], target_duration: float) -> List[float]:
    """Return raw boundaries (possibly repeated) in increasing target order."""
    if target_duration <= 0:
        raise InputError(f"target_duration must be positive, got {target_duration}")
    if not timestamps:
        return []

    total_duration = timestamps[-1].end
    split_points = []
    for target in split_targets(total_duration, target_duration):
        best = closest_word_end(timestamps, target)
        split_points.append(timestamps[best].end)
    return split_points


class TimestampSegmenter(LoggerMixin):
    """Computes a SplitPlan from synthesized word timestamps"""

    def __init__(self, target_duration: float = 10.0):
        if target_duration <= 0:
            raise InputError(f"target_duration must be positive, got {target_duration}")
        self.target_duration = target_duration

    def plan(self, timestamps: Iterable[WordTimestamp], target_duration: Optional[float] = None) -> SplitPlan:
        """Compute boundaries for ``timestamps``.

        Args:
            timestamps: Words in spoken order
            target_duration: Overrides the segmenter's default segment length

        Returns:
            SplitPlan; empty when the narration is too short to split
        """
        words = list(timestamps)
        target = self.target_duration if target_duration is None else target_duration
        boundaries = find_split_points(words, target)

        if boundaries:
            self.logger.info(
                f"Split {words[-1].end:.2f}s of narration at {boundaries} (target {target}s)"
            )
        else:
            self.logger.debug("Narration too short to split")
        return SplitPlan(boundaries=boundaries)
