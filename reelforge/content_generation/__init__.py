"""
Content Generation

Turns narration timing into segment boundaries.
"""

from .alignment import TimestampSegmenter, find_split_points

__all__ = [
    'TimestampSegmenter',
    'find_split_points'
]
