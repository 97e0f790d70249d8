"""Minimal RIFF/WAVE container for raw synthesizer output

The synthesizer streams headerless PCM. Wrapping it in a fixed 44-byte
header makes it readable by ffmpeg and soundfile.
"""

import struct
from typing import Optional

from ..utils.errors import InputError

WAV_HEADER_SIZE = 44
SUPPORTED_BIT_DEPTHS = (16, 24, 32)

FORMAT_PCM = 1
FORMAT_IEEE_FLOAT = 3


class AudioContainerWriter:
    """Wraps raw samples in a playable WAV container.

    32-bit samples are tagged as IEEE float (the synthesizer's pcm_f32le
    output); 16 and 24-bit samples as integer PCM.
    """

    def __init__(self, sample_rate: int = 44100, channels: int = 1, bit_depth: int = 32):
        validate_format(sample_rate, channels, bit_depth)
        self.sample_rate = sample_rate
        self.channels = channels
        self.bit_depth = bit_depth

    def wrap(self, samples: bytes, sample_rate: Optional[int] = None, channels: Optional[int] = None,
             bit_depth: Optional[int] = None) -> bytes:
        return add_wav_header(
            samples,
            sample_rate if sample_rate is not None else self.sample_rate,
            channels if channels is not None else self.channels,
            bit_depth if bit_depth is not None else self.bit_depth,
        )


def validate_format(sample_rate: int, channels: int, bit_depth: int) -> None:
    if sample_rate <= 0:
        raise InputError(f"sample_rate must be positive, got {sample_rate}")
    if channels < 1:
        raise InputError(f"channels must be at least 1, got {channels}")
    if bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise InputError(f"bit_depth must be one of {SUPPORTED_BIT_DEPTHS}, got {bit_depth}")


def add_wav_header(samples: bytes, sample_rate: int, channels: int, bit_depth: int) -> bytes:
    """Return ``samples`` prefixed with a canonical 44-byte WAV header."""
    validate_format(sample_rate, channels, bit_depth)

    block_align = channels * bit_depth // 8
    if len(samples) % block_align:
        raise InputError(
            f"Sample payload of {len(samples)} bytes is not a whole number of {block_align}-byte frames"
        )
    byte_rate = sample_rate * block_align
    data_size = len(samples)
    audio_format = FORMAT_IEEE_FLOAT if bit_depth == 32 else FORMAT_PCM

    header = struct.pack(
        '<4sI4s4sIHHIIHH4sI',
        b'RIFF', 36 + data_size, b'WAVE',
        b'fmt ', 16, audio_format, channels, sample_rate, byte_rate, block_align, bit_depth,
        b'data', data_size,
    )
    return header + bytes(samples)
