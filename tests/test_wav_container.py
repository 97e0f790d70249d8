"""WAV header construction"""

import struct

import numpy as np
import pytest

from conftest import read_wav
from reelforge.video_assembly.wav_container import (
    FORMAT_IEEE_FLOAT,
    FORMAT_PCM,
    WAV_HEADER_SIZE,
    AudioContainerWriter,
    add_wav_header,
)
from reelforge.utils.errors import InputError


def test_float_header_fields():
    samples = np.zeros(441, dtype='<f4').tobytes()
    wav = add_wav_header(samples, 44100, 1, 32)

    assert len(wav) == WAV_HEADER_SIZE + len(samples)
    assert wav[:4] == b'RIFF' and wav[8:12] == b'WAVE' and wav[36:40] == b'data'
    riff_size, = struct.unpack('<I', wav[4:8])
    assert riff_size == 36 + len(samples)

    fmt_size, audio_format, channels, rate, byte_rate, block_align, bits = struct.unpack('<IHHIIHH', wav[16:36])
    assert fmt_size == 16
    assert audio_format == FORMAT_IEEE_FLOAT
    assert (channels, rate, bits) == (1, 44100, 32)
    assert byte_rate == 44100 * 4
    assert block_align == 4
    assert wav[WAV_HEADER_SIZE:] == samples


def test_integer_pcm_for_16_bit():
    wav = add_wav_header(b'\x00\x00' * 4, 16000, 2, 16)
    audio_format, = struct.unpack('<H', wav[20:22])
    assert audio_format == FORMAT_PCM


def test_wrapped_float_samples_decode_unchanged():
    original = np.linspace(-0.5, 0.5, 800, dtype=np.float32)
    wav = AudioContainerWriter(sample_rate=8000).wrap(original.astype('<f4').tobytes())

    decoded, rate = read_wav(wav)
    assert rate == 8000
    np.testing.assert_array_equal(decoded, original)


@pytest.mark.parametrize("rate,channels,bits", [(0, 1, 32), (44100, 0, 32), (44100, 1, 8)])
def test_invalid_format_rejected(rate, channels, bits):
    with pytest.raises(InputError):
        add_wav_header(b'\x00' * 8, rate, channels, bits)


def test_partial_frame_rejected():
    with pytest.raises(InputError):
        add_wav_header(b'\x00' * 6, 44100, 1, 32)


def test_writer_defaults_can_be_overridden():
    writer = AudioContainerWriter()
    wav = writer.wrap(b'\x00' * 12, sample_rate=24000, channels=2, bit_depth=16)
    channels, rate = struct.unpack('<HI', wav[22:28])
    assert (channels, rate) == (2, 24000)
