"""Shared fixtures: narration timing, test config and stand-ins for ffmpeg and HTTP"""

import asyncio
import io
import re
import shutil
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pytest
import soundfile as sf

from reelforge.media_generation.media_models import WordTimestamp
from reelforge.utils.config import Config, Credentials, PathsConfig, PerformanceConfig
from reelforge.utils.errors import ProcessError

# 50 words, 27.7 seconds of narration
SCENARIO_A_WORDS = [
    ("Welcome", 0.0, 0.5), ("to", 0.5, 0.7), ("our", 0.7, 0.9), ("financial", 0.9, 1.4),
    ("advisor", 1.4, 1.9), ("channel.", 1.9, 2.5), ("Today", 2.8, 3.2), ("we'll", 3.2, 3.5),
    ("discuss", 3.5, 4.0), ("investment", 4.0, 4.7), ("strategies.", 4.7, 5.5), ("First,", 6.0, 6.4),
    ("let's", 6.4, 6.7), ("talk", 6.7, 7.0), ("about", 7.0, 7.3), ("diversification.", 7.3, 8.5),
    ("This", 9.0, 9.3), ("is", 9.3, 9.5), ("crucial", 9.5, 10.0), ("for", 10.0, 10.2),
    ("risk", 10.2, 10.5), ("management.", 10.5, 11.3), ("Next,", 11.8, 12.2), ("we'll", 12.2, 12.5),
    ("explore", 12.5, 13.0), ("market", 13.0, 13.4), ("trends.", 13.4, 14.2), ("Understanding", 14.7, 15.5),
    ("these", 15.5, 15.8), ("patterns", 15.8, 16.4), ("helps", 16.4, 16.8), ("you", 16.8, 17.0),
    ("make", 17.0, 17.3), ("informed", 17.3, 17.9), ("decisions.", 17.9, 18.7), ("Finally,", 19.2, 19.8),
    ("remember", 19.8, 20.3), ("to", 20.3, 20.5), ("stay", 20.5, 20.8), ("disciplined", 20.8, 21.5),
    ("and", 21.5, 21.7), ("patient.", 21.7, 22.5), ("Long-term", 23.0, 23.6), ("success", 23.6, 24.1),
    ("requires", 24.1, 24.7), ("consistency.", 24.7, 25.7), ("Thank", 26.2, 26.5), ("you", 26.5, 26.7),
    ("for", 26.7, 26.9), ("watching!", 26.9, 27.7),
]

TEST_SAMPLE_RATE = 8000


@pytest.fixture
def scenario_a_timestamps() -> List[WordTimestamp]:
    return [WordTimestamp(word=w, start=s, end=e) for w, s, e in SCENARIO_A_WORDS]


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        paths=PathsConfig(temp=str(tmp_path / "temp"), output=str(tmp_path / "output"),
                          logs=str(tmp_path / "logs")),
        performance=PerformanceConfig(max_parallel_generation=3, max_parallel_downloads=3,
                                      download_timeout=5.0, process_timeout=10.0),
        credentials=Credentials(cartesia_api_key="test-cartesia-key", fal_key="test-fal-key"),
    )


def float_samples(seconds: float, sample_rate: int = TEST_SAMPLE_RATE) -> np.ndarray:
    """Mono float32 ramp, distinct at every frame so slices can be located"""
    frames = int(round(seconds * sample_rate))
    return (np.arange(frames, dtype=np.float32) / max(frames, 1)) - 0.5


def read_wav(data: bytes):
    return sf.read(io.BytesIO(data), dtype='float32')


def requires_ffmpeg(func):
    return pytest.mark.skipif(shutil.which('ffmpeg') is None, reason="ffmpeg binary not installed")(func)


def _arg_after(args: List[str], flag: str) -> Optional[str]:
    if flag in args:
        return args[args.index(flag) + 1]
    return None


def _output_path(args: List[str]) -> str:
    return [a for a in args if a != '-y'][-1]


def _trim_option(args: List[str], name: str) -> Optional[int]:
    match = re.search(rf'\b{name}=(\d+)', _arg_after(args, '-filter_complex') or '')
    return int(match.group(1)) if match else None


class FakeSliceRunner:
    """Performs the ``atrim`` sample extraction with soundfile instead of ffmpeg"""

    def __init__(self, fail_on_call: Optional[int] = None):
        self.calls: List[List[str]] = []
        self.fail_on_call = fail_on_call

    async def __call__(self, args: List[str], timeout: float) -> None:
        self.calls.append(list(args))
        if self.fail_on_call is not None and len(self.calls) - 1 == self.fail_on_call:
            raise ProcessError("ffmpeg exited with code 1", stderr="Invalid data found")

        source = _arg_after(args, '-i')
        subtype = sf.info(source).subtype
        dtype = {'PCM_16': 'int16', 'PCM_24': 'int32', 'PCM_32': 'int32'}.get(subtype, 'float32')
        data, sample_rate = sf.read(source, dtype=dtype)
        start = _trim_option(args, 'start_sample') or 0
        end = _trim_option(args, 'end_sample')
        sf.write(_output_path(args), data[start:end], sample_rate, subtype=subtype, format='WAV')


class FakeConcatRunner:
    """Joins the files named in a concat list byte by byte"""

    def __init__(self, error: Optional[ProcessError] = None):
        self.calls: List[List[str]] = []
        self.listed: List[List[str]] = []
        self.error = error

    async def __call__(self, args: List[str], timeout: float) -> None:
        self.calls.append(list(args))
        list_file = Path(_arg_after(args, '-i'))
        entries = [line[len("file '"):-1] for line in list_file.read_text(encoding='utf-8').splitlines()]
        self.listed.append(entries)
        if self.error is not None:
            raise self.error
        with open(_output_path(args), 'wb') as out:
            for entry in entries:
                out.write(Path(entry).read_bytes())


def uniform_prober(path: str) -> Dict:
    return {'streams': [
        {'codec_type': 'video', 'codec_name': 'h264', 'width': 720, 'height': 1280},
        {'codec_type': 'audio', 'codec_name': 'aac', 'sample_rate': '44100', 'channels': 2},
    ]}


class FakeContent:
    def __init__(self, body: bytes, fail_after: Optional[int] = None):
        self.body = body
        self.fail_after = fail_after

    async def iter_chunked(self, size: int):
        for offset in range(0, len(self.body), size):
            if self.fail_after is not None and offset >= self.fail_after:
                raise asyncio.TimeoutError()
            yield self.body[offset:offset + size]
            await asyncio.sleep(0)


class FakeResponse:
    def __init__(self, status: int = 200, body: bytes = b"", delay: float = 0.0,
                 fail_after: Optional[int] = None):
        self.status = status
        self.delay = delay
        self.content = FakeContent(body, fail_after)

    async def __aenter__(self):
        await asyncio.sleep(self.delay)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Routes ``get``/``request`` calls to canned responses and records them"""

    def __init__(self, routes: Optional[Dict[str, FakeResponse]] = None):
        self.routes = routes or {}
        self.calls: List[tuple] = []

    def get(self, url, **kwargs):
        return self.request('GET', url, **kwargs)

    def request(self, method, url, **kwargs):
        self.calls.append((method, str(url)))
        return self.routes[str(url)]
