"""Runs compiled ffmpeg commands as bounded external processes"""

import asyncio
import logging
from typing import Awaitable, Callable, List

import ffmpeg

from ..utils.errors import ProcessError

logger = logging.getLogger(__name__)

# Signature shared by the real runner and the fakes used in tests
FFmpegRunner = Callable[[List[str], float], Awaitable[None]]


def compile_args(stream) -> List[str]:
    """Turn an ffmpeg-python stream graph into an argv list"""
    return ffmpeg.compile(stream)


async def run_ffmpeg(args: List[str], timeout: float) -> None:
    """Run ``args`` and raise ProcessError on failure or timeout.

    The process is killed when ``timeout`` expires so nothing outlives the run.
    """
    logger.debug(f"Running: {' '.join(args)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ProcessError(f"{args[0]} executable not found") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise ProcessError(f"{args[0]} timed out after {timeout:g}s")
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    if process.returncode != 0:
        error_text = stderr.decode(errors='replace')
        logger.error(f"FFmpeg failed ({process.returncode}): {error_text[-2000:]}")
        raise ProcessError(f"{args[0]} exited with code {process.returncode}", stderr=error_text)
