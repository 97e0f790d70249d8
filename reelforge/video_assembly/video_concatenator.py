"""
Video Concatenator

Joins same-codec clips into one file with FFmpeg's concat demuxer and stream
copy. Order is exactly the order given: no reordering, deduplication or gap
insertion. A single input is returned as-is without invoking FFmpeg.
"""

import asyncio
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import ffmpeg

from ..utils.errors import IncompatibleMediaError, InputError, ProcessError
from ..utils.logger import LoggerMixin
from .ffmpeg_runner import FFmpegRunner, compile_args, run_ffmpeg

# FFmpeg stderr fragments that mean the inputs cannot be joined by stream copy
MISMATCH_PATTERNS = [
    re.compile(r'codec .* does not match', re.IGNORECASE),
    re.compile(r'parameters .* (differ|mismatch)', re.IGNORECASE),
    re.compile(r'could not find tag for codec', re.IGNORECASE),
    re.compile(r'codec (type )?mismatch', re.IGNORECASE),
    re.compile(r'incompatible', re.IGNORECASE),
]

StreamSignature = Tuple[Tuple[Any, ...], ...]


def stream_signature(probe: Dict[str, Any]) -> StreamSignature:
    """Codec parameters that must agree for a lossless concat"""
    signature = []
    for stream in probe.get('streams', []):
        signature.append((
            stream.get('codec_type'),
            stream.get('codec_name'),
            stream.get('width'),
            stream.get('height'),
            stream.get('sample_rate'),
            stream.get('channels'),
        ))
    return tuple(signature)


def reports_mismatch(stderr: str) -> bool:
    return any(pattern.search(stderr) for pattern in MISMATCH_PATTERNS)


class MediaConcatenator(LoggerMixin):
    """Order-preserving lossless concatenation of video segments"""

    def __init__(self, process_timeout: float = 120.0, runner: Optional[FFmpegRunner] = None,
                 prober: Optional[Callable[[str], Dict[str, Any]]] = None):
        self.process_timeout = process_timeout
        self.runner = runner or run_ffmpeg
        self.prober = prober or ffmpeg.probe

    async def concatenate(self, paths: Sequence[Union[str, Path]],
                          output_path: Optional[Union[str, Path]] = None) -> Path:
        """
        Merge ``paths`` in the given order.

        Args:
            paths: Local clips sharing one container/codec layout
            output_path: Destination; defaults to a timestamped file next to the
                         first input

        Returns:
            Path of the merged file, or the single input unchanged

        Raises:
            InputError: no inputs or a missing input file
            IncompatibleMediaError: inputs do not share codec parameters
            ProcessError: FFmpeg failed for any other reason
        """
        inputs = [Path(p) for p in paths]
        if not inputs:
            raise InputError("No video segments to concatenate")

        if len(inputs) == 1:
            return inputs[0]

        missing = [str(p) for p in inputs if not p.exists()]
        if missing:
            raise InputError(f"Video segments not found: {missing}")

        await self._check_compatible(inputs)

        if output_path is None:
            output_path = inputs[0].parent / f"stitched_{datetime.now().strftime('%Y%m%d_%H%M%S')}.mp4"
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        # Create concat file for FFmpeg
        concat_file = output_path.parent / f"concat_list_{uuid.uuid4().hex[:8]}.txt"
        with open(concat_file, 'w', encoding='utf-8') as f:
            for path in inputs:
                f.write(f"file '{_escape(path.absolute())}'\n")

        stream = (
            ffmpeg
            .input(str(concat_file), format='concat', safe=0)
            .output(str(output_path), c='copy')
            .overwrite_output()
        )

        self.logger.info(f"Concatenating {len(inputs)} segments into {output_path.name}")
        try:
            await self.runner(compile_args(stream), self.process_timeout)
        except ProcessError as e:
            output_path.unlink(missing_ok=True)
            if reports_mismatch(e.stderr):
                raise IncompatibleMediaError(f"Segments cannot be joined losslessly: {e}", stderr=e.stderr) from e
            raise
        finally:
            concat_file.unlink(missing_ok=True)

        if not output_path.exists():
            raise ProcessError("FFmpeg did not create output file")

        return output_path

    async def _check_compatible(self, inputs: List[Path]) -> None:
        loop = asyncio.get_running_loop()
        signatures = []
        for path in inputs:
            try:
                probe = await loop.run_in_executor(None, self.prober, str(path))
            except ffmpeg.Error as e:
                error_msg = e.stderr.decode(errors='replace') if e.stderr else str(e)
                raise ProcessError(f"Could not probe {path.name}: {error_msg}", stderr=error_msg) from e
            signatures.append(stream_signature(probe))

        reference = signatures[0]
        for path, signature in zip(inputs[1:], signatures[1:]):
            if signature != reference:
                raise IncompatibleMediaError(
                    f"{path.name} does not match the codec layout of {inputs[0].name}: "
                    f"{signature} != {reference}"
                )


def _escape(path: Path) -> str:
    # concat demuxer quoting: a literal quote becomes '\''
    return str(path).replace("'", "'\\''")
