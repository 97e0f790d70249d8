"""
Audio Slicer

Cuts a WAV container into independently playable segments at the
boundaries of a SplitPlan. Each interval is extracted by one ffmpeg call
that trims on exact sample indices and writes the input's own PCM codec
back out, so every sample is carried through unchanged.
"""

import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import ffmpeg
import soundfile as sf

from ..utils.errors import InputError, ProcessError
from ..utils.workspace import RunWorkspace
from .ffmpeg_runner import FFmpegRunner, compile_args, run_ffmpeg
from .video_models import AudioSegment, SplitPlan

# soundfile subtype -> ffmpeg encoder producing the same WAV payload
PCM_CODECS = {
    'PCM_U8': 'pcm_u8',
    'PCM_16': 'pcm_s16le',
    'PCM_24': 'pcm_s24le',
    'PCM_32': 'pcm_s32le',
    'FLOAT': 'pcm_f32le',
    'DOUBLE': 'pcm_f64le',
}


def probe_audio(container: bytes):
    try:
        return sf.info(io.BytesIO(container))
    except RuntimeError as e:
        raise InputError(f"Audio is not a readable container: {e}") from e


def probe_duration(container: bytes) -> float:
    """Duration in seconds of a WAV container held in memory"""
    info = probe_audio(container)
    return info.frames / info.samplerate


def frame_ranges(intervals: Sequence[Tuple[float, float]], sample_rate: int,
                 total_frames: int) -> List[Tuple[int, int]]:
    """Map time intervals onto adjacent, non-overlapping frame ranges

    Each boundary is rounded once, so neighbouring ranges share it and the
    ranges tile ``[0, total_frames)`` exactly.
    """
    edges = [0] + [min(int(round(end * sample_rate)), total_frames) for _, end in intervals[:-1]] + [total_frames]
    return list(zip(edges[:-1], edges[1:]))


class AudioSlicer:
    """Slices narration audio at segment boundaries"""

    def __init__(self, temp_dir: Union[str, Path] = './temp', process_timeout: float = 120.0,
                 runner: Optional[FFmpegRunner] = None):
        self.logger = logging.getLogger(__name__)
        self.temp_dir = Path(temp_dir)
        self.process_timeout = process_timeout
        self.runner = runner or run_ffmpeg

    async def slice(self, container: bytes, boundaries: Union[SplitPlan, Sequence[float]],
                    workspace: Optional[RunWorkspace] = None) -> List[AudioSegment]:
        """
        Cut ``container`` into ``len(boundaries) + 1`` segments.

        Args:
            container: Complete WAV bytes
            boundaries: Strictly increasing cut times in seconds
            workspace: Run workspace for scratch files; a private one is used
                       (and removed) when omitted

        Returns:
            Segments in time order. An empty plan yields one segment holding
            the input unchanged.

        Raises:
            ProcessError: if any extraction fails; no segments are returned
        """
        if not container:
            raise InputError("Cannot slice empty audio")

        cut_points = list(boundaries.boundaries if isinstance(boundaries, SplitPlan) else boundaries)
        info = probe_audio(container)
        total_duration = info.frames / info.samplerate

        if not cut_points:
            self.logger.info(f"Audio too short to split ({total_duration:.2f}s), returning single segment")
            return [AudioSegment(index=0, start_time=0.0, end_time=total_duration, samples=bytes(container))]

        plan = SplitPlan(boundaries=cut_points)
        if plan.normalized(total_duration).boundaries != cut_points:
            raise InputError(f"Boundaries {cut_points} must increase strictly within (0, {total_duration:.3f})")

        codec = PCM_CODECS.get(info.subtype)
        if codec is None:
            raise InputError(f"Unsupported WAV sample format {info.subtype}")

        intervals = plan.intervals(total_duration)
        ranges = frame_ranges(intervals, info.samplerate, info.frames)

        owns_workspace = workspace is None
        workspace = workspace or RunWorkspace(self.temp_dir)
        scratch: List[Path] = []
        try:
            input_path = workspace.write_bytes('narration.wav', container)
            scratch.append(input_path)

            segments = []
            for index, ((start, end), (first_frame, end_frame)) in enumerate(zip(intervals, ranges)):
                is_last = index == len(cut_points)
                output_path = workspace.path(f'audio_segment_{index}.wav')
                scratch.append(output_path)

                await self._extract(input_path, output_path, codec, first_frame, None if is_last else end_frame)
                segments.append(AudioSegment(
                    index=index,
                    start_time=start,
                    end_time=end,
                    samples=output_path.read_bytes(),
                ))

            self.logger.info(f"Sliced {total_duration:.2f}s of audio into {len(segments)} segments")
            return segments
        finally:
            for path in scratch:
                path.unlink(missing_ok=True)
            if owns_workspace:
                workspace.cleanup()

    async def _extract(self, input_path: Path, output_path: Path, codec: str, first_frame: int,
                       end_frame: Optional[int]) -> None:
        """Write frames [first_frame, end_frame) into their own WAV file"""
        trim_kwargs = {'start_sample': first_frame}
        if end_frame is not None:
            trim_kwargs['end_sample'] = end_frame

        stream = (
            ffmpeg
            .input(str(input_path))
            .filter('atrim', **trim_kwargs)
            .filter('asetpts', 'PTS-STARTPTS')
            .output(str(output_path), acodec=codec, format='wav')
            .overwrite_output()
        )
        try:
            await self.runner(compile_args(stream), self.process_timeout)
        except ProcessError as e:
            raise ProcessError(f"Audio slice at frame {first_frame} failed: {e}", stderr=e.stderr) from e

        if not output_path.exists():
            raise ProcessError(f"FFmpeg did not create audio segment {output_path.name}")
