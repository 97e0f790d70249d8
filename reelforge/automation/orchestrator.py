"""
Pipeline Orchestrator

Drives one narrated-video run end to end:
synthesis -> segmentation -> slicing -> parallel clip generation ->
parallel download -> concatenation.

Each run owns a private workspace that is removed before ``run`` returns,
whether the run succeeds or fails. Failures surface as one PipelineError
tagged with the stage that was active.
"""

import asyncio
import shutil
import time
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..content_generation.alignment import TimestampSegmenter
from ..media_generation.media_models import VideoGenerationRequest, VideoSegmentRef, WordTimestamp
from ..media_generation.tts_engine import SpeechSynthesizer
from ..media_generation.video_generator import VideoGenerator, pick_duration
from ..utils.async_tasks import gather_or_cancel
from ..utils.config import Config
from ..utils.errors import InputError, PipelineError
from ..utils.logger import LoggerMixin
from ..utils.workspace import RunWorkspace, new_run_id
from ..video_assembly.audio_slicer import AudioSlicer, probe_duration
from ..video_assembly.media_fetcher import MediaFetcher
from ..video_assembly.video_concatenator import MediaConcatenator
from ..video_assembly.video_models import AudioSegment
from ..video_assembly.wav_container import AudioContainerWriter
from .automation_models import (
    PipelineRequest,
    PipelineResult,
    PipelineRun,
    PipelineState,
    SplitAudioResult,
)


class PipelineOrchestrator(LoggerMixin):
    """Coordinates the segmentation and assembly pipeline"""

    def __init__(self, config: Config, synthesizer: SpeechSynthesizer, video_generator: VideoGenerator,
                 segmenter: Optional[TimestampSegmenter] = None,
                 writer: Optional[AudioContainerWriter] = None,
                 slicer: Optional[AudioSlicer] = None,
                 fetcher: Optional[MediaFetcher] = None,
                 concatenator: Optional[MediaConcatenator] = None):
        self.config = config
        self.synthesizer = synthesizer
        self.video_generator = video_generator
        performance = config.performance

        self.segmenter = segmenter or TimestampSegmenter(config.segmentation.target_duration)
        self.writer = writer or AudioContainerWriter(
            sample_rate=config.speech.sample_rate,
            channels=config.speech.channels,
            bit_depth=config.speech.bit_depth,
        )
        self.slicer = slicer or AudioSlicer(config.temp_dir, process_timeout=performance.process_timeout)
        self.fetcher = fetcher or MediaFetcher(
            timeout=performance.download_timeout,
            chunk_size=performance.download_chunk_size,
            max_parallel=performance.max_parallel_downloads,
        )
        self.concatenator = concatenator or MediaConcatenator(process_timeout=performance.process_timeout)

        # Last run, kept for inspection after run() returns or raises
        self.last_run: Optional[PipelineRun] = None

    def _transition(self, run: PipelineRun, state: PipelineState) -> None:
        self.run_logger(run.run_id).info(f"{run.state.value} -> {state.value}")
        run.transition(state)

    @staticmethod
    def validate(request: PipelineRequest) -> None:
        if not request.script_text or not request.script_text.strip():
            raise InputError("Script text is empty")
        if not request.prompt or not request.prompt.strip():
            raise InputError("Video prompt is empty")
        if request.target_duration is not None and request.target_duration <= 0:
            raise InputError(f"target_duration must be positive, got {request.target_duration}")

    async def run(self, request: PipelineRequest) -> PipelineResult:
        """
        Execute the full pipeline for ``request``.

        Returns:
            PipelineResult holding the remote URL (one segment) or the stitched
            bytes (several segments)

        Raises:
            InputError: invalid request, before any external call
            PipelineError: any stage failure; no partial artifact is returned
        """
        self.validate(request)

        run = PipelineRun(run_id=new_run_id())
        self.last_run = run
        workspace = RunWorkspace(self.config.temp_dir, run_id=run.run_id)
        started = time.monotonic()

        log = self.run_logger(run.run_id)
        log.info("Starting pipeline run")
        try:
            result = await self._execute(run, request, workspace)
            result.render_time_seconds = time.monotonic() - started
            self._transition(run, PipelineState.DONE)
            log.info(
                f"Finished in {result.render_time_seconds:.1f}s: "
                f"{run.segment_count} segments, split points {run.split_points}"
            )
            return result
        except BaseException as e:
            stage = run.state
            run.error = str(e) or type(e).__name__
            self._transition(run, PipelineState.FAILED)
            if isinstance(e, Exception):
                log.error(f"Failed during {stage.value}: {e}")
                raise PipelineError(stage, e) from e
            raise
        finally:
            workspace.cleanup()

    async def _execute(self, run: PipelineRun, request: PipelineRequest,
                       workspace: RunWorkspace) -> PipelineResult:
        self._transition(run, PipelineState.SYNTHESIZING)
        speech = await self.synthesizer.synthesize(
            request.script_text,
            language=request.language,
            voice=request.voice,
            voice_id=request.voice_id,
        )
        frame_size = speech.channels * speech.bit_depth // 8
        samples = speech.samples[:len(speech.samples) - len(speech.samples) % frame_size]
        if not samples:
            raise InputError("Speech synthesis returned no audio")
        if not speech.timestamps:
            raise InputError("Speech synthesis returned no word timestamps")

        self._transition(run, PipelineState.SEGMENTING)
        container = self.writer.wrap(samples, speech.sample_rate, speech.channels, speech.bit_depth)
        total_duration = probe_duration(container)
        plan = self.segmenter.plan(speech.timestamps, request.target_duration).normalized(total_duration)
        run.split_points = list(plan.boundaries)

        self._transition(run, PipelineState.SLICING)
        segments = await self.slicer.slice(container, plan, workspace=workspace)
        run.segment_count = len(segments)

        self._transition(run, PipelineState.GENERATING_VIDEO)
        refs = await self.generate_clips(segments, request)
        if len(refs) != len(segments):
            raise InputError(f"Expected {len(segments)} clips, got {len(refs)}")

        if len(refs) == 1:
            self.run_logger(run.run_id).info("Single segment, returning remote clip")
            return PipelineResult(
                run_id=run.run_id,
                video_url=refs[0].remote_url,
                split_points=run.split_points,
                segment_count=1,
            )

        self._transition(run, PipelineState.DOWNLOADING)
        paths = await self.fetcher.fetch_all(refs, workspace)

        self._transition(run, PipelineState.CONCATENATING)
        merged = await self.concatenator.concatenate(paths, workspace.path('final_video.mp4'))
        video_bytes = merged.read_bytes()

        video_path = None
        if request.output_path is not None:
            video_path = Path(request.output_path)
            video_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(merged, video_path)

        return PipelineResult(
            run_id=run.run_id,
            video_bytes=video_bytes,
            video_path=video_path,
            split_points=run.split_points,
            segment_count=len(refs),
        )

    async def generate_clips(self, segments: Sequence[AudioSegment],
                             request: PipelineRequest) -> List[VideoSegmentRef]:
        """One clip per segment, bounded concurrency, results in segment order"""
        semaphore = asyncio.Semaphore(self.config.performance.max_parallel_generation)
        settings = self.config.video_generation

        async def generate_one(segment: AudioSegment) -> VideoSegmentRef:
            clip_request = VideoGenerationRequest(
                prompt=request.prompt,
                duration_seconds=pick_duration(segment.duration, settings.allowed_durations),
                aspect_ratio=request.aspect_ratio or settings.aspect_ratio,
                model=request.model or settings.model,
                audio_url=segment.to_data_uri(),
                image_url=request.image_url,
            )
            async with semaphore:
                self.logger.info(f"Generating clip {segment.index} ({segment.duration:.2f}s of audio)")
                url = await self.video_generator.generate(clip_request)
            return VideoSegmentRef(index=segment.index, remote_url=url)

        refs = await gather_or_cancel([generate_one(segment) for segment in segments])
        return sorted(refs, key=lambda ref: ref.index)

    async def split_audio(self, container: bytes, timestamps: Sequence[WordTimestamp],
                          target_duration: Optional[float] = None) -> SplitAudioResult:
        """Split an existing WAV at natural word boundaries"""
        if not container:
            raise InputError("Audio is required")
        total_duration = probe_duration(container)
        plan = self.segmenter.plan(timestamps, target_duration).normalized(total_duration)

        with RunWorkspace(self.config.temp_dir) as workspace:
            segments = await self.slicer.slice(container, plan, workspace=workspace)

        self.logger.info(f"Split audio into {len(segments)} segments at {plan.boundaries}")
        return SplitAudioResult(segments=segments, split_points=plan.boundaries)

    async def stitch(self, urls: Sequence[str],
                     output_path: Optional[Union[str, Path]] = None) -> PipelineResult:
        """Join already generated clips, in the given order"""
        if not urls:
            raise InputError("No video URLs provided")

        run_id = new_run_id()
        if len(urls) == 1:
            return PipelineResult(run_id=run_id, video_url=urls[0], segment_count=1)

        refs = [VideoSegmentRef(index=i, remote_url=url) for i, url in enumerate(urls)]
        started = time.monotonic()
        with RunWorkspace(self.config.temp_dir, run_id=run_id) as workspace:
            paths = await self.fetcher.fetch_all(refs, workspace)
            merged = await self.concatenator.concatenate(paths, workspace.path('stitched.mp4'))
            video_bytes = merged.read_bytes()
            video_path = None
            if output_path is not None:
                video_path = Path(output_path)
                video_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(merged, video_path)

        return PipelineResult(
            run_id=run_id,
            video_bytes=video_bytes,
            video_path=video_path,
            segment_count=len(urls),
            render_time_seconds=time.monotonic() - started,
        )
