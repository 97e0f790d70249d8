#!/usr/bin/env python3
"""
ReelForge - Main Entry Point
Narrated long-form video assembled from short AI-generated clips
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from dotenv import load_dotenv

# Load local env for API keys before the config captures them
load_dotenv(dotenv_path=Path(__file__).parent / ".env.local")

from reelforge.automation.automation_models import PipelineRequest, PipelineResult
from reelforge.automation.orchestrator import PipelineOrchestrator
from reelforge.media_generation.tts_engine import create_synthesizer, parse_word_timestamps
from reelforge.media_generation.video_generator import create_video_generator
from reelforge.relay.fal_relay import run_relay
from reelforge.utils.config import Config
from reelforge.utils.errors import PipelineError, ReelForgeError
from reelforge.utils.logger import setup_logging

console = Console()


class ReelForgeSystem:
    """Main system coordinator for the CLI modes"""

    def __init__(self, config_path: str = "configs/config.yaml", log_level: Optional[str] = None):
        if Path(config_path).exists():
            self.config = Config.load(config_path)
        else:
            console.print(f"[yellow]⚠[/yellow] {config_path} not found, using built-in defaults")
            self.config = Config()

        self.logger = setup_logging(self.config, level=log_level)
        self.orchestrator = PipelineOrchestrator(
            self.config,
            synthesizer=create_synthesizer(self.config),
            video_generator=create_video_generator(self.config),
        )

    async def assemble(self, script: str, prompt: str, language: Optional[str] = None, voice: Optional[str] = None,
                       model: Optional[str] = None, output: Optional[str] = None) -> PipelineResult:
        """Run the full pipeline for one script"""
        script_path = Path(script)
        script_text = script_path.read_text(encoding='utf-8') if script_path.is_file() else script

        output_path = Path(output) if output else None
        request = PipelineRequest(
            script_text=script_text,
            prompt=prompt,
            language=language,
            voice=voice,
            model=model,
            output_path=output_path,
        )

        console.print("[blue]🎬[/blue] Starting narrated video assembly...")
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=False
        ) as progress:
            task = progress.add_task("[cyan]Synthesizing, splitting and generating clips...", total=None)
            result = await self.orchestrator.run(request)
            progress.update(task, description="[cyan]Pipeline complete")

        if result.video_bytes is not None and result.video_path is None:
            output_path = Path(self.config.paths.output) / f"reel_{result.run_id}.mp4"
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(result.video_bytes)
            result.video_path = output_path

        console.print("\n[bold green]🎉 Video Assembly Complete![/bold green]")
        console.print(f"[green]✂️[/green] Split points: {result.split_points}")
        console.print(f"[green]🎞️[/green] Segments: {result.segment_count}")
        console.print(f"[green]⏱️[/green] Render time: {result.render_time_seconds:.1f}s")
        if result.video_path:
            console.print(f"[green]✅[/green] Video saved: {result.video_path}")
        else:
            console.print(f"[green]✅[/green] Video URL: {result.video_url}")
        return result

    async def split(self, audio: str, timestamps: str, target_duration: Optional[float] = None,
                    output_dir: Optional[str] = None) -> None:
        """Split an existing narration WAV at natural word boundaries"""
        container = Path(audio).read_bytes()
        with open(timestamps, 'r', encoding='utf-8') as f:
            words = parse_word_timestamps(json.load(f))

        result = await self.orchestrator.split_audio(container, words, target_duration)

        out_dir = Path(output_dir or self.config.paths.output)
        out_dir.mkdir(parents=True, exist_ok=True)
        stem = Path(audio).stem

        table = Table(title=f"{stem}: {len(result.segments)} segments")
        table.add_column("#", justify="right")
        table.add_column("Start", justify="right")
        table.add_column("End", justify="right")
        table.add_column("File")
        for segment in result.segments:
            segment_path = out_dir / f"{stem}_segment_{segment.index}.wav"
            segment_path.write_bytes(segment.samples)
            table.add_row(str(segment.index), f"{segment.start_time:.2f}", f"{segment.end_time:.2f}",
                          str(segment_path))

        console.print(table)
        console.print(f"[green]✂️[/green] Split points: {result.split_points}")

    async def stitch(self, urls, output: Optional[str] = None) -> None:
        """Download generated clips and join them in the given order"""
        result = await self.orchestrator.stitch(urls, output)
        if result.is_remote:
            console.print(f"[green]✅[/green] Single clip, nothing to stitch: {result.video_url}")
            return

        if result.video_path is None:
            output_path = Path(self.config.paths.output) / f"stitched_{result.run_id}.mp4"
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(result.video_bytes)
            result.video_path = output_path
        size_mb = len(result.video_bytes) / (1024 * 1024)
        console.print(f"[green]✅[/green] Stitched {result.segment_count} clips ({size_mb:.1f}MB): {result.video_path}")

    def relay(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        if not self.config.credentials.fal_key:
            console.print("[yellow]⚠[/yellow] FAL_KEY is not set, relay will answer 401")
        console.print(f"[blue]🔌[/blue] Relay on http://{host or self.config.relay.host}:"
                      f"{port or self.config.relay.port}{self.config.relay.path} (Ctrl+C to stop)")
        run_relay(self.config, host, port)


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="ReelForge narrated video assembly")
    parser.add_argument("--config", type=str, default="configs/config.yaml",
                        help="Path to configuration file")
    parser.add_argument("--log-level", type=str, default=None,
                        help="Override the configured log level (DEBUG, INFO, ...)")
    modes = parser.add_subparsers(dest="mode", required=True)

    assemble = modes.add_parser("assemble", help="Script to stitched narrated video")
    assemble.add_argument("--script", required=True, help="Script text or path to a text file")
    assemble.add_argument("--prompt", required=True, help="Visual prompt for every clip")
    assemble.add_argument("--language", default=None, help="Defaults to speech.language from the config")
    assemble.add_argument("--voice", default=None, help="Voice preset (female, male); defaults to speech.default_voice")
    assemble.add_argument("--model", default=None, help="Video model (wan-2.5, kling-2.6, runway-gen-4)")
    assemble.add_argument("--output", default=None, help="Where to write the final video")

    split = modes.add_parser("split", help="Split narration audio at word boundaries")
    split.add_argument("--audio", required=True, help="WAV file to split")
    split.add_argument("--timestamps", required=True, help="JSON word timestamps")
    split.add_argument("--target-duration", type=float, default=None)
    split.add_argument("--output-dir", default=None)

    stitch = modes.add_parser("stitch", help="Download clips and join them in order")
    stitch.add_argument("urls", nargs="+")
    stitch.add_argument("--output", default=None)

    relay = modes.add_parser("relay", help="Run the authenticated fal.ai relay")
    relay.add_argument("--host", default=None)
    relay.add_argument("--port", type=int, default=None)

    return parser


def main():
    """Main entry point"""
    args = build_parser().parse_args()

    try:
        system = ReelForgeSystem(args.config, log_level=args.log_level)

        if args.mode == "assemble":
            asyncio.run(system.assemble(args.script, args.prompt, args.language, args.voice,
                                        args.model, args.output))
        elif args.mode == "split":
            asyncio.run(system.split(args.audio, args.timestamps, args.target_duration, args.output_dir))
        elif args.mode == "stitch":
            asyncio.run(system.stitch(args.urls, args.output))
        elif args.mode == "relay":
            system.relay(args.host, args.port)

    except KeyboardInterrupt:
        console.print("\n[yellow]⏹️[/yellow] Stopped by user")
    except PipelineError as e:
        console.print(f"[red]❌[/red] {json.dumps(e.to_dict())}")
        sys.exit(1)
    except ReelForgeError as e:
        console.print(f"[red]❌[/red] Error: {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]💥[/red] Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
