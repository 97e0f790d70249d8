"""Configuration management for the ReelForge pipeline"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigError


class FrozenModel(BaseModel):
    """Configuration sections are read-only once loaded"""
    model_config = ConfigDict(frozen=True, protected_namespaces=())


class SegmentationConfig(FrozenModel):
    # Longest clip the video generator produces in one call
    target_duration: float = Field(default=10.0, gt=0)


class SpeechConfig(FrozenModel):
    engine: str = "cartesia"
    model_id: str = "sonic-3-2025-10-27"
    websocket_url: str = "wss://api.cartesia.ai/tts/websocket"
    api_version: str = "2025-04-16"
    voices: Dict[str, str] = {
        "female": "3b554273-4299-48b9-9aaf-eefd438e3941",
        "male": "6303e5fb-a0a7-48f9-bb1a-dd42c216dc5d",
    }
    default_voice: str = "female"
    language: str = "en"
    encoding: str = "pcm_f32le"
    sample_rate: int = 44100
    channels: int = 1
    bit_depth: int = 32
    safety_timeout: float = 15.0
    connect_timeout: float = 30.0


class VideoGenerationConfig(FrozenModel):
    engine: str = "fal"
    model: str = "wan-2.5"
    queue_url: str = "https://queue.fal.run"
    text_to_video_endpoints: Dict[str, str] = {
        "wan-2.5": "fal-ai/wan-25-preview/text-to-video",
        "kling-2.6": "fal-ai/kling-video/v2.6/pro/text-to-video",
        "runway-gen-4": "fal-ai/runway-gen3/turbo/text-to-video",
    }
    image_to_video_endpoints: Dict[str, str] = {
        "wan-2.5": "fal-ai/wan-25-preview/image-to-video",
        "kling-2.6": "fal-ai/kling-video/v2.6/pro/image-to-video",
        "runway-gen-4": "fal-ai/runway-gen3/turbo/image-to-video",
    }
    # Only these models accept a driving audio track
    audio_models: List[str] = ["wan-2.5"]
    aspect_ratio: str = "9:16"
    allowed_durations: List[int] = [5, 10]
    poll_interval: float = 2.0
    request_timeout: float = 60.0
    generation_timeout: float = 900.0
    # Route vendor calls through the relay instead of sending credentials
    proxy_url: Optional[str] = None


class RelayConfig(FrozenModel):
    host: str = "127.0.0.1"
    port: int = 3000
    path: str = "/api/fal/proxy"
    target_header: str = "x-fal-target-url"
    forward_header_prefix: str = "x-fal-"
    allowed_host_pattern: str = r"(\.|^)fal\.(run|ai)$"
    timeout: float = 60.0


class PerformanceConfig(FrozenModel):
    max_parallel_generation: int = Field(default=4, ge=1)
    max_parallel_downloads: int = Field(default=4, ge=1)
    download_timeout: float = 60.0
    download_chunk_size: int = 64 * 1024
    process_timeout: float = 120.0


class PathsConfig(FrozenModel):
    """Storage paths configuration"""
    temp: str = "./temp"
    output: str = "./output"
    logs: str = "./logs"


class Credentials(FrozenModel):
    """API credentials, captured from the environment when not given explicitly"""
    cartesia_api_key: Optional[str] = Field(default_factory=lambda: os.getenv("CARTESIA_API_KEY"))
    fal_key: Optional[str] = Field(default_factory=lambda: os.getenv("FAL_KEY"))

    def require_cartesia_key(self) -> str:
        if not self.cartesia_api_key:
            raise ConfigError("CARTESIA_API_KEY is not configured")
        return self.cartesia_api_key

    def require_fal_key(self) -> str:
        if not self.fal_key:
            raise ConfigError("FAL_KEY is not configured")
        return self.fal_key


class Config(FrozenModel):
    segmentation: SegmentationConfig = SegmentationConfig()
    speech: SpeechConfig = SpeechConfig()
    video_generation: VideoGenerationConfig = VideoGenerationConfig()
    relay: RelayConfig = RelayConfig()
    performance: PerformanceConfig = PerformanceConfig()
    paths: PathsConfig = PathsConfig()
    credentials: Credentials = Field(default_factory=Credentials)
    logging: Dict[str, Any] = {}

    @property
    def temp_dir(self) -> Path:
        return Path(self.paths.temp)

    def with_overrides(self, **sections: Any) -> "Config":
        """Return a copy with whole sections replaced"""
        return self.model_copy(update=sections)

    @classmethod
    def load(cls, config_path: str) -> "Config":
        """Load configuration from YAML file"""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    def save(self, config_path: str):
        """Save configuration to YAML file (credentials are never written)"""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.model_dump(exclude={'credentials'}), f, default_flow_style=False)
