"""
Video Generator

Client for the fal.ai queue API: submit a clip request, poll until the job
completes, then read the clip URL from the result. Requests either carry the
fal key directly or go through the authenticated relay.
"""

import abc
import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..utils.config import Config
from ..utils.errors import ConfigError, InputError, NetworkError
from .media_models import VideoGenerationRequest

TERMINAL_FAILURES = {'FAILED', 'ERROR', 'CANCELLED'}


class VideoGenerator(abc.ABC):
    """Produces one remote video clip per request"""

    @abc.abstractmethod
    async def generate(self, request: VideoGenerationRequest) -> str:
        """Return the remote URL of the finished clip"""


class FalVideoGenerator(VideoGenerator):
    """fal.ai queue client (submit, poll status, fetch result)"""

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.settings = config.video_generation
        self.logger = logging.getLogger(__name__)
        self._session = session

    def endpoint_for(self, request: VideoGenerationRequest) -> str:
        model = request.model or self.settings.model
        endpoints = (self.settings.image_to_video_endpoints if request.image_url
                     else self.settings.text_to_video_endpoints)
        if model not in endpoints:
            mode = 'image-to-video' if request.image_url else 'text-to-video'
            raise InputError(f"No {mode} endpoint configured for model '{model}'")
        return endpoints[model]

    def build_input(self, request: VideoGenerationRequest) -> Dict[str, Any]:
        model = request.model or self.settings.model
        return request.to_vendor_input(include_audio=model in self.settings.audio_models)

    def _headers(self, target_url: str) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.settings.proxy_url:
            # The relay adds the credential
            headers[self.config.relay.target_header] = target_url
        else:
            headers['Authorization'] = f"Key {self.config.credentials.require_fal_key()}"
        return headers

    async def _call(self, session: aiohttp.ClientSession, method: str, url: str,
                    payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        request_url = self.settings.proxy_url or url
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)
        try:
            async with session.request(method, request_url, json=payload,
                                       headers=self._headers(url), timeout=timeout) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise NetworkError(f"fal.ai {method} {url} returned HTTP {response.status}: {body[:500]}",
                                       status_code=response.status)
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"fal.ai {method} {url} timed out after {self.settings.request_timeout:g}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"fal.ai {method} {url} failed: {e}") from e

    async def generate(self, request: VideoGenerationRequest) -> str:
        if not request.prompt.strip():
            raise InputError("Video prompt is required")

        # Fail on missing credentials before any network traffic
        if not self.settings.proxy_url:
            self.config.credentials.require_fal_key()

        endpoint = self.endpoint_for(request)
        payload = self.build_input(request)

        if self._session is not None:
            return await self._run(self._session, endpoint, payload)
        async with aiohttp.ClientSession() as session:
            return await self._run(session, endpoint, payload)

    async def _run(self, session: aiohttp.ClientSession, endpoint: str, payload: Dict[str, Any]) -> str:
        submit_url = f"{self.settings.queue_url.rstrip('/')}/{endpoint}"
        submitted = await self._call(session, 'POST', submit_url, payload)

        request_id = submitted.get('request_id')
        status_url = submitted.get('status_url') or f"{submit_url}/requests/{request_id}/status"
        response_url = submitted.get('response_url') or f"{submit_url}/requests/{request_id}"
        self.logger.info(f"Submitted {endpoint} job {request_id} ({payload.get('duration_seconds')}s)")

        try:
            await asyncio.wait_for(self._wait_for_completion(session, status_url, request_id),
                                   timeout=self.settings.generation_timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Video job {request_id} not finished after {self.settings.generation_timeout:g}s"
            ) from e

        result = await self._call(session, 'GET', response_url)
        video_url = extract_video_url(result)
        if not video_url:
            raise NetworkError(f"No video URL in response for job {request_id}")

        self.logger.info(f"Job {request_id} finished: {video_url}")
        return video_url

    async def _wait_for_completion(self, session: aiohttp.ClientSession, status_url: str,
                                   request_id: Optional[str]) -> None:
        while True:
            status = await self._call(session, 'GET', status_url)
            state = str(status.get('status', '')).upper()
            if state == 'COMPLETED':
                if status.get('error'):
                    raise NetworkError(f"Video job {request_id} failed: {status['error']}")
                return
            if state in TERMINAL_FAILURES:
                raise NetworkError(f"Video job {request_id} ended with status {state}")
            self.logger.debug(f"Job {request_id}: {state or 'UNKNOWN'}")
            await asyncio.sleep(self.settings.poll_interval)


def extract_video_url(result: Dict[str, Any]) -> Optional[str]:
    """``result.video.url``, also when wrapped in a ``data`` envelope"""
    if 'data' in result and isinstance(result['data'], dict) and 'video' not in result:
        result = result['data']
    video = result.get('video')
    if isinstance(video, dict):
        return video.get('url')
    return None


def pick_duration(segment_seconds: float, allowed_durations) -> int:
    """Shortest allowed clip that covers the segment, else the longest one"""
    options = sorted(int(d) for d in allowed_durations)
    if not options:
        raise ConfigError("video_generation.allowed_durations is empty")
    for option in options:
        if option >= segment_seconds:
            return option
    return options[-1]


def create_video_generator(config: Config, session: Optional[aiohttp.ClientSession] = None) -> VideoGenerator:
    """Factory keyed on ``video_generation.engine``"""
    if config.video_generation.engine == 'fal':
        return FalVideoGenerator(config, session=session)
    raise ConfigError(f"Unsupported video engine: {config.video_generation.engine}")
