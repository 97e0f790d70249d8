"""Text-to-Speech engine backed by the Cartesia websocket API"""

import abc
import asyncio
import base64
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import aiohttp

from ..utils.config import Config
from ..utils.errors import ConfigError, InputError, NetworkError
from .media_models import SpeechResult, WordTimestamp

# Languages the vendor does not know by name
LANGUAGE_ALIASES = {'hinglish': 'hi'}


class SpeechSynthesizer(abc.ABC):
    """Turns script text into raw audio with word-level timestamps"""

    @abc.abstractmethod
    async def synthesize(self, text: str, language: Optional[str] = None, voice: Optional[str] = None,
                         voice_id: Optional[str] = None) -> SpeechResult:
        """Synthesize ``text``; audio is raw samples, not a container

        Language and voice preset fall back to the configured defaults.
        """


def parse_word_timestamps(payload: Any) -> List[WordTimestamp]:
    """Accept both parallel arrays and a list of word objects.

    ``{"words": [...], "start": [...], "end": [...]}`` or
    ``[{"word": ..., "start": ..., "end": ...}, ...]``
    """
    if not payload:
        return []

    if isinstance(payload, dict):
        words = payload.get('words') or []
        starts = payload.get('start') or []
        ends = payload.get('end') or []
        if not (len(words) == len(starts) == len(ends)):
            raise InputError(
                f"Timestamp arrays differ in length: {len(words)} words, "
                f"{len(starts)} starts, {len(ends)} ends"
            )
        return [WordTimestamp(word=w, start=s, end=e) for w, s, e in zip(words, starts, ends)]

    return [WordTimestamp(**item) for item in payload]


class CartesiaSpeechSynthesizer(SpeechSynthesizer):
    """Streams synthesis from Cartesia and buffers it into one result.

    The stream is read until the vendor signals completion or the safety
    timeout expires. On expiry whatever was buffered is returned with
    ``complete=False``.
    """

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.speech = config.speech
        self.logger = logging.getLogger(__name__)
        self._session = session

    def resolve_voice(self, voice: str, voice_id: Optional[str] = None) -> str:
        if voice_id:
            return voice_id
        if voice not in self.speech.voices:
            raise InputError(f"Unknown voice preset '{voice}', choose from {sorted(self.speech.voices)}")
        return self.speech.voices[voice]

    def build_request(self, text: str, language: str, voice_id: str) -> Dict[str, Any]:
        return {
            'model_id': self.speech.model_id,
            'transcript': text,
            'voice': {'mode': 'id', 'id': voice_id},
            'language': LANGUAGE_ALIASES.get(language, language),
            'output_format': {
                'container': 'raw',
                'encoding': self.speech.encoding,
                'sample_rate': self.speech.sample_rate,
            },
            'add_timestamps': True,
            'context_id': uuid.uuid4().hex,
        }

    async def synthesize(self, text: str, language: Optional[str] = None, voice: Optional[str] = None,
                         voice_id: Optional[str] = None) -> SpeechResult:
        if not text or not text.strip():
            raise InputError("Cannot synthesize empty text")

        language = language or self.speech.language
        voice = voice or self.speech.default_voice
        api_key = self.config.credentials.require_cartesia_key()
        request = self.build_request(text, language, self.resolve_voice(voice, voice_id))
        params = {'api_key': api_key, 'cartesia_version': self.speech.api_version}

        self.logger.info(f"Synthesizing {len(text)} characters ({request['language']}, voice {voice_id or voice})")
        try:
            if self._session is not None:
                return await self._stream(self._session, params, request)
            timeout = aiohttp.ClientTimeout(total=None, connect=self.speech.connect_timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                return await self._stream(session, params, request)
        except aiohttp.WSServerHandshakeError as e:
            raise NetworkError(f"Speech service rejected the connection: {e.message}", status_code=e.status) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Speech service connection failed: {e}") from e

    async def _stream(self, session: aiohttp.ClientSession, params: Dict[str, str],
                      request: Dict[str, Any]) -> SpeechResult:
        chunks: List[bytes] = []
        timestamps: List[WordTimestamp] = []
        complete = False

        loop = asyncio.get_running_loop()
        async with session.ws_connect(self.speech.websocket_url, params=params) as ws:
            await ws.send_str(json.dumps(request))
            deadline = loop.time() + self.speech.safety_timeout

            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    message = await asyncio.wait_for(ws.receive(), timeout=remaining)
                except asyncio.TimeoutError:
                    break

                if message.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING,
                                    aiohttp.WSMsgType.CLOSED):
                    break
                if message.type == aiohttp.WSMsgType.ERROR:
                    raise NetworkError(f"Speech stream failed: {ws.exception()}")
                if message.type != aiohttp.WSMsgType.TEXT:
                    continue

                try:
                    parsed = json.loads(message.data)
                except json.JSONDecodeError:
                    self.logger.warning("Ignoring malformed speech chunk")
                    continue

                if parsed.get('type') == 'error' or parsed.get('error'):
                    status = parsed.get('status_code')
                    raise NetworkError(f"Speech service error: {parsed.get('error')}",
                                       status_code=status if isinstance(status, int) else None)
                if parsed.get('data'):
                    chunks.append(base64.b64decode(parsed['data']))
                if parsed.get('word_timestamps'):
                    timestamps.extend(parse_word_timestamps(parsed['word_timestamps']))
                if parsed.get('done'):
                    complete = True
                    break

        if not complete:
            self.logger.warning(
                f"Speech stream not finished after {self.speech.safety_timeout:g}s, "
                f"continuing with {len(chunks)} buffered chunks"
            )

        result = SpeechResult(
            samples=b''.join(chunks),
            sample_rate=self.speech.sample_rate,
            channels=self.speech.channels,
            bit_depth=self.speech.bit_depth,
            timestamps=timestamps,
            complete=complete,
        )
        self.logger.info(f"Received {result.audio_duration:.2f}s of audio, {len(timestamps)} words")
        return result


def create_synthesizer(config: Config, session: Optional[aiohttp.ClientSession] = None) -> SpeechSynthesizer:
    """Factory keyed on ``speech.engine``"""
    if config.speech.engine == 'cartesia':
        return CartesiaSpeechSynthesizer(config, session=session)
    raise ConfigError(f"Unsupported speech engine: {config.speech.engine}")
