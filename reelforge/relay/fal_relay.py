"""
Authenticated relay for fal.ai

Clients send their vendor request to the relay with the real destination in
the ``x-fal-target-url`` header. The relay checks the destination against
the vendor allow-list, attaches the server-side credential and streams the
upstream answer back unchanged.
"""

import asyncio
import logging
import re
from typing import AsyncIterator, Dict, Optional

import aiohttp
from aiohttp import web
from yarl import URL

from ..utils.config import Config

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey('config', Config)
SESSION_KEY = web.AppKey('session', aiohttp.ClientSession)

# Recomputed by aiohttp for the relayed body
SKIPPED_RESPONSE_HEADERS = {'content-length', 'content-encoding', 'transfer-encoding', 'connection'}


def _error(status: int, message: str) -> web.Response:
    return web.json_response({'error': message}, status=status)


def parse_target(raw: str) -> Optional[URL]:
    try:
        url = URL(raw)
    except (ValueError, TypeError):
        return None
    if url.scheme not in ('http', 'https') or not url.host:
        return None
    return url


def forwarded_headers(request: web.Request, prefix: str, fal_key: str) -> Dict[str, str]:
    headers = {key: value for key, value in request.headers.items() if key.lower().startswith(prefix)}
    headers['Authorization'] = f"Key {fal_key}"
    headers['Content-Type'] = 'application/json'
    headers['Accept'] = 'application/json'
    return headers


def abort(request: web.Request, response: web.StreamResponse) -> web.StreamResponse:
    """Drop the client connection once the status line has been sent

    The only failure signal left at that point is a body cut short.
    """
    response.force_close()
    if request.transport is not None:
        request.transport.close()
    return response


async def relay_handler(request: web.Request) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    relay = config.relay

    raw_target = request.headers.get(relay.target_header)
    if not raw_target:
        return _error(400, f"Missing {relay.target_header} header")

    target = parse_target(raw_target)
    if target is None:
        return _error(400, "Invalid target URL format")

    # Host without port
    if not re.search(relay.allowed_host_pattern, target.host):
        logger.warning(f"Rejected relay target host {target.host}")
        return _error(412, "Invalid target URL")

    fal_key = config.credentials.fal_key
    if not fal_key:
        logger.error("FAL_KEY is missing, cannot relay")
        return _error(401, "Missing Fal credentials")

    headers = forwarded_headers(request, relay.forward_header_prefix, fal_key)
    body = None if request.method == 'GET' else await request.read()

    session = request.app[SESSION_KEY]
    timeout = aiohttp.ClientTimeout(total=relay.timeout)
    logger.info(f"Relaying {request.method} {target}")

    response: Optional[web.StreamResponse] = None
    try:
        async with session.request(request.method, target, headers=headers, data=body,
                                   timeout=timeout) as upstream:
            if upstream.status >= 400:
                logger.warning(f"Upstream {target.host} answered {upstream.status}")

            response = web.StreamResponse(status=upstream.status, reason=upstream.reason)
            for key, value in upstream.headers.items():
                if key.lower() not in SKIPPED_RESPONSE_HEADERS:
                    response.headers[key] = value
            await response.prepare(request)
            async for chunk in upstream.content.iter_chunked(64 * 1024):
                await response.write(chunk)
            await response.write_eof()
            return response
    except asyncio.TimeoutError:
        logger.error(f"Upstream {target} timed out after {relay.timeout:g}s")
        if response is not None and response.prepared:
            return abort(request, response)
        return _error(504, "Upstream request timed out")
    except aiohttp.ClientError as e:
        logger.error(f"Upstream {target} failed: {e}")
        if response is not None and response.prepared:
            return abort(request, response)
        return _error(502, f"Proxy failed: {e}")


def create_relay_app(config: Config, session: Optional[aiohttp.ClientSession] = None) -> web.Application:
    """Build the relay application; ``session`` is used for outbound calls when given"""
    app = web.Application()
    app[CONFIG_KEY] = config

    if session is not None:
        app[SESSION_KEY] = session
    else:
        async def client_session(app: web.Application) -> AsyncIterator[None]:
            app[SESSION_KEY] = aiohttp.ClientSession()
            yield
            await app[SESSION_KEY].close()

        app.cleanup_ctx.append(client_session)

    app.router.add_route('*', config.relay.path, relay_handler)
    return app


def run_relay(config: Config, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve the relay until interrupted"""
    host = host or config.relay.host
    port = port or config.relay.port
    logger.info(f"Relay listening on http://{host}:{port}{config.relay.path}")
    web.run_app(create_relay_app(config), host=host, port=port, print=None)
