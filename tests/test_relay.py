"""Authenticated fal.ai relay"""

import asyncio
import logging

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from reelforge.relay.fal_relay import create_relay_app, parse_target
from reelforge.utils.config import Credentials, RelayConfig

PATH = '/api/fal/proxy'


class NoOutboundSession:
    """Fails the test if the relay ever reaches upstream"""

    def __init__(self):
        self.calls = []

    def request(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        raise AssertionError("relay made an outbound call")


@pytest.fixture
def session():
    return NoOutboundSession()


async def relay_client(config, session=None):
    client = TestClient(TestServer(create_relay_app(config, session=session)))
    await client.start_server()
    return client


async def test_disallowed_host_rejected_without_outbound_call(config, session):
    client = await relay_client(config, session)
    try:
        response = await client.post(PATH, json={'prompt': 'x'},
                                     headers={'x-fal-target-url': 'https://evil.example.com/steal'})
        assert response.status == 412
        assert session.calls == []
    finally:
        await client.close()


@pytest.mark.parametrize("host", ['https://fal.run.evil.com/x', 'https://notfal.ai/x', 'https://fal.ai.example/x'])
async def test_lookalike_hosts_rejected(config, session, host):
    client = await relay_client(config, session)
    try:
        response = await client.get(PATH, headers={'x-fal-target-url': host})
        assert response.status == 412
    finally:
        await client.close()
    assert session.calls == []


async def test_missing_target_header(config, session):
    client = await relay_client(config, session)
    try:
        response = await client.post(PATH, json={})
        assert response.status == 400
        assert 'x-fal-target-url' in (await response.json())['error']
    finally:
        await client.close()


async def test_unparsable_target(config, session):
    client = await relay_client(config, session)
    try:
        response = await client.get(PATH, headers={'x-fal-target-url': 'not a url'})
        assert response.status == 400
    finally:
        await client.close()


async def test_missing_credential(config, session):
    no_key = config.with_overrides(credentials=Credentials(cartesia_api_key=None, fal_key=None))
    client = await relay_client(no_key, session)
    try:
        response = await client.get(PATH, headers={'x-fal-target-url': 'https://queue.fal.run/fal-ai/x'})
        assert response.status == 401
    finally:
        await client.close()
    assert session.calls == []


def test_parse_target():
    assert parse_target('https://queue.fal.run:443/a').host == 'queue.fal.run'
    assert parse_target('ftp://fal.run/a') is None
    assert parse_target('/relative/only') is None


@pytest.fixture
def upstream():
    seen = {}

    async def echo(request):
        seen['method'] = request.method
        seen['headers'] = request.headers.copy()
        seen['body'] = await request.read()
        if request.path == '/fail':
            return web.json_response({'detail': 'bad input'}, status=422)
        if request.path == '/stall':
            partial = web.StreamResponse(headers={'Content-Length': '100'})
            await partial.prepare(request)
            await partial.write(b'0123456789')
            await asyncio.sleep(1)
            return partial
        if request.path == '/slow':
            await asyncio.sleep(2)
        return web.json_response({'request_id': 'abc', 'echo': seen['body'].decode() or None})

    app = web.Application()
    app.router.add_route('*', '/{tail:.*}', echo)
    return app, seen


def local_upstream_config(config, timeout=5.0):
    # Allow the local test server in place of the vendor host
    return config.with_overrides(relay=RelayConfig(allowed_host_pattern=r'^127\.0\.0\.1$', timeout=timeout))


async def test_forwards_credentials_and_vendor_headers(config, upstream):
    app, seen = upstream
    async with TestServer(app) as server:
        client = await relay_client(local_upstream_config(config))
        try:
            response = await client.post(PATH, data='{"prompt": "sky"}', headers={
                'x-fal-target-url': str(server.make_url('/fal-ai/wan')),
                'x-fal-request-id': 'r-1',
                'Authorization': 'Bearer client-token',
                'Cookie': 'session=1',
            })
            assert response.status == 200
            assert (await response.json())['echo'] == '{"prompt": "sky"}'
        finally:
            await client.close()

    assert seen['method'] == 'POST'
    assert seen['headers']['Authorization'] == 'Key test-fal-key'
    assert seen['headers']['x-fal-request-id'] == 'r-1'
    assert seen['headers']['Content-Type'] == 'application/json'
    assert 'Cookie' not in seen['headers']


async def test_get_has_no_body_and_errors_pass_through(config, upstream):
    app, seen = upstream
    async with TestServer(app) as server:
        client = await relay_client(local_upstream_config(config))
        try:
            response = await client.get(PATH, headers={'x-fal-target-url': str(server.make_url('/fail'))})
            assert response.status == 422
            assert await response.json() == {'detail': 'bad input'}
        finally:
            await client.close()

    assert seen['method'] == 'GET'
    assert seen['body'] == b''


async def test_upstream_timeout_maps_to_504(config, upstream):
    app, _ = upstream
    async with TestServer(app) as server:
        client = await relay_client(local_upstream_config(config, timeout=0.2))
        try:
            response = await client.get(PATH, headers={'x-fal-target-url': str(server.make_url('/slow'))})
            assert response.status == 504
        finally:
            await client.close()


async def test_unreachable_upstream_maps_to_502(config):
    client = await relay_client(local_upstream_config(config))
    try:
        # Nothing listens on port 1
        response = await client.get(PATH, headers={'x-fal-target-url': 'http://127.0.0.1:1/x'})
        assert response.status == 502
    finally:
        await client.close()


async def test_upstream_stall_after_headers_drops_client_connection(config, upstream, caplog):
    app, _ = upstream
    async with TestServer(app) as server:
        client = await relay_client(local_upstream_config(config, timeout=0.3))
        try:
            with caplog.at_level(logging.ERROR, logger='reelforge.relay.fal_relay'):
                response = await client.get(PATH, headers={'x-fal-target-url': str(server.make_url('/stall'))})
                assert response.status == 200
                # Headers already went out, so the body has to end early instead of hanging
                with pytest.raises(aiohttp.ClientError):
                    await asyncio.wait_for(response.read(), 5)
        finally:
            await client.close()

    assert 'timed out after 0.3s' in caplog.text
