"""
서버 시간 조회 테스트 (로컬 aiohttp 서버 사용)

@FEAT:ws-api @COMP:test @TYPE:integration
"""

import asyncio
import time
from contextlib import asynccontextmanager

import pytest
from aiohttp import web

from futures_gateway.exchanges.binance.time_sync import fetch_server_time_ms


@asynccontextmanager
async def time_server(handler):
    app = web.Application()
    app.router.add_get('/fapi/v1/time', handler)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '127.0.0.1', 0)
    await site.start()
    try:
        port = runner.addresses[0][1]
        yield f'http://127.0.0.1:{port}'
    finally:
        await runner.cleanup()


def _now_ms():
    return int(time.time() * 1000)


class TestFetchServerTime:

    @pytest.mark.asyncio
    async def test_returns_server_time(self):
        async def handler(request):
            return web.json_response({'serverTime': 1700000000123})

        async with time_server(handler) as base_url:
            result = await fetch_server_time_ms(base_url + '/')

        assert result == 1700000000123

    @pytest.mark.asyncio
    async def test_non_json_falls_back_to_local_time(self, caplog):
        async def handler(request):
            return web.Response(text='maintenance')

        async with time_server(handler) as base_url:
            before = _now_ms()
            result = await fetch_server_time_ms(base_url)
            after = _now_ms()

        assert before <= result <= after
        assert '로컬 시간 사용' in caplog.text

    @pytest.mark.asyncio
    async def test_zero_server_time_falls_back(self):
        async def handler(request):
            return web.json_response({'serverTime': 0})

        async with time_server(handler) as base_url:
            before = _now_ms()
            result = await fetch_server_time_ms(base_url)

        assert result >= before

    @pytest.mark.asyncio
    async def test_slow_server_falls_back_within_timeout(self):
        async def handler(request):
            await asyncio.sleep(1)
            return web.json_response({'serverTime': 1})

        async with time_server(handler) as base_url:
            started = time.monotonic()
            result = await fetch_server_time_ms(base_url, timeout=0.1)
            elapsed = time.monotonic() - started

        assert result > 1
        assert elapsed < 0.8

    @pytest.mark.asyncio
    async def test_unreachable_host_falls_back(self):
        before = _now_ms()

        result = await fetch_server_time_ms('http://127.0.0.1:1')

        assert result >= before
