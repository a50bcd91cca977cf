"""
Binance 서버 시간 조회 (클라이언트 시계 오차 보정용)

@FEAT:ws-api @COMP:exchange @TYPE:helper
"""

import logging
import time

import aiohttp

logger = logging.getLogger(__name__)

SERVER_TIME_PATH = '/fapi/v1/time'
SERVER_TIME_TIMEOUT = 2.0


def local_time_ms() -> int:
    return int(time.time() * 1000)


# @FEAT:ws-api @COMP:exchange @TYPE:helper
async def fetch_server_time_ms(rest_base_url: str, timeout: float = SERVER_TIME_TIMEOUT) -> int:
    """``GET {base}/fapi/v1/time`` 의 serverTime 반환

    어떤 실패(네트워크, JSON 아님, serverTime 누락/0)든 로컬 시간으로 대체하고
    WARNING 로그만 남깁니다. 서명 타임스탬프용이므로 호출자를 실패시키지 않습니다.
    """
    url = rest_base_url.rstrip('/') + SERVER_TIME_PATH
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url) as response:
                data = await response.json(content_type=None)
    except Exception as e:
        logger.warning(f"⚠️ 서버 시간 조회 실패, 로컬 시간 사용: {url} - {e}")
        return local_time_ms()

    server_time = data.get('serverTime') if isinstance(data, dict) else None
    if not isinstance(server_time, int) or isinstance(server_time, bool) or server_time == 0:
        logger.warning(f"⚠️ 서버 시간 응답에 serverTime 없음, 로컬 시간 사용: {data}")
        return local_time_ms()

    return server_time
