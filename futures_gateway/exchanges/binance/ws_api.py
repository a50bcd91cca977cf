"""
Binance Futures WebSocket API (ws-fapi) 서명 요청/응답 채널

하나의 WebSocket 연결 위에서 요청 envelope을 보내고 응답 envelope 하나를 읽는
동기식(한 번에 하나) RPC 채널입니다.

사용 예:
    async with BinanceWSAPIClient(settings) as client:
        result = await client.send_signed_request(
            'status-1', 'account.status', timeout=10
        )

제약:
- 한 인스턴스에서 동시에 둘 이상의 요청을 보내지 않는다 (잠금으로 강제하지 않음).
  응답은 요청 순서대로 도착한다고 가정하며, id가 다르면 경고 로그만 남긴다.
- 자동 재연결/재시도 없음. 송수신 실패나 데드라인 초과 후에는 새 채널을 연다.

@FEAT:ws-api @COMP:exchange @TYPE:core
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.exceptions import WebSocketException

from futures_gateway.config import BinanceSettings
from futures_gateway.exchanges.binance.signing import (
    build_signature_payload,
    resolve_private_key,
    sign_payload,
    truncate_timestamp_ms,
)
from futures_gateway.exchanges.binance.time_sync import fetch_server_time_ms
from futures_gateway.exchanges.exceptions import (
    AuthenticationError,
    DeadlineExceeded,
    WSAPIError,
    WSConnectionError,
    WSDecodeError,
)

logger = logging.getLogger(__name__)

STATUS_OK = 200


def _json_default(value: Any) -> str:
    """Decimal은 서명 페이로드와 같은 고정소수점 문자열로 전송"""
    if isinstance(value, Decimal):
        return format(value, 'f')
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _wire_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """정수값 float는 서명 페이로드와 같이 소수점 없이 전송 (100.0 → 100)"""
    if not params:
        return params
    return {
        key: int(value) if isinstance(value, float) and value.is_integer() else value
        for key, value in params.items()
    }


@dataclass
class WSRequest:
    """요청 envelope"""
    id: Any
    method: str
    params: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {'id': self.id, 'method': self.method}
        if self.params:
            payload['params'] = self.params
        return payload


@dataclass
class WSErrorDetail:
    code: int
    msg: str


# @FEAT:ws-api @COMP:model @TYPE:core
@dataclass
class WSResponse:
    """응답 envelope"""
    id: Any
    status: int
    result: Any = None
    error: Optional[WSErrorDetail] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'WSResponse':
        if not isinstance(data, dict):
            raise WSDecodeError(f"response envelope is not an object: {data!r}")

        status = data.get('status')
        if not isinstance(status, int) or isinstance(status, bool):
            raise WSDecodeError(f"response envelope has no integer status: {data!r}")

        error = None
        raw_error = data.get('error')
        if isinstance(raw_error, dict):
            error = WSErrorDetail(code=raw_error.get('code', 0), msg=raw_error.get('msg', ''))

        return cls(id=data.get('id'), status=status, result=data.get('result'), error=error)

    def to_dict(self) -> Dict[str, Any]:
        """진단용 직렬화 (result/error는 값이 있을 때만 포함)"""
        payload = {'id': self.id, 'status': self.status}
        if self.result is not None:
            payload['result'] = self.result
        if self.error is not None:
            payload['error'] = {'code': self.error.code, 'msg': self.error.msg}
        return payload


# @FEAT:ws-api @COMP:exchange @TYPE:core
class BinanceWSAPIClient:
    """Binance Futures WebSocket API 클라이언트 (서명 요청/응답 채널)

    Args:
        settings: API 키, 키 파일 경로, URL이 담긴 BinanceSettings
        url: 접속 URL (생략 시 settings.ws_api_url)
        time_source: 서명 타임스탬프용 서버 시간(ms)을 돌려주는 코루틴 함수
            (생략 시 REST /fapi/v1/time 조회)
    """

    def __init__(self, settings: BinanceSettings, url: Optional[str] = None,
                 time_source: Optional[Callable[[], Awaitable[int]]] = None):
        self.settings = settings
        self.url = url or settings.ws_api_url
        self._time_source = time_source
        self.ws = None
        self._private_key = None
        self._broken = False

    @property
    def is_connected(self) -> bool:
        return self.ws is not None and not self._broken

    async def connect(self) -> 'BinanceWSAPIClient':
        """WebSocket 연결 (재시도 없음)

        Raises:
            WSConnectionError: 연결 실패
        """
        if self.ws is not None:
            return self

        try:
            self.ws = await websockets.connect(self.url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.error(f"❌ WS API 연결 실패: {self.url} - {e}")
            raise WSConnectionError(f"failed to connect to WebSocket API {self.url}: {e}")

        self._broken = False
        logger.info(f"✅ WS API 연결 완료: {self.url}")
        return self

    async def open(self, url: Optional[str] = None) -> 'BinanceWSAPIClient':
        """지정 URL(또는 기본 URL)로 연결"""
        if url:
            self.url = url
        return await self.connect()

    async def close(self):
        """연결 종료 (여러 번 호출해도 안전)"""
        ws, self.ws = self.ws, None
        if ws is None:
            return

        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug(f"WS API 종료 중 오류 (무시): {e}")
        logger.info(f"🔌 WS API 연결 종료: {self.url}")

    async def __aenter__(self) -> 'BinanceWSAPIClient':
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _remaining(self, deadline: Optional[float], loop: asyncio.AbstractEventLoop,
                   stage: str) -> Optional[float]:
        if deadline is None:
            return None
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise DeadlineExceeded(f"deadline exceeded before {stage}")
        return remaining

    # @FEAT:ws-api @COMP:exchange @TYPE:core
    async def send_request(self, request_id: Any, method: str,
                           params: Optional[Dict[str, Any]] = None,
                           decoder: Optional[Callable[[Any], Any]] = None,
                           timeout: Optional[float] = None) -> Any:
        """요청 하나를 보내고 응답 하나를 읽는다

        Args:
            request_id: 요청 id (응답 상관관계용)
            method: WS API 메서드명 (예: account.status)
            params: 파라미터 (그대로 전송, 서명하지 않음)
            decoder: 결과 변환 함수 (결과가 None이면 호출하지 않음)
            timeout: 데드라인(초). 한 번 계산한 절대 시각으로 송신/수신을 각각 제한

        Returns:
            decoder(result) 또는 원본 result

        Raises:
            WSConnectionError: 미연결, 송신/수신 실패
            DeadlineExceeded: 데드라인 초과
            WSDecodeError: 응답 JSON 파싱 실패, decoder 실패
            WSAPIError: status != 200
            ValueError: JSON으로 인코딩할 수 없는 파라미터 값
        """
        if self.ws is None:
            raise WSConnectionError("WebSocket API channel is not connected")
        if self._broken:
            raise WSConnectionError("WebSocket API channel is no longer usable; open a new one")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        request = WSRequest(id=request_id, method=method, params=_wire_params(params))
        try:
            message = json.dumps(request.to_dict(), default=_json_default, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ValueError(f"failed to encode request params: {e}")

        remaining = self._remaining(deadline, loop, 'send')
        try:
            await asyncio.wait_for(self.ws.send(message), remaining)
        except asyncio.TimeoutError:
            self._broken = True
            raise DeadlineExceeded(f"deadline exceeded while sending {method} (id={request_id})")
        except (OSError, WebSocketException) as e:
            self._broken = True
            raise WSConnectionError(f"failed to send request: {e}")

        remaining = self._remaining(deadline, loop, 'receive')
        try:
            raw = await asyncio.wait_for(self.ws.recv(), remaining)
        except asyncio.TimeoutError:
            # 늦게 도착한 응답이 다음 호출과 섞이지 않도록 채널을 폐기
            self._broken = True
            raise DeadlineExceeded(f"deadline exceeded while waiting for {method} (id={request_id})")
        except (OSError, WebSocketException) as e:
            self._broken = True
            raise WSConnectionError(f"failed to read response: {e}")

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise WSDecodeError(f"failed to parse response: {e}")

        response = WSResponse.from_dict(data)

        if response.id != request_id:
            logger.warning(f"⚠️ WS API 응답 id 불일치: 요청={request_id}, 응답={response.id}")

        if response.status != STATUS_OK:
            envelope = response.to_dict()
            code = response.error.code if response.error else None
            msg = response.error.msg if response.error else None
            raise WSAPIError(
                f"request failed: {json.dumps(envelope)}",
                code=code, response=envelope, status=response.status, msg=msg,
            )

        if decoder is None or response.result is None:
            return response.result

        try:
            return decoder(response.result)
        except (ValueError, TypeError, KeyError) as e:
            raise WSDecodeError(f"failed to decode result: {e}")

    async def _timestamp_ms(self) -> int:
        if self._time_source is not None:
            return await self._time_source()
        return await fetch_server_time_ms(self.settings.rest_base_url)

    def load_private_key(self):
        if self._private_key is None:
            self._private_key = resolve_private_key(self.settings.private_key_path)
        return self._private_key

    # @FEAT:ws-api @COMP:exchange @TYPE:core
    async def send_signed_request(self, request_id: Any, method: str,
                                  params: Optional[Dict[str, Any]] = None,
                                  decoder: Optional[Callable[[Any], Any]] = None,
                                  timeout: Optional[float] = None) -> Any:
        """apiKey/timestamp 주입 후 Ed25519 서명하여 전송

        호출자의 params는 변경하지 않는다. apiKey/timestamp가 이미 있으면 그대로 사용.

        Raises:
            KeyMaterialError: 키 파일 문제 (어떤 I/O보다 먼저 발생, 서명 없이 보내지 않음)
            AuthenticationError: API 키가 비어 있음
            그 외 send_request와 동일
        """
        private_key = self.load_private_key()

        signed_params = dict(params) if params else {}

        if 'apiKey' not in signed_params:
            if not self.settings.api_key:
                raise AuthenticationError("Binance API key is not configured")
            signed_params['apiKey'] = self.settings.api_key

        if 'timestamp' not in signed_params:
            signed_params['timestamp'] = truncate_timestamp_ms(await self._timestamp_ms())

        payload = build_signature_payload(signed_params)
        logger.debug(f"WS API 서명 페이로드: {payload}")

        signed_params['signature'] = sign_payload(private_key, payload)

        return await self.send_request(request_id, method, signed_params,
                                       decoder=decoder, timeout=timeout)
