"""
Binance Futures User Data Stream WebSocket 구현

Listen Key로 User Data Stream에 접속해 주문/계좌 이벤트를 수신하고
최근 메시지를 제한된 버퍼에 보관합니다.

@FEAT:user-stream @FEAT:exchange-integration @COMP:service @TYPE:websocket-integration
"""

import asyncio
import concurrent.futures
import json
import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from futures_gateway.exchanges.binance.futures import BinanceFuturesClient
from futures_gateway.exchanges.exceptions import DeadlineExceeded, ExchangeError, WSConnectionError

logger = logging.getLogger(__name__)

MESSAGE_BUFFER_SIZE = 100
DEFAULT_KEEPALIVE_INTERVAL = 180
CONNECT_TIMEOUT = 15


# @FEAT:user-stream @FEAT:exchange-integration @COMP:service @TYPE:websocket-integration
class BinanceUserDataStream:
    """Binance Futures User Data Stream WebSocket 클라이언트

    핵심 기능:
    - Listen Key 생성 (REST) 후 ``{ws_base_url}/{listenKey}`` 접속
    - keepalive_interval마다 Listen Key 갱신 (PUT)
    - 수신 이벤트를 최대 100개 버퍼에 보관 (가득 차면 새 메시지 버림)
    - 자동 재연결 없음. 끊기면 status()에 반영되고 다시 시작해야 함
    """

    def __init__(self, rest_client: BinanceFuturesClient, ws_base_url: str,
                 on_event: Optional[Callable[[Dict[str, Any]], None]] = None,
                 keepalive_interval: int = DEFAULT_KEEPALIVE_INTERVAL,
                 buffer_size: int = MESSAGE_BUFFER_SIZE):
        self.rest_client = rest_client
        self.ws_base_url = ws_base_url.rstrip('/')
        self.on_event = on_event
        self.keepalive_interval = keepalive_interval
        self.messages: 'queue.Queue[Dict[str, Any]]' = queue.Queue(maxsize=buffer_size)

        self.listen_key: Optional[str] = None
        self.ws = None
        self._running = False
        self._keepalive_task: Optional[asyncio.Task] = None

        self.connected_at: Optional[float] = None
        self.last_message_at: Optional[float] = None
        self.last_error: Optional[str] = None
        self.received_count = 0
        self.dropped_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def connect(self):
        """Listen Key 생성 후 WebSocket 연결, 갱신 태스크 시작

        Raises:
            ExchangeError: Listen Key 생성 실패
            WSConnectionError: WebSocket 연결 실패
        """
        self.listen_key = await asyncio.to_thread(self.rest_client.create_listen_key)

        ws_url = f"{self.ws_base_url}/{self.listen_key}"
        try:
            self.ws = await websockets.connect(ws_url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            self.last_error = str(e)
            logger.error(f"❌ User Data Stream 연결 실패: {e}")
            await self._release_listen_key()
            raise WSConnectionError(f"failed to connect to user data stream: {e}")

        self._running = True
        self.connected_at = time.time()
        self.last_error = None
        self._keepalive_task = asyncio.create_task(self._keepalive_loop())
        logger.info("✅ User Data Stream 연결 완료")

    async def _keepalive_loop(self):
        """Listen Key 갱신 루프"""
        while self._running:
            try:
                await asyncio.sleep(self.keepalive_interval)
                if not self._running:
                    break

                await asyncio.to_thread(self.rest_client.keepalive_listen_key)
                logger.info("🔄 Listen Key 갱신 성공")

            except asyncio.CancelledError:
                logger.debug("Listen Key 갱신 태스크 취소됨")
                break
            except ExchangeError as e:
                # 다음 주기에 다시 시도
                logger.error(f"❌ Listen Key 갱신 실패: {e}")

    async def receive_messages(self):
        """메시지 수신 루프 (연결이 끊기거나 disconnect() 될 때까지)"""
        try:
            async for message in self.ws:
                if not self._running:
                    break
                self._handle_raw_message(message)

        except ConnectionClosed as e:
            if self._running:
                self.last_error = f"connection closed: {e}"
                logger.warning(f"⚠️ User Data Stream 연결 끊김: {e}")
        finally:
            was_running = self._running
            self._running = False
            if was_running and self._keepalive_task:
                self._keepalive_task.cancel()

    def _handle_raw_message(self, message):
        try:
            data = json.loads(message)
        except ValueError as e:
            logger.error(f"❌ JSON 파싱 실패: {e}, 메시지: {str(message)[:200]}...")
            return

        self.received_count += 1
        self.last_message_at = time.time()

        try:
            self.messages.put_nowait(data)
        except queue.Full:
            self.dropped_count += 1
            logger.warning(f"⚠️ 메시지 버퍼 가득 참, 새 메시지 버림: {data.get('e') if isinstance(data, dict) else data}")

        if self.on_event and isinstance(data, dict):
            try:
                self.on_event(data)
            except Exception as e:
                logger.error(f"❌ 이벤트 처리 오류: {e}", exc_info=True)

    async def disconnect(self):
        """WebSocket 연결 종료 및 Listen Key 삭제"""
        self._running = False

        if self._keepalive_task:
            self._keepalive_task.cancel()
            try:
                await self._keepalive_task
            except asyncio.CancelledError:
                logger.debug("갱신 태스크 취소 완료 (disconnect)")
            self._keepalive_task = None

        if self.ws is not None:
            await self.ws.close()
            self.ws = None

        await self._release_listen_key()

        logger.info("🔌 User Data Stream 연결 종료")

    async def _release_listen_key(self):
        """Listen Key 삭제 (실패는 경고만 남김)"""
        if not self.listen_key:
            return
        try:
            await asyncio.to_thread(self.rest_client.close_listen_key)
        except ExchangeError as e:
            logger.warning(f"⚠️ Listen Key 삭제 실패: {e}")
        self.listen_key = None

    def drain(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """버퍼의 메시지를 꺼내 반환 (오래된 순)"""
        drained = []
        while limit is None or len(drained) < limit:
            try:
                drained.append(self.messages.get_nowait())
            except queue.Empty:
                break
        return drained

    def status(self) -> Dict[str, Any]:
        return {
            'connected': self._running,
            'connected_at': self.connected_at,
            'last_message_at': self.last_message_at,
            'last_error': self.last_error,
            'received_count': self.received_count,
            'dropped_count': self.dropped_count,
            'buffered_count': self.messages.qsize(),
        }


# @FEAT:user-stream @COMP:service @TYPE:core
class UserStreamManager:
    """User Data Stream 관리자 (백그라운드 스레드에서 asyncio 이벤트 루프 실행)

    Flask 요청 스레드에서 start()/stop()/drain()을 호출하면
    run_coroutine_threadsafe로 백그라운드 루프에 작업을 넘긴다.
    """

    def __init__(self, rest_client: BinanceFuturesClient, ws_base_url: str,
                 on_event: Optional[Callable[[Dict[str, Any]], None]] = None,
                 keepalive_interval: int = DEFAULT_KEEPALIVE_INTERVAL):
        self.rest_client = rest_client
        self.ws_base_url = ws_base_url
        self.on_event = on_event
        self.keepalive_interval = keepalive_interval

        self.stream: Optional[BinanceUserDataStream] = None
        self.event_loop: Optional[asyncio.AbstractEventLoop] = None
        self.thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self.stream is not None and self.stream.is_running

    def _start_loop(self):
        ready = threading.Event()

        def run_loop():
            """백그라운드 스레드에서 실행되는 이벤트 루프"""
            self.event_loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.event_loop)
            ready.set()

            try:
                logger.info("🔌 UserStreamManager 이벤트 루프 시작")
                self.event_loop.run_forever()
            finally:
                logger.info("🔌 UserStreamManager 이벤트 루프 종료")
                self.event_loop.close()

        self.thread = threading.Thread(target=run_loop, name='user-stream', daemon=True)
        self.thread.start()
        ready.wait()

    def _stop_loop(self):
        if self.event_loop and not self.event_loop.is_closed():
            self.event_loop.call_soon_threadsafe(self.event_loop.stop)
        if self.thread:
            self.thread.join(timeout=5)
        self.event_loop = None
        self.thread = None

    def start(self) -> Dict[str, Any]:
        """스트림 시작 (이미 실행 중이면 현재 상태 반환)

        Raises:
            ExchangeError / WSConnectionError: 연결 실패 (루프는 정리됨)
        """
        with self._lock:
            if self.is_running:
                logger.warning("User Data Stream이 이미 실행 중입니다")
                return self.status()

            if self.event_loop is None:
                self._start_loop()

            stream = BinanceUserDataStream(
                self.rest_client, self.ws_base_url,
                on_event=self.on_event, keepalive_interval=self.keepalive_interval,
            )

            future = asyncio.run_coroutine_threadsafe(stream.connect(), self.event_loop)
            try:
                future.result(timeout=CONNECT_TIMEOUT)
            except concurrent.futures.TimeoutError:
                future.cancel()
                self._stop_loop()
                raise DeadlineExceeded(f"user data stream did not connect within {CONNECT_TIMEOUT}s")
            except Exception:
                self._stop_loop()
                raise

            self.stream = stream
            asyncio.run_coroutine_threadsafe(stream.receive_messages(), self.event_loop)
            logger.info("✅ UserStreamManager 시작 완료")
            return self.status()

    def stop(self) -> Dict[str, Any]:
        """스트림 종료 (실행 중이 아니어도 안전)"""
        with self._lock:
            if self.stream is not None and self.event_loop is not None:
                future = asyncio.run_coroutine_threadsafe(self.stream.disconnect(), self.event_loop)
                try:
                    future.result(timeout=CONNECT_TIMEOUT)
                except (ExchangeError, OSError, WebSocketException) as e:
                    logger.warning(f"⚠️ User Data Stream 종료 중 오류: {e}")

            self._stop_loop()
            logger.info("🔌 UserStreamManager 정지 완료")
            return self.status()

    def drain(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        if self.stream is None:
            return []
        return self.stream.drain(limit)

    def status(self) -> Dict[str, Any]:
        if self.stream is None:
            return {'connected': False, 'buffered_count': 0}
        return self.stream.status()
