"""
선물 거래 서비스 모듈

REST 주문/포지션/포지션 모드, WebSocket API 계좌 조회, API 자격 증명 관리를 담당합니다.
모든 거래소 컴포넌트는 생성자로 전달된 BinanceSettings를 사용합니다.

@FEAT:futures-trading @COMP:service @TYPE:core
"""

import asyncio
import dataclasses
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from futures_gateway import db
from futures_gateway.config import BinanceSettings
from futures_gateway.constants import (
    OrderStatus,
    OrderType,
    PositionMode,
    PositionSide,
    PositionType,
    WSMethod,
)
from futures_gateway.exchanges.binance.futures import (
    BinanceFuturesClient,
    ModifyOrderRequest,
    OrderRequest,
)
from futures_gateway.exchanges.binance.signing import DEFAULT_KEY_PATH, generate_ed25519_key
from futures_gateway.exchanges.binance.ws_api import BinanceWSAPIClient
from futures_gateway.models import APICredential, FuturesOrder, Position, PositionModeConfig
from futures_gateway.services.utils import (
    decimal_to_float,
    require_fields,
    to_bool,
    to_decimal,
    to_int,
    to_timestamp_ms,
)

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="TradingServiceAsync")


def _run_async(coro):
    """코루틴을 동기적으로 실행 (Flask 동기 라우트용)

    이미 실행 중인 이벤트 루프가 있으면 별도 스레드에서 asyncio.run으로 실행한다.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    return _executor.submit(asyncio.run, coro).result()


def _now_ms() -> int:
    return int(time.time() * 1000)


# @FEAT:futures-trading @COMP:service @TYPE:core
class TradingService:
    """선물 거래 서비스

    Args:
        settings: 거래소 설정
        rest_client: Binance Futures REST 클라이언트
        ws_client_factory: WS API 채널 생성 함수 (생략 시 현재 settings로 BinanceWSAPIClient 생성)
    """

    def __init__(self, settings: BinanceSettings, rest_client: BinanceFuturesClient,
                 ws_client_factory: Optional[Callable[[], BinanceWSAPIClient]] = None):
        self.settings = settings
        self.rest_client = rest_client
        self.ws_client_factory = ws_client_factory or (lambda: BinanceWSAPIClient(self.settings))

    # === 주문 ===

    def _build_order_request(self, data: Dict[str, Any]) -> OrderRequest:
        """요청 JSON → OrderRequest (형식 오류는 ValueError)"""
        if not isinstance(data, dict):
            raise ValueError("order must be a JSON object")
        require_fields(data, 'symbol', 'side', 'order_type')

        return OrderRequest(
            symbol=str(data['symbol']).upper(),
            side=str(data['side']).upper(),
            order_type=str(data['order_type']).upper(),
            quantity=to_decimal(data.get('quantity'), 'quantity'),
            price=to_decimal(data.get('price'), 'price'),
            stop_price=to_decimal(data.get('stop_price'), 'stop_price'),
            activation_price=to_decimal(data.get('activation_price'), 'activation_price'),
            callback_rate=to_decimal(data.get('callback_rate'), 'callback_rate'),
            leverage=to_int(data.get('leverage'), 'leverage'),
            position_side=data.get('position_side') or None,
            time_in_force=data.get('time_in_force') or None,
            working_type=data.get('working_type') or None,
            reduce_only=to_bool(data.get('reduce_only')),
            close_position=to_bool(data.get('close_position')),
            stp_mode=data.get('self_trade_prevention_mode') or data.get('stp_mode') or None,
            price_match=data.get('price_match') or None,
            new_order_resp_type=data.get('new_order_resp_type') or None,
            client_order_id=data.get('client_order_id') or None,
            good_till_date=to_timestamp_ms(data.get('good_till_date')),
        )

    def _new_order_row(self, req: OrderRequest, response: Dict[str, Any]) -> FuturesOrder:
        order = FuturesOrder(
            symbol=req.symbol,
            side=req.side,
            order_type=req.order_type,
            quantity=decimal_to_float(req.quantity) or 0.0,
            price=decimal_to_float(req.price),
            stop_price=decimal_to_float(req.stop_price),
            activation_price=decimal_to_float(req.activation_price),
            callback_rate=decimal_to_float(req.callback_rate),
            leverage=req.leverage,
            position_side=req.position_side.upper() if req.position_side else None,
            time_in_force=req.time_in_force.upper() if req.time_in_force else response.get('timeInForce'),
            good_till_date=req.good_till_date,
            working_type=req.working_type,
            reduce_only=req.reduce_only,
            close_position=req.close_position,
            stp_mode=req.stp_mode,
            price_match=req.price_match,
            new_order_resp_type=req.new_order_resp_type,
            binance_order_id=response.get('orderId'),
            client_order_id=response.get('clientOrderId') or req.client_order_id,
            status=response.get('status') or OrderStatus.NEW,
            executed_qty=float(response.get('executedQty') or 0),
            avg_price=float(response['avgPrice']) if response.get('avgPrice') else None,
        )
        db.session.add(order)
        return order

    def create_futures_order(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """간단 주문 (MARKET/LIMIT + 선택적 레버리지)"""
        req = self._build_order_request(data)
        if req.order_type not in OrderType.SIMPLE_TYPES:
            raise ValueError(f"order_type must be one of {OrderType.SIMPLE_TYPES}; "
                             f"use the advanced order endpoint for {req.order_type}")
        if req.quantity is None:
            raise ValueError("missing required fields: quantity")

        response = self.rest_client.create_order(req)
        order = self._new_order_row(req, response)
        db.session.commit()

        logger.info(f"📝 주문 저장 완료: {order}")
        return order.to_dict()

    def create_advanced_order(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """고급 주문 (모든 주문 타입/옵션)"""
        req = self._build_order_request(data)

        response = self.rest_client.create_order(req)
        order = self._new_order_row(req, response)
        db.session.commit()

        logger.info(f"📝 고급 주문 저장 완료: {order}")
        return order.to_dict()

    def _find_order(self, order_id: Optional[int] = None,
                    client_order_id: Optional[str] = None) -> Optional[FuturesOrder]:
        if order_id:
            return FuturesOrder.query.filter_by(binance_order_id=order_id).first()
        if client_order_id:
            return FuturesOrder.query.filter_by(client_order_id=client_order_id).first()
        return None

    def modify_order(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """주문 수정 후 저장된 주문 갱신

        side/quantity/price를 생략하면 저장된 주문 값을 사용한다.
        거래소 수정이 실패하면 DB를 건드리지 않고 예외를 그대로 올린다.
        """
        if not isinstance(data, dict):
            raise ValueError("request body must be a JSON object")
        require_fields(data, 'symbol')

        order_id = to_int(data.get('order_id'), 'order_id')
        client_order_id = data.get('client_order_id') or None
        if not order_id and not client_order_id:
            raise ValueError("either order_id or client_order_id must be provided")

        stored = self._find_order(order_id, client_order_id)

        side = data.get('side') or (stored.side if stored else None)
        if not side:
            raise ValueError("side is required for orders that are not stored locally")

        quantity = to_decimal(data.get('quantity'), 'quantity')
        if quantity is None and stored:
            quantity = to_decimal(stored.quantity)
        price = to_decimal(data.get('price'), 'price')
        if price is None and stored and not data.get('price_match'):
            price = to_decimal(stored.price)

        req = ModifyOrderRequest(
            symbol=str(data['symbol']).upper(),
            side=str(side).upper(),
            quantity=quantity,
            price=price,
            order_id=order_id,
            client_order_id=client_order_id,
            price_match=data.get('price_match') or None,
        )
        response = self.rest_client.modify_order(req)

        if stored:
            stored.quantity = float(response.get('origQty') or quantity)
            if response.get('price') and float(response['price']) > 0:
                stored.price = float(response['price'])
            elif price is not None:
                stored.price = decimal_to_float(price)
            stop_price = to_decimal(data.get('stop_price'), 'stop_price')
            if response.get('stopPrice') and float(response['stopPrice']) > 0:
                stored.stop_price = float(response['stopPrice'])
            elif stop_price is not None:
                stored.stop_price = decimal_to_float(stop_price)
            if req.price_match:
                stored.price_match = req.price_match.upper()
            stored.status = response.get('status') or stored.status
            db.session.commit()
            logger.info(f"✏️ 저장된 주문 갱신: {stored}")
        else:
            logger.warning(f"⚠️ 수정한 주문이 로컬에 없음: order_id={order_id}, client_order_id={client_order_id}")

        return {
            'order': stored.to_dict() if stored else None,
            'exchange_response': response,
        }

    def create_batch_orders(self, orders_data: List[Dict[str, Any]]) -> Dict[str, Any]:
        """배치 주문 생성 (일부 실패 허용, 전부 실패하면 예외)"""
        if not isinstance(orders_data, list) or not orders_data:
            raise ValueError("orders must be a non-empty list")

        requests_ = [self._build_order_request(item) for item in orders_data]
        result = self.rest_client.create_batch_orders(requests_)

        saved = []
        for created in result['orders']:
            order = self._new_order_row(requests_[created['index']], created)
            saved.append(order)
        db.session.commit()

        logger.info(f"📦 배치 주문 저장: {len(saved)}개 (실패 {len(result['errors'])}개)")
        return {
            'orders': [order.to_dict() for order in saved],
            'errors': result['errors'],
        }

    def cancel_batch_orders(self, symbol: str, order_ids: Optional[List[Any]] = None,
                            client_order_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """배치 주문 취소 후 저장된 주문 상태를 CANCELED로 변경"""
        if not symbol:
            raise ValueError("missing required fields: symbol")
        parsed_ids = [to_int(oid, 'order_ids') for oid in (order_ids or [])]
        client_order_ids = list(client_order_ids or [])
        if not parsed_ids and not client_order_ids:
            raise ValueError("order_ids or client_order_ids must be provided")

        result = self.rest_client.cancel_batch_orders(symbol, parsed_ids, client_order_ids)

        updated = 0
        for cancelled in result['orders']:
            stored = self._find_order(cancelled.get('orderId'), cancelled.get('clientOrderId'))
            if stored:
                stored.status = cancelled.get('status') or OrderStatus.CANCELED
                updated += 1
        db.session.commit()

        logger.info(f"🗑️ 배치 취소: 거래소 {len(result['orders'])}개, 로컬 갱신 {updated}개")
        return result

    def get_futures_orders(self, symbol: Optional[str] = None) -> List[Dict[str, Any]]:
        query = FuturesOrder.query
        if symbol:
            query = query.filter_by(symbol=symbol.upper())
        orders = query.order_by(FuturesOrder.created_at.desc(), FuturesOrder.id.desc()).all()
        return [order.to_dict() for order in orders]

    # @FEAT:user-stream @COMP:service @TYPE:integration
    def apply_order_update(self, order_data: Dict[str, Any]) -> Optional[FuturesOrder]:
        """ORDER_TRADE_UPDATE 이벤트의 주문 정보(``o``)로 저장된 주문 갱신"""
        order_id = order_data.get('i')
        stored = self._find_order(order_id, order_data.get('c'))
        if not stored:
            logger.debug(f"로컬에 없는 주문 업데이트 무시: orderId={order_id}")
            return None

        stored.status = order_data.get('X') or stored.status
        if order_data.get('z') is not None:
            stored.executed_qty = float(order_data['z'])
        if order_data.get('ap') and float(order_data['ap']) > 0:
            stored.avg_price = float(order_data['ap'])
        db.session.commit()

        logger.info(f"📦 주문 업데이트 반영: {stored.symbol} orderId={order_id} 상태={stored.status}")
        return stored

    # === 포지션 ===

    def get_positions(self, position_type: Optional[str] = None) -> List[Dict[str, Any]]:
        query = Position.query
        if position_type:
            query = query.filter_by(type=position_type.upper())
        return [position.to_dict() for position in query.order_by(Position.symbol).all()]

    # @FEAT:position-sync @COMP:service @TYPE:core
    def sync_positions(self) -> List[Dict[str, Any]]:
        """거래소 포지션 리스크 → 로컬 포지션 동기화

        0이 아닌 포지션은 (symbol, FUTURES, side) 기준으로 upsert하고
        더 이상 보유하지 않은 FUTURES 포지션은 삭제한다.
        """
        risks = self.rest_client.get_position_risk()

        seen = set()
        for risk in risks:
            amount = float(risk.get('positionAmt') or 0)
            if amount == 0:
                continue

            position_side = risk.get('positionSide') or PositionSide.BOTH
            if position_side == PositionSide.BOTH:
                side = PositionSide.LONG if amount > 0 else PositionSide.SHORT
            else:
                side = position_side

            symbol = risk['symbol']
            seen.add((symbol, side))

            position = Position.query.filter_by(
                symbol=symbol, type=PositionType.FUTURES, side=side
            ).first()
            if position is None:
                position = Position(symbol=symbol, type=PositionType.FUTURES, side=side)
                db.session.add(position)

            position.quantity = abs(amount)
            position.entry_price = float(risk.get('entryPrice') or 0)
            position.current_price = float(risk['markPrice']) if risk.get('markPrice') else None
            position.unrealized_pnl = float(risk.get('unRealizedProfit') or 0)
            position.leverage = int(risk['leverage']) if risk.get('leverage') else None

        removed = 0
        for position in Position.query.filter_by(type=PositionType.FUTURES).all():
            if (position.symbol, position.side) not in seen:
                db.session.delete(position)
                removed += 1

        db.session.commit()
        logger.info(f"🔄 포지션 동기화 완료: 보유 {len(seen)}개, 정리 {removed}개")
        return self.get_positions(PositionType.FUTURES)

    # === 포지션 모드 ===

    def _store_position_mode(self, dual_side: bool) -> PositionModeConfig:
        config = PositionModeConfig.query.first()
        if config is None:
            config = PositionModeConfig()
            db.session.add(config)
        config.mode = PositionMode.from_dual_side(dual_side)
        db.session.commit()
        return config

    def get_position_mode(self) -> Dict[str, Any]:
        dual_side = self.rest_client.get_position_mode()
        return self._store_position_mode(dual_side).to_dict()

    def set_position_mode(self, dual_side: Any) -> Dict[str, Any]:
        if not isinstance(dual_side, bool):
            raise ValueError("dual_side must be a boolean")
        self.rest_client.set_position_mode(dual_side)
        return self._store_position_mode(dual_side).to_dict()

    # === WebSocket API 계좌 조회 ===

    async def _ws_signed_call(self, request_id: str, method: str,
                              params: Optional[Dict[str, Any]] = None) -> Any:
        """채널을 열어 서명 요청 하나를 보내고 닫는다"""
        client = self.ws_client_factory()
        # 키 파일 문제는 연결 전에 드러나야 함
        client.load_private_key()
        try:
            await client.connect()
            return await client.send_signed_request(
                request_id, method, params, timeout=self.settings.ws_api_timeout
            )
        finally:
            await client.close()

    def get_account_status_ws(self) -> Any:
        return _run_async(self._ws_signed_call(f"status-{_now_ms()}", WSMethod.ACCOUNT_STATUS))

    def get_account_balance_ws(self) -> Any:
        return _run_async(self._ws_signed_call(f"bal-{_now_ms()}", WSMethod.ACCOUNT_BALANCE))

    # === API 자격 증명 ===

    def use_credentials(self, api_key: str, secret_key: str):
        """이후 REST/WS 호출에 사용할 API 키 교체"""
        self.settings = dataclasses.replace(self.settings, api_key=api_key, secret_key=secret_key)
        self.rest_client.settings = self.settings
        logger.info("🔑 활성 API 자격 증명 적용")

    def save_api_credentials(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """API 자격 증명 저장 (api_key 기준 upsert, 시크릿 암호화)"""
        if not isinstance(data, dict):
            raise ValueError("request body must be a JSON object")
        require_fields(data, 'api_key', 'secret_key')

        is_active = to_bool(data.get('is_active'), default=True)
        is_testnet = to_bool(data.get('is_testnet'), default=self.settings.testnet)

        credential = APICredential.query.filter_by(api_key=data['api_key']).first()
        if credential is None:
            credential = APICredential(api_key=data['api_key'])
            db.session.add(credential)
            logger.info("🔑 새 API 자격 증명 저장")
        else:
            logger.info("🔑 기존 API 자격 증명 갱신")

        credential.secret_key = data['secret_key']
        credential.is_active = is_active
        credential.is_testnet = is_testnet
        db.session.commit()

        if is_active:
            self.use_credentials(credential.api_key, data['secret_key'])

        return credential.to_dict()

    def get_api_credentials(self, active_only: bool = False) -> List[Dict[str, Any]]:
        query = APICredential.query
        if active_only:
            query = query.filter_by(is_active=True)
        return [credential.to_dict() for credential in query.order_by(APICredential.id).all()]

    def get_active_api_credentials(self) -> Optional[APICredential]:
        """가장 최근에 갱신된 활성 자격 증명"""
        return (APICredential.query
                .filter_by(is_active=True)
                .order_by(APICredential.updated_at.desc(), APICredential.id.desc())
                .first())

    # === 서명 키 ===

    def generate_signing_key(self, overwrite: bool = False) -> Dict[str, str]:
        """WS API 서명용 Ed25519 키 생성 (설정된 키 경로에 저장)"""
        path = self.settings.private_key_path or DEFAULT_KEY_PATH
        if os.path.exists(path) and not overwrite:
            raise ValueError(f"key file already exists at {path}; pass overwrite=true to replace it")
        try:
            return generate_ed25519_key(path, overwrite=overwrite)
        except FileExistsError:
            raise ValueError(f"key file already exists at {path}; pass overwrite=true to replace it")
