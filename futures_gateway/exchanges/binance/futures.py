# @FEAT:exchange-integration @COMP:exchange @TYPE:crypto-implementation
"""
Binance USDⓈ-M Futures REST 클라이언트

HMAC-SHA256 서명(X-MBX-APIKEY 헤더 + timestamp/recvWindow)을 사용하는 동기 클라이언트입니다.
게이트웨이 인스턴스당 하나를 만들고 BinanceSettings로 설정합니다.
"""

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests

from futures_gateway.config import BinanceSettings
from futures_gateway.constants import (
    BATCH_ORDER_LIMIT,
    NewOrderRespType,
    OrderSide,
    OrderType,
    PositionSide,
    PriceMatchMode,
    SelfTradePreventionMode,
    TimeInForce,
    WorkingType,
)
from futures_gateway.exchanges.exceptions import (
    AuthenticationError,
    ExchangeError,
    InvalidOrder,
    NetworkError,
)

logger = logging.getLogger(__name__)

RECV_WINDOW = 5000
REQUEST_TIMEOUT = 30


class FuturesEndpoints:
    LEVERAGE = "/fapi/v1/leverage"
    ORDER = "/fapi/v1/order"
    BATCH_ORDERS = "/fapi/v1/batchOrders"
    POSITION_SIDE_DUAL = "/fapi/v1/positionSide/dual"
    ACCOUNT = "/fapi/v2/account"
    POSITION_RISK = "/fapi/v2/positionRisk"
    LISTEN_KEY = "/fapi/v1/listenKey"


def format_decimal(value: Any) -> str:
    """숫자를 ``%.8f`` 로 포맷 후 뒤쪽 0 제거 (0.00100000 → 0.001)"""
    text = f"{Decimal(str(value)):.8f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def _positive(value: Optional[Any]) -> bool:
    return value is not None and Decimal(str(value)) > 0


# @FEAT:exchange-integration @COMP:model @TYPE:core
@dataclass
class OrderRequest:
    """고급 주문 요청 (모든 Binance Futures 주문 옵션 포함)"""
    symbol: str
    side: str
    order_type: str
    quantity: Optional[Decimal] = None
    price: Optional[Decimal] = None
    stop_price: Optional[Decimal] = None
    activation_price: Optional[Decimal] = None
    callback_rate: Optional[Decimal] = None
    leverage: Optional[int] = None
    position_side: Optional[str] = None
    time_in_force: Optional[str] = None
    working_type: Optional[str] = None
    reduce_only: bool = False
    close_position: bool = False
    stp_mode: Optional[str] = None
    price_match: Optional[str] = None
    new_order_resp_type: Optional[str] = None
    client_order_id: Optional[str] = None
    good_till_date: Optional[int] = None  # ms

    def to_params(self) -> Dict[str, Any]:
        """Binance /fapi/v1/order 파라미터로 변환

        Raises:
            InvalidOrder: 지원하지 않는 타입 또는 필수 값 누락
        """
        order_type = (self.order_type or '').upper()
        side = (self.side or '').upper()

        if order_type not in OrderType.VALID_TYPES:
            raise InvalidOrder(f"지원하지 않는 주문 타입: {self.order_type}")
        if side not in OrderSide.VALID_SIDES:
            raise InvalidOrder(f"잘못된 주문 방향: {self.side}")
        if not self.symbol:
            raise InvalidOrder("symbol은 필수입니다")

        params: Dict[str, Any] = {
            'symbol': self.symbol.upper(),
            'side': side,
            'type': OrderType.to_binance(order_type),
        }

        if self.close_position:
            if order_type not in (OrderType.STOP_MARKET, OrderType.TAKE_PROFIT_MARKET):
                raise InvalidOrder("closePosition은 STOP_MARKET/TAKE_PROFIT_MARKET에서만 사용 가능합니다")
            params['closePosition'] = 'true'
        else:
            if not _positive(self.quantity):
                raise InvalidOrder(f"quantity는 0보다 커야 합니다. quantity={self.quantity}")
            params['quantity'] = format_decimal(self.quantity)

        if order_type in OrderType.PRICED_TYPES:
            if not _positive(self.price) and not self.price_match:
                raise InvalidOrder(f"{order_type} 주문은 price 파라미터가 필수입니다. price={self.price}")
            if _positive(self.price):
                params['price'] = format_decimal(self.price)
            params['timeInForce'] = (self.time_in_force or TimeInForce.GTC).upper()

        if order_type in OrderType.TRIGGER_TYPES:
            if not _positive(self.stop_price):
                raise InvalidOrder(f"{order_type} 주문은 stopPrice 파라미터가 필수입니다.")
            params['stopPrice'] = format_decimal(self.stop_price)

        if order_type == OrderType.TRAILING_STOP_MARKET:
            if not _positive(self.callback_rate):
                raise InvalidOrder("TRAILING_STOP_MARKET 주문은 callbackRate 파라미터가 필수입니다.")
            params['callbackRate'] = format_decimal(self.callback_rate)
            if _positive(self.activation_price):
                params['activationPrice'] = format_decimal(self.activation_price)

        if self.time_in_force:
            tif = self.time_in_force.upper()
            if tif not in TimeInForce.VALID_VALUES:
                raise InvalidOrder(f"잘못된 timeInForce: {self.time_in_force}")
            if tif == TimeInForce.GTD:
                if not self.good_till_date:
                    raise InvalidOrder("GTD 주문은 goodTillDate가 필수입니다")
                params['goodTillDate'] = int(self.good_till_date)

        if self.working_type:
            if self.working_type.upper() not in WorkingType.VALID_VALUES:
                raise InvalidOrder(f"잘못된 workingType: {self.working_type}")
            params['workingType'] = self.working_type.upper()

        if self.position_side:
            if self.position_side.upper() not in PositionSide.VALID_SIDES:
                raise InvalidOrder(f"잘못된 positionSide: {self.position_side}")
            params['positionSide'] = self.position_side.upper()

        if self.reduce_only:
            params['reduceOnly'] = 'true'

        if self.stp_mode:
            if self.stp_mode.upper() not in SelfTradePreventionMode.VALID_VALUES:
                raise InvalidOrder(f"잘못된 selfTradePreventionMode: {self.stp_mode}")
            params['selfTradePreventionMode'] = self.stp_mode.upper()

        if self.price_match:
            if self.price_match.upper() not in PriceMatchMode.VALID_VALUES:
                raise InvalidOrder(f"잘못된 priceMatch: {self.price_match}")
            params['priceMatch'] = self.price_match.upper()

        if self.new_order_resp_type:
            if self.new_order_resp_type.upper() not in NewOrderRespType.VALID_VALUES:
                raise InvalidOrder(f"잘못된 newOrderRespType: {self.new_order_resp_type}")
            params['newOrderRespType'] = self.new_order_resp_type.upper()

        if self.client_order_id:
            params['newClientOrderId'] = self.client_order_id

        return params


@dataclass
class ModifyOrderRequest:
    """주문 수정 요청 (PUT /fapi/v1/order, LIMIT 주문만 수정 가능)"""
    symbol: str
    side: str
    quantity: Decimal
    price: Optional[Decimal] = None
    order_id: Optional[int] = None
    client_order_id: Optional[str] = None
    price_match: Optional[str] = None

    def to_params(self) -> Dict[str, Any]:
        if not self.order_id and not self.client_order_id:
            raise InvalidOrder("orderId 또는 origClientOrderId가 필요합니다")
        if not _positive(self.quantity):
            raise InvalidOrder(f"quantity는 0보다 커야 합니다. quantity={self.quantity}")
        if not _positive(self.price) and not self.price_match:
            raise InvalidOrder("price 또는 priceMatch 중 하나가 필요합니다")

        params: Dict[str, Any] = {
            'symbol': self.symbol.upper(),
            'side': self.side.upper(),
            'quantity': format_decimal(self.quantity),
        }
        if self.order_id:
            params['orderId'] = int(self.order_id)
        else:
            params['origClientOrderId'] = self.client_order_id
        if _positive(self.price):
            params['price'] = format_decimal(self.price)
        if self.price_match:
            params['priceMatch'] = self.price_match.upper()
        return params


# @FEAT:exchange-integration @COMP:exchange @TYPE:crypto-implementation
class BinanceFuturesClient:
    """Binance Futures REST API 클라이언트"""

    def __init__(self, settings: BinanceSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.base_url = settings.rest_base_url
        self.session = session or requests.Session()

        logger.info(f"✅ Binance Futures REST 클라이언트 초기화 - testnet: {settings.testnet}, url: {self.base_url}")

    def _create_signature(self, query_string: str) -> str:
        """API 서명 생성"""
        return hmac.new(
            self.settings.secret_key.encode('utf-8'),
            query_string.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

    def _request(self, method: str, path: str, params: Dict[str, Any] = None,
                 signed: bool = False, api_key_only: bool = False) -> Any:
        """HTTP 요청 실행

        Raises:
            AuthenticationError: 서명 요청인데 API 키/시크릿이 없음
            ExchangeError: Binance 오류 응답 또는 JSON이 아닌 응답
            NetworkError: 전송 실패
        """
        params = dict(params) if params else {}
        url = f"{self.base_url}{path}"

        headers = {
            'User-Agent': 'futures-gateway/1.0',
            'Content-Type': 'application/x-www-form-urlencoded'
        }

        if signed or api_key_only:
            if not self.settings.api_key:
                raise AuthenticationError("Binance API key is not configured")
            headers['X-MBX-APIKEY'] = self.settings.api_key

        if signed:
            if not self.settings.secret_key:
                raise AuthenticationError("Binance secret key is not configured")
            params['timestamp'] = int(time.time() * 1000)
            params['recvWindow'] = RECV_WINDOW
            query_string = urlencode(params)
            query_string += f"&signature={self._create_signature(query_string)}"
        else:
            query_string = urlencode(params)

        method = method.upper()
        if method not in ('GET', 'POST', 'PUT', 'DELETE'):
            raise ValueError(f"지원하지 않는 HTTP 메서드: {method}")

        try:
            if method in ('GET', 'DELETE'):
                full_url = f"{url}?{query_string}" if query_string else url
                response = self.session.request(method, full_url, headers=headers, timeout=REQUEST_TIMEOUT)
            else:
                response = self.session.request(method, url, data=query_string, headers=headers,
                                                timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            logger.error(f"❌ Binance API 네트워크 오류: {method} {path} - {e}")
            raise NetworkError(f"네트워크 오류: {e}")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Binance API 비정상 응답 (상태: {response.status_code}): {response.text[:200]}")
            raise ExchangeError(
                f"Binance API 응답 형식 오류 (HTTP {response.status_code})",
                code=response.status_code,
            )

        if response.status_code >= 400:
            error_code = data.get('code', response.status_code) if isinstance(data, dict) else response.status_code
            error_msg = data.get('msg', 'Unknown error') if isinstance(data, dict) else str(data)
            logger.error(f"❌ Binance API 에러 [{error_code}]: {error_msg}")
            if response.status_code in (401, 403) or error_code in (-2014, -2015, -1022):
                raise AuthenticationError(f"Binance API Error [{error_code}]: {error_msg}",
                                          code=error_code, response=data)
            raise ExchangeError(f"Binance API Error [{error_code}]: {error_msg}",
                                code=error_code, response=data)

        # 일부 엔드포인트는 200 응답에 {"code": 200, "msg": "success"}를 돌려줌
        if isinstance(data, dict) and 'code' in data and data['code'] not in (0, 200):
            raise ExchangeError(f"Binance API 오류: {data.get('msg', 'Unknown error')}",
                                code=data['code'], response=data)

        return data

    # === 주문 ===

    def change_leverage(self, symbol: str, leverage: int) -> Dict[str, Any]:
        """레버리지 변경"""
        if int(leverage) < 1:
            raise InvalidOrder(f"leverage는 1 이상이어야 합니다: {leverage}")
        data = self._request('POST', FuturesEndpoints.LEVERAGE,
                             {'symbol': symbol.upper(), 'leverage': int(leverage)}, signed=True)
        logger.info(f"⚙️ 레버리지 변경: {symbol} → {leverage}x")
        return data

    def create_order(self, order: OrderRequest) -> Dict[str, Any]:
        """주문 생성 (leverage가 지정되면 먼저 레버리지 변경)"""
        params = order.to_params()

        if order.leverage and int(order.leverage) > 1:
            self.change_leverage(order.symbol, order.leverage)

        logger.debug(f"🔍 주문 파라미터: {params}")
        data = self._request('POST', FuturesEndpoints.ORDER, params, signed=True)
        logger.info(f"✅ 주문 생성: {params['symbol']} {params['side']} {params['type']} "
                    f"orderId={data.get('orderId')} status={data.get('status')}")
        return data

    def modify_order(self, req: ModifyOrderRequest) -> Dict[str, Any]:
        """주문 수정 (PUT /fapi/v1/order)"""
        params = req.to_params()
        data = self._request('PUT', FuturesEndpoints.ORDER, params, signed=True)
        logger.info(f"✏️ 주문 수정: {params['symbol']} orderId={data.get('orderId')} "
                    f"qty={params['quantity']} price={params.get('price')}")
        return data

    def create_batch_orders(self, orders: List[OrderRequest]) -> Dict[str, Any]:
        """배치 주문 생성 (요청당 최대 5개씩 나눠 전송)

        Returns:
            dict: {'orders': [{'index', ...성공 응답}], 'errors': [{'index', 'code', 'msg'}...]}

        Raises:
            ExchangeError: 모든 주문이 실패한 경우
        """
        if not orders:
            raise InvalidOrder("배치 주문 목록이 비어 있습니다")

        all_params = [order.to_params() for order in orders]

        # 레버리지는 심볼별로 한 번만 변경
        leverage_by_symbol = {}
        for order in orders:
            if order.leverage and int(order.leverage) > 1:
                leverage_by_symbol[order.symbol.upper()] = int(order.leverage)
        for symbol, leverage in leverage_by_symbol.items():
            self.change_leverage(symbol, leverage)

        created: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []

        for start in range(0, len(all_params), BATCH_ORDER_LIMIT):
            chunk = all_params[start:start + BATCH_ORDER_LIMIT]
            payload = {'batchOrders': json.dumps(chunk, separators=(',', ':'))}

            try:
                results = self._request('POST', FuturesEndpoints.BATCH_ORDERS, payload, signed=True)
            except NetworkError:
                raise
            except ExchangeError as e:
                # 요청 전체가 거절된 경우 해당 청크의 모든 주문을 실패로 기록
                for offset in range(len(chunk)):
                    errors.append({'index': start + offset, 'code': e.code, 'msg': str(e)})
                continue

            for offset, result in enumerate(results):
                if isinstance(result, dict) and 'code' in result and 'orderId' not in result:
                    errors.append({'index': start + offset, 'code': result.get('code'),
                                   'msg': result.get('msg')})
                else:
                    created.append({'index': start + offset, **result})

        logger.info(f"📦 배치 주문 완료: 성공 {len(created)}개, 실패 {len(errors)}개")

        if not created:
            raise ExchangeError(f"all orders failed: {errors}", response={'errors': errors})

        return {'orders': created, 'errors': errors}

    def cancel_batch_orders(self, symbol: str, order_ids: Optional[List[int]] = None,
                            client_order_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """배치 주문 취소 (요청당 최대 10개 id)

        Returns:
            dict: {'orders': [취소 응답...], 'errors': [...]}
        """
        order_ids = [int(oid) for oid in (order_ids or [])]
        client_order_ids = list(client_order_ids or [])
        if not order_ids and not client_order_ids:
            raise InvalidOrder("취소할 orderId 또는 clientOrderId가 필요합니다")

        cancelled: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []

        batches = []
        for start in range(0, len(order_ids), 10):
            batches.append({'orderIdList': json.dumps(order_ids[start:start + 10], separators=(',', ':'))})
        for start in range(0, len(client_order_ids), 10):
            batches.append({'origClientOrderIdList': json.dumps(client_order_ids[start:start + 10],
                                                                separators=(',', ':'))})

        for batch in batches:
            params = {'symbol': symbol.upper(), **batch}
            results = self._request('DELETE', FuturesEndpoints.BATCH_ORDERS, params, signed=True)
            for result in results:
                if isinstance(result, dict) and 'code' in result and 'orderId' not in result:
                    errors.append({'code': result.get('code'), 'msg': result.get('msg')})
                else:
                    cancelled.append(result)

        logger.info(f"🗑️ 배치 취소 완료: {symbol} 성공 {len(cancelled)}개, 실패 {len(errors)}개")
        return {'orders': cancelled, 'errors': errors}

    # === 포지션 모드 ===

    def get_position_mode(self) -> bool:
        """양방향(Hedge) 모드 여부"""
        data = self._request('GET', FuturesEndpoints.POSITION_SIDE_DUAL, signed=True)
        return bool(data.get('dualSidePosition'))

    def set_position_mode(self, dual_side: bool) -> Dict[str, Any]:
        data = self._request('POST', FuturesEndpoints.POSITION_SIDE_DUAL,
                             {'dualSidePosition': 'true' if dual_side else 'false'}, signed=True)
        logger.info(f"⚙️ 포지션 모드 변경: {'HEDGE' if dual_side else 'ONEWAY'}")
        return data

    # === 계좌 / 포지션 ===

    def get_account(self) -> Dict[str, Any]:
        return self._request('GET', FuturesEndpoints.ACCOUNT, signed=True)

    def get_position_risk(self, symbol: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {'symbol': symbol.upper()} if symbol else None
        return self._request('GET', FuturesEndpoints.POSITION_RISK, params, signed=True)

    # === User Data Stream Listen Key ===

    def create_listen_key(self) -> str:
        data = self._request('POST', FuturesEndpoints.LISTEN_KEY, api_key_only=True)
        listen_key = data.get('listenKey')
        if not listen_key:
            raise ExchangeError("Listen Key가 응답에 없습니다", response=data)
        logger.info("✅ Listen Key 생성 완료")
        return listen_key

    def keepalive_listen_key(self) -> Dict[str, Any]:
        return self._request('PUT', FuturesEndpoints.LISTEN_KEY, api_key_only=True)

    def close_listen_key(self) -> Dict[str, Any]:
        return self._request('DELETE', FuturesEndpoints.LISTEN_KEY, api_key_only=True)
