"""
게이트웨이 공통 상수

Binance Futures 주문/포지션 관련 문자열 상수를 한 곳에서 관리합니다.

@FEAT:framework @COMP:constant @TYPE:core
"""


class OrderSide:
    """주문 방향"""
    BUY = 'BUY'
    SELL = 'SELL'

    VALID_SIDES = [BUY, SELL]

    @classmethod
    def opposite(cls, side: str) -> str:
        return cls.SELL if side.upper() == cls.BUY else cls.BUY


class OrderType:
    """주문 타입 (Binance Futures 기준)"""
    MARKET = 'MARKET'
    LIMIT = 'LIMIT'
    STOP = 'STOP'
    STOP_MARKET = 'STOP_MARKET'
    STOP_LIMIT = 'STOP_LIMIT'  # Binance에는 없음 → STOP으로 전송
    TAKE_PROFIT = 'TAKE_PROFIT'
    TAKE_PROFIT_MARKET = 'TAKE_PROFIT_MARKET'
    TRAILING_STOP_MARKET = 'TRAILING_STOP_MARKET'

    VALID_TYPES = [
        MARKET, LIMIT, STOP, STOP_MARKET, STOP_LIMIT,
        TAKE_PROFIT, TAKE_PROFIT_MARKET, TRAILING_STOP_MARKET,
    ]

    # price 필수 타입
    PRICED_TYPES = [LIMIT, STOP, STOP_LIMIT, TAKE_PROFIT]
    # stopPrice 필수 타입
    TRIGGER_TYPES = [STOP, STOP_MARKET, STOP_LIMIT, TAKE_PROFIT, TAKE_PROFIT_MARKET]

    # 간단 주문 API(/api/futures/order)에서 허용하는 타입
    SIMPLE_TYPES = [MARKET, LIMIT]

    @classmethod
    def to_binance(cls, order_type: str) -> str:
        """프로젝트 주문 타입 → Binance API 타입"""
        if order_type == cls.STOP_LIMIT:
            return cls.STOP
        return order_type


class PositionSide:
    """포지션 방향"""
    BOTH = 'BOTH'
    LONG = 'LONG'
    SHORT = 'SHORT'

    VALID_SIDES = [BOTH, LONG, SHORT]


class TimeInForce:
    GTC = 'GTC'  # Good Till Cancel
    IOC = 'IOC'  # Immediate Or Cancel
    FOK = 'FOK'  # Fill Or Kill
    GTX = 'GTX'  # Post Only
    GTD = 'GTD'  # Good Till Date

    VALID_VALUES = [GTC, IOC, FOK, GTX, GTD]


class WorkingType:
    MARK_PRICE = 'MARK_PRICE'
    CONTRACT_PRICE = 'CONTRACT_PRICE'

    VALID_VALUES = [MARK_PRICE, CONTRACT_PRICE]


class SelfTradePreventionMode:
    NONE = 'NONE'
    EXPIRE_TAKER = 'EXPIRE_TAKER'
    EXPIRE_BOTH = 'EXPIRE_BOTH'
    EXPIRE_MAKER = 'EXPIRE_MAKER'

    VALID_VALUES = [NONE, EXPIRE_TAKER, EXPIRE_BOTH, EXPIRE_MAKER]


class PriceMatchMode:
    NONE = 'NONE'
    OPPONENT = 'OPPONENT'
    OPPONENT_5 = 'OPPONENT_5'
    OPPONENT_10 = 'OPPONENT_10'
    OPPONENT_20 = 'OPPONENT_20'
    QUEUE = 'QUEUE'
    QUEUE_5 = 'QUEUE_5'
    QUEUE_10 = 'QUEUE_10'
    QUEUE_20 = 'QUEUE_20'

    VALID_VALUES = [
        NONE, OPPONENT, OPPONENT_5, OPPONENT_10, OPPONENT_20,
        QUEUE, QUEUE_5, QUEUE_10, QUEUE_20,
    ]


class NewOrderRespType:
    ACK = 'ACK'
    RESULT = 'RESULT'

    VALID_VALUES = [ACK, RESULT]


class PositionMode:
    """포지션 모드 (단방향/양방향)"""
    ONEWAY = 'ONEWAY'
    HEDGE = 'HEDGE'

    @classmethod
    def from_dual_side(cls, dual_side: bool) -> str:
        return cls.HEDGE if dual_side else cls.ONEWAY


class PositionType:
    FUTURES = 'FUTURES'


class OrderStatus:
    """주문 상태 (Binance 응답 그대로 저장)"""
    NEW = 'NEW'
    PARTIALLY_FILLED = 'PARTIALLY_FILLED'
    FILLED = 'FILLED'
    CANCELED = 'CANCELED'
    EXPIRED = 'EXPIRED'
    REJECTED = 'REJECTED'


class WSMethod:
    """Binance Futures WebSocket API 메서드명"""
    ACCOUNT_STATUS = 'account.status'
    ACCOUNT_BALANCE = 'account.balance'


# 배치 주문 최대 개수 (/fapi/v1/batchOrders)
BATCH_ORDER_LIMIT = 5
