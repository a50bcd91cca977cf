"""
거래소 연동 모듈

# @FEAT:exchange-integration @COMP:exchange @TYPE:core

사용법:
    from futures_gateway.exchanges.binance import BinanceFuturesClient, BinanceWSAPIClient
    from futures_gateway.exchanges import ExchangeError, WSAPIError
"""

from .exceptions import (
    ExchangeError,
    NetworkError,
    AuthenticationError,
    InvalidOrder,
    OrderNotFound,
    WSConnectionError,
    DeadlineExceeded,
    WSAPIError,
    WSDecodeError,
    KeyMaterialError,
)

__all__ = [
    'ExchangeError',
    'NetworkError',
    'AuthenticationError',
    'InvalidOrder',
    'OrderNotFound',
    'WSConnectionError',
    'DeadlineExceeded',
    'WSAPIError',
    'WSDecodeError',
    'KeyMaterialError',
]
