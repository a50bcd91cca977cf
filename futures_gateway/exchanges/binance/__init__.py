"""
Binance USDⓈ-M Futures 연동

- futures: REST 클라이언트 (HMAC-SHA256)
- ws_api: WebSocket API 서명 요청/응답 채널 (Ed25519)
- user_stream: User Data Stream
"""

from .futures import BinanceFuturesClient, OrderRequest, ModifyOrderRequest
from .ws_api import BinanceWSAPIClient, WSRequest, WSResponse, WSErrorDetail
from .user_stream import BinanceUserDataStream, UserStreamManager

__all__ = [
    'BinanceFuturesClient',
    'OrderRequest',
    'ModifyOrderRequest',
    'BinanceWSAPIClient',
    'WSRequest',
    'WSResponse',
    'WSErrorDetail',
    'BinanceUserDataStream',
    'UserStreamManager',
]
