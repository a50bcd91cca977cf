import os
from dataclasses import dataclass
from typing import Any, Mapping

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ['true', '1', 'yes', 'on']


class Config:
    """기본 설정 클래스"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///futures_gateway.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 로깅 설정
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or 'logs/app.log'

    # Binance 계정 설정
    BINANCE_API_KEY = os.environ.get('BINANCE_API_KEY', '')
    BINANCE_SECRET_KEY = os.environ.get('BINANCE_SECRET_KEY', '')
    BINANCE_TESTNET = _env_bool('BINANCE_TESTNET', 'true')

    # REST 엔드포인트
    BINANCE_FUTURES_URL = os.environ.get('BINANCE_FUTURES_URL', 'https://fapi.binance.com')
    BINANCE_FUTURES_TESTNET_URL = os.environ.get('BINANCE_FUTURES_TESTNET_URL', 'https://testnet.binancefuture.com')

    # WebSocket API (ws-fapi) 엔드포인트
    BINANCE_FUTURES_WS_API_URL = os.environ.get(
        'BINANCE_FUTURES_WS_API_URL', 'wss://ws-fapi.binance.com/ws-fapi/v1')
    BINANCE_FUTURES_WS_API_TESTNET_URL = os.environ.get(
        'BINANCE_FUTURES_WS_API_TESTNET_URL', 'wss://testnet.binancefuture.com/ws-fapi/v1')

    # User Data Stream 엔드포인트
    BINANCE_FUTURES_STREAM_URL = os.environ.get('BINANCE_FUTURES_STREAM_URL', 'wss://fstream.binance.com/ws')
    BINANCE_FUTURES_STREAM_TESTNET_URL = os.environ.get(
        'BINANCE_FUTURES_STREAM_TESTNET_URL', 'wss://fstream.binancefuture.com/ws')

    # WebSocket API 서명용 Ed25519 키 파일 (비어 있으면 ./ed25519.key)
    ED25519_PRIVATE_KEY_PATH = os.environ.get('ED25519_PRIVATE_KEY_PATH', '')

    # WebSocket API 호출 데드라인 (초)
    WS_API_TIMEOUT = float(os.environ.get('WS_API_TIMEOUT', '10'))
    # Listen Key 갱신 주기 (초)
    USER_STREAM_KEEPALIVE_SECONDS = int(os.environ.get('USER_STREAM_KEEPALIVE_SECONDS', '180'))
    # 포지션 주기 동기화 (초, 0이면 비활성화)
    POSITION_SYNC_INTERVAL_SECONDS = int(os.environ.get('POSITION_SYNC_INTERVAL_SECONDS', '0'))

    # API 시크릿 암호화 키 (Fernet)
    ACCOUNTS_ENCRYPTION_KEY = os.environ.get('ACCOUNTS_ENCRYPTION_KEY')

    PORT = int(os.environ.get('PORT', '9090'))


class DevelopmentConfig(Config):
    """개발 환경 설정"""
    DEBUG = True
    SQLALCHEMY_ECHO = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'DEBUG'


class ProductionConfig(Config):
    """운영 환경 설정"""
    DEBUG = False
    SQLALCHEMY_ECHO = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'


class TestingConfig(Config):
    """테스트 환경 설정"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_FILE = os.environ.get('TEST_LOG_FILE') or 'logs/test.log'
    BINANCE_API_KEY = 'test-api-key'
    BINANCE_SECRET_KEY = 'test-secret-key'
    BINANCE_TESTNET = True
    POSITION_SYNC_INTERVAL_SECONDS = 0
    ACCOUNTS_ENCRYPTION_KEY = 'testing-encryption-key'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


# @FEAT:framework @COMP:config @TYPE:core
@dataclass(frozen=True)
class BinanceSettings:
    """
    거래소 컴포넌트에 명시적으로 전달되는 설정 값

    전역 클라이언트 객체 대신 이 값을 각 컴포넌트 생성자에 넘깁니다.
    testnet 여부에 따라 REST / WS API / User Stream URL을 한 번에 결정합니다.
    """
    api_key: str = ''
    secret_key: str = ''
    testnet: bool = True
    rest_base_url: str = 'https://testnet.binancefuture.com'
    ws_api_url: str = 'wss://testnet.binancefuture.com/ws-fapi/v1'
    stream_base_url: str = 'wss://fstream.binancefuture.com/ws'
    private_key_path: str = ''
    ws_api_timeout: float = 10.0
    keepalive_interval: int = 180

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> 'BinanceSettings':
        """Flask app.config(또는 동일한 키를 가진 매핑)에서 설정 생성"""
        testnet = bool(cfg.get('BINANCE_TESTNET', True))
        if testnet:
            rest_url = cfg.get('BINANCE_FUTURES_TESTNET_URL', Config.BINANCE_FUTURES_TESTNET_URL)
            ws_api_url = cfg.get('BINANCE_FUTURES_WS_API_TESTNET_URL', Config.BINANCE_FUTURES_WS_API_TESTNET_URL)
            stream_url = cfg.get('BINANCE_FUTURES_STREAM_TESTNET_URL', Config.BINANCE_FUTURES_STREAM_TESTNET_URL)
        else:
            rest_url = cfg.get('BINANCE_FUTURES_URL', Config.BINANCE_FUTURES_URL)
            ws_api_url = cfg.get('BINANCE_FUTURES_WS_API_URL', Config.BINANCE_FUTURES_WS_API_URL)
            stream_url = cfg.get('BINANCE_FUTURES_STREAM_URL', Config.BINANCE_FUTURES_STREAM_URL)

        return cls(
            api_key=cfg.get('BINANCE_API_KEY', '') or '',
            secret_key=cfg.get('BINANCE_SECRET_KEY', '') or '',
            testnet=testnet,
            rest_base_url=rest_url.rstrip('/'),
            ws_api_url=ws_api_url,
            stream_base_url=stream_url.rstrip('/'),
            private_key_path=cfg.get('ED25519_PRIVATE_KEY_PATH', '') or '',
            ws_api_timeout=float(cfg.get('WS_API_TIMEOUT', 10.0)),
            keepalive_interval=int(cfg.get('USER_STREAM_KEEPALIVE_SECONDS', 180)),
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.secret_key)
