"""
pytest configuration for tests

@FEAT:testing @COMP:test @TYPE:config
"""

import dataclasses
from unittest.mock import Mock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from futures_gateway import create_app, db
from futures_gateway.config import BinanceSettings
from futures_gateway.exchanges.binance.futures import BinanceFuturesClient


def write_seed_key(path):
    """32바이트 raw seed 키 파일 생성 후 개인키 반환"""
    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    path.write_bytes(seed)
    return private_key


@pytest.fixture
def key_path(tmp_path):
    return tmp_path / 'ed25519.key'


@pytest.fixture
def private_key(key_path):
    return write_seed_key(key_path)


@pytest.fixture
def settings(key_path):
    return BinanceSettings(
        api_key='abc',
        secret_key='secret',
        testnet=True,
        rest_base_url='http://127.0.0.1:1',
        private_key_path=str(key_path),
        ws_api_timeout=2.0,
    )


@pytest.fixture
def app(key_path):
    """테스트용 Flask 앱 (in-memory SQLite, REST 클라이언트는 Mock)"""
    app = create_app('testing')

    service = app.extensions['trading_service']
    service.settings = dataclasses.replace(service.settings, private_key_path=str(key_path))
    service.rest_client = Mock(spec=BinanceFuturesClient)

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def trading_service(app):
    return app.extensions['trading_service']


@pytest.fixture
def rest_client(trading_service):
    return trading_service.rest_client
