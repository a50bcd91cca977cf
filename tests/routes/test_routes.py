"""
HTTP 라우트 테스트 (Flask test client, REST 클라이언트 Mock)

@FEAT:futures-trading @COMP:test @TYPE:integration
"""

from unittest.mock import Mock

import pytest

from futures_gateway.exchanges.binance.user_stream import UserStreamManager
from futures_gateway.exchanges.exceptions import (
    AuthenticationError,
    DeadlineExceeded,
    ExchangeError,
    InvalidOrder,
    NetworkError,
    WSAPIError,
    WSConnectionError,
    WSDecodeError,
)


def order_response(order_id=1001, status='NEW'):
    return {'orderId': order_id, 'clientOrderId': f'cid-{order_id}', 'status': status}


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        body = response.get_json()
        assert body['status'] == 'healthy'
        assert body['database'] == 'healthy'
        assert body['testnet'] is True


class TestOrderRoutes:

    def test_create_order_envelope(self, client, rest_client):
        """성공 응답은 success/message/data/timestamp/request_id 구조"""
        # Arrange
        rest_client.create_order.return_value = order_response()

        # Act
        response = client.post('/api/futures/order', json={
            'symbol': 'BTCUSDT', 'side': 'BUY', 'order_type': 'MARKET', 'quantity': '0.01',
        })

        # Assert
        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['data']['binance_order_id'] == 1001
        assert set(body) >= {'success', 'message', 'data', 'timestamp', 'request_id'}

    def test_invalid_json(self, client):
        response = client.post('/api/futures/order', data='not json', content_type='application/json')

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'E2001'

    def test_missing_field_is_400(self, client):
        response = client.post('/api/futures/order', json={'symbol': 'BTCUSDT', 'side': 'BUY'})

        assert response.status_code == 400
        body = response.get_json()
        assert body['success'] is False
        assert 'order_type' in body['error']['details']

    def test_list_orders(self, client, rest_client):
        rest_client.create_order.side_effect = [order_response(1), order_response(2)]
        for symbol in ('BTCUSDT', 'ETHUSDT'):
            client.post('/api/futures/order', json={
                'symbol': symbol, 'side': 'BUY', 'order_type': 'MARKET', 'quantity': '1',
            })

        response = client.get('/api/futures/orders?symbol=BTCUSDT')

        assert response.get_json()['data']['count'] == 1

    def test_advanced_order(self, client, rest_client):
        rest_client.create_order.return_value = order_response(7)

        response = client.post('/api/futures/advanced/order', json={
            'symbol': 'BTCUSDT', 'side': 'SELL', 'order_type': 'TRAILING_STOP_MARKET',
            'quantity': '1', 'callback_rate': '1.0',
        })

        assert response.status_code == 200
        assert response.get_json()['data']['order_type'] == 'TRAILING_STOP_MARKET'

    def test_modify_order(self, client, rest_client):
        rest_client.modify_order.return_value = {'orderId': 5, 'status': 'NEW', 'price': '101'}

        response = client.put('/api/futures/order/modify', json={
            'symbol': 'BTCUSDT', 'order_id': 5, 'side': 'BUY', 'quantity': '1', 'price': '101',
        })

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['order'] is None
        assert data['exchange_response']['orderId'] == 5

    def test_batch_orders(self, client, rest_client):
        rest_client.create_batch_orders.return_value = {
            'orders': [{'index': 0, **order_response(1)}],
            'errors': [{'index': 1, 'code': -2019, 'msg': 'Margin is insufficient.'}],
        }

        response = client.post('/api/futures/batch/orders', json={'orders': [
            {'symbol': 'BTCUSDT', 'side': 'BUY', 'order_type': 'MARKET', 'quantity': '1'},
            {'symbol': 'BTCUSDT', 'side': 'BUY', 'order_type': 'MARKET', 'quantity': '100'},
        ]})

        body = response.get_json()
        assert response.status_code == 200
        assert body['meta'] == {'created': 1, 'failed': 1}
        assert len(body['data']['orders']) == 1

    def test_batch_cancel_parses_query(self, client, rest_client):
        rest_client.cancel_batch_orders.return_value = {'orders': [], 'errors': []}

        response = client.delete('/api/futures/batch/orders/cancel'
                                 '?symbol=btcusdt&order_ids=1,2&client_order_ids=a,b')

        assert response.status_code == 200
        rest_client.cancel_batch_orders.assert_called_once_with('BTCUSDT', [1, 2], ['a', 'b'])

    def test_batch_cancel_without_symbol(self, client):
        response = client.delete('/api/futures/batch/orders/cancel?order_ids=1')

        assert response.status_code == 400


class TestPositionModeRoutes:

    def test_get_and_set(self, client, rest_client):
        rest_client.get_position_mode.return_value = False

        get_response = client.get('/api/futures/position-mode')
        set_response = client.post('/api/futures/position-mode', json={'dual_side': True})

        assert get_response.get_json()['data']['mode'] == 'ONEWAY'
        assert set_response.get_json()['data']['mode'] == 'HEDGE'
        rest_client.set_position_mode.assert_called_once_with(True)

    def test_missing_dual_side(self, client):
        response = client.post('/api/futures/position-mode', json={})

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'E2002'

    def test_non_bool_dual_side(self, client):
        response = client.post('/api/futures/position-mode', json={'dual_side': 'true'})

        assert response.status_code == 400


class TestErrorMapping:
    """거래소 예외 → HTTP 상태 코드"""

    @pytest.mark.parametrize('error, status', [
        (InvalidOrder('bad order'), 400),
        (AuthenticationError('Invalid API-key', code=-2015), 401),
        (DeadlineExceeded('deadline exceeded'), 504),
        (WSConnectionError('closed'), 503),
        (NetworkError('timeout'), 503),
        (WSAPIError('rejected', code=-1102, status=400, msg='bad'), 422),
        (ExchangeError('Margin is insufficient.', code=-2019), 422),
        (WSDecodeError('garbage'), 502),
        (RuntimeError('boom'), 500),
    ])
    def test_exception_status(self, client, trading_service, error, status):
        trading_service.get_account_status_ws = Mock(side_effect=error)

        response = client.get('/api/futures/account/status')

        assert response.status_code == status
        assert response.get_json()['success'] is False

    def test_exchange_code_in_details(self, client, rest_client):
        rest_client.create_order.side_effect = ExchangeError('Margin is insufficient.', code=-2019)

        response = client.post('/api/futures/order', json={
            'symbol': 'BTCUSDT', 'side': 'BUY', 'order_type': 'MARKET', 'quantity': '1',
        })

        assert response.status_code == 422
        assert response.get_json()['error']['details']['exchange_code'] == -2019

    def test_missing_signing_key_is_500(self, client):
        """서명 키 파일이 없으면 WS API 조회는 500 (E1004)"""
        response = client.get('/api/futures/account/balance')

        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'E1004'


class TestAccountRoutes:

    def test_account_balance(self, client, trading_service):
        trading_service.get_account_balance_ws = Mock(return_value=[{'asset': 'USDT', 'balance': '100'}])

        response = client.get('/api/futures/account/balance')

        assert response.status_code == 200
        assert response.get_json()['data'][0]['asset'] == 'USDT'


class TestPositionRoutes:

    def test_sync_then_list(self, client, rest_client):
        rest_client.get_position_risk.return_value = [
            {'symbol': 'BTCUSDT', 'positionAmt': '0.5', 'positionSide': 'BOTH', 'entryPrice': '25000'},
        ]

        sync_response = client.post('/api/positions/sync')
        list_response = client.get('/api/positions?type=FUTURES')

        assert sync_response.get_json()['data']['count'] == 1
        positions = list_response.get_json()['data']['positions']
        assert positions[0]['side'] == 'LONG'


class TestCredentialRoutes:

    def test_save_and_list(self, client):
        save = client.post('/api/credentials', json={'api_key': 'abcdefgh1234', 'secret_key': 'topsecret'})
        listed = client.get('/api/credentials?active_only=true')

        assert save.status_code == 200
        credentials = listed.get_json()['data']['credentials']
        assert len(credentials) == 1
        assert credentials[0]['api_key'] == '********1234'
        assert 'topsecret' not in listed.get_data(as_text=True)

    def test_missing_secret(self, client):
        response = client.post('/api/credentials', json={'api_key': 'abc'})

        assert response.status_code == 400


class TestKeyRoutes:

    def test_generate_key(self, client, key_path):
        first = client.post('/api/keys/ed25519/generate')
        second = client.post('/api/keys/ed25519/generate')
        third = client.post('/api/keys/ed25519/generate', json={'overwrite': True})

        assert first.status_code == 200
        assert len(first.get_json()['data']['public_key_hex']) == 64
        assert key_path.exists()
        assert second.status_code == 400
        assert third.status_code == 200


class TestWebSocketRoutes:

    def test_messages_drained_from_manager(self, client, app):
        manager = Mock(spec=UserStreamManager)
        manager.drain.return_value = [{'e': 'ORDER_TRADE_UPDATE'}]
        manager.status.return_value = {'connected': True, 'buffered_count': 0}
        app.extensions['user_stream'] = manager

        response = client.get('/api/websocket/messages?limit=10')

        body = response.get_json()
        assert body['data']['count'] == 1
        assert body['meta']['stream']['connected'] is True
        manager.drain.assert_called_once_with(10)

    def test_invalid_limit(self, client):
        response = client.get('/api/websocket/messages?limit=0')

        assert response.status_code == 400

    def test_connect_failure_reported(self, client, app):
        manager = Mock(spec=UserStreamManager)
        manager.start.side_effect = AuthenticationError('Invalid API-key', code=-2015)
        app.extensions['user_stream'] = manager

        response = client.post('/api/websocket/connect')

        assert response.status_code == 401

    @pytest.mark.parametrize('method', ['get', 'post'])
    def test_connect_accepts_get_and_post(self, client, app, method):
        manager = Mock(spec=UserStreamManager)
        manager.start.return_value = {'connected': True, 'buffered_count': 0}
        app.extensions['user_stream'] = manager

        response = getattr(client, method)('/api/websocket/connect')

        assert response.status_code == 200
        assert response.get_json()['data']['connected'] is True
        manager.start.assert_called_once_with()

    def test_disconnect(self, client, app):
        manager = Mock(spec=UserStreamManager)
        manager.stop.return_value = {'connected': False}
        app.extensions['user_stream'] = manager

        response = client.post('/api/websocket/disconnect')

        assert response.status_code == 200
        assert response.get_json()['data'] == {'connected': False}
