"""
Binance Futures REST 클라이언트 테스트 (requests 세션 Mock)

@FEAT:exchange-integration @COMP:test @TYPE:unit
"""

import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import Mock
from urllib.parse import parse_qsl

import pytest
import requests

from futures_gateway.config import BinanceSettings
from futures_gateway.exchanges.binance.futures import (
    BinanceFuturesClient,
    ModifyOrderRequest,
    OrderRequest,
    format_decimal,
)
from futures_gateway.exchanges.exceptions import (
    AuthenticationError,
    ExchangeError,
    InvalidOrder,
    NetworkError,
)


def make_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    if isinstance(payload, Exception):
        response.json.side_effect = payload
        response.text = 'not json'
    else:
        response.json.return_value = payload
        response.text = json.dumps(payload)
    return response


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def futures_client(session):
    settings = BinanceSettings(api_key='key', secret_key='secret', rest_base_url='https://fapi.test')
    return BinanceFuturesClient(settings, session=session)


def sent_params(call):
    """세션 호출에서 전송된 파라미터 추출 (GET/DELETE는 URL, 그 외는 body)"""
    args, kwargs = call
    method, url = args
    if method in ('GET', 'DELETE'):
        query = url.split('?', 1)[1] if '?' in url else ''
    else:
        query = kwargs['data']
    return query, dict(parse_qsl(query))


class TestFormatDecimal:

    @pytest.mark.parametrize('value, expected', [
        (Decimal('0.00100000'), '0.001'),
        (Decimal('100'), '100'),
        ('25000.5', '25000.5'),
        (0.1, '0.1'),
    ])
    def test_trims_trailing_zeros(self, value, expected):
        assert format_decimal(value) == expected


class TestOrderRequestParams:
    """OrderRequest → Binance 파라미터 변환 규칙"""

    def test_limit_order_defaults_gtc(self):
        params = OrderRequest('btcusdt', 'buy', 'LIMIT', quantity=Decimal('0.01'),
                              price=Decimal('25000')).to_params()

        assert params == {
            'symbol': 'BTCUSDT', 'side': 'BUY', 'type': 'LIMIT',
            'quantity': '0.01', 'price': '25000', 'timeInForce': 'GTC',
        }

    def test_market_order_has_no_price(self):
        params = OrderRequest('BTCUSDT', 'SELL', 'MARKET', quantity=Decimal('1')).to_params()

        assert 'price' not in params
        assert 'timeInForce' not in params

    def test_stop_limit_is_sent_as_stop(self):
        params = OrderRequest('BTCUSDT', 'SELL', 'STOP_LIMIT', quantity=Decimal('1'),
                              price=Decimal('24000'), stop_price=Decimal('24100')).to_params()

        assert params['type'] == 'STOP'
        assert params['stopPrice'] == '24100'
        assert params['price'] == '24000'

    def test_trailing_stop_requires_callback_rate(self):
        with pytest.raises(InvalidOrder, match='callbackRate'):
            OrderRequest('BTCUSDT', 'SELL', 'TRAILING_STOP_MARKET', quantity=Decimal('1')).to_params()

        params = OrderRequest('BTCUSDT', 'SELL', 'TRAILING_STOP_MARKET', quantity=Decimal('1'),
                              callback_rate=Decimal('1.5'), activation_price=Decimal('26000')).to_params()
        assert params['callbackRate'] == '1.5'
        assert params['activationPrice'] == '26000'

    @pytest.mark.parametrize('order_type', ['LIMIT', 'STOP', 'TAKE_PROFIT'])
    def test_priced_types_require_price(self, order_type):
        with pytest.raises(InvalidOrder, match='price'):
            OrderRequest('BTCUSDT', 'BUY', order_type, quantity=Decimal('1'),
                         stop_price=Decimal('1')).to_params()

    def test_price_match_substitutes_for_price(self):
        params = OrderRequest('BTCUSDT', 'BUY', 'LIMIT', quantity=Decimal('1'),
                              price_match='opponent').to_params()

        assert params['priceMatch'] == 'OPPONENT'
        assert 'price' not in params

    @pytest.mark.parametrize('order_type', ['STOP_MARKET', 'TAKE_PROFIT_MARKET'])
    def test_trigger_types_require_stop_price(self, order_type):
        with pytest.raises(InvalidOrder, match='stopPrice'):
            OrderRequest('BTCUSDT', 'BUY', order_type, quantity=Decimal('1')).to_params()

    def test_unsupported_type(self):
        with pytest.raises(InvalidOrder):
            OrderRequest('BTCUSDT', 'BUY', 'ICEBERG', quantity=Decimal('1')).to_params()

    def test_optional_fields_passed_through(self):
        params = OrderRequest(
            'BTCUSDT', 'BUY', 'LIMIT', quantity=Decimal('1'), price=Decimal('100'),
            time_in_force='GTD', good_till_date=1700000600000, position_side='long',
            reduce_only=True, stp_mode='expire_maker', new_order_resp_type='result',
            client_order_id='my-order-1', working_type='mark_price',
        ).to_params()

        assert params['timeInForce'] == 'GTD'
        assert params['goodTillDate'] == 1700000600000
        assert params['positionSide'] == 'LONG'
        assert params['reduceOnly'] == 'true'
        assert params['selfTradePreventionMode'] == 'EXPIRE_MAKER'
        assert params['newOrderRespType'] == 'RESULT'
        assert params['newClientOrderId'] == 'my-order-1'
        assert params['workingType'] == 'MARK_PRICE'

    def test_gtd_requires_good_till_date(self):
        with pytest.raises(InvalidOrder, match='goodTillDate'):
            OrderRequest('BTCUSDT', 'BUY', 'LIMIT', quantity=Decimal('1'), price=Decimal('1'),
                         time_in_force='GTD').to_params()

    def test_close_position_replaces_quantity(self):
        params = OrderRequest('BTCUSDT', 'SELL', 'STOP_MARKET', stop_price=Decimal('20000'),
                              close_position=True).to_params()

        assert params['closePosition'] == 'true'
        assert 'quantity' not in params

    def test_zero_quantity_rejected(self):
        with pytest.raises(InvalidOrder, match='quantity'):
            OrderRequest('BTCUSDT', 'BUY', 'MARKET', quantity=Decimal('0')).to_params()


class TestModifyOrderRequest:

    def test_requires_order_identifier(self):
        with pytest.raises(InvalidOrder):
            ModifyOrderRequest('BTCUSDT', 'BUY', Decimal('1'), price=Decimal('1')).to_params()

    def test_client_order_id_used_when_no_order_id(self):
        params = ModifyOrderRequest('BTCUSDT', 'buy', Decimal('2'), price=Decimal('101.5'),
                                    client_order_id='abc').to_params()

        assert params == {'symbol': 'BTCUSDT', 'side': 'BUY', 'quantity': '2',
                          'origClientOrderId': 'abc', 'price': '101.5'}


class TestSignedRequests:

    def test_hmac_signature_and_api_key_header(self, futures_client, session):
        """서명 요청은 쿼리 문자열의 HMAC-SHA256 서명과 X-MBX-APIKEY 헤더를 포함"""
        # Arrange
        session.request.return_value = make_response({'dualSidePosition': True})

        # Act
        result = futures_client.get_position_mode()

        # Assert
        assert result is True
        query, params = sent_params(session.request.call_args)
        unsigned, signature = query.rsplit('&signature=', 1)
        expected = hmac.new(b'secret', unsigned.encode('utf-8'), hashlib.sha256).hexdigest()
        assert signature == expected
        assert params['recvWindow'] == '5000'
        assert 'timestamp' in params
        assert session.request.call_args.kwargs['headers']['X-MBX-APIKEY'] == 'key'

    def test_missing_secret_is_authentication_error(self, session):
        client = BinanceFuturesClient(BinanceSettings(api_key='key', secret_key=''), session=session)

        with pytest.raises(AuthenticationError):
            client.get_account()
        session.request.assert_not_called()

    def test_create_order_changes_leverage_first(self, futures_client, session):
        session.request.side_effect = [
            make_response({'leverage': 10, 'symbol': 'BTCUSDT'}),
            make_response({'orderId': 1, 'status': 'NEW'}),
        ]

        result = futures_client.create_order(
            OrderRequest('BTCUSDT', 'BUY', 'MARKET', quantity=Decimal('1'), leverage=10)
        )

        assert result['orderId'] == 1
        first, second = session.request.call_args_list
        assert first.args[1].endswith('/fapi/v1/leverage')
        assert sent_params(first)[1]['leverage'] == '10'
        assert second.args[1].endswith('/fapi/v1/order')

    def test_set_position_mode_sends_string_flag(self, futures_client, session):
        session.request.return_value = make_response({'code': 200, 'msg': 'success'})

        futures_client.set_position_mode(True)

        assert sent_params(session.request.call_args)[1]['dualSidePosition'] == 'true'


class TestErrorMapping:

    def test_http_error_with_binance_body(self, futures_client, session):
        session.request.return_value = make_response({'code': -2019, 'msg': 'Margin is insufficient.'}, 400)

        with pytest.raises(ExchangeError) as exc_info:
            futures_client.get_account()

        assert exc_info.value.code == -2019
        assert 'Margin is insufficient' in str(exc_info.value)

    @pytest.mark.parametrize('status, code', [(401, -2015), (400, -1022)])
    def test_auth_failures(self, futures_client, session, status, code):
        session.request.return_value = make_response({'code': code, 'msg': 'Invalid API-key'}, status)

        with pytest.raises(AuthenticationError):
            futures_client.get_account()

    def test_transport_error_is_network_error(self, futures_client, session):
        session.request.side_effect = requests.ConnectionError('boom')

        with pytest.raises(NetworkError):
            futures_client.get_account()

    def test_non_json_body(self, futures_client, session):
        session.request.return_value = make_response(ValueError('no json'), 502)

        with pytest.raises(ExchangeError) as exc_info:
            futures_client.get_account()

        assert exc_info.value.code == 502

    def test_error_code_in_200_body(self, futures_client, session):
        session.request.return_value = make_response({'code': -4059, 'msg': 'No need to change position side.'})

        with pytest.raises(ExchangeError):
            futures_client.set_position_mode(False)


class TestBatchOrders:

    def _orders(self, count):
        return [OrderRequest('BTCUSDT', 'BUY', 'MARKET', quantity=Decimal('1')) for _ in range(count)]

    def test_chunks_of_five_with_partial_failures(self, futures_client, session):
        """7개 주문 → 5개/2개 두 번 전송, 개별 실패는 errors로 수집"""
        # Arrange
        session.request.side_effect = [
            make_response([
                {'orderId': 1}, {'orderId': 2}, {'code': -2019, 'msg': 'Margin is insufficient.'},
                {'orderId': 4}, {'orderId': 5},
            ]),
            make_response([{'orderId': 6}, {'orderId': 7}]),
        ]

        # Act
        result = futures_client.create_batch_orders(self._orders(7))

        # Assert
        assert session.request.call_count == 2
        first_batch = json.loads(sent_params(session.request.call_args_list[0])[1]['batchOrders'])
        second_batch = json.loads(sent_params(session.request.call_args_list[1])[1]['batchOrders'])
        assert len(first_batch) == 5
        assert len(second_batch) == 2
        assert [o['index'] for o in result['orders']] == [0, 1, 3, 4, 5, 6]
        assert result['errors'] == [{'index': 2, 'code': -2019, 'msg': 'Margin is insufficient.'}]

    def test_all_failed_raises(self, futures_client, session):
        session.request.return_value = make_response([
            {'code': -1111, 'msg': 'Precision is over the maximum defined for this asset.'},
            {'code': -1111, 'msg': 'Precision is over the maximum defined for this asset.'},
        ])

        with pytest.raises(ExchangeError, match='all orders failed'):
            futures_client.create_batch_orders(self._orders(2))

    def test_cancel_batch_uses_id_lists(self, futures_client, session):
        session.request.side_effect = [
            make_response([{'orderId': 1, 'status': 'CANCELED'}, {'code': -2011, 'msg': 'Unknown order sent.'}]),
            make_response([{'orderId': 3, 'clientOrderId': 'c', 'status': 'CANCELED'}]),
        ]

        result = futures_client.cancel_batch_orders('btcusdt', [1, 2], ['c'])

        first, second = session.request.call_args_list
        assert first.args[0] == 'DELETE'
        assert json.loads(sent_params(first)[1]['orderIdList']) == [1, 2]
        assert json.loads(sent_params(second)[1]['origClientOrderIdList']) == ['c']
        assert len(result['orders']) == 2
        assert result['errors'] == [{'code': -2011, 'msg': 'Unknown order sent.'}]

    def test_cancel_batch_requires_ids(self, futures_client):
        with pytest.raises(InvalidOrder):
            futures_client.cancel_batch_orders('BTCUSDT')


class TestListenKey:

    def test_create_listen_key_uses_api_key_only(self, futures_client, session):
        session.request.return_value = make_response({'listenKey': 'lk-1'})

        assert futures_client.create_listen_key() == 'lk-1'

        query, params = sent_params(session.request.call_args)
        assert 'signature' not in params
        assert session.request.call_args.kwargs['headers']['X-MBX-APIKEY'] == 'key'
