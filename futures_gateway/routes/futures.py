# @FEAT:futures-trading @COMP:route @TYPE:core
"""
Futures Trading Routes

주문 생성/수정/배치, 포지션 모드, WebSocket API 계좌 조회 엔드포인트
"""
from flask import Blueprint, current_app, request

from futures_gateway import db
from futures_gateway.routes import get_trading_service
from futures_gateway.services.utils import split_csv
from futures_gateway.utils.response_formatter import (
    ErrorCode,
    create_error_response,
    create_success_response,
    exception_to_error_response,
)

bp = Blueprint('futures', __name__, url_prefix='/api/futures')


def _json_body():
    """요청 JSON (객체가 아니면 None)"""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _invalid_json():
    return create_error_response(
        error_code=ErrorCode.INVALID_JSON,
        message='유효하지 않은 JSON 데이터입니다.'
    )


# @FEAT:futures-trading @COMP:route @TYPE:core
@bp.route('/order', methods=['POST'])
def create_order():
    """간단 주문 생성 (MARKET/LIMIT)"""
    data = _json_body()
    if data is None:
        return _invalid_json()

    try:
        order = get_trading_service().create_futures_order(data)
        current_app.logger.info(f'주문 생성 완료: {order["symbol"]} {order["side"]} {order["order_type"]}')
        return create_success_response(data=order, message='주문이 생성되었습니다.')
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'주문 생성 오류: {str(e)}')
        return exception_to_error_response(e)


@bp.route('/orders', methods=['GET'])
def get_orders():
    """저장된 주문 목록 (symbol 필터 선택)"""
    try:
        orders = get_trading_service().get_futures_orders(request.args.get('symbol'))
        return create_success_response(
            data={'orders': orders, 'count': len(orders)},
            message='주문 목록을 조회했습니다.'
        )
    except Exception as e:
        current_app.logger.error(f'주문 목록 조회 오류: {str(e)}')
        return exception_to_error_response(e)


# @FEAT:futures-trading @COMP:route @TYPE:core
@bp.route('/advanced/order', methods=['POST'])
def create_advanced_order():
    """고급 주문 생성 (STOP/TAKE_PROFIT/TRAILING_STOP_MARKET 등)"""
    data = _json_body()
    if data is None:
        return _invalid_json()

    try:
        order = get_trading_service().create_advanced_order(data)
        current_app.logger.info(f'고급 주문 생성 완료: {order["symbol"]} {order["order_type"]}')
        return create_success_response(data=order, message='고급 주문이 생성되었습니다.')
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'고급 주문 생성 오류: {str(e)}')
        return exception_to_error_response(e)


@bp.route('/order/modify', methods=['PUT'])
def modify_order():
    """주문 수정 (가격/수량)"""
    data = _json_body()
    if data is None:
        return _invalid_json()

    try:
        result = get_trading_service().modify_order(data)
        return create_success_response(data=result, message='주문이 수정되었습니다.')
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'주문 수정 오류: {str(e)}')
        return exception_to_error_response(e)


# @FEAT:batch-orders @COMP:route @TYPE:core
@bp.route('/batch/orders', methods=['POST'])
def create_batch_orders():
    """배치 주문 생성 ({"orders": [...]})"""
    data = _json_body()
    if data is None:
        return _invalid_json()

    try:
        result = get_trading_service().create_batch_orders(data.get('orders'))
        return create_success_response(
            data=result,
            message=f'배치 주문 {len(result["orders"])}개가 생성되었습니다.',
            meta={'created': len(result['orders']), 'failed': len(result['errors'])}
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'배치 주문 생성 오류: {str(e)}')
        return exception_to_error_response(e)


# @FEAT:batch-orders @COMP:route @TYPE:core
@bp.route('/batch/orders/cancel', methods=['DELETE'])
def cancel_batch_orders():
    """배치 주문 취소 (?symbol=&order_ids=1,2&client_order_ids=a,b)"""
    try:
        result = get_trading_service().cancel_batch_orders(
            request.args.get('symbol', '').upper(),
            order_ids=split_csv(request.args.get('order_ids')),
            client_order_ids=split_csv(request.args.get('client_order_ids')),
        )
        return create_success_response(
            data=result,
            message=f'주문 {len(result["orders"])}개가 취소되었습니다.'
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'배치 주문 취소 오류: {str(e)}')
        return exception_to_error_response(e)


# @FEAT:position-mode @COMP:route @TYPE:core
@bp.route('/position-mode', methods=['GET'])
def get_position_mode():
    """현재 포지션 모드 (ONEWAY/HEDGE)"""
    try:
        mode = get_trading_service().get_position_mode()
        return create_success_response(data=mode, message='포지션 모드를 조회했습니다.')
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'포지션 모드 조회 오류: {str(e)}')
        return exception_to_error_response(e)


@bp.route('/position-mode', methods=['POST'])
def set_position_mode():
    """포지션 모드 변경 ({"dual_side": true})"""
    data = _json_body()
    if data is None:
        return _invalid_json()
    if 'dual_side' not in data:
        return create_error_response(
            error_code=ErrorCode.MISSING_REQUIRED_FIELD,
            message='필수 필드가 누락되었습니다.',
            details='dual_side'
        )

    try:
        mode = get_trading_service().set_position_mode(data['dual_side'])
        current_app.logger.info(f'포지션 모드 변경: {mode["mode"]}')
        return create_success_response(data=mode, message='포지션 모드가 변경되었습니다.')
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'포지션 모드 변경 오류: {str(e)}')
        return exception_to_error_response(e)


# @FEAT:ws-api @COMP:route @TYPE:integration
@bp.route('/account/status', methods=['GET'])
def get_account_status():
    """계좌 상태 (WebSocket API account.status)"""
    try:
        result = get_trading_service().get_account_status_ws()
        return create_success_response(data=result, message='계좌 상태를 조회했습니다.')
    except Exception as e:
        current_app.logger.error(f'계좌 상태 조회 오류: {str(e)}')
        return exception_to_error_response(e)


# @FEAT:ws-api @COMP:route @TYPE:integration
@bp.route('/account/balance', methods=['GET'])
def get_account_balance():
    """계좌 잔고 (WebSocket API account.balance)"""
    try:
        result = get_trading_service().get_account_balance_ws()
        return create_success_response(data=result, message='계좌 잔고를 조회했습니다.')
    except Exception as e:
        current_app.logger.error(f'계좌 잔고 조회 오류: {str(e)}')
        return exception_to_error_response(e)
