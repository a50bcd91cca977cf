# @FEAT:user-stream @COMP:route @TYPE:core
"""
User Data Stream Routes

백그라운드 User Data Stream 연결/해제와 버퍼 메시지 조회
"""
from flask import Blueprint, current_app, request

from futures_gateway.routes import get_user_stream
from futures_gateway.services.utils import to_int
from futures_gateway.utils.response_formatter import (
    create_success_response,
    exception_to_error_response,
)

bp = Blueprint('websocket', __name__, url_prefix='/api/websocket')


@bp.route('/connect', methods=['GET', 'POST'])
def connect():
    """User Data Stream 시작 (이미 연결돼 있으면 현재 상태 반환)"""
    try:
        status = get_user_stream().start()
        return create_success_response(data=status, message='User Data Stream에 연결되었습니다.')
    except Exception as e:
        current_app.logger.error(f'User Data Stream 연결 오류: {str(e)}')
        return exception_to_error_response(e)


@bp.route('/disconnect', methods=['POST'])
def disconnect():
    """User Data Stream 종료"""
    try:
        status = get_user_stream().stop()
        return create_success_response(data=status, message='User Data Stream 연결이 종료되었습니다.')
    except Exception as e:
        current_app.logger.error(f'User Data Stream 종료 오류: {str(e)}')
        return exception_to_error_response(e)


@bp.route('/messages', methods=['GET'])
def get_messages():
    """버퍼에 쌓인 이벤트 꺼내기 (?limit=)"""
    try:
        limit = to_int(request.args.get('limit'), 'limit')
        if limit is not None and limit <= 0:
            raise ValueError('limit must be a positive integer')

        manager = get_user_stream()
        messages = manager.drain(limit)
        return create_success_response(
            data={'messages': messages, 'count': len(messages)},
            meta={'stream': manager.status()},
            message='메시지를 조회했습니다.'
        )
    except Exception as e:
        current_app.logger.error(f'메시지 조회 오류: {str(e)}')
        return exception_to_error_response(e)
