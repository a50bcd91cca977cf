# @FEAT:position-sync @COMP:route @TYPE:core
"""
Position Routes

로컬 포지션 조회와 거래소 포지션 동기화
"""
from flask import Blueprint, current_app, request

from futures_gateway import db
from futures_gateway.routes import get_trading_service
from futures_gateway.utils.response_formatter import (
    create_success_response,
    exception_to_error_response,
)

bp = Blueprint('positions', __name__, url_prefix='/api')


@bp.route('/positions', methods=['GET'])
def get_positions():
    """저장된 포지션 목록 (?type=FUTURES)"""
    try:
        positions = get_trading_service().get_positions(request.args.get('type'))
        return create_success_response(
            data={'positions': positions, 'count': len(positions)},
            message='포지션 목록을 조회했습니다.'
        )
    except Exception as e:
        current_app.logger.error(f'포지션 조회 오류: {str(e)}')
        return exception_to_error_response(e)


# @FEAT:position-sync @COMP:route @TYPE:core
@bp.route('/positions/sync', methods=['POST'])
def sync_positions():
    """거래소 포지션 리스크 기준으로 로컬 포지션 동기화"""
    try:
        positions = get_trading_service().sync_positions()
        current_app.logger.info(f'포지션 동기화 완료: {len(positions)}개')
        return create_success_response(
            data={'positions': positions, 'count': len(positions)},
            message='포지션이 동기화되었습니다.'
        )
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'포지션 동기화 오류: {str(e)}')
        return exception_to_error_response(e)
