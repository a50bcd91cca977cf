# @FEAT:api-credentials @COMP:route @TYPE:core
"""
API Credential Routes

Binance API 키 저장(시크릿 암호화) 및 조회
"""
from flask import Blueprint, current_app, request

from futures_gateway import db
from futures_gateway.routes import get_trading_service
from futures_gateway.services.utils import to_bool
from futures_gateway.utils.response_formatter import (
    ErrorCode,
    create_error_response,
    create_success_response,
    exception_to_error_response,
)

bp = Blueprint('credentials', __name__, url_prefix='/api')


@bp.route('/credentials', methods=['GET'])
def get_credentials():
    """저장된 자격 증명 목록 (API 키는 마스킹, 시크릿 미포함)"""
    try:
        active_only = to_bool(request.args.get('active_only'))
        credentials = get_trading_service().get_api_credentials(active_only=active_only)
        return create_success_response(
            data={'credentials': credentials},
            message='자격 증명 목록을 조회했습니다.'
        )
    except Exception as e:
        current_app.logger.error(f'자격 증명 조회 오류: {str(e)}')
        return exception_to_error_response(e)


@bp.route('/credentials', methods=['POST'])
def save_credentials():
    """자격 증명 저장 (api_key 기준 upsert)"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return create_error_response(
            error_code=ErrorCode.INVALID_JSON,
            message='유효하지 않은 JSON 데이터입니다.'
        )

    try:
        credential = get_trading_service().save_api_credentials(data)
        current_app.logger.info(f'API 자격 증명 저장: {credential["api_key"]}')
        return create_success_response(data=credential, message='자격 증명이 저장되었습니다.')
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'자격 증명 저장 오류: {str(e)}')
        return exception_to_error_response(e)
