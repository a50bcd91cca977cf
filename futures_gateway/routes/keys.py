# @FEAT:ws-api @COMP:route @TYPE:helper
"""
Signing Key Routes

WebSocket API 서명용 Ed25519 키 생성
"""
from flask import Blueprint, current_app, request

from futures_gateway.routes import get_trading_service
from futures_gateway.services.utils import to_bool
from futures_gateway.utils.response_formatter import (
    create_success_response,
    exception_to_error_response,
)

bp = Blueprint('keys', __name__, url_prefix='/api/keys')


@bp.route('/ed25519/generate', methods=['POST'])
def generate_ed25519():
    """Ed25519 키 쌍 생성 후 설정된 경로에 시드 저장

    공개키는 Binance API 관리 화면에 등록해야 한다.
    기존 키 파일은 {"overwrite": true}일 때만 교체한다.
    """
    data = request.get_json(silent=True) or {}
    try:
        overwrite = to_bool(data.get('overwrite')) if isinstance(data, dict) else False
        key_info = get_trading_service().generate_signing_key(overwrite=overwrite)
        current_app.logger.info(f'🔑 Ed25519 키 생성: {key_info["path"]}')
        return create_success_response(data=key_info, message='Ed25519 키가 생성되었습니다.')
    except Exception as e:
        current_app.logger.error(f'Ed25519 키 생성 오류: {str(e)}')
        return exception_to_error_response(e)
