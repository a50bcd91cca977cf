"""
헬스체크 엔드포인트

@FEAT:health-monitoring @COMP:route @TYPE:core
"""
from datetime import datetime

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from futures_gateway import db
from futures_gateway.routes import get_user_stream

health_bp = Blueprint('health', __name__)


# @FEAT:health-monitoring @COMP:route @TYPE:core
@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    시스템 헬스체크 엔드포인트
    - 데이터베이스 연결 상태
    - 거래소 환경(testnet 여부)과 User Data Stream 상태
    """
    try:
        db.session.execute(text('SELECT 1'))
        db_status = "healthy"
    except SQLAlchemyError as e:
        current_app.logger.error(f'헬스체크 DB 오류: {str(e)}')
        db_status = f"error: {str(e)}"

    settings = current_app.extensions['binance_settings']

    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'database': db_status,
        'testnet': settings.testnet,
        'user_stream': get_user_stream().status(),
        'service': 'futures-gateway'
    }), 200
