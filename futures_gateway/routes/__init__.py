"""
HTTP 라우트 블루프린트 등록

@FEAT:framework @COMP:route @TYPE:core
"""
from flask import current_app


def get_trading_service():
    """현재 앱의 TradingService"""
    return current_app.extensions['trading_service']


def get_user_stream():
    """현재 앱의 UserStreamManager"""
    return current_app.extensions['user_stream']


def register_blueprints(app):
    """모든 블루프린트 등록"""
    from futures_gateway.routes.health import health_bp
    from futures_gateway.routes.futures import bp as futures_bp
    from futures_gateway.routes.positions import bp as positions_bp
    from futures_gateway.routes.credentials import bp as credentials_bp
    from futures_gateway.routes.keys import bp as keys_bp
    from futures_gateway.routes.websocket import bp as websocket_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(futures_bp)
    app.register_blueprint(positions_bp)
    app.register_blueprint(credentials_bp)
    app.register_blueprint(keys_bp)
    app.register_blueprint(websocket_bp)
