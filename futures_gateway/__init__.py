import os
import time
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask, g, request
from flask_sqlalchemy import SQLAlchemy
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
import atexit

from futures_gateway.config import BinanceSettings, config

# 전역 확장 객체들
db = SQLAlchemy()
scheduler = BackgroundScheduler()

FILE_HANDLER_NAME = 'futures_gateway_file'


def create_app(config_name=None):
    """Flask 애플리케이션 팩토리"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # URL 라우팅 설정
    app.url_map.strict_slashes = False

    # 확장 초기화
    db.init_app(app)

    setup_logging(app)
    register_request_logging(app)

    # 블루프린트 등록
    from futures_gateway.routes import register_blueprints
    register_blueprints(app)

    # 거래소 컴포넌트 초기화 (설정값을 명시적으로 전달)
    init_services(app)

    with app.app_context():
        from futures_gateway import models  # noqa: F401 (테이블 등록)
        db.create_all()
        load_active_credentials(app)

    if app.config.get('POSITION_SYNC_INTERVAL_SECONDS', 0) > 0 and not app.config.get('TESTING'):
        init_scheduler(app)

    app.logger.info('Futures Gateway startup')
    return app


def setup_logging(app):
    """파일/콘솔 로깅 설정"""
    log_file = app.config['LOG_FILE']
    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    # 파일 핸들러 설정
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10240000,
        backupCount=10
    )
    file_handler.name = FILE_HANDLER_NAME
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
    ))

    # 환경별 로깅 레벨 설정
    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper())
    file_handler.setLevel(log_level)

    # app.logger는 'futures_gateway' 로거이므로 하위 모듈 로거도 같은 파일로 기록됨
    # 앱을 다시 만들면 이전 파일 핸들러 교체
    for handler in list(app.logger.handlers):
        if handler.name == FILE_HANDLER_NAME:
            app.logger.removeHandler(handler)
            handler.close()
    app.logger.addHandler(file_handler)
    app.logger.setLevel(log_level)

    # 개발 환경에서는 콘솔에도 출력
    if app.debug:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s'
        ))
        app.logger.addHandler(console_handler)


def register_request_logging(app):
    """요청 로깅 미들웨어: METHOD path status bytes duration"""

    @app.before_request
    def start_request_timer():
        g.request_started_at = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop('request_started_at', None)
        duration_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        size = response.calculate_content_length() or 0
        app.logger.info(f"{request.method} {request.path} {response.status_code} {size}B {duration_ms:.1f}ms")
        return response


def init_services(app):
    """거래소 클라이언트와 서비스 생성 후 app.extensions에 보관"""
    from futures_gateway.exchanges.binance.futures import BinanceFuturesClient
    from futures_gateway.exchanges.binance.user_stream import UserStreamManager
    from futures_gateway.services.trading_service import TradingService

    settings = BinanceSettings.from_config(app.config)
    rest_client = BinanceFuturesClient(settings)
    trading_service = TradingService(settings, rest_client)

    def handle_user_event(event):
        if event.get('e') == 'ORDER_TRADE_UPDATE':
            with app.app_context():
                trading_service.apply_order_update(event.get('o') or {})

    user_stream = UserStreamManager(
        rest_client,
        settings.stream_base_url,
        on_event=handle_user_event,
        keepalive_interval=settings.keepalive_interval,
    )

    app.extensions['binance_settings'] = settings
    app.extensions['trading_service'] = trading_service
    app.extensions['user_stream'] = user_stream


def load_active_credentials(app):
    """환경변수에 API 키가 없으면 DB의 활성 자격 증명 사용"""
    trading_service = app.extensions['trading_service']
    if trading_service.settings.has_credentials:
        return

    credential = trading_service.get_active_api_credentials()
    if credential is None:
        app.logger.warning('⚠️ Binance API 자격 증명이 설정되지 않았습니다')
        return

    try:
        trading_service.use_credentials(credential.api_key, credential.secret_key)
    except ValueError as e:
        app.logger.error(f'❌ 저장된 API 시크릿 복호화 실패: {e}')


def init_scheduler(app):
    """APScheduler 초기화 및 포지션 주기 동기화 등록"""
    if scheduler.running:
        return

    scheduler.configure(
        jobstores={'default': MemoryJobStore()},
        executors={'default': ThreadPoolExecutor(2)},
        job_defaults={'coalesce': True, 'max_instances': 1},
    )

    interval = app.config['POSITION_SYNC_INTERVAL_SECONDS']
    scheduler.add_job(
        func=sync_positions_with_context,
        args=[app],
        trigger='interval',
        seconds=interval,
        id='position_sync',
        name='Periodic Position Sync',
        replace_existing=True,
    )

    scheduler.start()
    app.logger.info(f'APScheduler 시작됨 - 포지션 동기화 {interval}초 주기')

    # 애플리케이션 종료 시 스케줄러도 종료
    def shutdown_scheduler():
        if scheduler.running:
            scheduler.shutdown()
    atexit.register(shutdown_scheduler)


def sync_positions_with_context(app):
    """Flask 앱 컨텍스트 내에서 포지션 동기화"""
    from futures_gateway.exchanges.exceptions import ExchangeError

    with app.app_context():
        try:
            positions = app.extensions['trading_service'].sync_positions()
            app.logger.debug(f'포지션 동기화 완료: {len(positions)}개')
        except ExchangeError as e:
            app.logger.error(f'포지션 동기화 실패: {str(e)}')
