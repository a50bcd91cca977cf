#!/usr/bin/env python3
"""
Binance Futures 게이트웨이 메인 실행 파일
"""
import os
from futures_gateway import create_app

app = create_app()

if __name__ == '__main__':
    # 개발 환경에서만 debug=True
    debug_mode = os.environ.get('FLASK_ENV') == 'development'

    port = app.config['PORT']

    print(f"Starting HTTP server on port {port}...")

    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug_mode,
        # 백그라운드 스레드(User Data Stream, 스케줄러)가 두 번 뜨지 않도록
        use_reloader=False
    )
