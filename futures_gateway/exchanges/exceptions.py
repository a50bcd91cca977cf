"""
거래소 공통 예외 클래스

REST / WebSocket API / 서명 계층이 모두 사용하는 예외를 정의합니다.

@FEAT:exchange-integration @COMP:model @TYPE:boilerplate
"""


class ExchangeError(Exception):
    """거래소 API 기본 에러"""
    def __init__(self, message: str, code: int = None, response: dict = None):
        super().__init__(message)
        self.code = code
        self.response = response


class NetworkError(ExchangeError):
    """네트워크 에러"""
    pass


class AuthenticationError(ExchangeError):
    """인증 에러"""
    pass


class InvalidOrder(ExchangeError):
    """잘못된 주문 에러"""
    pass


class OrderNotFound(ExchangeError):
    """주문을 찾을 수 없음"""
    pass


# @FEAT:ws-api @COMP:model @TYPE:core
class WSConnectionError(NetworkError):
    """WebSocket 연결/송수신 실패 - 채널 재사용 불가, 새 채널을 열어야 함"""
    pass


# @FEAT:ws-api @COMP:model @TYPE:core
class DeadlineExceeded(NetworkError):
    """호출자가 지정한 데드라인 초과 (연결 끊김과 구분)"""
    pass


# @FEAT:ws-api @COMP:model @TYPE:core
class WSAPIError(ExchangeError):
    """응답 envelope의 status가 200이 아닌 경우 (거래소가 요청을 거절)"""
    def __init__(self, message: str, code: int = None, response: dict = None,
                 status: int = None, msg: str = None):
        super().__init__(message, code=code, response=response)
        self.status = status
        self.msg = msg


# @FEAT:ws-api @COMP:model @TYPE:core
class WSDecodeError(ExchangeError):
    """응답 JSON 파싱 실패 또는 결과 형태 불일치"""
    pass


# @FEAT:ws-api @COMP:model @TYPE:core
class KeyMaterialError(AuthenticationError):
    """Ed25519 키 파일 누락/형식 오류 - 서명 없는 요청으로 대체하지 않음"""
    pass
