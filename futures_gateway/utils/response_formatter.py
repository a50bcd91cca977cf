# @FEAT:framework @COMP:util @TYPE:helper
"""
표준화된 API 응답 포맷터
일관된 응답 구조 및 거래소 예외 → HTTP 상태 변환
"""

from typing import Dict, Any, Optional, Union, List
from flask import jsonify
from datetime import datetime
import uuid

from futures_gateway.exchanges.exceptions import (
    AuthenticationError,
    DeadlineExceeded,
    ExchangeError,
    InvalidOrder,
    KeyMaterialError,
    NetworkError,
    OrderNotFound,
    WSAPIError,
    WSDecodeError,
)


class ErrorCode:
    """표준 에러 코드 상수"""

    # 일반적인 에러 (1000번대)
    UNKNOWN_ERROR = "E1000"
    INTERNAL_SERVER_ERROR = "E1001"
    SERVICE_UNAVAILABLE = "E1002"
    TIMEOUT_ERROR = "E1003"
    SIGNING_KEY_ERROR = "E1004"
    BAD_GATEWAY = "E1005"

    # 요청 관련 에러 (2000번대)
    BAD_REQUEST = "E2000"
    INVALID_JSON = "E2001"
    MISSING_REQUIRED_FIELD = "E2002"
    INVALID_PARAMETER = "E2003"

    # 인증 에러 (3000번대)
    UNAUTHORIZED = "E3000"

    # 리소스 관련 에러 (4000번대)
    RESOURCE_NOT_FOUND = "E4001"
    ORDER_NOT_FOUND = "E4005"

    # 거래소 에러 (5000번대)
    INVALID_ORDER = "E5003"
    EXCHANGE_ERROR = "E5006"
    EXCHANGE_REJECTED = "E5008"


class ErrorType:
    """에러 타입 분류"""

    SYSTEM = "system"
    BUSINESS = "business"
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    RESOURCE = "resource"


# 에러 코드와 HTTP 상태 코드 매핑
ERROR_HTTP_STATUS_MAPPING = {
    ErrorCode.UNKNOWN_ERROR: 500,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.TIMEOUT_ERROR: 504,
    ErrorCode.SIGNING_KEY_ERROR: 500,
    ErrorCode.BAD_GATEWAY: 502,

    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.INVALID_JSON: 400,
    ErrorCode.MISSING_REQUIRED_FIELD: 400,
    ErrorCode.INVALID_PARAMETER: 400,

    ErrorCode.UNAUTHORIZED: 401,

    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.ORDER_NOT_FOUND: 404,

    # 잘못된 주문 파라미터는 요청 오류로 취급
    ErrorCode.INVALID_ORDER: 400,
    ErrorCode.EXCHANGE_ERROR: 422,
    ErrorCode.EXCHANGE_REJECTED: 422,
}

# 에러 코드와 타입 매핑
ERROR_TYPE_MAPPING = {
    ErrorCode.UNKNOWN_ERROR: ErrorType.SYSTEM,
    ErrorCode.INTERNAL_SERVER_ERROR: ErrorType.SYSTEM,
    ErrorCode.SERVICE_UNAVAILABLE: ErrorType.SYSTEM,
    ErrorCode.TIMEOUT_ERROR: ErrorType.SYSTEM,
    ErrorCode.SIGNING_KEY_ERROR: ErrorType.SYSTEM,
    ErrorCode.BAD_GATEWAY: ErrorType.SYSTEM,

    ErrorCode.BAD_REQUEST: ErrorType.VALIDATION,
    ErrorCode.INVALID_JSON: ErrorType.VALIDATION,
    ErrorCode.MISSING_REQUIRED_FIELD: ErrorType.VALIDATION,
    ErrorCode.INVALID_PARAMETER: ErrorType.VALIDATION,

    ErrorCode.UNAUTHORIZED: ErrorType.AUTHENTICATION,

    ErrorCode.RESOURCE_NOT_FOUND: ErrorType.RESOURCE,
    ErrorCode.ORDER_NOT_FOUND: ErrorType.RESOURCE,

    ErrorCode.INVALID_ORDER: ErrorType.VALIDATION,
    ErrorCode.EXCHANGE_ERROR: ErrorType.BUSINESS,
    ErrorCode.EXCHANGE_REJECTED: ErrorType.BUSINESS,
}


class ResponseFormatter:
    """API 응답 포맷터"""

    @staticmethod
    def success(data: Any = None, message: str = "Success", meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """성공 응답 생성"""
        response = {
            "success": True,
            "message": message,
            "data": data,
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "request_id": str(uuid.uuid4())[:8]
        }

        if meta:
            response["meta"] = meta

        return response

    @staticmethod
    def error(
        error_code: str,
        message: str,
        details: Optional[Union[str, Dict[str, Any], List[str]]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """에러 응답 생성"""

        response = {
            "success": False,
            "error": {
                "code": error_code,
                "type": ERROR_TYPE_MAPPING.get(error_code, ErrorType.SYSTEM),
                "message": message,
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "request_id": request_id or str(uuid.uuid4())[:8]
            }
        }

        if details:
            response["error"]["details"] = details

        return response


def create_error_response(
    error_code: str,
    message: str,
    details: Optional[Union[str, Dict[str, Any], List[str]]] = None
) -> tuple:
    """에러 응답 생성 단축 함수"""

    response_data = ResponseFormatter.error(
        error_code=error_code,
        message=message,
        details=details
    )

    http_status = ERROR_HTTP_STATUS_MAPPING.get(error_code, 500)
    return jsonify(response_data), http_status


def create_success_response(
    data: Any = None,
    message: str = "Success",
    meta: Optional[Dict[str, Any]] = None,
    status: int = 200
) -> tuple:
    """성공 응답 생성 단축 함수"""

    response_data = ResponseFormatter.success(data=data, message=message, meta=meta)
    return jsonify(response_data), status


def _exchange_details(exception: ExchangeError) -> Dict[str, Any]:
    details: Dict[str, Any] = {"error": str(exception)}
    if exception.code is not None:
        details["exchange_code"] = exception.code
    if isinstance(exception, WSAPIError):
        details["status"] = exception.status
        if exception.msg:
            details["exchange_message"] = exception.msg
    return details


# 예외를 표준 응답으로 변환 (하위 클래스를 먼저 검사)
def exception_to_error_response(exception: Exception) -> tuple:
    """예외를 표준 에러 응답으로 변환"""

    # 서명 키 파일 문제 (서버 설정 오류)
    if isinstance(exception, KeyMaterialError):
        return create_error_response(
            error_code=ErrorCode.SIGNING_KEY_ERROR,
            message="서명 키를 불러올 수 없습니다",
            details=str(exception)
        )

    elif isinstance(exception, AuthenticationError):
        return create_error_response(
            error_code=ErrorCode.UNAUTHORIZED,
            message="거래소 인증에 실패했습니다",
            details=_exchange_details(exception)
        )

    elif isinstance(exception, InvalidOrder):
        return create_error_response(
            error_code=ErrorCode.INVALID_ORDER,
            message="잘못된 주문입니다",
            details=str(exception)
        )

    elif isinstance(exception, OrderNotFound):
        return create_error_response(
            error_code=ErrorCode.ORDER_NOT_FOUND,
            message="주문을 찾을 수 없습니다",
            details=str(exception)
        )

    # 데드라인 초과는 연결 오류와 구분
    elif isinstance(exception, DeadlineExceeded):
        return create_error_response(
            error_code=ErrorCode.TIMEOUT_ERROR,
            message="거래소 응답 시간이 초과되었습니다",
            details=str(exception)
        )

    elif isinstance(exception, NetworkError):
        return create_error_response(
            error_code=ErrorCode.SERVICE_UNAVAILABLE,
            message="거래소에 연결할 수 없습니다",
            details=str(exception)
        )

    elif isinstance(exception, WSDecodeError):
        return create_error_response(
            error_code=ErrorCode.BAD_GATEWAY,
            message="거래소 응답을 해석할 수 없습니다",
            details=str(exception)
        )

    elif isinstance(exception, WSAPIError):
        return create_error_response(
            error_code=ErrorCode.EXCHANGE_REJECTED,
            message="거래소가 요청을 거절했습니다",
            details=_exchange_details(exception)
        )

    elif isinstance(exception, ExchangeError):
        return create_error_response(
            error_code=ErrorCode.EXCHANGE_ERROR,
            message="거래소 오류가 발생했습니다",
            details=_exchange_details(exception)
        )

    elif isinstance(exception, ValueError):
        return create_error_response(
            error_code=ErrorCode.INVALID_PARAMETER,
            message="잘못된 매개변수입니다",
            details=str(exception)
        )

    # 기타 모든 예외
    else:
        return create_error_response(
            error_code=ErrorCode.INTERNAL_SERVER_ERROR,
            message="내부 서버 오류가 발생했습니다",
            details=str(exception)
        )
