"""
서비스 계층 공통 입력 변환 유틸리티

요청 JSON 값을 Decimal/int/bool로 변환하며, 잘못된 값은 ValueError로 알린다.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional


def to_decimal(value: Any, field: str = 'value') -> Optional[Decimal]:
    """값을 Decimal로 변환 (None/빈 문자열은 None)

    Examples:
        >>> to_decimal('0.001')
        Decimal('0.001')
        >>> to_decimal(None) is None
        True

    Raises:
        ValueError: 숫자가 아닌 값
    """
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number, got {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number, got {value!r}")
    return result


def decimal_to_float(value: Optional[Decimal]) -> Optional[float]:
    """Decimal을 DB 저장용 float로 변환"""
    return float(value) if value is not None else None


def to_int(value: Any, field: str = 'value') -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be an integer, got {value!r}")


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def to_timestamp_ms(value: Any, field: str = 'good_till_date') -> Optional[int]:
    """ms 정수 또는 ISO-8601 문자열을 ms 타임스탬프로 변환"""
    if value is None or value == '':
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        if value.isdigit():
            return int(value)
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise ValueError(f"{field} must be epoch ms or ISO-8601, got {value!r}")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    raise ValueError(f"{field} must be epoch ms or ISO-8601, got {value!r}")


def split_csv(value: Optional[str]) -> List[str]:
    """'1,2, 3' → ['1', '2', '3'] (빈 항목 제거)"""
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def require_fields(data: Dict[str, Any], *fields: str):
    """필수 필드 누락 검사

    Raises:
        ValueError: 누락된 필드 목록 포함
    """
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValueError(f"missing required fields: {', '.join(missing)}")
