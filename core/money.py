"""
금액 유틸리티

고정 소수점 Decimal(소수 2자리, 정수부 최대 15자리) 변환 및 검증.
모든 금액은 변경 시도 전에 이 모듈로 검증.
"""

from decimal import Decimal, InvalidOperation

from core.constants import MoneyLimits
from core.errors import ValidationError


def to_money(value: Decimal | int | str, field_name: str = "amount") -> Decimal:
    """금액을 Decimal(소수 2자리)로 변환

    반올림하지 않음. 소수 3자리 이상은 거부.
    float은 이진 표현 오차 때문에 거부.

    Args:
        value: Decimal, int 또는 숫자 문자열
        field_name: 에러 메시지용 필드 이름

    Returns:
        소수 2자리로 정규화된 Decimal

    Raises:
        ValidationError: 형식 또는 정밀도 위반
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field_name} must be a Decimal, int or str, got {type(value).__name__}")

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name} is not a number: {value!r}") from e

    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite: {value!r}")

    exponent = amount.normalize().as_tuple().exponent
    if isinstance(exponent, int) and exponent < -MoneyLimits.FRACTION_DIGITS:
        raise ValidationError(
            f"{field_name} must have at most {MoneyLimits.FRACTION_DIGITS} fraction digits: {value}"
        )

    # adjusted(): 최상위 자릿수의 지수 (123.45 → 2)
    if amount and amount.adjusted() >= MoneyLimits.INTEGER_DIGITS:
        raise ValidationError(
            f"{field_name} must have at most {MoneyLimits.INTEGER_DIGITS} integer digits: {value}"
        )

    return amount.quantize(MoneyLimits.QUANTUM)


def validate_positive_amount(value: Decimal | int | str, field_name: str = "amount") -> Decimal:
    """양수 금액 검증 (> 0)"""
    amount = to_money(value, field_name)
    if amount <= MoneyLimits.ZERO:
        raise ValidationError(f"{field_name} must be positive: {value}")
    return amount


def validate_non_negative_amount(value: Decimal | int | str, field_name: str = "amount") -> Decimal:
    """0 이상 금액 검증"""
    amount = to_money(value, field_name)
    if amount < MoneyLimits.ZERO:
        raise ValidationError(f"{field_name} cannot be negative: {value}")
    return amount


def parse_stored(value: str | None) -> Decimal:
    """DB에 TEXT로 저장된 금액 복원"""
    if value is None:
        return MoneyLimits.ZERO
    return Decimal(value).quantize(MoneyLimits.QUANTUM)
