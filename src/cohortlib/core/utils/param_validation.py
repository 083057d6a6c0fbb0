"""
Reusable validation helpers.
"""
# 说明：参数验证相关的辅助函数，用于在库内部统一进行轻量级参数检查。
# 职责：
# - ParamValidationError：专门用于参数校验失败的异常类型（构造期/配置期错误）
# - ensure：基于布尔条件触发校验错误的轻量断言工具，可指定异常类型
# - ensure_type：检查参数是否属于指定类型集合
# - ensure_non_empty_str：检查字符串字段非空（去除首尾空白后）

from __future__ import annotations

from typing import Any, Tuple, Type


class ParamValidationError(ValueError):
    """Raised when parameter validation fails."""


def ensure(condition: bool, message: str, *, error: Type[Exception] = ParamValidationError) -> None:
    if not condition:
        raise error(message)


def ensure_type(value: Any, expected: Tuple[type, ...], *, label: str = "value") -> None:
    if not isinstance(value, expected):
        names = ", ".join(t.__name__ for t in expected)
        raise ParamValidationError(f"{label} must be instance of {names}")


def ensure_non_empty_str(
    value: Any,
    label: str,
    *,
    error: Type[Exception] = ParamValidationError,
) -> str:
    # 非字符串或仅包含空白字符均视为缺失
    if not isinstance(value, str) or not value.strip():
        raise error(f"{label} is required")
    return value
