"""
Laplace mechanism for pure epsilon-differential privacy.

Responsibilities:
    * derive the noise scale ``sensitivity / epsilon``
    * perturb counts (rounded, never negative) and monetary amounts
      (rounded to cents, never negative)
"""
# 说明：纯 (ε, 0)-DP 的拉普拉斯机制。
# 职责：
# - scale = sensitivity / epsilon，构造后即可使用
# - randomise：对标量、序列、NumPy 数组逐元素加噪
# - noisy_count：计数加噪后四舍五入并截断为非负整数
# - noisy_amount：金额加噪后截断为非负并保留两位小数
# 约定：
# - rng 可为种子或共享的 numpy Generator；共享时每次调用都会重新采样

from __future__ import annotations

import numbers
from typing import Any, Dict, Optional

import numpy as np

from ..utils.param_validation import ParamValidationError
from ..utils.random import create_rng, laplace_noise


def _positive(value: Any, label: str) -> float:
    if not isinstance(value, numbers.Real) or isinstance(value, bool) or value <= 0:
        raise ParamValidationError(f"{label} must be a positive real number")
    return float(value)


class LaplaceMechanism:
    """Add Laplace noise calibrated to a fixed epsilon and sensitivity."""

    def __init__(
        self,
        epsilon: float = 1.0,
        sensitivity: float = 1.0,
        rng: Optional[Any] = None,
        name: Optional[str] = None,
    ):
        self.epsilon = _positive(epsilon, "epsilon")
        self.sensitivity = _positive(sensitivity, "sensitivity")
        self.name = name or "laplace"
        self._rng: np.random.Generator = create_rng(rng)

    @property
    def scale(self) -> float:
        return self.sensitivity / self.epsilon

    def randomise(self, value: Any) -> Any:
        if isinstance(value, (str, bytes)):
            raise ParamValidationError("value must be numeric, sequence, or ndarray")
        try:
            arr = np.asarray(value, dtype=float)
        except (TypeError, ValueError) as exc:
            raise ParamValidationError("value must be numeric, sequence, or ndarray") from exc
        if arr.ndim == 0:
            return float(arr + laplace_noise(self._rng, self.scale))
        noisy = arr + laplace_noise(self._rng, self.scale, size=arr.shape)
        if isinstance(value, np.ndarray):
            return noisy
        return tuple(noisy.tolist()) if isinstance(value, tuple) else noisy.tolist()

    def noisy_count(self, count: int) -> int:
        return max(0, int(round(self.randomise(float(count)))))

    def noisy_amount(self, amount: float) -> float:
        return max(0.0, round(self.randomise(float(amount)), 2))

    def describe(self) -> Dict[str, Any]:
        return {
            "mechanism": "laplace",
            "name": self.name,
            "epsilon": self.epsilon,
            "sensitivity": self.sensitivity,
            "scale": self.scale,
        }

    def __repr__(self) -> str:
        return f"<LaplaceMechanism name={self.name} eps={self.epsilon} scale={self.scale}>"
