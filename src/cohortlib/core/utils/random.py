"""
Random number generation for the noise mechanisms.

A single numpy Generator is shared by every mechanism of an aggregator so
that each call draws fresh noise; tests pin it with an explicit seed.
"""
# 说明：噪声机制使用的随机数工具。
# 职责：
# - create_rng：从种子 / SeedSequence / 已有 Generator 构造 numpy Generator
# - default_rng：未显式传入种子时读取 RuntimeConfig.rng_seed（未设置则不固定种子）
# - laplace_noise：以给定尺度采样零均值拉普拉斯噪声

from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np

from .config import get_config


def create_rng(seed: Optional[Any] = None) -> np.random.Generator:
    """Create a numpy Generator from a seed, SeedSequence, or existing generator."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def default_rng() -> np.random.Generator:
    return create_rng(get_config().rng_seed)


def laplace_noise(
    rng: np.random.Generator,
    scale: float,
    size: Optional[Sequence[int]] = None,
) -> Union[float, np.ndarray]:
    if scale <= 0:
        raise ValueError("noise scale must be positive")
    return rng.laplace(0.0, scale, size=size)
