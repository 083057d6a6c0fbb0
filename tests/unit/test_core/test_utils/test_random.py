"""
Unit tests for RNG helpers.
"""
# 说明：随机数工具的单元测试。
# 覆盖：
# - create_rng：相同种子可复现，已有 Generator 原样返回
# - default_rng：读取运行时配置中的种子
# - laplace_noise：形状与非法尺度

import numpy as np
import pytest

from cohortlib.core.utils import configure, create_rng, default_rng, laplace_noise


def test_create_rng_is_reproducible() -> None:
    assert create_rng(7).random() == create_rng(7).random()
    rng = np.random.default_rng(1)
    assert create_rng(rng) is rng


def test_default_rng_uses_configured_seed() -> None:
    configure(rng_seed=42)
    try:
        assert default_rng().random() == create_rng(42).random()
    finally:
        configure(rng_seed=None)


def test_laplace_noise() -> None:
    rng = create_rng(0)
    assert isinstance(laplace_noise(rng, 1.0), float)
    assert laplace_noise(rng, 0.5, size=(2, 3)).shape == (2, 3)
    with pytest.raises(ValueError):
        laplace_noise(rng, 0.0)
