"""
Unit tests for the Laplace mechanism.
"""
# 说明：拉普拉斯机制的单元测试。
# 覆盖：
# - scale = sensitivity / epsilon
# - 相同种子可复现；共享 Generator 时每次调用重新采样
# - noisy_count 恒为非负整数；noisy_amount 非负且保留两位小数
# - 非法 epsilon / sensitivity / 输入的 ParamValidationError

import numpy as np
import pytest

from cohortlib.core.privacy import LaplaceMechanism
from cohortlib.core.utils import ParamValidationError, create_rng


def test_scale_from_epsilon_and_sensitivity() -> None:
    mech = LaplaceMechanism(epsilon=0.25, sensitivity=1.0, rng=0)
    assert mech.scale == pytest.approx(4.0)
    assert mech.describe()["scale"] == pytest.approx(4.0)
    assert LaplaceMechanism(epsilon=2.0, sensitivity=3.0).scale == pytest.approx(1.5)


def test_same_seed_reproduces_noise() -> None:
    a = LaplaceMechanism(epsilon=1.0, rng=11).randomise(10.0)
    b = LaplaceMechanism(epsilon=1.0, rng=11).randomise(10.0)
    assert a == b


def test_shared_generator_draws_fresh_noise() -> None:
    rng = create_rng(5)
    first = LaplaceMechanism(epsilon=1.0, rng=rng)
    second = LaplaceMechanism(epsilon=1.0, rng=rng)
    values = {first.randomise(0.0), second.randomise(0.0), first.randomise(0.0)}
    assert len(values) == 3


def test_randomise_preserves_array_shape() -> None:
    noisy = LaplaceMechanism(epsilon=1.0, rng=1).randomise(np.zeros((2, 3)))
    assert noisy.shape == (2, 3)


def test_noisy_count_never_negative() -> None:
    mech = LaplaceMechanism(epsilon=0.1, rng=3)
    counts = [mech.noisy_count(0) for _ in range(200)]
    assert all(isinstance(c, int) and c >= 0 for c in counts)


@pytest.mark.parametrize("kwargs", [{"epsilon": 0}, {"epsilon": -1.0}, {"epsilon": True}, {"sensitivity": 0}])
def test_invalid_parameters_rejected(kwargs) -> None:
    with pytest.raises(ParamValidationError):
        LaplaceMechanism(**kwargs)


def test_string_input_rejected() -> None:
    with pytest.raises(ParamValidationError):
        LaplaceMechanism(rng=0).randomise("10")


def test_noisy_amount_rounded_to_cents() -> None:
    mech = LaplaceMechanism(epsilon=1.0, rng=9)
    amounts = [mech.noisy_amount(2.5) for _ in range(100)]
    assert all(a >= 0 and round(a, 2) == a for a in amounts)


def test_tuple_input_returns_tuple() -> None:
    noisy = LaplaceMechanism(epsilon=1.0, rng=2).randomise((1.0, 2.0))
    assert isinstance(noisy, tuple) and len(noisy) == 2
