"""
Property-based tests for the API layer.
"""
# 说明：API 层的属性测试。
# 覆盖：
# - 匿名标识格式固定、不含数字，同一周内确定
# - 同一分钟内放行的请求数恰为 min(请求数, 各窗口上限的最小值)

from hypothesis import given, settings, strategies as st

from cohortlib.api import CohortAnonymizer, RateLimiter
from cohortlib.core.errors import RateLimitError
from cohortlib.core.utils.clock import ManualClock

from strategies import BASE_TIME, rate_limit_configs, topics

ALPHABET = set("bcdfghjklmnpqrst")


@given(topics(), st.binary(min_size=1, max_size=64))
def test_anonymized_id_shape(topic, secret):
    topic_id, name = topic
    anonymizer = CohortAnonymizer(secret=secret, clock=ManualClock(BASE_TIME))
    cohort_id = anonymizer.anonymize(topic_id, name)
    assert cohort_id.startswith("cohort_")
    body = cohort_id[len("cohort_"):]
    assert len(body) == 24 and set(body) <= ALPHABET
    assert anonymizer.anonymize(topic_id, name) == cohort_id


@settings(deadline=None)
@given(rate_limit_configs(), st.integers(min_value=0, max_value=120))
def test_rate_limiter_grants_exact_quota(config, attempts):
    limiter = RateLimiter(ManualClock(BASE_TIME))
    granted = 0
    for _ in range(attempts):
        try:
            limiter.acquire("k", config)
            granted += 1
        except RateLimitError:
            pass
    ceiling = min(config.requests_per_minute, config.requests_per_hour, config.requests_per_day)
    assert granted == min(attempts, ceiling)
