"""
Weekly-rotating opaque identifiers for shared cohorts.
"""
# 说明：对外共享 cohort 时的匿名标识。
# 职责：
# - anonymize：HMAC-SHA256(secret, "topic_id|topic_name|ISO 周") 映射到无元音字母表，
#   输出 "cohort_" + 24 个字符
# 约定：
# - 同一 ISO 周内稳定，跨周轮换
# - 字母表不含元音与数字，输出中不可能出现主题 id 或主题名称

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime
from typing import Optional, Union

from ..core.utils.clock import Clock, SystemClock, ensure_utc

ID_PREFIX = "cohort_"
ID_LENGTH = 24
ALPHABET = "bcdfghjklmnpqrst"


def iso_week_label(moment: datetime) -> str:
    year, week, _ = ensure_utc(moment).isocalendar()
    return f"{year}-W{week:02d}"


class CohortAnonymizer:
    def __init__(self, secret: Optional[Union[str, bytes]] = None, clock: Optional[Clock] = None):
        if secret is None:
            secret = secrets.token_bytes(32)
        self._secret = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        self.clock: Clock = clock or SystemClock()

    def anonymize(self, topic_id: int, topic_name: str, now: Optional[datetime] = None) -> str:
        message = f"{topic_id}|{topic_name}|{iso_week_label(now or self.clock.now())}"
        digest = hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).digest()
        # 每个字节取低 4 位映射到 16 字符字母表
        body = "".join(ALPHABET[b & 0x0F] for b in digest[:ID_LENGTH])
        return ID_PREFIX + body
