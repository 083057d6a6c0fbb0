"""
Logging helpers with privacy-aware defaults.

Records never carry raw user ids or API keys once `PrivacyFilter` is
attached: the ``user_id``/``api_key``/``pii``/``payload`` extras are masked
and issued keys appearing in message text are redacted to their prefix.
"""
# 说明：隐私友好的日志工具。
# 职责：
# - PrivacyFilter：掩码敏感的 extra 字段，并把消息正文中出现的完整 API key 替换为 "lpct_***"
# - configure_logging(...)：初始化 logging 并在根 logger 及其 handler 上挂载过滤器
# - get_logger(...)：按名称获取 logger，必要时自动完成日志系统初始化
# 约定：
# - 是否掩码由 RuntimeConfig.mask_sensitive_fields 控制
# - 日志级别优先级：显式参数 level > 环境变量 COHORTLIB_LOG_LEVEL > 运行时配置的 log_level

from __future__ import annotations

import logging
import os
import re
from typing import Optional

from .config import get_config

SENSITIVE_ATTRIBUTES = ("user_id", "api_key", "pii", "payload")
LOG_FORMAT = "[%(levelname)s] %(name)s %(asctime)s | %(message)s"
_API_KEY_IN_TEXT = re.compile(r"lpct_[A-Za-z0-9]{32}")


class PrivacyFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not get_config().mask_sensitive_fields:
            return True
        for attr in SENSITIVE_ATTRIBUTES:
            if hasattr(record, attr):
                setattr(record, attr, "***")
        message = record.getMessage()
        if _API_KEY_IN_TEXT.search(message):
            record.msg = _API_KEY_IN_TEXT.sub("lpct_***", message)
            record.args = None
        return True


def configure_logging(level: Optional[str] = None) -> None:
    log_level = level or os.environ.get("COHORTLIB_LOG_LEVEL", get_config().log_level)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(log_level)
    if not any(isinstance(f, PrivacyFilter) for f in root.filters):
        root.addFilter(PrivacyFilter())
    # 根 logger 的 filter 不作用于子 logger 传播上来的记录
    for handler in root.handlers:
        if not any(isinstance(f, PrivacyFilter) for f in handler.filters):
            handler.addFilter(PrivacyFilter())


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, PrivacyFilter) for f in logger.filters):
        logger.addFilter(PrivacyFilter())
    if not logging.getLogger().handlers:
        configure_logging()
    return logger
