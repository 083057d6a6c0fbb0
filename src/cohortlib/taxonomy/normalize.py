"""Domain normalisation shared by the mapper and the visit table."""

from __future__ import annotations

import re

_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://")


def normalize_domain(domain: str) -> str:
    """Lower-case host without scheme, ``www.`` prefix, path or port."""
    normalized = domain.strip().lower()
    normalized = _SCHEME.sub("", normalized)
    # 去掉路径、查询串与片段
    normalized = re.split(r"[/?#]", normalized, maxsplit=1)[0]
    # 去掉用户信息与端口
    normalized = normalized.rsplit("@", 1)[-1]
    normalized = normalized.split(":", 1)[0]
    if normalized.startswith("www."):
        normalized = normalized[4:]
    return normalized.strip(".")
