"""
Per-user domain visit table and the sensitive-domain filter.

Responsibilities:
    * drop visits to sensitive domains before anything is recorded
    * keep one saturating counter per distinct domain
    * bound the table size, evicting the least recently visited domains
"""
# 说明：域名访问表与敏感域名过滤。
# 职责：
# - is_sensitive_domain：精确名单、敏感顶级域（.gov/.mil/.edu）、敏感关键词、localhost/内网 IP
# - DomainVisitTable.record：规范化域名、过滤敏感域、计数封顶、超出容量时淘汰最久未访问的域名
# - prune_older_than / recent：按末次访问时间裁剪或筛选
# 约定：
# - 访问表本身不加锁，由 CohortEngine 的按用户写锁串行化修改
# - 记录不可变，visits() / recent() 返回的元组即为快照

from __future__ import annotations

import ipaddress
from datetime import datetime
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.utils.clock import ensure_utc
from ..taxonomy.normalize import normalize_domain
from .models import DomainVisit

SENSITIVE_KEYWORDS: Tuple[str, ...] = (
    # finance
    "bank", "banking", "credit", "loan", "mortgage", "finance",
    "paypal", "stripe", "venmo", "cashapp", "zelle",
    # health
    "health", "medical", "hospital", "clinic", "doctor", "pharmacy",
    "medicine", "patient", "therapy", "mental",
    # government and legal
    "gov", "irs", "tax", "court", "legal", "lawyer",
    # adult
    "adult", "porn", "xxx", "sex",
    # personal services
    "dating", "relationship", "counseling",
)

SENSITIVE_EXACT_DOMAINS = frozenset(
    {
        "chase.com", "bankofamerica.com", "wellsfargo.com", "citibank.com",
        "usbank.com", "pnc.com", "capitalone.com", "tdbank.com",
        "paypal.com", "stripe.com", "venmo.com", "cashapp.com",
        "myhealthrecords.com", "pharmacy.com", "mentalhealth.org",
        "irs.gov", "state.gov", "defense.mil",
    }
)

SENSITIVE_TLDS: Tuple[str, ...] = (".gov", ".mil", ".edu")


def _is_local_address(domain: str) -> bool:
    if domain == "localhost" or domain.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(domain)
    except ValueError:
        return False
    return address.is_private or address.is_loopback or address.is_link_local


def is_sensitive_domain(domain: str) -> bool:
    """True when visits to `domain` must never be recorded."""
    normalized = normalize_domain(domain)
    if not normalized:
        return True
    if normalized in SENSITIVE_EXACT_DOMAINS:
        return True
    if normalized.endswith(SENSITIVE_TLDS):
        return True
    if any(keyword in normalized for keyword in SENSITIVE_KEYWORDS):
        return True
    return _is_local_address(normalized)


class DomainVisitTable:
    """Bounded visit summary for one user, keyed by normalised domain."""

    def __init__(self, *, visit_count_cap: int = 1000, max_domains: int = 10_000):
        if visit_count_cap < 1 or max_domains < 1:
            raise ValueError("visit_count_cap and max_domains must be positive")
        self.visit_count_cap = visit_count_cap
        self.max_domains = max_domains
        self._visits: Dict[str, DomainVisit] = {}

    def __len__(self) -> int:
        return len(self._visits)

    def __contains__(self, domain: object) -> bool:
        return isinstance(domain, str) and normalize_domain(domain) in self._visits

    def get(self, domain: str) -> Optional[DomainVisit]:
        return self._visits.get(normalize_domain(domain))

    def record(self, domain: str, timestamp: datetime, count: int = 1) -> Optional[DomainVisit]:
        """Add `count` visits; returns None when the domain is filtered out."""
        if count < 1:
            raise ValueError("count must be positive")
        normalized = normalize_domain(domain)
        if is_sensitive_domain(normalized):
            return None
        timestamp = ensure_utc(timestamp)
        previous = self._visits.get(normalized)
        if previous is None:
            visit = DomainVisit(
                domain=normalized,
                timestamp=timestamp,
                visit_count=min(count, self.visit_count_cap),
                first_visit=timestamp,
            )
            self._visits[normalized] = visit
            self._evict_overflow()
        else:
            # 乱序到达的旧访问不回拨末次访问时间
            visit = replace(
                previous,
                visit_count=min(previous.visit_count + count, self.visit_count_cap),
                timestamp=max(previous.timestamp, timestamp),
                first_visit=min(previous.first_visit or timestamp, timestamp),
            )
            self._visits[normalized] = visit
        return visit

    def _evict_overflow(self) -> None:
        overflow = len(self._visits) - self.max_domains
        if overflow <= 0:
            return
        oldest = sorted(self._visits.values(), key=lambda v: (v.timestamp, v.domain))[:overflow]
        for visit in oldest:
            del self._visits[visit.domain]

    def prune_older_than(self, cutoff: datetime) -> int:
        """Drop records whose last visit precedes `cutoff`; returns the number removed."""
        cutoff = ensure_utc(cutoff)
        stale = [d for d, v in self._visits.items() if v.timestamp < cutoff]
        for domain in stale:
            del self._visits[domain]
        return len(stale)

    def visits(self) -> Tuple[DomainVisit, ...]:
        return tuple(self._visits[d] for d in sorted(self._visits))

    def recent(self, since: datetime) -> Tuple[DomainVisit, ...]:
        since = ensure_utc(since)
        return tuple(v for v in self.visits() if v.timestamp >= since)

    def clear(self) -> None:
        self._visits.clear()

    # ------------------------------------------------------------------ serialization
    def to_list(self) -> List[dict]:
        return [visit.to_dict() for visit in self.visits()]

    def load(self, records: Iterable[dict]) -> None:
        self._visits = {}
        for record in records:
            visit = DomainVisit.from_dict(record)
            self._visits[visit.domain] = visit
        self._evict_overflow()
