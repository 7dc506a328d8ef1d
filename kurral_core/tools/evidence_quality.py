# Copyright (C) 2025 The Kurral Engine Authors
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Kurral Engine is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with Kurral Engine. If not, see <https://www.gnu.org/licenses/>.

"""
Domain-based evidence quality.

Scores reflect publisher reliability, not relevance: wire services, health
authorities and journals rank highest, social platforms are excluded.
"""

from __future__ import annotations

from urllib.parse import urlparse

TRUSTED_DOMAINS = frozenset({
    "who.int",
    "cdc.gov",
    "nih.gov",
    "fda.gov",
    "worldbank.org",
    "imf.org",
    "reuters.com",
    "apnews.com",
    "nature.com",
    "science.org",
    "ft.com",
    "nytimes.com",
    "theguardian.com",
})

BLOCKED_DOMAINS = frozenset({
    "facebook.com",
    "reddit.com",
    "tiktok.com",
    "instagram.com",
    "telegram.org",
})

TRUSTED_QUALITY = 0.95
INSTITUTIONAL_QUALITY = 0.85
ORG_QUALITY = 0.7
DEFAULT_QUALITY = 0.5
NO_URL_QUALITY = 0.4
MIN_EVIDENCE_QUALITY = 0.1


def normalize_host(host: str) -> str:
    host = (host or "").strip().lower()
    return host[4:] if host.startswith("www.") else host


def get_domain(url: str | None) -> str | None:
    if not url:
        return None
    try:
        host = urlparse(str(url).strip()).hostname
    except ValueError:
        return None
    return normalize_host(host) if host else None


def _matches(domain: str, registry: frozenset[str]) -> bool:
    return any(domain == d or domain.endswith("." + d) for d in registry)


def is_trusted_domain(domain: str | None) -> bool:
    return bool(domain) and _matches(domain, TRUSTED_DOMAINS)


def is_blocked_domain(domain: str | None) -> bool:
    return bool(domain) and _matches(domain, BLOCKED_DOMAINS)


def domain_quality(url: str | None) -> float:
    domain = get_domain(url)
    if not domain:
        return NO_URL_QUALITY
    if is_blocked_domain(domain):
        return 0.0
    if is_trusted_domain(domain):
        return TRUSTED_QUALITY
    if domain.endswith(".gov") or domain.endswith(".edu"):
        return INSTITUTIONAL_QUALITY
    if domain.endswith(".org"):
        return ORG_QUALITY
    return DEFAULT_QUALITY


def score_evidence(url: str | None, score_hint: float | None = None) -> float:
    """
    Evidence quality in [0, 1].

    A search-provider relevance hint, when present, is averaged with the
    domain score. Blocked domains stay at 0 regardless of the hint.
    """
    base = domain_quality(url)
    if base == 0.0:
        return 0.0
    if score_hint is None:
        return base
    try:
        hint = max(0.0, min(1.0, float(score_hint)))
    except (TypeError, ValueError):
        return base
    return round((base + hint) / 2.0, 4)


def is_usable_evidence(quality: float) -> bool:
    return quality > MIN_EVIDENCE_QUALITY
