from __future__ import annotations

from urllib.parse import urlparse


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) urls with a host."""
    try:
        result = urlparse(url)
    except ValueError:
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


def truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars]


def with_site_filters(query: str, domains: list[str] | None) -> str:
    """Restrict a search query to an allow-list of domains.

    ``"solar panels" + ["a.org", "b.com"]`` -> ``"solar panels site:a.org OR site:b.com"``
    """
    cleaned = [d.strip() for d in domains or [] if d and d.strip()]
    if not cleaned:
        return query
    return f"{query} " + " OR ".join(f"site:{d}" for d in cleaned)


def split_locale(locale: str | None) -> tuple[str | None, str | None]:
    """Split ``"fr-FR"`` / ``"fr_fr"`` / ``"fr"`` into (language, country)."""
    if not locale or not locale.strip():
        return None, None
    parts = locale.replace("_", "-").lower().split("-")
    language = parts[0] or None
    country = parts[1] if len(parts) > 1 and parts[1] else language
    return language, country
