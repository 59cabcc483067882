"""
URL Utilities for the Drone Parts Scraper

Pure helpers for resolving, normalizing and comparing vendor URLs.
"""

from typing import Optional, Tuple
from urllib.parse import urlparse, urljoin, urlunparse, parse_qsl, urlencode

import tldextract


# Use the bundled public suffix snapshot; no network lookups at runtime
_extract = tldextract.TLDExtract(suffix_list_urls=())

TRACKING_PARAMS = {
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
    'gclid', 'fbclid', 'ref', '_pos', '_sid', '_ss'
}

NON_NAVIGABLE_PREFIXES = ('#', 'javascript:', 'mailto:', 'tel:', 'data:')


def is_navigable_href(href: Optional[str]) -> bool:
    """Check that an href can lead to a page at all"""
    if not href:
        return False
    href = href.strip().lower()
    return bool(href) and not href.startswith(NON_NAVIGABLE_PREFIXES)


def resolve_url(href: str, base_url: str) -> str:
    """Resolve a possibly relative href against the page it was found on"""
    return urljoin(base_url, href.strip())


def normalize_url(url: str, base_url: Optional[str] = None, strip_query: bool = True) -> str:
    """
    Normalize URL for deduplication

    Args:
        url: Absolute or relative URL
        base_url: URL used to resolve relative references
        strip_query: Drop the whole query string instead of only tracking params

    Returns:
        Normalized URL or empty string if it is not an http(s) URL
    """
    if not url or not isinstance(url, str):
        return ''

    url = url.strip()
    if base_url:
        url = urljoin(base_url, url)

    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        return ''

    netloc = parsed.netloc.lower()

    # Remove default ports
    if netloc.endswith(':80') and parsed.scheme == 'http':
        netloc = netloc[:-3]
    elif netloc.endswith(':443') and parsed.scheme == 'https':
        netloc = netloc[:-4]

    path = parsed.path or '/'
    while '//' in path:
        path = path.replace('//', '/')
    if path.endswith('/') and len(path) > 1:
        path = path[:-1]

    query = ''
    if parsed.query and not strip_query:
        params = [
            (name, value) for name, value in parse_qsl(parsed.query, keep_blank_values=True)
            if name.lower() not in TRACKING_PARAMS
        ]
        query = urlencode(sorted(params))

    return urlunparse((parsed.scheme, netloc, path, parsed.params, query, ''))


def site_key(url: str) -> Tuple[str, str, str]:
    """
    Get the (subdomain, domain, suffix) triple of a URL, ignoring a leading
    'www.' so that example.com and www.example.com compare equal
    """
    extracted = _extract(url)
    subdomain = extracted.subdomain
    if subdomain == 'www':
        subdomain = ''
    elif subdomain.startswith('www.'):
        subdomain = subdomain[4:]
    return subdomain.lower(), extracted.domain.lower(), extracted.suffix.lower()


def is_same_site(url: str, origin: str) -> bool:
    """Check whether url lives on the same site as origin"""
    return site_key(url) == site_key(origin)
