"""URL domain extraction and matching."""

from typing import Iterable, Optional

RECOGNIZED_SCHEMES = ("https://", "http://")


def extract_domain(url: str) -> Optional[str]:
    """Extract the host part of a URL.

    Strips one recognized scheme, keeps text up to the first path
    separator and drops a trailing port.

    Args:
        url: URL to analyze

    Returns:
        Domain string, or None if no domain can be extracted
    """
    url = url.strip()

    for scheme in RECOGNIZED_SCHEMES:
        if url.startswith(scheme):
            url = url[len(scheme):]
            break

    domain = url.split("/", 1)[0]
    domain = domain.split(":", 1)[0]

    if not domain:
        return None

    return domain


def matches_any(domain: str, patterns: Iterable[str]) -> bool:
    """Check whether any pattern is contained in the domain."""
    return any(pattern in domain for pattern in patterns)
