"""
URL helpers for query parameter inspection and mutation.
"""

from typing import List, Tuple
from urllib.parse import SplitResult, parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

from .http_client import ParseError


ALLOWED_SCHEMES = ("http", "https")


def parse_target(url: str) -> SplitResult:
    """
    Split a target URL, rejecting anything that cannot be requested.

    Args:
        url: Absolute http(s) URL

    Returns:
        The split URL

    Raises:
        ParseError: If the URL is malformed or not absolute http(s)
    """
    try:
        parsed = urlsplit(url)
        # Accessing port validates it
        _ = parsed.port
    except ValueError as e:
        raise ParseError(f"malformed URL {url!r}: {e}") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        raise ParseError(f"malformed URL {url!r}: expected absolute http(s) URL")

    return parsed


def query_pairs(url: str) -> List[Tuple[str, str]]:
    """All (name, value) pairs of the query string, blanks included"""
    return parse_qsl(parse_target(url).query, keep_blank_values=True)


def append_to_param(url: str, param: str, suffix: str) -> str:
    """
    Append a suffix to a parameter's value and re-encode the query.

    The first value of ``param`` (empty if absent) gets ``suffix`` appended
    and replaces all of its values. Keys are re-encoded in sorted order.

    Args:
        url: Original URL
        param: Parameter name to modify
        suffix: Text appended to the value

    Returns:
        Modified URL
    """
    parsed = parse_target(url)

    query_params = parse_qs(parsed.query, keep_blank_values=True)
    values = query_params.get(param) or [""]
    query_params[param] = [values[0] + suffix]

    query = urlencode(sorted(query_params.items()), doseq=True)

    return urlunsplit((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        query,
        parsed.fragment,
    ))


def normalize(url: str) -> str:
    """
    Canonical form used to spot repeated input URLs.

    Query keys are sorted and the fragment is dropped, so the same
    parameters in a different order compare equal.
    """
    parsed = parse_target(url)
    query_params = parse_qs(parsed.query, keep_blank_values=True)
    query = urlencode(sorted(query_params.items()), doseq=True)

    return urlunsplit((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path,
        query,
        '',
    ))
