"""ACME utilities."""
from collections.abc import Callable
from collections.abc import Mapping
from typing import Any
from typing import Optional
import urllib.parse


def map_keys(dikt: Mapping[Any, Any], func: Callable[[Any], Any]) -> dict[Any, Any]:
    """Map dictionary keys."""
    return {func(key): value for key, value in dikt.items()}


def check_url(url: Optional[str], name: str = 'url') -> str:
    """Check that ``url`` is an absolute ``http`` or ``https`` URL.

    :raises TypeError: if ``url`` is ``None``.
    :raises ValueError: if ``url`` is malformed.

    """
    if url is None:
        raise TypeError(f'{name} must not be None')
    if not isinstance(url, str):
        raise ValueError(f'{name} must be a string, got {type(url).__name__}')
    parts = urllib.parse.urlsplit(url)
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise ValueError(f'{name} is not an absolute http(s) URL: {url!r}')
    return url
