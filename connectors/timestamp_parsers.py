# connectors/timestamp_parsers.py
"""
Timestamp parser registry.

Log readers look parsers up by name instead of hard-coding layouts, so the
access-log reader and the request-rate counter agree on one definition of an
nginx timestamp.
"""

from datetime import datetime
from typing import Callable, Dict, Optional

NGINX_TIME_LAYOUT = "%d/%b/%Y:%H:%M:%S %z"


class TimestampParserRegistry:
    """
    Registry for timestamp parsers.

    Usage:
        @TimestampParserRegistry.register("nginx_access")
        def parse_nginx_access_timestamp(line: str) -> Optional[datetime]:
            ...
    """

    _parsers: Dict[str, Callable[[str], Optional[datetime]]] = {}

    @classmethod
    def register(cls, name: str):
        def decorator(parser_func: Callable[[str], Optional[datetime]]):
            cls._parsers[name] = parser_func
            return parser_func
        return decorator

    @classmethod
    def get(cls, name: str) -> Optional[Callable[[str], Optional[datetime]]]:
        return cls._parsers.get(name)

    @classmethod
    def list_parsers(cls) -> list:
        return list(cls._parsers.keys())


def parse_nginx_time(value: str) -> Optional[datetime]:
    """'05/Nov/2024:10:24:57 +0100' -> aware datetime, or None."""
    try:
        return datetime.strptime(value.strip(), NGINX_TIME_LAYOUT)
    except (ValueError, AttributeError):
        return None


@TimestampParserRegistry.register("nginx_access")
def parse_nginx_access_timestamp(line: str) -> Optional[datetime]:
    """
    Timestamp between the first '[' and the first ']' of an access log line.

    Example: '127.0.0.1 - - [05/Nov/2024:10:24:57 +0100] "GET / HTTP/1.1" ...'
    """
    if not line:
        return None
    start = line.find("[")
    end = line.find("]")
    if start == -1 or end <= start + 1:
        return None
    return parse_nginx_time(line[start + 1:end])

