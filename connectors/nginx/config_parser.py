# connectors/nginx/config_parser.py
"""
Line-oriented server block extraction.

This is not an nginx grammar. Consumers only need directive-level facts
(listen, server_name, ssl_certificate), so the scanner tracks brace depth over
raw lines and keeps nested blocks (location, if, ...) inside the server block
that contains them.

    outside --"server ... {"--> inside(depth) --depth == 0--> outside
"""

import re
from typing import List, Optional, Tuple

from connectors.errors import ConfigParseError
from connectors.schema import SiteFacts

_SERVER_OPEN_RE = re.compile(r"^server\s*\{")


class ServerBlockScanner:
    """Feed lines in order; completed blocks accumulate in `.blocks`."""

    def __init__(self):
        self.blocks: List[str] = []
        self.depth = 0
        self._current: List[str] = []

    @property
    def inside(self) -> bool:
        return self.depth > 0

    def feed(self, line: str):
        if not self.inside:
            if not _SERVER_OPEN_RE.match(line.strip()):
                return
            self._current = []

        self._current.append(line)
        self.depth += line.count("{") - line.count("}")

        if self.depth <= 0:
            self.blocks.append("\n".join(self._current) + "\n")
            self._current = []
            self.depth = 0

    def finish(self) -> List[str]:
        """Return completed blocks; raise if a block was left open."""
        if self.inside:
            raise ConfigParseError(f"unterminated server block (depth {self.depth})")
        return self.blocks


def parse_server_blocks(config_text: str) -> List[str]:
    """
    Split configuration text into server block texts, in order.

    An unterminated trailing block is dropped.
    """
    scanner = ServerBlockScanner()
    for line in (config_text or "").splitlines():
        scanner.feed(line)
    return scanner.blocks


_STATEMENT_SPLIT_RE = re.compile(r"[{};]")


def _statements(line: str):
    """Directive statements on one line; `server { listen 80; }` has two."""
    code = line.split("#", 1)[0]
    for piece in _STATEMENT_SPLIT_RE.split(code):
        piece = piece.strip()
        if piece:
            yield piece


def _directive_value(statement: str, name: str) -> Optional[str]:
    if not statement.startswith(name):
        return None
    rest = statement[len(name):]
    if rest and not rest[0].isspace():
        return None
    return rest.strip()


def extract_directives(block_text: str, name: str) -> List[str]:
    values = []
    for line in (block_text or "").splitlines():
        for statement in _statements(line):
            value = _directive_value(statement, name)
            if value is not None:
                values.append(value)
    return values


def extract_directive(block_text: str, name: str) -> str:
    """First `name` directive value in the block, or "" (first match wins)."""
    values = extract_directives(block_text, name)
    return values[0] if values else ""


def decode_listen(value: str) -> Tuple[str, bool]:
    """
    "[::]:8443 ssl http2" -> ("8443", True)
    "0.0.0.0:80"          -> ("80", False)
    """
    parts = (value or "").strip().rstrip(";").split()
    if not parts:
        return "", False
    port = parts[0]
    if ":" in port:
        port = port[port.rfind(":") + 1:]
    ssl = "ssl" in parts[1:]
    return port, ssl


def parse_site_config(text: str) -> SiteFacts:
    """
    Port / SSL / server names of one site file.

    A later server block's listen overrides the port; SSL sticks once any
    block listens with ssl or declares ssl_certificate.

    Raises:
        ConfigParseError: a server block never closes
    """
    scanner = ServerBlockScanner()
    for line in (text or "").splitlines():
        scanner.feed(line)
    blocks = scanner.finish()

    port = "80"
    ssl = False
    names: List[str] = []
    for block in blocks:
        listen = extract_directive(block, "listen")
        if listen:
            block_port, block_ssl = decode_listen(listen)
            if block_port:
                port = block_port
            ssl = ssl or block_ssl
        if extract_directive(block, "ssl_certificate"):
            ssl = True
        server_name = extract_directive(block, "server_name")
        for n in server_name.split():
            if n not in names:
                names.append(n)

    return SiteFacts(port=port, ssl=ssl, server_names=names)


def listen_ports(config_text: str) -> List[str]:
    """Every port named by a listen directive in any server block, deduplicated."""
    ports: List[str] = []
    for block in parse_server_blocks(config_text):
        for value in extract_directives(block, "listen"):
            port, _ = decode_listen(value)
            if port and port not in ports:
                ports.append(port)
    return ports
