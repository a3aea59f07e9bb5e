# connectors/nginx/site_config.py
"""
Config text for a new site.

SiteConfig holds what the add-site form collects; render() turns it into an
nginx server block (plus an HTTP->HTTPS redirect block when asked), and
filename() picks the file name create_site writes it under.
"""

from dataclasses import dataclass
from typing import List

GZIP_TYPES = (
    "text/plain text/css text/xml text/javascript application/json "
    "application/javascript application/xml+rss application/rss+xml "
    "font/truetype font/opentype application/vnd.ms-fontobject image/svg+xml"
)


@dataclass
class SiteConfig:
    server_name: str = ""
    port: str = "80"
    root_path: str = "/var/www/html"
    index_files: str = "index.html index.htm"

    enable_ssl: bool = False
    ssl_cert_path: str = ""
    ssl_key_path: str = ""
    force_https: bool = False

    is_proxy: bool = False
    proxy_pass: str = ""
    proxy_headers: bool = True

    enable_gzip: bool = True
    client_max_body_size: str = "10M"
    access_log: str = "/var/log/nginx/access.log"
    error_log: str = "/var/log/nginx/error.log"

    enable_php: bool = False
    php_socket: str = ""

    custom_config: str = ""

    def filename(self) -> str:
        name = self.server_name
        for prefix in ("http://", "https://"):
            if name.startswith(prefix):
                name = name[len(prefix):]
        return name.replace(".", "_").replace(":", "_")

    def validate(self) -> List[str]:
        errors = []
        if not self.server_name:
            errors.append("Server name is required")
        if not self.port:
            errors.append("Port is required")
        if self.enable_ssl:
            if not self.ssl_cert_path:
                errors.append("SSL certificate path is required when SSL is enabled")
            if not self.ssl_key_path:
                errors.append("SSL key path is required when SSL is enabled")
        if self.is_proxy:
            if not self.proxy_pass:
                errors.append("Proxy pass URL is required when reverse proxy is enabled")
        elif not self.root_path:
            errors.append("Root path is required for static file serving")
        if self.enable_php and not self.php_socket:
            errors.append("PHP-FPM socket is required when PHP is enabled")
        return errors

    def render(self) -> str:
        out = []

        if self.enable_ssl and self.force_https:
            out += [
                "# HTTP to HTTPS redirect",
                "server {",
                "    listen 80;",
                f"    server_name {self.server_name};",
                "    return 301 https://$server_name$request_uri;",
                "}",
                "",
            ]

        out.append("server {")
        if self.enable_ssl:
            out += ["    listen 443 ssl http2;", "    listen [::]:443 ssl http2;"]
        else:
            out += [f"    listen {self.port};", f"    listen [::]:{self.port};"]
        out += [f"    server_name {self.server_name};", ""]

        if self.enable_ssl:
            out += [
                "    # SSL Configuration",
                f"    ssl_certificate {self.ssl_cert_path};",
                f"    ssl_certificate_key {self.ssl_key_path};",
                "    ssl_protocols TLSv1.2 TLSv1.3;",
                "    ssl_ciphers HIGH:!aNULL:!MD5;",
                "    ssl_prefer_server_ciphers on;",
                "",
            ]

        out += [
            "    # Logging",
            f"    access_log {self.access_log};",
            f"    error_log {self.error_log};",
            "",
            "    # Upload size limit",
            f"    client_max_body_size {self.client_max_body_size};",
            "",
        ]

        if self.enable_gzip:
            out += [
                "    # Gzip Compression",
                "    gzip on;",
                "    gzip_vary on;",
                "    gzip_proxied any;",
                "    gzip_comp_level 6;",
                f"    gzip_types {GZIP_TYPES};",
                "",
            ]

        if not self.is_proxy:
            out += [
                "    # Document Root",
                f"    root {self.root_path};",
                f"    index {self.index_files};",
                "",
            ]

        out.append("    location / {")
        if self.is_proxy:
            out.append(f"        proxy_pass {self.proxy_pass};")
            if self.proxy_headers:
                out += [
                    "        proxy_set_header Host $host;",
                    "        proxy_set_header X-Real-IP $remote_addr;",
                    "        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;",
                    "        proxy_set_header X-Forwarded-Proto $scheme;",
                ]
        else:
            out.append("        try_files $uri $uri/ =404;")
        out += ["    }", ""]

        if self.enable_php and not self.is_proxy:
            socket = self.php_socket
            # bare paths are unix sockets; anything else is passed through (unix:..., host:port)
            if socket.startswith("/"):
                socket = "unix:" + socket
            out += [
                "    # PHP Configuration",
                "    location ~ \\.php$ {",
                "        include snippets/fastcgi-php.conf;",
                f"        fastcgi_pass {socket};",
                "    }",
                "",
            ]

        if self.custom_config:
            out.append("    # Custom Configuration")
            out += [f"    {line}" for line in self.custom_config.splitlines() if line]
            out.append("")

        out.append("}")
        return "\n".join(out) + "\n"
