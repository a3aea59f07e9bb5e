# main.py
import argparse
import sys
import time
from pathlib import Path

# make local modules importable
BASE = Path(__file__).resolve().parents[0]
sys.path.append(str(BASE))

from config.config_loader import ConfigLoader
from connectors.errors import ConfigTestError, NginxError
from connectors.nginx.metrics import MB
from connectors.nginx.site_config import SiteConfig
from history.metrics_history import DEFAULT_CAPACITY, MetricsHistory
from orchestrator.logging_setup import configure_root_logger
from orchestrator.nginx_service import NginxService


def _service(args):
    config = ConfigLoader(base_dir=BASE / "config").load(args.config)
    log_cfg = config.get("logging", {})
    configure_root_logger(
        level=log_cfg.get("level"),
        log_dir=log_cfg.get("dir", "logs"),
        log_file=log_cfg.get("file", "ngxdash.log"),
        console=args.verbose,
    )
    return config, NginxService(config)


def cmd_sites(args):
    _, svc = _service(args)
    sites = svc.list_sites()
    print(f"Mode: {svc.mode()}")
    if not sites:
        print("No sites found.")
        return
    print(f"{'NAME':<30} {'STATUS':<9} {'PORT':<8} {'SSL':<4} UPTIME")
    for s in sites:
        status = "enabled" if s.enabled else "disabled"
        print(f"{s.name:<30} {status:<9} {s.port:<8} {'yes' if s.ssl else 'no':<4} {s.uptime}")


def cmd_logs(args):
    config, svc = _service(args)
    lines = args.lines or config.get("logs", {}).get("tail_lines", 100)
    if args.errors:
        for line in svc.get_error_logs(lines):
            print(line)
        return
    for e in svc.get_access_logs(lines):
        print(f"{e.timestamp:%Y-%m-%d %H:%M:%S} {e.ip:<15} {e.method:<6} {e.status_code} "
              f"{e.bytes_sent:>8} {e.path}")


def cmd_stats(args):
    _, svc = _service(args)
    st = svc.get_log_stats()
    print(f"Total requests:   {st.total_requests}")
    print(f"Unique IPs:       {st.unique_ips}")
    print(f"Total bytes:      {st.total_bytes}")
    print(f"Avg bytes/req:    {st.avg_bytes_per_request}")
    print("Status classes:   " + ", ".join(f"{k}={v}" for k, v in sorted(st.status_counts.items())))
    print("Methods:          " + ", ".join(f"{k}={v}" for k, v in sorted(st.method_counts.items())))
    top = sorted(st.top_paths.items(), key=lambda kv: kv[1], reverse=True)[:10]
    if top:
        print("Top paths:")
        for path, count in top:
            print(f"  {count:>6}  {path}")


def cmd_metrics(args):
    config, svc = _service(args)
    if args.samples > 1:
        return _watch_metrics(svc, args.samples, args.interval, config)
    m = svc.get_metrics()
    print(f"CPU:              {m.cpu:.1f}%")
    print(f"Memory:           {m.memory:.1f}%")
    print(f"Network in/out:   {m.network_in:.2f} MB / {m.network_out:.2f} MB")
    print(f"Request rate:     {m.request_rate:.2f} req/s")
    print(f"Connections:      {m.active_conns} active, {m.total_conns} total")


def _watch_metrics(svc, samples, interval, config):
    history = MetricsHistory(capacity=config.get("history", {}).get("capacity", DEFAULT_CAPACITY))
    print(f"{'TIME':<9} {'CPU%':>6} {'MEM%':>6} {'NET MB/s':>9} {'REQ/s':>7} {'CONNS':>6}")
    for i in range(samples):
        if i:
            time.sleep(interval)
        m = svc.get_metrics()
        rate = history.add(m)
        print(f"{m.timestamp:%H:%M:%S} {m.cpu:>6.1f} {m.memory:>6.1f} {rate:>9.3f} "
              f"{m.request_rate:>7.2f} {m.active_conns:>6}")


def cmd_system(args):
    _, svc = _service(args)
    sm = svc.get_system_metrics()
    st = svc.get_stats()
    print(f"Load average:     {sm.load_avg_1:.2f} {sm.load_avg_5:.2f} {sm.load_avg_15:.2f}")
    print(f"Memory:           {sm.memory_used // MB} / {sm.memory_total // MB} MiB ({sm.memory_used_percent:.1f}%)")
    print(f"Disk (/):         {sm.disk_usage or '?'}%")
    print(f"NGINX workers:    {st.worker_processes}")
    print(f"NGINX uptime:     {st.uptime}")
    print(f"Active conns:     {st.active_connections}")


def cmd_ports(args):
    _, svc = _service(args)
    for port in svc.listening_ports():
        print(port)


def cmd_enable(args):
    _, svc = _service(args)
    svc.enable_site(args.name)
    print(f"Enabled {args.name}. Run 'test' and 'reload' to apply.")


def cmd_disable(args):
    _, svc = _service(args)
    svc.disable_site(args.name)
    print(f"Disabled {args.name}. Run 'test' and 'reload' to apply.")


def cmd_test(args):
    _, svc = _service(args)
    try:
        svc.test_config()
    except ConfigTestError as e:
        print("Configuration test failed:")
        for line in svc.config_errors() or [e.output]:
            print(f"  {line}")
        raise SystemExit(1)
    print("Configuration OK.")


def cmd_reload(args):
    _, svc = _service(args)
    svc.reload()
    print("NGINX reloaded.")


def cmd_create(args):
    _, svc = _service(args)
    site = SiteConfig(
        server_name=args.server_name,
        port=args.port,
        root_path=args.root,
        is_proxy=bool(args.proxy_pass),
        proxy_pass=args.proxy_pass or "",
        enable_ssl=bool(args.ssl_cert or args.ssl_key),
        ssl_cert_path=args.ssl_cert or "",
        ssl_key_path=args.ssl_key or "",
        force_https=args.force_https,
    )
    filename = svc.create_site_from(site)
    print(f"Created {filename} in {svc.site_config_path()} and reloaded NGINX.")


def build_parser():
    p = argparse.ArgumentParser(prog="ngxdash", description="NGINX dashboard CLI - sites, logs, metrics and actions")
    p.add_argument("--config", type=str, help="YAML config file (default: config/ngxdash.yaml)")
    p.add_argument("-v", "--verbose", action="store_true", help="Log to stderr as well as the log file")
    sp = p.add_subparsers(dest="cmd")

    sp.add_parser("sites", help="List sites").set_defaults(func=cmd_sites)

    pl = sp.add_parser("logs", help="Show recent access (or error) log lines")
    pl.add_argument("--lines", type=int, help="Number of lines")
    pl.add_argument("--errors", action="store_true", help="Show the error log instead")
    pl.set_defaults(func=cmd_logs)

    sp.add_parser("stats", help="Access log statistics").set_defaults(func=cmd_stats)
    pm = sp.add_parser("metrics", help="Metrics sample (or a series with --samples)")
    pm.add_argument("--samples", type=int, default=1, help="Number of samples to take")
    pm.add_argument("--interval", type=float, default=2.0, help="Seconds between samples")
    pm.set_defaults(func=cmd_metrics)
    sp.add_parser("system", help="System and NGINX process stats").set_defaults(func=cmd_system)
    sp.add_parser("ports", help="Listening ports").set_defaults(func=cmd_ports)

    pe = sp.add_parser("enable", help="Enable a site")
    pe.add_argument("name", type=str)
    pe.set_defaults(func=cmd_enable)

    pd = sp.add_parser("disable", help="Disable a site")
    pd.add_argument("name", type=str)
    pd.set_defaults(func=cmd_disable)

    sp.add_parser("test", help="Run nginx -t").set_defaults(func=cmd_test)
    sp.add_parser("reload", help="Reload NGINX").set_defaults(func=cmd_reload)

    pc = sp.add_parser("create", help="Create, test and reload a new site")
    pc.add_argument("--server-name", type=str, required=True)
    pc.add_argument("--port", type=str, default="80")
    pc.add_argument("--root", type=str, default="/var/www/html")
    pc.add_argument("--proxy-pass", type=str, help="Reverse proxy upstream, e.g. http://localhost:3000")
    pc.add_argument("--ssl-cert", type=str)
    pc.add_argument("--ssl-key", type=str)
    pc.add_argument("--force-https", action="store_true", help="Add an HTTP->HTTPS redirect block")
    pc.set_defaults(func=cmd_create)

    return p


def main():
    parser = build_parser()
    args = parser.parse_args()
    if not args.cmd:
        parser.print_help()
        return
    try:
        args.func(args)
    except NginxError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
