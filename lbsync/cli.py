from __future__ import annotations

import argparse
import signal
import sys
from typing import Any, Dict, Optional

from lbsync.config import Settings
from lbsync.errors import ConfigurationError
from lbsync.logger import configure_logging, get_logger
from lbsync.services.renderer import ConfigTemplate
from lbsync.services.server_names import ServerNameTemplates, generate_server_names
from lbsync.services.snapshots import load_snapshot

_OVERRIDES = {
    "template": "template_path",
    "config": "config_path",
    "snapshot": "snapshot_path",
    "notify": "notify",
    "server_name_templates": "server_name_templates",
    "domain": "domain",
    "quiescence": "update_quiescence_seconds",
    "poll_interval": "snapshot_poll_interval_seconds",
    "atomic": "render_atomic_write",
    "api": "api_enable",
    "api_port": "api_port",
    "log_level": "log_level",
}


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: Dict[str, Any] = {}
    for arg_name, field_name in _OVERRIDES.items():
        value = getattr(args, arg_name, None)
        if value is not None:
            overrides[field_name] = value
    return Settings(**overrides)


def _required(value: str, flag: str) -> str:
    if not value.strip():
        raise ConfigurationError(f"{flag} is required")
    return value


def cmd_run(args: argparse.Namespace) -> int:
    from lbsync.main import serve_in_background
    from lbsync.runtime import RuntimeController

    settings = _settings_from_args(args)
    configure_logging(settings.log_level, settings.log_file or None)
    controller = RuntimeController(settings)

    def _handle_exit(signum: int, frame: Optional[object]) -> None:
        del frame
        get_logger("cli").info("cli.signal", "Received shutdown signal", signal=signum)
        controller.stop()

    signal.signal(signal.SIGINT, _handle_exit)
    signal.signal(signal.SIGTERM, _handle_exit)

    if settings.api_enable:
        serve_in_background(controller)
    controller.start()
    while not controller.wait(timeout=1.0):
        pass
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    configure_logging(settings.log_level, settings.log_file or None)
    snapshot = load_snapshot(_required(settings.snapshot_path, "--snapshot"))
    if settings.domain:
        snapshot = snapshot.model_copy(update={"domain": settings.domain})
    renderer = ConfigTemplate(
        _required(settings.template_path, "--template"),
        _required(settings.config_path, "--config"),
        server_name_templates=ServerNameTemplates.parse(settings.server_name_templates),
        atomic=settings.render_atomic_write,
    )
    result = renderer.execute(snapshot)
    print(f"{result.path} sha256={result.sha256} bytes={result.size_bytes}")
    return 0


def cmd_server_names(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    snapshot = load_snapshot(_required(settings.snapshot_path, "--snapshot"))
    domain = settings.domain or snapshot.domain
    templates = ServerNameTemplates.parse(settings.server_name_templates)
    for service in snapshot.services:
        for name in generate_server_names(service, domain, templates):
            kind = "pattern" if name.is_pattern else "literal"
            print(f"{service.label}\t{kind}\t{name.pattern}")
    return 0


def _add_render_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--template", help="Jinja2 template for the load-balancer config")
    parser.add_argument("--config", help="Path of the rendered config file")
    parser.add_argument("--snapshot", help="YAML/JSON cluster snapshot file")
    parser.add_argument(
        "--server-name-templates",
        dest="server_name_templates",
        help="Comma-separated list of Jinja2 expressions generating server names",
    )
    parser.add_argument("--domain", help="Cluster domain, overrides the snapshot value")
    parser.add_argument(
        "--atomic",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write through a temporary file and rename it into place",
    )
    parser.add_argument("--log-level", dest="log_level")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lbsync",
        description="Render load-balancer config from cluster snapshots",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Watch the snapshot and keep the config in sync")
    _add_render_args(run)
    run.add_argument(
        "--notify",
        help="Reload trigger: pidfile:<path>[:<signal>] or command:<shell command>",
    )
    run.add_argument("--quiescence", type=float, help="Seconds without changes before updating")
    run.add_argument("--poll-interval", dest="poll_interval", type=float)
    run.add_argument("--api", action=argparse.BooleanOptionalAction, default=None)
    run.add_argument("--api-port", dest="api_port", type=int)
    run.set_defaults(func=cmd_run)

    render = sub.add_parser("render", help="Render the config once and exit")
    _add_render_args(render)
    render.set_defaults(func=cmd_render)

    names = sub.add_parser("server-names", help="Print generated server names per service")
    names.add_argument("--snapshot")
    names.add_argument("--server-name-templates", dest="server_name_templates")
    names.add_argument("--domain")
    names.set_defaults(func=cmd_server_names)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        exit_code = args.func(args)
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
