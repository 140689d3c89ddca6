import hashlib

import pytest

from lbsync import cli
from lbsync.cli import build_parser, main


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)


def _run(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code


def test_render_writes_config(tmp_path, write_template, snapshot_file, capsys):
    template = write_template("{% for s in services %}{{ s }} {{ s.node_port }}\n{% endfor %}")
    target = tmp_path / "lb.conf"

    code = _run(
        [
            "render",
            "--template", str(template),
            "--config", str(target),
            "--snapshot", str(snapshot_file),
        ]
    )

    assert code == 0
    content = target.read_text(encoding="utf-8")
    assert content == "web_default_80_tcp_http 30080\ndb_storage_5432_tcp_tcp 30432\n"
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    assert capsys.readouterr().out.strip() == f"{target} sha256={digest} bytes={len(content)}"


def test_render_domain_override(tmp_path, write_template, snapshot_file):
    template = write_template("{{ domain }}")
    target = tmp_path / "lb.conf"
    code = _run(
        [
            "render",
            "--template", str(template),
            "--config", str(target),
            "--snapshot", str(snapshot_file),
            "--domain", "corp.local",
            "--no-atomic",
        ]
    )
    assert code == 0
    assert target.read_text(encoding="utf-8") == "corp.local"


def test_render_missing_snapshot_flag(tmp_path, write_template, capsys):
    code = _run(
        [
            "render",
            "--template", str(write_template("x")),
            "--config", str(tmp_path / "lb.conf"),
        ]
    )
    assert code == 1
    assert "error: --snapshot is required" in capsys.readouterr().err


def test_render_template_error_exits_nonzero(tmp_path, write_template, snapshot_file, capsys):
    code = _run(
        [
            "render",
            "--template", str(write_template("{% for %}")),
            "--config", str(tmp_path / "lb.conf"),
            "--snapshot", str(snapshot_file),
        ]
    )
    assert code == 1
    assert "Template syntax error" in capsys.readouterr().err


def test_server_names(snapshot_file, capsys):
    code = _run(
        [
            "server-names",
            "--snapshot", str(snapshot_file),
            "--server-name-templates", "{{ service.name }}.{{ domain }}, {{ service.name }}.lb",
        ]
    )
    assert code == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "web_default_80_tcp_http\tliteral\tweb.cluster.local",
        "web_default_80_tcp_http\tliteral\tweb.lb",
        "web_default_80_tcp_http\tliteral\twww.example.com",
        "web_default_80_tcp_http\tpattern\t^web-[0-9]+\\.example\\.com$",
        "db_storage_5432_tcp_tcp\tliteral\tdb.cluster.local",
        "db_storage_5432_tcp_tcp\tliteral\tdb.lb",
    ]


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_run_options_parse():
    args = build_parser().parse_args(
        ["run", "--notify", "pidfile:/run/lb.pid", "--quiescence", "0.5", "--api", "--api-port", "9000"]
    )
    settings = cli._settings_from_args(args)
    assert settings.notify == "pidfile:/run/lb.pid"
    assert settings.update_quiescence_seconds == 0.5
    assert settings.api_enable is True
    assert settings.api_port == 9000
