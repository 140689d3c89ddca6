import pytest

from lbsync.config import DEFAULT_SERVER_NAME_TEMPLATE
from lbsync.errors import ConfigurationError, TemplateRenderError
from lbsync.services.server_names import (
    ServerName,
    ServerNameTemplates,
    generate_server_names,
    remove_duplicated,
    split_expressions,
)

from conftest import make_service


def test_default_template(name_templates):
    service = make_service("web", "default")
    names = generate_server_names(service, "cluster.local", name_templates)
    assert names == ["web.default.svc.cluster.local"]
    assert not names[0].is_pattern


def test_empty_argument_uses_default():
    templates = ServerNameTemplates.parse("")
    assert templates.expressions == (DEFAULT_SERVER_NAME_TEMPLATE,)


def test_parse_multiple_templates():
    templates = ServerNameTemplates.parse(
        "{{ service.name }}.{{ domain }}, {{ service.name }}-{{ service.namespace }}.{{ domain }}"
    )
    names = generate_server_names(make_service("web", "prod"), "example.com", templates)
    assert names == ["web.example.com", "web-prod.example.com"]


def test_invalid_template_is_configuration_error():
    with pytest.raises(ConfigurationError):
        ServerNameTemplates.parse("{{ service.name ")


def test_generated_names_are_deduplicated():
    templates = ServerNameTemplates.parse("a,b,a")
    names = generate_server_names(make_service(), "cluster.local", templates)
    assert len(names) == 2
    assert set(names) == {"a", "b"}


def test_remove_duplicated_is_a_set_operation():
    assert sorted(remove_duplicated(["a", "b", "a"])) == ["a", "b"]


def test_aliases_are_appended_without_cross_dedup():
    templates = ServerNameTemplates.parse("x")
    service = make_service(external=("~y", "x"))
    names = generate_server_names(service, "cluster.local", templates)

    assert len(names) == 3
    assert names[0] == "x" and not names[0].is_pattern
    assert names[1].is_pattern and names[1].pattern == "y"
    assert names[2] == "x" and not names[2].is_pattern


def test_aliases_are_not_deduplicated_among_themselves():
    service = make_service(external=("www.example.com", "www.example.com"))
    names = generate_server_names(service, "cluster.local", ServerNameTemplates.default())
    assert names.count("www.example.com") == 2


def test_server_name_pattern_marker():
    assert ServerName("~^www\\.").is_pattern
    assert ServerName("~^www\\.").pattern == "^www\\."
    assert ServerName("www.example.com").pattern == "www.example.com"


def test_undefined_field_fails_at_render_time():
    templates = ServerNameTemplates.parse("{{ service.missing }}")
    with pytest.raises(TemplateRenderError):
        generate_server_names(make_service(), "cluster.local", templates)


def test_commas_inside_tags_do_not_split():
    templates = ServerNameTemplates.parse(
        '{{ service.name | replace("-", ".") }}.{{ domain }}, '
        '{{ service.namespace | replace("o", "0", 1) }}.lb'
    )
    assert len(templates.expressions) == 2
    names = generate_server_names(make_service("api-v2", "prod"), "example.com", templates)
    assert names == ["api.v2.example.com", "pr0d.lb"]


def test_commas_in_quoted_arguments_are_kept():
    templates = ServerNameTemplates.parse(
        "{{ '%s-%s' | format(service.name, 'a,b') }}, {{ service.namespace }}"
    )
    assert templates.expressions[0] == "{{ '%s-%s' | format(service.name, 'a,b') }}"
    names = generate_server_names(make_service("web", "prod"), "example.com", templates)
    assert names == ["web-a,b", "prod"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("a,b", ["a", "b"]),
        ("{{ x(1, 2) }},c", ["{{ x(1, 2) }}", "c"]),
        ("{% if a, b %}x{% endif %},y", ["{% if a, b %}x{% endif %}", "y"]),
        ("{# a, b #}z", ["{# a, b #}z"]),
        ("{{ '}}, ' }},q", ["{{ '}}, ' }}", "q"]),
    ],
)
def test_split_expressions(raw, expected):
    assert split_expressions(raw) == expected
