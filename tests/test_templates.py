"""Template substitution: {{var.KEY}} and {{@NODEID:LABEL.path}} tokens."""

from relayflow.types import NodeOutput
from relayflow.workflows.templates import (
    TemplateResolver,
    extract_output_value,
    resolve_string,
    resolve_templates,
    to_template_text,
)


OUTPUTS = {
    "n1": NodeOutput(label="Fetch", data={"id": 42, "customer": {"name": "Ana"}, "tags": ["a", "b"]}),
    "node_2": NodeOutput(label="Set", data={"success": True, "data": {"key": "k", "value": 7}}),
}


class TestToTemplateText:

    def test_none_renders_empty(self):
        assert to_template_text(None) == ""

    def test_bools_render_lowercase(self):
        assert to_template_text(True) == "true"
        assert to_template_text(False) == "false"

    def test_integral_float_drops_decimal(self):
        assert to_template_text(3.0) == "3"
        assert to_template_text(2.5) == "2.5"

    def test_containers_render_compact_json(self):
        assert to_template_text({"a": [1, 2]}) == '{"a":[1,2]}'


class TestExtractOutputValue:

    def test_no_path_returns_whole_data(self):
        assert extract_output_value({"x": 1}, "Fetch") == {"x": 1}

    def test_nested_path(self):
        assert extract_output_value(OUTPUTS["n1"].data, "Fetch.customer.name") == "Ana"

    def test_list_index_and_length(self):
        data = OUTPUTS["n1"].data
        assert extract_output_value(data, "Fetch.tags.1") == "b"
        assert extract_output_value(data, "Fetch.tags.length") == 2

    def test_missing_field_is_none(self):
        assert extract_output_value(OUTPUTS["n1"].data, "Fetch.nope.deeper") is None

    def test_envelope_is_unwrapped(self):
        assert extract_output_value(OUTPUTS["node_2"].data, "Set.value") == 7

    def test_envelope_keys_are_reachable(self):
        assert extract_output_value(OUTPUTS["node_2"].data, "Set.success") is True


class TestResolve:

    def test_variable_token(self):
        assert resolve_string("Hi {{var.name}}!", {}, {"name": "Ana"}) == "Hi Ana!"

    def test_variable_token_tolerates_spaces(self):
        assert resolve_string("{{ var.name }}", {}, {"name": "Ana"}) == "Ana"

    def test_missing_variable_renders_empty(self):
        assert resolve_string("[{{var.nope}}]", {}, {}) == "[]"

    def test_node_output_token(self):
        assert resolve_string("order {{@n1:Fetch.id}}", OUTPUTS, {}) == "order 42"

    def test_node_id_is_sanitized_for_lookup(self):
        assert resolve_string("{{@node-2:Set.value}}", OUTPUTS, {}) == "7"

    def test_unknown_node_token_left_in_place(self):
        text = "x {{@ghost:Nope.id}}"
        assert resolve_string(text, OUTPUTS, {}) == text

    def test_only_top_level_strings_are_rewritten(self):
        config = {
            "message": "Hi {{var.name}}",
            "nested": {"message": "{{var.name}}"},
            "retryCount": 2,
        }
        resolved = resolve_templates(config, {}, {"name": "Ana"})
        assert resolved == {
            "message": "Hi Ana",
            "nested": {"message": "{{var.name}}"},
            "retryCount": 2,
        }


def test_resolver_keeps_condition_raw():
    resolver = TemplateResolver()
    resolved = resolver.resolve_config(
        {"condition": "{{@n1:Fetch.id}} > 5", "message": "{{@n1:Fetch.id}}"}, OUTPUTS, {},
    )
    assert resolved["condition"] == "{{@n1:Fetch.id}} > 5"
    assert resolved["message"] == "42"
