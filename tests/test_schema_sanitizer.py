from compat_gateway.schema_sanitizer import sanitize_json_schema


def test_any_of_first_branch_decides_type():
    value = {
        "properties": {
            "x": {
                "anyOf": [
                    {"type": "string"},
                    {"type": "array", "items": {"type": "string"}},
                ]
            }
        }
    }
    result = sanitize_json_schema(value)

    assert result["type"] == "object"
    assert result["properties"]["x"]["type"] == "string"
    assert result["properties"]["x"]["anyOf"][1] == {"type": "array", "items": {"type": "string"}}


def test_boolean_leaf_becomes_string_schema():
    assert sanitize_json_schema(True) == {"type": "string"}
    assert sanitize_json_schema(False) == {"type": "string"}

    value = {"type": "object", "properties": {"flag": True}}
    assert sanitize_json_schema(value)["properties"]["flag"] == {"type": "string"}


def test_every_nested_object_gets_a_type():
    value = {
        "properties": {
            "tags": {"items": {"enum": ["a", "b"]}},
            "limit": {"minimum": 1},
            "meta": {"required": ["id"]},
            "anything": {},
        }
    }
    result = sanitize_json_schema(value)
    props = result["properties"]

    assert props["tags"]["type"] == "array"
    assert props["tags"]["items"]["type"] == "string"
    assert props["limit"]["type"] == "number"
    assert props["meta"]["type"] == "object"
    assert props["meta"]["properties"] == {}
    assert props["anything"]["type"] == "string"


def test_type_list_uses_first_known_type():
    result = sanitize_json_schema({"type": ["null", "integer"]})
    assert result["type"] == "integer"


def test_array_without_items_gets_string_items():
    result = sanitize_json_schema({"type": "array"})
    assert result["items"] == {"type": "string"}


def test_additional_properties_schema_is_sanitized_and_bool_kept():
    result = sanitize_json_schema({"type": "object", "additionalProperties": {"enum": [1]}})
    assert result["additionalProperties"]["type"] == "string"

    result = sanitize_json_schema({"type": "object", "additionalProperties": False})
    assert result["additionalProperties"] is False


def test_scalars_pass_through_untouched():
    assert sanitize_json_schema("text") == "text"
    assert sanitize_json_schema(3) == 3
    assert sanitize_json_schema(None) is None


def test_list_elements_are_sanitized_in_place():
    value = [True, {"properties": {}}]
    result = sanitize_json_schema(value)

    assert result is value
    assert value[0] == {"type": "string"}
    assert value[1]["type"] == "object"
