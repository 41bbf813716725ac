"""Tests for command argument validation."""

import pytest
from directory_ops.errors import ValidationError
from directory_ops.validator import ArgumentValidator, field, to_json_schema


SHAPE = [
    field("userId", "string", required=True, min_length=1),
    field("limit", "integer", default=50, minimum=1, maximum=200),
    field("sortOrder", "string", default="asc", enum=["asc", "desc"]),
    field("activate", "boolean", default=False),
    field("groups", "array", default=[], items=field("groupId", "string")),
    field("mapping", "object", default={}, values=field("valueMap", "object",
                                                         values=field("groupId", "string"))),
]


def _validate(data):
    return ArgumentValidator(SHAPE).validate(data)


def test_defaults_applied_for_absent_optional_fields():
    args = _validate({"userId": "00u1"})
    assert args == {
        "userId": "00u1",
        "limit": 50,
        "sortOrder": "asc",
        "activate": False,
        "groups": [],
        "mapping": {},
    }


def test_null_optional_field_gets_default():
    assert _validate({"userId": "00u1", "limit": None})["limit"] == 50


def test_mutable_defaults_are_not_shared():
    first = _validate({"userId": "a"})
    first["groups"].append("g1")
    assert _validate({"userId": "b"})["groups"] == []


def test_missing_required_field():
    with pytest.raises(ValidationError) as exc:
        _validate({"limit": 10})
    assert exc.value.path == "userId"
    assert "Missing required field" in exc.value.message
    assert str(exc.value) == "Missing required field: 'userId' at userId"


def test_none_arguments_treated_as_empty():
    with pytest.raises(ValidationError) as exc:
        _validate(None)
    assert exc.value.path == "userId"


def test_non_object_arguments_rejected():
    with pytest.raises(ValidationError, match="must be an object"):
        _validate(["userId"])


def test_wrong_type():
    with pytest.raises(ValidationError) as exc:
        _validate({"userId": 42})
    assert exc.value.path == "userId"
    assert exc.value.message == "Expected string, got integer"


def test_empty_string_fails_min_length():
    with pytest.raises(ValidationError) as exc:
        _validate({"userId": "   "})
    assert exc.value.path == "userId"


def test_enum_violation():
    with pytest.raises(ValidationError) as exc:
        _validate({"userId": "a", "sortOrder": "sideways"})
    assert exc.value.path == "sortOrder"
    assert "Must be one of: asc, desc" in exc.value.message


@pytest.mark.parametrize("limit,fragment", [
    (0, "below minimum 1"),
    (500, "above maximum 200"),
])
def test_numeric_bounds(limit, fragment):
    with pytest.raises(ValidationError) as exc:
        _validate({"userId": "a", "limit": limit})
    assert exc.value.path == "limit"
    assert fragment in exc.value.message


def test_integral_float_accepted_as_integer():
    assert _validate({"userId": "a", "limit": 25.0})["limit"] == 25


def test_boolean_is_not_an_integer():
    with pytest.raises(ValidationError, match="Expected integer, got boolean"):
        _validate({"userId": "a", "limit": True})


def test_first_offending_field_is_reported():
    with pytest.raises(ValidationError) as exc:
        _validate({"userId": 1, "limit": 999})
    assert exc.value.path == "userId"


def test_array_items_checked_with_index_path():
    with pytest.raises(ValidationError) as exc:
        _validate({"userId": "a", "groups": ["g1", 7]})
    assert exc.value.path == "groups[1]"


def test_nested_object_values_checked():
    with pytest.raises(ValidationError) as exc:
        _validate({"userId": "a", "mapping": {"department": {"Engineering": 5}}})
    assert exc.value.path == "mapping.department.Engineering"


def test_unknown_keys_dropped():
    assert "extra" not in _validate({"userId": "a", "extra": True})


def test_email_format():
    shape = [field("email", "string", required=True, format="email")]
    assert ArgumentValidator(shape).validate({"email": "a@x.com"}) == {"email": "a@x.com"}
    with pytest.raises(ValidationError, match="Invalid email address"):
        ArgumentValidator(shape).validate({"email": "not-an-email"})


def test_validation_does_not_mutate_input():
    data = {"userId": "a"}
    _validate(data)
    assert data == {"userId": "a"}


def test_json_schema_rendering():
    schema = to_json_schema(SHAPE)
    assert schema["type"] == "object"
    assert schema["required"] == ["userId"]
    assert schema["properties"]["limit"] == {
        "type": "integer", "default": 50, "minimum": 1, "maximum": 200,
    }
    assert schema["properties"]["sortOrder"]["enum"] == ["asc", "desc"]
    assert schema["properties"]["groups"]["items"] == {"type": "string"}
    assert schema["properties"]["mapping"]["additionalProperties"]["type"] == "object"


def test_unsupported_field_type():
    with pytest.raises(ValueError):
        field("x", "datetime")
