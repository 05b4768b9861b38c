import pytest

from ctimeta.annotations import (
    Annotations,
    AnnotationType,
    GJsonPath,
    InstanceSourceMap,
    TypeSourceMap,
)


@pytest.mark.parametrize(
    "schema, expected",
    [
        (None, []),
        ("cti.schema.value", ["cti.schema.value"]),
        (["cti.schema.one", "cti.schema.two"], ["cti.schema.one", "cti.schema.two"]),
        (["cti.schema.one", 123, "cti.schema.two"], ["cti.schema.one", "cti.schema.two"]),
        ([123, 456], []),
    ],
)
def test_read_cti_schema(schema, expected):
    assert sorted(Annotations(schema=schema).read_cti_schema()) == sorted(expected)


def test_read_cti_schema_null_member():
    assert Annotations(schema=["cti.schema.one", None]).read_cti_schema() == ["cti.schema.one", "null"]


@pytest.mark.parametrize(
    "reference, expected",
    [
        (None, []),
        (True, ["true"]),
        (False, ["false"]),
        ("ref.value", ["ref.value"]),
        (["ref.one", "ref.two"], ["ref.one", "ref.two"]),
        (["ref.one", 123, "ref.two"], ["ref.one", "ref.two"]),
        ([123, 456], []),
    ],
)
def test_read_reference(reference, expected):
    assert Annotations(reference=reference).read_reference() == expected


def test_gjson_root():
    assert GJsonPath(".").get_value(b'{"val": "test"}') == {"val": "test"}


def test_gjson_string():
    assert GJsonPath(".val").get_value(b'{"val": "test"}') == "test"


def test_gjson_array_with_trailing_hash():
    assert GJsonPath(".val.#").get_value(b'{"val": ["test", "test"]}') == ["test", "test"]


def test_gjson_nested_item_with_trailing_hash():
    assert GJsonPath(".val.nested.#").get_value(b'{"val": { "nested": "test" } }') == "test"


def test_gjson_nested_array_with_trailing_hash():
    doc = b'{"val": { "arr": ["test", "test"] } }'
    assert GJsonPath(".val.arr.#").get_value(doc) == ["test", "test"]


def test_gjson_accepts_text_and_decoded_documents():
    path = GJsonPath(".val")
    assert path.get_value('{"val": "test"}') == path.get_value({"val": "test"}) == "test"


def test_gjson_missing_path():
    assert GJsonPath(".missing.key").get_value(b'{"val": "test"}') is None


def test_gjson_array_index_and_map():
    doc = {"items": [{"name": "a"}, {"name": "b"}]}
    assert GJsonPath(".items.1.name").get_value(doc) == "b"
    assert GJsonPath(".items.#.name").get_value(doc) == ["a", "b"]


def test_gjson_escaped_dot():
    assert GJsonPath(".a\\.b").get_value({"a.b": "test"}) == "test"


def test_gjson_path_is_a_string():
    path = GJsonPath(".field")
    assert {path: 1}[".field"] == 1


def test_annotations_from_dict():
    assert Annotations.from_dict({"cti.schema": "test.annotation"}) == Annotations(schema="test.annotation")
    assert Annotations.from_dict({"cti.reference": "address.annotation"}) == Annotations(
        reference="address.annotation"
    )
    assert Annotations.from_dict({"cti.meta": "iso8601"}) == Annotations(meta="iso8601")


def test_annotations_from_dict_ignores_unknown_keys():
    assert Annotations.from_dict({"cti": "test"}) == Annotations()


def test_annotations_from_dict_rejects_wrong_types():
    with pytest.raises(ValueError):
        Annotations.from_dict({"cti.id": "yes"})
    with pytest.raises(ValueError):
        Annotations.from_dict({"cti.meta": 5})
    with pytest.raises(ValueError):
        Annotations.from_dict("invalid json")


def test_annotations_round_trip():
    original = Annotations(
        id=True,
        asset=False,
        reference=["ref.one"],
        schema="cti.vendor.app.test.v1.0",
        meta="iso8601",
        property_names={"pattern": "^a"},
    )
    data = original.to_dict()
    assert data["cti.id"] is True
    assert data["cti.asset"] is False
    assert Annotations.from_dict(data) == original


def test_empty_annotations_serialize_to_empty_dict():
    assert Annotations().to_dict() == {}


def test_type_source_map_from_legacy_annotations():
    source_map = TypeSourceMap.from_dict(
        {".field": {"cti.schema": "test.annotation"}, "$name": "Type"}
    )
    assert source_map.name == "Type"
    assert source_map.source_path == ""


def test_type_source_map_round_trip():
    source_map = TypeSourceMap(
        name="TestType", source_path="test/type.raml", original_path="test/original.raml", line=3
    )
    assert TypeSourceMap.from_dict(source_map.to_dict()) == source_map


def test_instance_source_map_from_dict():
    source_map = InstanceSourceMap.from_dict(
        {
            "$annotationType": {"name": "TestInstance"},
            "$sourcePath": "test/instance.raml",
            "$originalPath": "test/original.raml",
        }
    )
    assert source_map.annotation_type.name == "TestInstance"
    assert source_map.source_path == "test/instance.raml"
    assert source_map.original_path == "test/original.raml"
    assert InstanceSourceMap.from_dict(source_map.to_dict()) == source_map


def test_source_map_rejects_wrong_types():
    with pytest.raises(ValueError):
        TypeSourceMap.from_dict({"$line": "3"})
    with pytest.raises(ValueError):
        InstanceSourceMap.from_dict({"$annotationType": "TestInstance"})


def test_annotation_type_from_dict():
    annotation_type = AnnotationType.from_dict({"name": "TestInstance", "type": "object"})
    assert annotation_type == AnnotationType(name="TestInstance", type="object")
    assert annotation_type.to_dict() == {"name": "TestInstance", "type": "object"}