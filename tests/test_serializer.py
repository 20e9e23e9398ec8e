"""
Tests for the JSON serializer.

이 모듈은 doc.json 출력 형식(순서, 생략 규칙, 리터럴 보존)을 검증합니다.
"""

import json
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from catdoc.errors import SerializationError
from catdoc.models import ClassEntity, DocModel, FieldEntity, FunctionEntity, Param
from catdoc.pipeline import DocPipeline
from catdoc.serializer import DOC_FILENAME, JsonSerializer, serialize_model, write_model

FIXTURE_DIR = Path(__file__).parent / "fixtures" / "library"


def find(data, kind, name):
    return next(e for e in data if e["kind"] == kind and e["name"] == name)


class TestJsonSerializer:
    """JsonSerializer 테스트"""

    @pytest.fixture(scope="class")
    def model(self):
        return DocPipeline().run([FIXTURE_DIR]).model

    @pytest.fixture(scope="class")
    def data(self, model):
        return json.loads(serialize_model(model))

    def test_idempotent(self, model):
        rebuilt = DocPipeline().run([FIXTURE_DIR]).model
        assert serialize_model(model) == serialize_model(rebuilt)

    def test_format(self, model):
        text = serialize_model(model)
        assert text.startswith("[\n  {\n    \"kind\": ")
        assert text.endswith("]\n")

    def test_literal_kept_as_source_text(self, data):
        renoise = find(data, "class", "renoise")
        api_version = next(f for f in renoise["fields"] if f["name"] == "API_VERSION")
        assert api_version["value"] == "6.1"
        assert api_version["type"] == "number"

    def test_show_message(self, data):
        app = find(data, "class", "renoise.Application")
        method = app["methods"][0]
        assert method["name"] == "show_message"
        assert method["owner"] == "renoise.Application"
        assert method["method"] is True
        assert method["params"] == [{
            "name": "message", "type": "string", "optional": False,
            "description": "an informative message",
        }]
        assert method["returns"] == []
        assert method["nodiscard"] is False

    def test_overloads_serialized(self, data):
        tohex = next(m for m in find(data, "class", "bitlib")["methods"] if m["name"] == "tohex")
        assert [p["name"] for p in tohex["params"]] == ["x"]
        assert [p["name"] for p in tohex["overloads"][0]["params"]] == ["x", "n"]
        assert tohex["nodiscard"] is True

    def test_enum_members(self, data):
        colors = find(data, "enum", "colors")
        assert colors["members"][0] == {"name": "black", "value": "0"}
        assert [m["name"] for m in colors["members"]] == [
            "black", "red", "green", "yellow", "blue", "white"
        ]

    def test_empty_fields_omitted(self, data):
        hello = find(data, "function", "hello")
        assert "owner" not in hello
        assert "overloads" not in hello
        assert "deprecated" not in hello
        assert hello["params"] == []
        assert None not in hello.values()

    def test_kind_is_first_key(self, data):
        assert all(next(iter(entity)) == "kind" for entity in data)

    def test_location_relative_to_source_root(self, data):
        renoise = find(data, "class", "renoise")
        assert renoise["location"] == {"file": "library/renoise.lua", "line": 4}
        app = find(data, "class", "renoise.Application")
        assert app["location"]["file"] == "library/renoise/application.lua"
        assert app["methods"][0]["location"]["file"] == "library/renoise/application.lua"

    def test_location_is_last_key(self, data):
        assert all(list(entity)[-1] == "location" for entity in data)

    def test_location_omitted_without_file(self):
        model = DocModel()
        model.add(FunctionEntity(name="f"))
        assert "location" not in JsonSerializer().to_data(model)[0]

    def test_detached_member_has_owner(self, tmp_path):
        (tmp_path / "a.lua").write_text("---@param x integer\nfunction ghost.run(x) end\n")
        data = json.loads(serialize_model(DocPipeline().run([tmp_path]).model))
        assert data == [{
            "kind": "function", "name": "run", "owner": "ghost",
            "params": [{"name": "x", "type": "integer", "optional": False}],
            "returns": [], "nodiscard": False,
            "location": {"file": f"{tmp_path.name}/a.lua", "line": 2},
        }]

    def test_duplicate_field_last_wins(self):
        model = DocModel()
        model.add(ClassEntity(name="Foo", fields=[
            FieldEntity(owner="Foo", name="a", type="string"),
            FieldEntity(owner="Foo", name="b", type="boolean"),
            FieldEntity(owner="Foo", name="a", type="integer"),
        ]))
        fields = JsonSerializer().to_data(model)[0]["fields"]
        assert [(f["name"], f["type"]) for f in fields] == [("a", "integer"), ("b", "boolean")]

    def test_untyped_param_is_any(self):
        model = DocModel()
        model.add(FunctionEntity(name="f", params=[Param(name="x")]))
        data = JsonSerializer().to_data(model)
        assert data[0]["params"] == [{"name": "x", "type": "any", "optional": False}]


class TestWriteModel:
    """doc.json 파일 쓰기 테스트"""

    def test_write(self, tmp_path):
        model = DocModel()
        model.add(FunctionEntity(name="hello", module="hello"))
        path = write_model(model, tmp_path / "out" / DOC_FILENAME)
        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))[0]["name"] == "hello"

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(SerializationError):
            write_model(DocModel(), blocker / DOC_FILENAME)
