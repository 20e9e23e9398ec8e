"""
Tests for the declaration binder.

이 모듈은 주석 블록과 선언의 연결, orphan 태그 복구를 검증합니다.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from catdoc.binder import BindingKind, DeclarationBinder
from catdoc.models import Declaration, DeclarationKind, Severity, TableMember
from catdoc.tags import TagParser


def function_decl(path: str, params=None) -> Declaration:
    return Declaration(
        kind=DeclarationKind.FUNCTION_DEF,
        path=path,
        params=params or [],
        is_method=":" in path,
        line_number=10,
    )


class TestDeclarationBinder:
    """DeclarationBinder 테스트"""

    @pytest.fixture
    def binder(self):
        return DeclarationBinder()

    @pytest.fixture
    def parser(self):
        return TagParser()

    def test_function_binding(self, binder, parser):
        block = parser.parse_block(["---@param x integer"])
        bindings = binder.bind(block, function_decl("bit.tobit", ["x"]))
        assert [b.kind for b in bindings] == [BindingKind.FUNCTION]
        assert binder.diagnostics == []

    def test_class_binding_keeps_declaration(self, binder, parser):
        block = parser.parse_block(["---@class bitlib"])
        declaration = Declaration(kind=DeclarationKind.MODULE_TABLE, path="bit")
        bindings = binder.bind(block, declaration)
        assert len(bindings) == 1
        assert bindings[0].kind is BindingKind.CLASS
        assert bindings[0].declaration is declaration

    def test_alias_does_not_consume_declaration(self, binder, parser):
        block = parser.parse_block(["---@alias Mode string"])
        bindings = binder.bind(block, function_decl("hello"))
        assert [b.kind for b in bindings] == [BindingKind.ALIAS, BindingKind.FUNCTION]
        assert bindings[1].block.tags == []

    def test_meta_rebinds_following_declaration(self, binder, parser):
        block = parser.parse_block(["---@meta"])
        declaration = Declaration(kind=DeclarationKind.GLOBAL_VAR, path="X", value="1")
        kinds = [b.kind for b in binder.bind(block, declaration)]
        assert kinds == [BindingKind.META, BindingKind.GLOBAL]

    def test_meta_with_class_in_same_block(self, binder, parser):
        block = parser.parse_block(["---@meta bit", "---Bit ops", "---@class bitlib"])
        declaration = Declaration(kind=DeclarationKind.MODULE_TABLE, path="bit")
        bindings = binder.bind(block, declaration)
        assert [b.kind for b in bindings] == [BindingKind.META, BindingKind.CLASS]
        assert bindings[1].declaration is declaration
        assert [t.word for t in bindings[1].block.tags] == ["class"]

    def test_enum_binds_table(self, binder, parser):
        block = parser.parse_block(["---@enum colors"])
        declaration = Declaration(
            kind=DeclarationKind.LOCAL_VAR, path="COLORS", is_local=True,
            members=[TableMember("black", "0")],
        )
        bindings = binder.bind(block, declaration)
        assert [b.kind for b in bindings] == [BindingKind.ENUM]
        assert bindings[0].declaration is declaration

    def test_typed_table_is_field(self, binder, parser):
        block = parser.parse_block(["---@type table<string, integer>"])
        declaration = Declaration(kind=DeclarationKind.MODULE_TABLE, path="renoise.tools")
        assert binder.bind(block, declaration)[0].kind is BindingKind.FIELD

    def test_untyped_table(self, binder, parser):
        block = parser.parse_block(["---Tools."])
        declaration = Declaration(kind=DeclarationKind.MODULE_TABLE, path="tools")
        assert binder.bind(block, declaration)[0].kind is BindingKind.TABLE

    def test_local_declaration(self, binder, parser):
        block = parser.parse_block(["---@param color colors"])
        declaration = Declaration(
            kind=DeclarationKind.FUNCTION_DEF, path="setColor", params=["color"], is_local=True,
        )
        assert binder.bind(block, declaration)[0].kind is BindingKind.LOCAL

    def test_description_only(self, binder, parser):
        bindings = binder.bind(parser.parse_block(["---Just text."]), None)
        assert [b.kind for b in bindings] == [BindingKind.DESCRIPTION]


class TestOrphanTags:
    """함수 선언 없이 쓰인 함수 태그 테스트"""

    @pytest.fixture
    def binder(self):
        return DeclarationBinder()

    def test_param_without_declaration(self, binder):
        block = TagParser().parse_block(
            ["---@param x integer", "---@return string"], file_path="a.lua", line_number=3,
        )
        bindings = binder.bind(block, None)
        assert bindings[0].kind is BindingKind.ORPHAN
        assert [t.word for t in bindings[0].orphans] == ["param", "return"]

        assert len(binder.diagnostics) == 1
        diagnostic = binder.diagnostics[0]
        assert diagnostic.severity is Severity.WARNING
        assert diagnostic.code == "orphan-tag"
        assert diagnostic.entity == "unattached"
        assert diagnostic.file_path == "a.lua"

    def test_param_before_field_assignment(self, binder):
        block = TagParser().parse_block(["---Version.", "---@param x integer"])
        declaration = Declaration(
            kind=DeclarationKind.FIELD_ASSIGNMENT, path="renoise.VERSION", value="1",
        )
        bindings = binder.bind(block, declaration)
        assert [b.kind for b in bindings] == [BindingKind.ORPHAN, BindingKind.FIELD]
        assert bindings[1].block.tags == []
        assert bindings[1].block.description == "Version."

    def test_function_tags_mixed_with_class(self, binder):
        block = TagParser().parse_block(["---@class Foo", "---@return Foo"])
        declaration = function_decl("Foo.new")
        kinds = [b.kind for b in binder.bind(block, declaration)]
        assert kinds == [BindingKind.ORPHAN, BindingKind.CLASS, BindingKind.FUNCTION]
