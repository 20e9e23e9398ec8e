"""
Tests for the annotation tag parser.

이 모듈은 `---@` 태그 파싱과 설명 줄 연결 규칙을 검증하는 테스트를 포함합니다.
"""

import pytest
import sys
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

from catdoc.errors import LexError
from catdoc.models import TagKind
from catdoc.tags import (
    TagParser, join_lines, parse_fun_signature, scan_type, split_top_level,
    type_identifiers
)


def comment(text: str):
    """여러 줄 문자열을 주석 줄 목록으로 변환"""
    return [line for line in text.strip("\n").splitlines()]


class TestScanType:
    """타입 표현식 스캔 테스트"""

    def test_simple_type(self):
        assert scan_type("string The rest") == ("string", 6)

    def test_union_with_spaces(self):
        type_expr, _ = scan_type("string | integer desc")
        assert type_expr == "string | integer"

    def test_nested_brackets(self):
        type_expr, _ = scan_type("table<string, fun(a: integer): boolean> tail")
        assert type_expr == "table<string, fun(a: integer): boolean>"

    def test_fun_return_after_colon(self):
        type_expr, _ = scan_type("fun(x: number): string more")
        assert type_expr == "fun(x: number): string"

    def test_unbalanced_raises(self):
        with pytest.raises(LexError):
            scan_type("table<string")

    def test_missing_type_raises(self):
        with pytest.raises(LexError):
            scan_type("   ")


class TestTypeHelpers:
    """타입 유틸리티 테스트"""

    def test_split_top_level(self):
        assert split_top_level("a: integer, b: fun(x, y), c") == ["a: integer", "b: fun(x, y)", "c"]

    def test_parse_fun_signature(self):
        signature = parse_fun_signature("fun(x: integer, n?: integer): string")
        assert [p.name for p in signature.params] == ["x", "n"]
        assert signature.params[1].optional is True
        assert [r.type for r in signature.returns] == ["string"]

    def test_parse_fun_signature_unnamed(self):
        signature = parse_fun_signature("fun(integer)")
        assert signature.params[0].name == "arg1"
        assert signature.params[0].type == "integer"

    def test_type_identifiers_skip_literals_and_keys(self):
        names = type_identifiers("{ name: string, mode: \"a\"|\"b\" }|renoise.Song")
        assert names == ["string", "renoise.Song"]


class TestJoinLines:
    """설명 줄 연결 규칙 테스트"""

    def test_plain_lines_join_with_space(self):
        assert join_lines([("one", False), ("two", False)]) == "one two"

    def test_hard_break(self):
        assert join_lines([("one", True), ("two", False)]) == "one\ntwo"

    def test_paragraph_break(self):
        assert join_lines([("one", False), ("", False), ("two", False)]) == "one\n\ntwo"

    def test_list_item_starts_new_line(self):
        text = join_lines([("keys:", False), ("* shift", False), ("* alt", False)])
        assert text == "keys:\n* shift\n* alt"


class TestTagParser:
    """TagParser 테스트"""

    @pytest.fixture
    def parser(self):
        return TagParser()

    def test_param_and_return(self, parser):
        block = parser.parse_block(comment("""
---Greet the person with the given name.
---@param name string The name to use in the greeting
---@return string # The greeting
"""))
        assert block.description == "Greet the person with the given name."
        param = block.first(TagKind.PARAM)
        assert (param.name, param.type, param.description) == (
            "name", "string", "The name to use in the greeting"
        )
        ret = block.first(TagKind.RETURN)
        assert (ret.type, ret.name, ret.description) == ("string", None, "The greeting")

    def test_optional_param(self, parser):
        block = parser.parse_block(["---@param n? integer", "---@param m string|nil"])
        params = block.tags_of(TagKind.PARAM)
        assert params[0].optional is True
        assert params[1].optional is True

    def test_named_return(self, parser):
        ret = parser.parse_block(["---@return boolean ok success flag"]).first(TagKind.RETURN)
        assert ret.name == "ok"
        assert ret.description == "success flag"

    def test_class_with_parents(self, parser):
        tag = parser.parse_block(["---@class (exact) Song : Base, Other"]).first(TagKind.CLASS)
        assert tag.name == "Song"
        assert tag.parents == ["Base", "Other"]

    def test_field_leading_description(self, parser):
        block = parser.parse_block(comment("""
---The Renoise application.
---@class renoise.Application
---
---**READ-ONLY** Access to the log.
---Will be opened.
---@field log_filename string The path to the log file.
"""))
        assert block.description == "The Renoise application."
        field_tag = block.first(TagKind.FIELD)
        assert field_tag.leading == "**READ-ONLY** Access to the log. Will be opened."
        assert field_tag.description == "The path to the log file."

    def test_field_visibility(self, parser):
        tag = parser.parse_block(["---@field private cache table"]).first(TagKind.FIELD)
        assert tag.visibility == "private"
        assert tag.name == "cache"

    def test_alias_values(self, parser):
        tag = parser.parse_block(comment("""
---@alias Mode
---| "read" # open for reading
---| "write"
""")).first(TagKind.ALIAS)
        assert tag.name == "Mode"
        assert tag.type is None
        assert tag.values == [("\"read\"", "open for reading"), ("\"write\"", "")]

    def test_overload_signature(self, parser):
        tag = parser.parse_block(["---@overload fun(x: integer): string"]).first(TagKind.OVERLOAD)
        assert [p.name for p in tag.signature.params] == ["x"]

    def test_generic_names(self, parser):
        tag = parser.parse_block(["---@generic K, V : table"]).first(TagKind.GENERIC)
        assert tag.names == ["K", "V"]

    def test_continuation_appends_to_tag(self, parser):
        tag = parser.parse_block([
            "---@param x integer first part",
            "---second part",
        ]).first(TagKind.PARAM)
        assert tag.description == "first part second part"

    def test_unknown_tag_preserved(self, parser):
        block = parser.parse_block(["---@see other"])
        tag = block.tags[0]
        assert tag.kind is TagKind.UNKNOWN
        assert tag.word == "see"
        assert tag.raw == "@see other"

    def test_malformed_payload_becomes_unknown(self, parser):
        block = parser.parse_block(["---@param x table<string"])
        tag = block.tags[0]
        assert tag.kind is TagKind.UNKNOWN
        assert tag.error

    def test_tag_order_preserved(self, parser):
        block = parser.parse_block([
            "---@param a integer",
            "---@param b string",
            "---@return boolean",
        ])
        assert [t.kind for t in block.tags] == [TagKind.PARAM, TagKind.PARAM, TagKind.RETURN]
