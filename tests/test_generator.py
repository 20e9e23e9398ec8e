"""
Tests for Markdown documentation generator.

이 모듈은 Jinja2 기반 Markdown 페이지 생성을 검증합니다.
"""

import pytest
import tempfile
import shutil
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from catdoc.generator import MarkdownGenerator, format_signature, group_by_module, page_filename
from catdoc.models import FunctionEntity, FunctionSignature, Param, Return
from catdoc.pipeline import DocPipeline

FIXTURE_DIR = Path(__file__).parent / "fixtures" / "library"


class TestMarkdownGenerator:
    """MarkdownGenerator 테스트"""

    @pytest.fixture
    def temp_output_dir(self):
        """임시 출력 디렉토리 생성"""
        temp_dir = tempfile.mkdtemp()
        yield temp_dir
        shutil.rmtree(temp_dir)

    @pytest.fixture(scope="class")
    def model(self):
        return DocPipeline().run([FIXTURE_DIR]).model

    def test_generator_initialization(self, temp_output_dir):
        generator = MarkdownGenerator(temp_output_dir)
        assert generator.output_dir == Path(temp_output_dir)
        assert 'format_code' in generator.env.filters
        assert 'escape_underscores' in generator.env.filters

    def test_generate_all(self, temp_output_dir, model):
        written = MarkdownGenerator(temp_output_dir).generate_all(model)
        names = [path.name for path in written]
        assert names == [
            "bit.md", "colors.md", "hello.md", "renoise.md", "application.md", "SUMMARY.md"
        ]
        summary = (Path(temp_output_dir) / "SUMMARY.md").read_text(encoding="utf-8")
        assert "- [application](application.md)" in summary

    def test_module_page_content(self, temp_output_dir, model):
        page = MarkdownGenerator(temp_output_dir).render_module("application", model)
        assert page.startswith("# application\n")
        assert "## renoise.Application" in page
        assert "#### show\\_message" in page
        assert "```lua\nfunction renoise.Application:show_message(message: string)\n```" in page
        assert "## Aliases" in page
        assert "### ModifierStates" in page

    def test_enum_and_globals(self, temp_output_dir, model):
        generator = MarkdownGenerator(temp_output_dir)
        colors = generator.render_module("colors", model)
        assert "| `white` | `32` |" in colors
        hello = generator.render_module("hello", model)
        assert "| `HELLO_VERSION` | `string` | `\"0.0.1\"` |" in hello
        assert "### greet" in hello

    def test_overloads_rendered(self, temp_output_dir, model):
        page = MarkdownGenerator(temp_output_dir).render_module("bit", model)
        assert "function bitlib.tohex(x: integer) -> string" in page
        assert "function bitlib.tohex(x: integer, n: integer) -> string" in page

    def test_location_rendered(self, temp_output_dir, model):
        page = MarkdownGenerator(temp_output_dir).render_module("renoise", model)
        assert "*Location: library/renoise.lua:4*" in page

    def test_slashed_module_name(self, temp_output_dir, tmp_path):
        (tmp_path / "app.lua").write_text("---@meta renoise/app\n\n---@class Foo\nFoo = {}\n")
        model = DocPipeline().run([tmp_path]).model
        written = MarkdownGenerator(temp_output_dir).generate_all(model)
        assert [path.name for path in written] == ["renoise.app.md", "SUMMARY.md"]
        assert all(path.parent == Path(temp_output_dir) for path in written)
        summary = (Path(temp_output_dir) / "SUMMARY.md").read_text(encoding="utf-8")
        assert "(renoise.app.md)" in summary

    def test_unknown_module_renders_header_only(self, temp_output_dir, model):
        page = MarkdownGenerator(temp_output_dir).render_module("missing", model)
        assert page.strip() == "# missing"

    def test_custom_template_dir(self, temp_output_dir, model, tmp_path):
        (tmp_path / "module.md.j2").write_text("{{ module }}:{{ classes | length }}")
        (tmp_path / "summary.md.j2").write_text("{% for page in pages %}{{ page.path }} {% endfor %}")
        generator = MarkdownGenerator(temp_output_dir, template_dir=tmp_path)
        assert generator.render_module("renoise", model) == "renoise:1"


class TestFilters:
    """템플릿 필터 테스트"""

    def test_format_signature(self):
        function = FunctionEntity(
            name="pick", owner="Foo",
            params=[Param("a", "integer"), Param("b", "string", optional=True), Param("c")],
            returns=[Return("boolean"), Return("string")],
        )
        assert format_signature(function) == \
            "function Foo.pick(a: integer, b?: string, c: any) -> boolean, string"

    def test_format_signature_overload(self):
        function = FunctionEntity(name="f")
        overload = FunctionSignature(params=[Param("x", "integer?", optional=True)])
        assert format_signature(function, overload) == "function f(x: integer?)"

    def test_escape_underscores(self):
        assert MarkdownGenerator._escape_underscores("show_message") == "show\\_message"

    def test_format_code(self):
        assert MarkdownGenerator._format_code("x = 1") == "```lua\nx = 1\n```"

    def test_group_by_module(self):
        model = DocPipeline().run([FIXTURE_DIR]).model
        groups = group_by_module(model)
        assert list(groups) == ["bit", "colors", "hello", "renoise", "application"]

    @pytest.mark.parametrize("module, expected", [
        ("renoise", "renoise.md"),
        ("renoise/app", "renoise.app.md"),
        ("a\\b", "a.b.md"),
        ("../up", "up.md"),
        ("with space", "with_space.md"),
        ("", "global.md"),
    ])
    def test_page_filename(self, module, expected):
        assert page_filename(module) == expected
