"""
Markdown documentation generator using Jinja2 templates.

이 모듈은 DocModel을 모듈별 Markdown 페이지와 SUMMARY.md 목차로 렌더링합니다.
"""

import re
import logging
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Union

from jinja2 import Environment, FileSystemLoader

from .models import (
    AliasEntity, ClassEntity, DocModel, Entity, EnumEntity, FieldEntity,
    FunctionEntity, FunctionSignature, GlobalEntity
)

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
SUMMARY_FILENAME = "SUMMARY.md"
DEFAULT_MODULE = "global"

_UNSAFE_FILENAME = re.compile(r"[^\w.-]+")


def format_signature(function: FunctionEntity, signature: Optional[FunctionSignature] = None) -> str:
    """`function name(a: T, b?: U) -> R` 형태의 한 줄 시그니처"""
    signature = signature or function.signature()
    params = []
    for param in signature.params:
        optional = "?" if param.optional and not (param.type or "").endswith("?") else ""
        params.append(f"{param.name}{optional}: {param.type or 'any'}")
    text = f"function {function.full_name}({', '.join(params)})"
    if signature.returns:
        text += " -> " + ", ".join(ret.type for ret in signature.returns)
    return text


def page_filename(module: str) -> str:
    """모듈 이름을 출력 디렉토리 바로 아래의 파일 이름으로 변환 (`renoise/app` -> `renoise.app.md`)"""
    name = module.replace("/", ".").replace("\\", ".")
    name = _UNSAFE_FILENAME.sub("_", name).strip(".")
    return f"{name or DEFAULT_MODULE}.md"


def group_by_module(model: DocModel) -> "OrderedDict[str, List[Entity]]":
    """최초 등장 순서를 유지하며 모듈 이름별로 엔티티 묶기"""
    groups: "OrderedDict[str, List[Entity]]" = OrderedDict()
    for entity in model.entities():
        module = entity.module or DEFAULT_MODULE
        groups.setdefault(module, []).append(entity)
    return groups


class MarkdownGenerator:
    """Markdown 문서 생성기"""

    def __init__(self, output_dir: Union[str, Path], template_dir: Optional[Union[str, Path]] = None):
        """
        초기화

        Args:
            output_dir: 출력 디렉토리 경로
            template_dir: Jinja2 템플릿 디렉토리 경로 (기본값: 패키지 내장 템플릿)
        """
        self.output_dir = Path(output_dir)
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR

        # Jinja2 환경 설정
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

        # 커스텀 필터 등록
        self.env.filters['format_code'] = self._format_code
        self.env.filters['escape_underscores'] = self._escape_underscores
        self.env.filters['signature'] = format_signature

    def generate_all(self, model: DocModel) -> List[Path]:
        """
        모든 문서 생성

        Args:
            model: 빌드된 문서 그래프

        Returns:
            생성된 파일 경로 목록 (SUMMARY.md 포함)
        """
        logger.info("Markdown 문서 생성 시작...")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        written: List[Path] = []
        pages: List[Dict[str, str]] = []
        for module, entities in group_by_module(model).items():
            filename = page_filename(module)
            path = self.output_dir / filename
            path.write_text(self._render_entities(module, entities), encoding="utf-8")
            logger.debug(f"페이지 생성: {path}")
            pages.append({"title": module, "path": filename})
            written.append(path)

        summary = self.env.get_template("summary.md.j2").render(pages=pages)
        summary_path = self.output_dir / SUMMARY_FILENAME
        summary_path.write_text(summary, encoding="utf-8")
        written.append(summary_path)

        logger.info(f"Markdown 문서 생성 완료: {self.output_dir} ({len(pages)}개 페이지)")
        return written

    def render_module(self, module: str, model: DocModel) -> str:
        """단일 모듈 페이지 렌더링"""
        return self._render_entities(module, group_by_module(model).get(module, []))

    def _render_entities(self, module: str, entities: List[Entity]) -> str:
        template = self.env.get_template("module.md.j2")
        return template.render(
            module=module,
            classes=[e for e in entities if isinstance(e, ClassEntity)],
            functions=[e for e in entities if isinstance(e, FunctionEntity)],
            fields=[e for e in entities if isinstance(e, FieldEntity)],
            aliases=[e for e in entities if isinstance(e, AliasEntity)],
            enums=[e for e in entities if isinstance(e, EnumEntity)],
            globals=[e for e in entities if isinstance(e, GlobalEntity)],
        )

    @staticmethod
    def _format_code(code: str) -> str:
        """코드 포맷팅 필터"""
        return f"```lua\n{code}\n```"

    @staticmethod
    def _escape_underscores(text: str) -> str:
        """마크다운 본문에서 언더스코어 이스케이프"""
        return text.replace("_", "\\_")
