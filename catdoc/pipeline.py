"""
End-to-end documentation pipeline.

이 모듈은 파일 수집 -> 스캔 -> 태그 파싱 -> 바인딩 -> 빌드 -> 검증 단계를 순서대로 실행합니다.
파일은 경로의 사전 순으로 처리되므로 같은 입력은 항상 같은 모델을 만듭니다.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .binder import Binding, DeclarationBinder
from .builder import build_model
from .models import Diagnostic, DocModel, Severity
from .source import SourceScanner
from .tags import COMMENT_PREFIX, TagParser
from .validator import validate_model

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".lua"


@dataclass
class PipelineResult:
    """파이프라인 실행 결과"""
    model: DocModel
    diagnostics: List[Diagnostic] = field(default_factory=list)
    files: List[Path] = field(default_factory=list)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def collect_files(sources: Iterable[Union[str, Path]]) -> List[Path]:
    """
    소스 경로에서 .lua 파일 수집

    디렉토리는 재귀적으로 탐색하고, 파일은 그대로 포함합니다.
    결과는 중복 없이 경로 사전 순으로 정렬됩니다.
    """
    files = set()
    for source in sources:
        path = Path(source)
        if path.is_dir():
            files.update(p for p in path.rglob(f"*{SOURCE_SUFFIX}") if p.is_file())
        elif path.is_file():
            files.add(path)
        else:
            logger.warning(f"소스 경로를 찾을 수 없음: {path}")
    return sorted(files, key=lambda p: p.as_posix())


def source_label(path: Path, sources: Iterable[Union[str, Path]]) -> str:
    """
    출력에 기록할 소스 위치 이름

    소스 디렉토리 이름부터의 상대 경로 (`library/renoise/application.lua`) 이며,
    파일을 직접 지정한 경우에는 `상위 디렉토리/파일 이름` 입니다.
    실행 위치와 무관하므로 같은 입력이면 항상 같은 값이 됩니다.
    """
    resolved = path.resolve()
    for source in sources:
        root = Path(source)
        if not root.is_dir():
            continue
        root = root.resolve()
        if root == resolved or root in resolved.parents:
            return resolved.relative_to(root.parent).as_posix()
    return Path(resolved.parent.name, resolved.name).as_posix()


class DocPipeline:
    """Lua 스텁 -> DocModel 파이프라인"""

    def __init__(self, comment_prefix: str = COMMENT_PREFIX):
        self.scanner = SourceScanner(comment_prefix)
        self.parser = TagParser(comment_prefix)
        self.binder = DeclarationBinder()

    def parse_file(self, path: Path, text: str, label: Optional[str] = None) -> List[Binding]:
        """파일 하나의 바인딩 목록 (label 은 진단과 출력에 쓰이는 소스 위치 이름)"""
        bindings: List[Binding] = []
        for index, chunk in enumerate(self.scanner.scan(text)):
            block = self.parser.parse_block(
                chunk.comment_lines,
                block_index=index,
                file_path=label or path.as_posix(),
                line_number=chunk.line_number,
            )
            bindings.extend(self.binder.bind(block, chunk.declaration))
        logger.debug(f"{path}: 바인딩 {len(bindings)}개")
        return bindings

    def run(self, sources: Iterable[Union[str, Path]]) -> PipelineResult:
        """
        전체 파이프라인 실행

        Args:
            sources: .lua 파일 또는 디렉토리 목록

        Returns:
            PipelineResult: 모델과 진단 (바인딩 진단 다음에 검증 진단)
        """
        sources = list(sources)
        files = collect_files(sources)
        logger.info(f"소스 파일 {len(files)}개 처리 시작")

        diagnostics: List[Diagnostic] = []
        bindings: List[Binding] = []
        for path in files:
            label = source_label(path, sources)
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"파일을 읽을 수 없음: {path} ({e})")
                diagnostics.append(Diagnostic(
                    severity=Severity.WARNING,
                    code="unreadable-file",
                    message=f"cannot read file: {e}",
                    file_path=label,
                ))
                continue
            bindings.extend(self.parse_file(path, text, label))

        model = build_model(bindings)
        diagnostics.extend(self.binder.diagnostics)
        self.binder.diagnostics = []
        diagnostics.extend(validate_model(model))

        logger.info(f"엔티티 {len(model)}개 생성")
        return PipelineResult(model=model, diagnostics=diagnostics, files=files)
