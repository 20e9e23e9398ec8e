"""
Declaration binder.

이 모듈은 주석 블록과 뒤따르는 선언을 연결하고 바인딩 종류를 분류합니다.
함수 선언 없이 쓰인 함수 태그는 orphan 진단으로 보고하고 계속 진행합니다.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional
from enum import Enum

from .errors import BindError
from .models import (
    CommentBlock, Declaration, DeclarationKind, Diagnostic, Severity, Tag, TagKind
)

logger = logging.getLogger(__name__)

# 함수 선언이 있어야 의미가 있는 태그
FUNCTION_TAGS = (
    TagKind.PARAM, TagKind.RETURN, TagKind.OVERLOAD,
    TagKind.NODISCARD, TagKind.VARARG, TagKind.GENERIC,
)

# 선언 없이도 성립하는 선언적 태그
DECLARATIVE_TAGS = (TagKind.META, TagKind.CLASS, TagKind.ALIAS, TagKind.ENUM)


class BindingKind(Enum):
    """바인딩 종류"""
    META = "meta"
    CLASS = "class"
    ENUM = "enum"
    ALIAS = "alias"
    FUNCTION = "function"
    FIELD = "field"
    GLOBAL = "global"
    TABLE = "table"
    LOCAL = "local"
    DESCRIPTION = "description"
    ORPHAN = "orphan"


@dataclass
class Binding:
    """(주석 블록, 선언) 연결 결과"""
    kind: BindingKind
    block: CommentBlock
    declaration: Optional[Declaration] = None
    orphans: List[Tag] = field(default_factory=list)


class DeclarationBinder:
    """주석 블록 - 선언 바인더"""

    def __init__(self):
        self.diagnostics: List[Diagnostic] = []

    def bind(self, block: CommentBlock, declaration: Optional[Declaration]) -> List[Binding]:
        """
        주석 블록 하나를 바인딩 목록으로 변환

        Args:
            block: 파싱된 주석 블록
            declaration: 블록 바로 뒤의 선언 (없으면 None)

        Returns:
            바인딩 목록 (alias/meta 처럼 선언을 소비하지 않는 블록은
            선언에 대한 바인딩이 별도로 추가됨)
        """
        bindings: List[Binding] = []
        try:
            self._check_function_context(block, declaration)
        except BindError as e:
            self._report_orphans(e, block)
            orphan_ids = {id(tag) for tag in e.tags}
            bindings.append(Binding(BindingKind.ORPHAN, block, None, orphans=list(e.tags)))
            block = replace(block, tags=[t for t in block.tags if id(t) not in orphan_ids])

        bindings.extend(self._classify(block, declaration))
        return bindings

    def _check_function_context(self, block: CommentBlock, declaration: Optional[Declaration]):
        function_tags = [tag for tag in block.tags if tag.kind in FUNCTION_TAGS]
        if not function_tags:
            return
        if declaration is None:
            raise BindError("function tags with no following function declaration", function_tags)
        if declaration.kind is not DeclarationKind.FUNCTION_DEF:
            raise BindError(
                f"function tags before '{declaration.path}', which is not a function",
                function_tags,
            )
        if block.has(*DECLARATIVE_TAGS):
            raise BindError("function tags mixed with a declarative tag", function_tags)

    def _report_orphans(self, error: BindError, block: CommentBlock):
        words = ", ".join(f"@{tag.word}" for tag in error.tags)
        message = f"orphan tags ({words}): {error}"
        logger.warning(f"{block.file_path}:{block.line_number}: {message}")
        self.diagnostics.append(Diagnostic(
            severity=Severity.WARNING,
            code="orphan-tag",
            message=message,
            entity="unattached",
            file_path=block.file_path,
            line_number=block.line_number,
        ))

    def _classify(self, block: CommentBlock, declaration: Optional[Declaration]) -> List[Binding]:
        if block.has(TagKind.META):
            # @meta 태그만 따로 떼고 나머지 태그는 같은 선언에 그대로 바인딩
            meta = replace(block, tags=block.tags_of(TagKind.META), description="")
            rest = replace(block, tags=[t for t in block.tags if t.kind is not TagKind.META])
            if declaration is None and not rest.tags and not rest.description:
                return [Binding(BindingKind.META, meta)]
            return [Binding(BindingKind.META, meta)] + self._classify(rest, declaration)

        if block.has(TagKind.CLASS):
            if declaration is not None and declaration.kind is DeclarationKind.FUNCTION_DEF:
                return [Binding(BindingKind.CLASS, block)] + self._rebind(block, declaration)
            return [Binding(BindingKind.CLASS, block, declaration)]

        if block.has(TagKind.ALIAS):
            return [Binding(BindingKind.ALIAS, block)] + self._rebind(block, declaration)

        if block.has(TagKind.ENUM):
            if declaration is not None and declaration.kind in (
                DeclarationKind.LOCAL_VAR, DeclarationKind.MODULE_TABLE
            ) and declaration.value is None:
                return [Binding(BindingKind.ENUM, block, declaration)]
            return [Binding(BindingKind.ENUM, block)] + self._rebind(block, declaration)

        if declaration is None:
            return [Binding(BindingKind.DESCRIPTION, block)]

        return [Binding(self._declaration_kind(block, declaration), block, declaration)]

    @staticmethod
    def _declaration_kind(block: CommentBlock, declaration: Declaration) -> BindingKind:
        if declaration.is_local:
            return BindingKind.LOCAL
        if declaration.kind is DeclarationKind.FUNCTION_DEF:
            return BindingKind.FUNCTION
        if declaration.kind is DeclarationKind.MODULE_TABLE:
            # @type 이 붙은 테이블은 타입이 지정된 값
            if block.has(TagKind.TYPE):
                return BindingKind.FIELD if "." in declaration.path else BindingKind.GLOBAL
            return BindingKind.TABLE
        if declaration.kind is DeclarationKind.FIELD_ASSIGNMENT:
            return BindingKind.FIELD
        return BindingKind.GLOBAL

    def _rebind(self, block: CommentBlock, declaration: Optional[Declaration]) -> List[Binding]:
        """선언을 소비하지 않는 블록 뒤의 선언을 빈 블록으로 다시 바인딩"""
        if declaration is None:
            return []
        empty = CommentBlock(
            file_path=block.file_path,
            line_number=declaration.line_number,
            index=block.index,
        )
        return self._classify(empty, declaration)
