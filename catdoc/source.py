"""
Line-oriented Lua declaration scanner.

이 모듈은 Lua 스텁 파일을 (주석 블록, 뒤따르는 선언) 쌍으로 나눕니다.
완전한 Lua 파서가 아니며, 스텁 파일에서 쓰이는 최상위 선언 형태만 인식합니다.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .models import Declaration, DeclarationKind, TableMember
from .tags import COMMENT_PREFIX, split_top_level

logger = logging.getLogger(__name__)

FUNCTION_DEF = re.compile(r"^(local\s+)?function\s+([A-Za-z_][\w.]*(?::[A-Za-z_]\w*)?)\s*\(([^)]*)\)")
ASSIGNMENT = re.compile(r"^(local\s+)?([A-Za-z_][\w.]*)\s*=(?!=)\s*(.*)$")
FUNCTION_VALUE = re.compile(r"^function\s*\(([^)]*)\)")
TABLE_ENTRY = re.compile(r"^(?:\[\s*[\"']?([^\"'\]]+)[\"']?\s*\]|([A-Za-z_]\w*))\s*=\s*(.+)$", re.DOTALL)


@dataclass
class SourceChunk:
    """주석 블록 줄과 그 뒤의 선언"""
    comment_lines: List[str] = field(default_factory=list)
    line_number: int = 0
    declaration: Optional[Declaration] = None


def strip_line_comment(line: str) -> str:
    """문자열 밖의 `--` 주석 제거"""
    quote = None
    i = 0
    while i < len(line):
        ch = line[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif line.startswith("--", i):
            return line[:i].rstrip()
        i += 1
    return line.rstrip()


def _brace_delta(text: str) -> int:
    depth = 0
    quote = None
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
    return depth


def _split_params(text: str) -> List[str]:
    return [p.strip() for p in text.split(",") if p.strip()]


class SourceScanner:
    """Lua 소스 스캐너"""

    def __init__(self, comment_prefix: str = COMMENT_PREFIX):
        self.comment_prefix = comment_prefix

    def is_doc_comment(self, line: str) -> bool:
        text = line.lstrip()
        if not text.startswith(self.comment_prefix):
            return False
        rest = text[len(self.comment_prefix):]
        # `----` 구분선은 일반 주석으로 취급
        return not rest.startswith("-")

    def scan(self, text: str) -> List[SourceChunk]:
        """
        소스 텍스트를 SourceChunk 목록으로 변환

        주석 블록 뒤의 빈 줄만 건너뛰고 다음 줄을 선언 후보로 봅니다.
        주석이 없는 비지역(non-local) 최상위 선언은 빈 블록과 함께 반환됩니다.
        """
        lines = text.splitlines()
        chunks: List[SourceChunk] = []
        i = 0
        n = len(lines)

        while i < n:
            if self.is_doc_comment(lines[i]):
                start = i
                while i < n and self.is_doc_comment(lines[i]):
                    i += 1
                chunk = SourceChunk(comment_lines=lines[start:i], line_number=start + 1)

                j = i
                while j < n and not lines[j].strip():
                    j += 1
                if j < n:
                    declaration, end = self.read_declaration(lines, j)
                    if declaration is not None:
                        chunk.declaration = declaration
                        i = end
                chunks.append(chunk)
                continue

            declaration, end = self.read_declaration(lines, i)
            if declaration is not None and not declaration.is_local:
                chunks.append(SourceChunk(line_number=i + 1, declaration=declaration))
            i = max(end, i + 1)

        return chunks

    def read_declaration(self, lines: List[str], index: int) -> Tuple[Optional[Declaration], int]:
        """
        lines[index] 에서 시작하는 최상위 선언 읽기

        Returns:
            (선언 또는 None, 다음 줄 인덱스)
        """
        raw = lines[index]
        if not raw or raw[0].isspace() or raw.lstrip().startswith("--"):
            return None, index + 1
        line = strip_line_comment(raw)
        line_number = index + 1

        match = FUNCTION_DEF.match(line)
        if match:
            path = match.group(2)
            return Declaration(
                kind=DeclarationKind.FUNCTION_DEF,
                path=path,
                params=_split_params(match.group(3)),
                is_method=":" in path,
                is_local=bool(match.group(1)),
                line_number=line_number,
            ), index + 1

        match = ASSIGNMENT.match(line)
        if not match:
            return None, index + 1

        is_local = bool(match.group(1))
        path = match.group(2)
        value = match.group(3).strip().rstrip(";").strip()

        function_value = FUNCTION_VALUE.match(value)
        if function_value:
            return Declaration(
                kind=DeclarationKind.FUNCTION_DEF,
                path=path,
                params=_split_params(function_value.group(1)),
                is_local=is_local,
                line_number=line_number,
            ), index + 1

        if value.startswith("{"):
            members, end = self._read_table(lines, index, value)
            kind = DeclarationKind.LOCAL_VAR if is_local else DeclarationKind.MODULE_TABLE
            return Declaration(
                kind=kind,
                path=path,
                members=members,
                is_local=is_local,
                line_number=line_number,
            ), end

        if is_local:
            kind = DeclarationKind.LOCAL_VAR
        elif "." in path:
            kind = DeclarationKind.FIELD_ASSIGNMENT
        else:
            kind = DeclarationKind.GLOBAL_VAR
        return Declaration(
            kind=kind,
            path=path,
            value=value or None,
            is_local=is_local,
            line_number=line_number,
        ), index + 1

    def _read_table(self, lines: List[str], index: int, first: str) -> Tuple[List[TableMember], int]:
        """중괄호가 닫힐 때까지 테이블 리터럴을 모아 `key = value` 항목 추출"""
        parts = [first]
        depth = _brace_delta(first)
        end = index + 1
        while depth > 0 and end < len(lines):
            text = strip_line_comment(lines[end])
            parts.append(text)
            depth += _brace_delta(text)
            end += 1
        if depth > 0:
            logger.warning(f"닫히지 않은 테이블 리터럴 (line {index + 1})")

        body = "\n".join(parts).strip()
        open_pos = body.find("{")
        close_pos = body.rfind("}")
        if close_pos < open_pos:
            close_pos = len(body)
        inner = body[open_pos + 1:close_pos]

        members: List[TableMember] = []
        for entry in split_top_level(inner, ",;"):
            match = TABLE_ENTRY.match(entry.strip())
            if not match:
                continue
            name = match.group(1) or match.group(2)
            value = " ".join(match.group(3).split())
            members.append(TableMember(name=name.strip(), value=value))
        return members, end
