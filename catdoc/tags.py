"""
LuaCATS annotation tag lexer/parser.

이 모듈은 `---` 주석 블록 하나를 태그 목록과 설명 텍스트로 변환합니다.
타입 표현식은 해석하지 않고 문자열 그대로 보관합니다.
"""

import re
import logging
from typing import List, Optional, Tuple, Iterable

from .errors import LexError
from .models import CommentBlock, FunctionSignature, Param, Return, Tag, TagKind

logger = logging.getLogger(__name__)

COMMENT_PREFIX = "---"

TAG_LINE = re.compile(r"^@([A-Za-z_][\w.]*)\s*(.*)$")
NAME = re.compile(r"([A-Za-z_][\w.]*|\.\.\.)(\?)?")
VISIBILITY = re.compile(r"^(public|protected|private|package)\s+")
CLASS_HEADER = re.compile(r"^(?:\((\w+)\)\s*)?([A-Za-z_][\w.]*)\s*(?::\s*(.+))?$")
LIST_ITEM = re.compile(r"^([*+-]|\d+\.)\s")

_STRING_LITERAL = re.compile(r"\"[^\"]*\"|'[^']*'|`[^`]*`")
_KEY_PREFIX = re.compile(r"(?:[A-Za-z_]\w*|\.\.\.)\??\s*:")
_IDENTIFIER = re.compile(r"[A-Za-z_][\w.]*")

_OPEN = "([{<"
_CLOSE = ")]}>"
_QUOTES = "\"'`"


def scan_type(text: str, pos: int = 0) -> Tuple[str, int]:
    """
    text[pos:] 에서 타입 표현식 하나를 읽음

    괄호 깊이가 0인 공백에서 끝나며, `|` 나 `:` (fun 반환 타입) 로
    이어지는 경우는 계속 읽습니다.

    Returns:
        (타입 표현식, 끝 위치)
    """
    n = len(text)
    i = pos
    while i < n and text[i].isspace():
        i += 1
    start = i
    depth = 0
    quote = None

    while i < n:
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
        elif ch in _OPEN:
            depth += 1
        elif ch in _CLOSE:
            depth -= 1
            if depth < 0:
                raise LexError(f"unbalanced '{ch}' in type expression")
        elif ch.isspace() and depth == 0:
            j = i
            while j < n and text[j].isspace():
                j += 1
            if (j < n and text[j] == "|") or text[i - 1] in "|,:":
                i = j
                continue
            break
        i += 1

    if quote or depth > 0:
        raise LexError("unterminated type expression")
    type_expr = text[start:i].strip()
    if not type_expr:
        raise LexError("missing type")
    return type_expr, i


def split_top_level(text: str, separators: str = ",") -> List[str]:
    """괄호/문자열 밖의 구분자로 분할"""
    parts = []
    depth = 0
    quote = None
    current = []
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
        elif ch in _OPEN:
            depth += 1
        elif ch in _CLOSE:
            depth -= 1
        elif ch in separators and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return [part for part in parts if part]


def parse_fun_signature(expr: str) -> FunctionSignature:
    """`fun(a: T, b?: U): R` 형태의 타입을 시그니처로 변환"""
    expr = expr.strip()
    if not expr.startswith("fun") or "(" not in expr:
        raise LexError(f"expected 'fun(...)' signature, got '{expr}'")

    open_pos = expr.index("(")
    depth = 0
    close_pos = -1
    for i in range(open_pos, len(expr)):
        if expr[i] in _OPEN:
            depth += 1
        elif expr[i] in _CLOSE:
            depth -= 1
            if depth == 0:
                close_pos = i
                break
    if close_pos < 0:
        raise LexError(f"unterminated parameter list in '{expr}'")

    signature = FunctionSignature()
    for part in split_top_level(expr[open_pos + 1:close_pos]):
        name, sep, type_expr = part.partition(":")
        if not sep:
            # 이름 없는 매개변수는 타입만 있는 것으로 본다
            type_expr, name = name, f"arg{len(signature.params) + 1}"
        name = name.strip()
        optional = name.endswith("?")
        signature.params.append(Param(
            name=name.rstrip("?"),
            type=type_expr.strip() or None,
            optional=optional or is_optional_type(type_expr.strip()),
        ))

    rest = expr[close_pos + 1:].strip()
    if rest.startswith(":"):
        for ret in split_top_level(rest[1:]):
            signature.returns.append(Return(type=ret))
    return signature


def is_optional_type(type_expr: Optional[str]) -> bool:
    if not type_expr:
        return False
    if type_expr.endswith("?"):
        return True
    return "nil" in (part.strip() for part in split_top_level(type_expr, "|"))


def type_identifiers(type_expr: str) -> List[str]:
    """타입 표현식이 참조하는 식별자 목록 (리터럴, 필드 이름 제외)"""
    text = _STRING_LITERAL.sub(" ", type_expr)
    text = _KEY_PREFIX.sub(" ", text)
    names: List[str] = []
    for match in _IDENTIFIER.finditer(text):
        name = match.group(0).rstrip(".")
        if name == "fun" or name in names:
            continue
        names.append(name)
    return names


def strip_comment_prefix(line: str, prefix: str = COMMENT_PREFIX) -> str:
    text = line.lstrip()
    if text.startswith(prefix):
        text = text[len(prefix):]
    return text


def join_lines(lines: Iterable[Tuple[str, bool]]) -> str:
    """
    설명 줄 연결

    일반 줄은 공백 하나로, 두 칸 공백으로 끝난 줄 다음은 줄바꿈으로,
    빈 줄은 문단 구분(빈 줄)으로 연결합니다.
    """
    text = ""
    sep = ""
    for line, hard_break in lines:
        if not line:
            if text:
                sep = "\n\n"
            continue
        if text and sep == " " and LIST_ITEM.match(line):
            sep = "\n"
        text += sep + line
        sep = "\n" if hard_break else " "
    return text


class TagParser:
    """주석 블록 파서"""

    def __init__(self, comment_prefix: str = COMMENT_PREFIX):
        self.comment_prefix = comment_prefix
        self._payload_parsers = {
            TagKind.META: self._parse_meta,
            TagKind.CLASS: self._parse_class,
            TagKind.FIELD: self._parse_field,
            TagKind.PARAM: self._parse_param,
            TagKind.RETURN: self._parse_return,
            TagKind.TYPE: self._parse_type,
            TagKind.ALIAS: self._parse_alias,
            TagKind.ENUM: self._parse_enum,
            TagKind.NODISCARD: self._parse_flag,
            TagKind.VARARG: self._parse_vararg,
            TagKind.GENERIC: self._parse_generic,
            TagKind.OVERLOAD: self._parse_overload,
            TagKind.DEPRECATED: self._parse_deprecated,
        }

    def parse_block(self, lines: List[str], block_index: int = 0,
                    file_path: str = "", line_number: int = 0) -> CommentBlock:
        """
        주석 줄 목록을 CommentBlock으로 변환

        Args:
            lines: `---` 로 시작하는 주석 줄 (접두사 포함)
            block_index: 파일 안에서의 블록 번호
            file_path: 소스 파일 경로 (진단용)
            line_number: 블록 첫 줄 번호

        Returns:
            CommentBlock: 태그는 소스 순서 그대로 유지됨
        """
        block = CommentBlock(file_path=file_path, line_number=line_number, index=block_index)
        description_runs: List[str] = []
        pending: List[Tuple[str, bool]] = []
        current: Optional[Tag] = None
        continuation: List[Tuple[str, bool]] = []

        for offset, raw in enumerate(lines):
            text = strip_comment_prefix(raw, self.comment_prefix)
            hard_break = text.endswith("  ")
            stripped = text.strip()
            tag_match = TAG_LINE.match(stripped)

            if tag_match:
                self._close_tag(current, continuation)
                tag = self._parse_tag(tag_match, stripped, block_index, offset)
                if pending:
                    run = join_lines(pending)
                    if tag.kind is TagKind.FIELD and block.tags:
                        tag.leading = run
                    elif run:
                        description_runs.append(run)
                    pending = []
                block.tags.append(tag)
                current = tag
                continuation = []
            elif stripped.startswith("|") and current is not None and current.kind is TagKind.ALIAS:
                current.values.append(self._parse_alias_value(stripped))
            elif not stripped:
                self._close_tag(current, continuation)
                current = None
                continuation = []
                pending.append(("", False))
            elif current is not None:
                continuation.append((stripped, hard_break))
            else:
                pending.append((stripped, hard_break))

        self._close_tag(current, continuation)
        run = join_lines(pending)
        if run:
            description_runs.append(run)
        block.description = "\n\n".join(description_runs)
        return block

    def _close_tag(self, tag: Optional[Tag], continuation: List[Tuple[str, bool]]):
        if tag is None or not continuation:
            return
        extra = join_lines(continuation)
        tag.description = f"{tag.description} {extra}".strip() if tag.description else extra

    def _parse_tag(self, match: "re.Match", raw: str, block_index: int, offset: int) -> Tag:
        word, payload = match.group(1), match.group(2).rstrip()
        try:
            kind = TagKind(word)
        except ValueError:
            kind = TagKind.UNKNOWN

        if kind is TagKind.UNKNOWN:
            logger.debug(f"알 수 없는 태그: @{word}")
            return Tag(kind=kind, word=word, raw=raw, block_index=block_index, line=offset)

        tag = Tag(kind=kind, word=word, raw=raw, block_index=block_index, line=offset)
        try:
            self._payload_parsers[kind](tag, payload)
        except LexError as e:
            logger.debug(f"태그 파싱 실패 @{word}: {e}")
            return Tag(kind=TagKind.UNKNOWN, word=word, raw=raw, error=str(e),
                       block_index=block_index, line=offset)
        return tag

    @staticmethod
    def _split_name(payload: str) -> Tuple[str, bool, str]:
        """매개변수/필드 이름 분리 -> (이름, optional, 나머지)"""
        if payload.startswith("["):
            end = payload.find("]")
            if end < 0:
                raise LexError("unterminated index key")
            return payload[:end + 1], False, payload[end + 1:]
        match = NAME.match(payload)
        if not match:
            raise LexError(f"expected a name, got '{payload}'")
        return match.group(1), bool(match.group(2)), payload[match.end():]

    @staticmethod
    def _description(text: str) -> str:
        text = text.strip()
        if text.startswith("#"):
            text = text[1:].strip()
        return text

    def _parse_param(self, tag: Tag, payload: str):
        name, optional, rest = self._split_name(payload)
        type_expr, end = scan_type(rest)
        tag.name = name
        tag.type = type_expr
        tag.optional = optional or is_optional_type(type_expr)
        tag.description = self._description(rest[end:])

    def _parse_field(self, tag: Tag, payload: str):
        visibility = VISIBILITY.match(payload)
        if visibility:
            tag.visibility = visibility.group(1)
            payload = payload[visibility.end():]
        self._parse_param(tag, payload)

    def _parse_return(self, tag: Tag, payload: str):
        type_expr, end = scan_type(payload)
        tag.type = type_expr
        rest = payload[end:].strip()
        if rest and not rest.startswith("#"):
            name = NAME.match(rest)
            if name:
                tag.name = name.group(1)
                rest = rest[name.end():]
        tag.description = self._description(rest)

    def _parse_type(self, tag: Tag, payload: str):
        type_expr, end = scan_type(payload)
        tag.type = type_expr
        tag.description = self._description(payload[end:])

    def _parse_class(self, tag: Tag, payload: str):
        match = CLASS_HEADER.match(payload)
        if not match:
            raise LexError(f"expected a class name, got '{payload}'")
        tag.name = match.group(2)
        if match.group(3):
            tag.parents = split_top_level(match.group(3))

    def _parse_alias(self, tag: Tag, payload: str):
        match = NAME.match(payload)
        if not match or match.group(1) == "...":
            raise LexError(f"expected an alias name, got '{payload}'")
        tag.name = match.group(1)
        rest = payload[match.end():]
        if rest.strip():
            type_expr, end = scan_type(rest)
            tag.type = type_expr
            tag.description = self._description(rest[end:])

    def _parse_alias_value(self, line: str) -> Tuple[str, str]:
        body = line[1:].strip()
        if body.startswith(">"):
            body = body[1:].strip()
        value, end = scan_type(body)
        return value, self._description(body[end:])

    def _parse_enum(self, tag: Tag, payload: str):
        payload = re.sub(r"^\(key\)\s*", "", payload)
        match = NAME.match(payload)
        if match:
            tag.name = match.group(1)

    def _parse_meta(self, tag: Tag, payload: str):
        if payload:
            tag.name = payload.split()[0]

    def _parse_flag(self, tag: Tag, payload: str):
        pass

    def _parse_vararg(self, tag: Tag, payload: str):
        type_expr, end = scan_type(payload)
        tag.name = "..."
        tag.type = type_expr
        tag.description = self._description(payload[end:])

    def _parse_generic(self, tag: Tag, payload: str):
        for part in split_top_level(payload):
            name = NAME.match(part)
            if not name:
                raise LexError(f"expected a generic name, got '{part}'")
            tag.names.append(name.group(1))
        if not tag.names:
            raise LexError("missing generic name")

    def _parse_overload(self, tag: Tag, payload: str):
        type_expr, _ = scan_type(payload)
        tag.type = type_expr
        tag.signature = parse_fun_signature(type_expr)

    def _parse_deprecated(self, tag: Tag, payload: str):
        tag.description = payload.strip()
