"""
Exception types for the documentation pipeline.

파싱/바인딩 단계의 오류는 진단(diagnostic)으로 복구되고,
출력 파일 쓰기 실패만 호출자에게 전달됩니다.
"""

from typing import List, Optional


class CatdocError(Exception):
    """catdoc 기본 예외"""


class LexError(CatdocError):
    """태그 페이로드 파싱 실패 (unknown 태그로 복구됨)"""

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.line = line


class BindError(CatdocError):
    """선언과 연결할 수 없는 태그 (orphan 태그로 복구됨)"""

    def __init__(self, message: str, tags: Optional[List] = None):
        super().__init__(message)
        self.tags = tags or []


class SerializationError(CatdocError):
    """출력 파일 쓰기 실패"""
