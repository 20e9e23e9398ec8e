"""
Command line entry point for catdoc.

이 스크립트는 전체 문서 생성 파이프라인을 실행합니다:
1. Lua 스텁 파일 수집 및 파싱
2. 문서 그래프 빌드 및 검증
3. doc.json (선택적으로 Markdown) 생성
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from . import __version__
from .errors import SerializationError
from .generator import MarkdownGenerator
from .models import Severity
from .pipeline import DocPipeline
from .serializer import DOC_FILENAME, write_model

LOG_FILENAME = "catdoc.log"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_FATAL = 2

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catdoc",
        description="LuaCATS 주석 기반 API 문서 생성기"
    )
    parser.add_argument(
        "sources",
        nargs="+",
        help="Lua 스텁 파일 또는 디렉토리"
    )
    parser.add_argument(
        "--doc-out-path",
        required=True,
        help=f"{DOC_FILENAME} 출력 디렉토리"
    )
    parser.add_argument(
        "--logpath",
        required=True,
        help=f"{LOG_FILENAME} 출력 디렉토리"
    )
    parser.add_argument(
        "--markdown",
        metavar="DIR",
        help="Markdown 문서 출력 디렉토리 (지정 시에만 생성)"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="경고가 있어도 실패 코드로 종료"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="디버그 로그 출력"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    return parser


def setup_logging(logpath: Path, verbose: bool = False) -> logging.Handler:
    """콘솔 로그 설정 후 로그 파일 핸들러 추가"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    logpath.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(logpath / LOG_FILENAME, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    return handler


def main(argv: Optional[List[str]] = None) -> int:
    """메인 함수"""
    args = build_arg_parser().parse_args(argv)

    try:
        handler = setup_logging(Path(args.logpath), args.verbose)
    except OSError as e:
        print(f"로그 디렉토리를 만들 수 없음: {args.logpath} ({e})", file=sys.stderr)
        return EXIT_FATAL

    try:
        return run(args)
    finally:
        logging.getLogger().removeHandler(handler)
        handler.close()


def run(args: argparse.Namespace) -> int:
    logger.info("=" * 60)
    logger.info("catdoc 문서 생성 시작")
    logger.info("=" * 60)

    missing = [source for source in args.sources if not Path(source).exists()]
    if len(missing) == len(args.sources):
        logger.error(f"소스 경로를 찾을 수 없음: {', '.join(missing)}")
        return EXIT_FATAL

    # 단계 1: 파싱, 빌드, 검증
    logger.info("[1/2] 소스 파싱 중...")
    result = DocPipeline().run(args.sources)
    if not result.files:
        logger.error("처리할 .lua 파일이 없습니다")
        return EXIT_FATAL

    for diagnostic in result.diagnostics:
        if diagnostic.severity is Severity.ERROR:
            logger.error(str(diagnostic))
        else:
            logger.warning(str(diagnostic))

    # 단계 2: 출력
    logger.info("[2/2] 문서 출력 중...")
    try:
        write_model(result.model, Path(args.doc_out_path) / DOC_FILENAME)
        if args.markdown:
            MarkdownGenerator(args.markdown).generate_all(result.model)
    except SerializationError as e:
        logger.error(f"출력 실패: {e}")
        return EXIT_FATAL
    except OSError as e:
        logger.error(f"Markdown 출력 실패: {e}")
        return EXIT_FATAL

    # 통계 출력
    logger.info("통계:")
    logger.info(f"  - 파일: {len(result.files)}개")
    logger.info(f"  - 엔티티: {len(result.model)}개")
    logger.info(f"  - 오류: {len(result.errors)}개, 경고: {len(result.warnings)}개")

    if result.has_errors or (args.strict and result.warnings):
        return EXIT_DIAGNOSTICS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
