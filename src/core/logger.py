"""
DumpForge 통합 로깅 시스템

모든 모듈에서 일관된 로깅을 제공합니다.
- 파일 로깅: ~/.config/dumpforge/logs/dumpforge.log (--log-file 로 변경 가능)
- 콘솔 로깅: INFO 이상
- 로그 로테이션: 5MB, 최대 3개 백업
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

# 로그 디렉토리 경로
LOG_DIR = os.path.join(os.path.expanduser('~'), '.config', 'dumpforge', 'logs')

# 로그 파일 경로
LOG_FILE = os.path.join(LOG_DIR, 'dumpforge.log')

# 로그 포맷
LOG_FORMAT = '[%(asctime)s] %(levelname)s [%(name)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

ROOT_LOGGER_NAME = 'dumpforge'

# 루트 로거 설정 여부
_root_configured = False


def get_logger(name: str) -> logging.Logger:
    """모듈별 로거 반환

    Args:
        name: 모듈 이름 (예: 'consistent_cut', 'src.core.topology')

    Returns:
        설정된 Logger 인스턴스

    사용법:
        from src.core.logger import get_logger
        logger = get_logger('my_module')
        logger.info("메시지")
    """
    logger = logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')

    # 루트 로거가 아직 설정되지 않았으면 설정
    global _root_configured
    if not _root_configured:
        _setup_root_logger()
        _root_configured = True

    return logger


def _setup_root_logger():
    """루트 로거 설정 (앱 시작 시 한 번만 호출)"""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    # 이미 핸들러가 있으면 스킵 (중복 방지)
    if root_logger.handlers:
        return

    _add_file_handler(root_logger, LOG_FILE)

    if sys.stdout is not None:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)  # 콘솔은 INFO 이상만
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        root_logger.addHandler(console_handler)


def _add_file_handler(root_logger: logging.Logger, log_file: str) -> bool:
    """RotatingFileHandler 추가 (실패 시 콘솔 로깅만 유지)"""
    try:
        os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        root_logger.addHandler(file_handler)
        return True
    except OSError as e:
        print(f"[Logger] 파일 로깅 초기화 실패: {e}")
        return False


def set_log_file(log_file: str) -> bool:
    """파일 로그 경로 변경 (CLI --log-file)

    기존 RotatingFileHandler를 제거하고 새 경로로 교체합니다.
    """
    global LOG_FILE, _root_configured
    if not _root_configured:
        _setup_root_logger()
        _root_configured = True

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            root_logger.removeHandler(handler)
            handler.close()

    LOG_FILE = log_file
    return _add_file_handler(root_logger, log_file)


def get_log_file_path() -> str:
    """로그 파일 경로 반환"""
    return LOG_FILE
