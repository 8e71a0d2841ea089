"""
백업 실행 컨텍스트
- BackupRun: 한 번의 분산 백업 실행이 소유하는 상태 (Replica, 테이블, 청크, 합의 위치, 오류)
- RunLock: 호스트 단위 단일 실행 잠금 파일
"""
import os
import threading
import uuid
from datetime import datetime
from typing import List, Optional

from src.core.errors import BackupError, BackupRunActiveError, LockError
from src.core.logger import get_logger
from src.core.models import ChunkAssignment, Replica, ReplicationPosition

logger = get_logger('backup_run')


class BackupRun:
    """분산 백업 실행 상태

    프로세스당 하나만 활성화할 수 있습니다 (생성 시 검사).
    각 단계 함수는 이 객체를 인자로 받아 상태를 갱신합니다.
    """

    _active_guard = threading.Lock()
    _active: Optional['BackupRun'] = None

    def __init__(self, schema: str, started_at: Optional[datetime] = None):
        with BackupRun._active_guard:
            if BackupRun._active is not None:
                raise BackupRunActiveError(
                    f"이미 실행 중인 백업이 있습니다 (run_id={BackupRun._active.run_id})"
                )
            BackupRun._active = self

        self.run_id = uuid.uuid4().hex[:12]
        self.schema = schema
        self.started_at = started_at or datetime.now()

        self.replicas: List[Replica] = []
        self.tables: List[str] = []
        self.assignments: List[ChunkAssignment] = []
        self.cut_position: Optional[ReplicationPosition] = None
        self.elected_replica: Optional[Replica] = None

        # 단계별 상태 (정리 작업 판단용)
        self.frozen = False
        self.cut_established = False
        self.synced_replicas: List[Replica] = []
        self.released = False
        self.dispatched_jobs = []

        self.errors: List[BackupError] = []
        self._finished = False

    # ------------------------------------------------------------------
    # 오류 기록
    # ------------------------------------------------------------------
    def record_error(self, error: BackupError):
        self.errors.append(error)
        if error.fatal:
            logger.error(f"[{error.phase}] {error}")
        else:
            logger.warning(f"[{error.phase}] {error}")

    @property
    def fatal_errors(self) -> List[BackupError]:
        return [e for e in self.errors if e.fatal]

    @property
    def non_fatal_errors(self) -> List[BackupError]:
        return [e for e in self.errors if not e.fatal]

    @property
    def has_fatal_error(self) -> bool:
        return any(e.fatal for e in self.errors)

    # ------------------------------------------------------------------
    # 수명 주기
    # ------------------------------------------------------------------
    def finish(self):
        """활성 실행 슬롯 반환 (여러 번 호출해도 안전)"""
        if self._finished:
            return
        self._finished = True
        with BackupRun._active_guard:
            if BackupRun._active is self:
                BackupRun._active = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
        return False


class RunLock:
    """잠금 파일 기반 단일 실행 보장 (O_CREAT | O_EXCL)"""

    def __init__(self, path: str):
        self.path = path
        self._owned = False

    def acquire(self) -> bool:
        """잠금 획득, 이미 존재하면 False"""
        try:
            lock_dir = os.path.dirname(self.path)
            if lock_dir:
                os.makedirs(lock_dir, exist_ok=True)
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            logger.error(f"이미 실행 중입니다. {self.path} 가 존재합니다")
            return False

        with os.fdopen(fd, 'w') as f:
            f.write(f"{os.getpid()}\n")
        self._owned = True
        logger.debug(f"잠금 획득: {self.path}")
        return True

    def release(self):
        if not self._owned:
            return
        try:
            os.remove(self.path)
            logger.debug(f"잠금 해제: {self.path}")
        except FileNotFoundError:
            pass
        finally:
            self._owned = False

    @property
    def is_owned(self) -> bool:
        return self._owned

    def __enter__(self):
        if not self.acquire():
            raise LockError(f"이미 실행 중입니다 ({self.path})")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
