"""
분산 백업 오류 분류

- 치명적(fatal): TopologyError, PartitionError, SyncError → 실행 즉시 중단
- 비치명적: DispatchError, ReleaseError → 기록 후 나머지 작업 계속
"""
from typing import Optional


class BackupError(Exception):
    """분산 백업 오류 기본 클래스"""

    fatal = True

    def __init__(self, message: str, replica: Optional[str] = None, fatal: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        self.replica = replica
        if fatal is not None:
            self.fatal = fatal

    @property
    def phase(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        if self.replica:
            return f"[{self.replica}] {self.message}"
        return self.message


class TopologyError(BackupError):
    """Replica 목록 조회 실패 또는 Replica 0대"""


class PartitionError(BackupError):
    """테이블/Replica 수가 유효하지 않거나 청크 계획을 찾을 수 없음"""


class SyncError(BackupError):
    """Binlog 동결, 위치 조회, 강제 동기화 실패"""


class DispatchError(BackupError):
    """Export 작업을 시작하지 못함"""

    fatal = False


class ReleaseError(BackupError):
    """Binlog 해제 또는 복제 재개 실패"""

    fatal = False


class LockError(BackupError):
    """다른 백업이 이미 실행 중 (잠금 파일 존재)"""


class BackupRunActiveError(LockError):
    """같은 프로세스에서 BackupRun이 이미 활성 상태"""
