"""
분산 백업 데이터 모델
- Replica: Replica 노드 식별자
- ReplicationPosition: 복제 적용 위치 (binlog 파일명, 오프셋)
- ChunkAssignment: Replica별 테이블 청크 배정
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from src.core.constants import DEFAULT_MYSQL_PORT


@dataclass(frozen=True)
class Replica:
    """Replica 노드

    replica_id ("host:port")가 청크 계획의 키이며,
    dump_basename은 replica_id마다 서로 다른 파일명을 만듭니다.
    """
    host: str
    port: int = DEFAULT_MYSQL_PORT
    server_id: Optional[int] = field(default=None, compare=False)

    @property
    def replica_id(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def dump_basename(self) -> str:
        # port는 정수이므로 마지막 '_' 기준으로 host/port가 항상 복원됨
        return f"{self.host}_{self.port}"

    @classmethod
    def from_replica_id(cls, replica_id: str) -> 'Replica':
        """'host:port' 문자열에서 생성 (port 생략 시 기본 포트)"""
        host, sep, port = replica_id.rpartition(':')
        if not sep or not port.isdigit():
            return cls(host=replica_id)
        return cls(host=host, port=int(port))

    def __str__(self) -> str:
        return self.replica_id


@dataclass(frozen=True, order=True)
class ReplicationPosition:
    """복제 적용 위치

    필드 순서가 곧 비교 순서입니다: log_file(사전순) → log_pos(숫자).
    binlog 파일명은 zero-padding된 일련번호라 사전순 == 시간순.
    """
    log_file: str
    log_pos: int

    def __post_init__(self):
        if self.log_pos < 0:
            raise ValueError(f"log_pos는 음수가 될 수 없습니다: {self.log_pos}")

    def __str__(self) -> str:
        return f"{self.log_file}:{self.log_pos}"


@dataclass(frozen=True)
class ChunkAssignment:
    """Replica 하나에 배정된 연속 테이블 구간 [chunk_start, chunk_end)"""
    replica_id: str
    chunk_start: int
    chunk_size: int

    @property
    def chunk_end(self) -> int:
        return self.chunk_start + self.chunk_size

    @property
    def is_empty(self) -> bool:
        return self.chunk_size == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'replica_id': self.replica_id,
            'chunk_start': self.chunk_start,
            'chunk_size': self.chunk_size,
        }
