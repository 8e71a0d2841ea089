"""
청크 배정 계획 저장소

계획은 실행마다 비운 뒤 다시 기록합니다 (이전 실행의 행이 남으면 안 됨).
runID 버전 관리는 하지 않으며, 단일 실행 잠금이 동시 실행을 막습니다.
"""
import re
from abc import ABC, abstractmethod
from typing import Dict, List

import pymysql

from src.core.constants import DEFAULT_PLAN_SCHEMA, DEFAULT_PLAN_TABLE
from src.core.db_connector import MySQLConnector
from src.core.errors import PartitionError
from src.core.logger import get_logger
from src.core.models import ChunkAssignment

logger = get_logger('plan_store')

_IDENTIFIER_RE = re.compile(r'^[A-Za-z0-9_$]+$')


class ChunkPlanStore(ABC):
    """청크 계획 저장소 인터페이스"""

    @abstractmethod
    def clear_plan(self):
        """기존 계획 삭제"""

    @abstractmethod
    def persist_plan(self, assignments: List[ChunkAssignment]):
        """계획 저장"""

    @abstractmethod
    def lookup_chunk(self, replica_id: str) -> ChunkAssignment:
        """Replica의 청크 조회 (없으면 PartitionError)"""

    def replace_plan(self, assignments: List[ChunkAssignment]):
        """기존 계획을 비우고 새 계획 저장"""
        self.clear_plan()
        self.persist_plan(assignments)


class InMemoryChunkPlanStore(ChunkPlanStore):
    """메모리 저장소 (--plan-only 실행 및 테스트용)"""

    def __init__(self):
        self._rows: Dict[str, ChunkAssignment] = {}

    def clear_plan(self):
        self._rows.clear()

    def persist_plan(self, assignments: List[ChunkAssignment]):
        for assignment in assignments:
            self._rows[assignment.replica_id] = assignment

    def lookup_chunk(self, replica_id: str) -> ChunkAssignment:
        try:
            return self._rows[replica_id]
        except KeyError:
            raise PartitionError("청크 계획에 해당 Replica가 없습니다", replica=replica_id) from None

    def all_chunks(self) -> List[ChunkAssignment]:
        return list(self._rows.values())


class MySQLChunkPlanStore(ChunkPlanStore):
    """Primary의 테이블에 계획 저장 (기본: percona.metabackups)"""

    def __init__(self, connector: MySQLConnector,
                 schema: str = DEFAULT_PLAN_SCHEMA, table: str = DEFAULT_PLAN_TABLE):
        for name in (schema, table):
            if not _IDENTIFIER_RE.match(name):
                raise ValueError(f"허용되지 않는 식별자: {name}")
        self.connector = connector
        self.schema = schema
        self.table = table
        self._ready = False

    @property
    def qualified_name(self) -> str:
        return f"`{self.schema}`.`{self.table}`"

    def _ensure_table(self):
        if self._ready:
            return
        self.connector.execute(f"CREATE DATABASE IF NOT EXISTS `{self.schema}`")
        self.connector.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.qualified_name} (
                id INT UNSIGNED NOT NULL AUTO_INCREMENT,
                host VARCHAR(255) NOT NULL,
                chunkstart INT UNSIGNED NOT NULL,
                chunksize INT UNSIGNED NOT NULL,
                PRIMARY KEY (id),
                KEY host (host)
            ) ENGINE=InnoDB
            """
        )
        self._ready = True

    def clear_plan(self):
        try:
            self._ensure_table()
            self.connector.execute(f"TRUNCATE TABLE {self.qualified_name}")
        except pymysql.Error as e:
            raise PartitionError(f"청크 계획 초기화 실패: {e}") from e
        logger.info(f"TRUNCATE TABLE {self.schema}.{self.table}")

    def persist_plan(self, assignments: List[ChunkAssignment]):
        if not assignments:
            return
        rows = [(a.replica_id, a.chunk_start, a.chunk_size) for a in assignments]
        try:
            self._ensure_table()
            self.connector.execute_many(
                f"INSERT INTO {self.qualified_name} (host, chunkstart, chunksize) VALUES (%s, %s, %s)",
                rows
            )
        except pymysql.Error as e:
            raise PartitionError(f"청크 계획 저장 실패: {e}") from e
        for a in assignments:
            logger.info(f"청크 배정: {a.replica_id} → start={a.chunk_start}, size={a.chunk_size}")

    def lookup_chunk(self, replica_id: str) -> ChunkAssignment:
        try:
            rows = self.connector.execute(
                f"SELECT host, chunkstart, chunksize FROM {self.qualified_name} WHERE host = %s",
                (replica_id,)
            )
        except pymysql.Error as e:
            raise PartitionError(f"청크 계획 조회 실패: {e}", replica=replica_id) from e

        if not rows:
            raise PartitionError("청크 계획에 해당 Replica가 없습니다", replica=replica_id)
        if len(rows) > 1:
            raise PartitionError(f"청크 계획에 중복 행 {len(rows)}개", replica=replica_id)

        row = rows[0]
        return ChunkAssignment(row['host'], int(row['chunkstart']), int(row['chunksize']))
