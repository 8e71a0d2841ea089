"""
분산 백업 실행기

Discovery → Partition(계획 저장) → Freeze → Elect → Force-sync → Dispatch → Release

- Discovery / Partition / 절단점 단계의 오류는 치명적이며 즉시 중단
- 절단점 확보 실패 시 Dispatch와 Release는 실행하지 않고, 이미 잡은 자원만 정리
- Dispatch / Release 오류는 기록만 하고 나머지 Replica 작업은 계속
"""
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

import pymysql

from src.core.backup_run import BackupRun
from src.core.consistent_cut import establish_consistent_cut
from src.core.constants import EXIT_ALREADY_RUNNING, EXIT_FATAL, EXIT_OK
from src.core.errors import BackupError, PartitionError
from src.core.logger import get_logger
from src.core.models import ChunkAssignment, ReplicationPosition
from src.core.partitioner import plan_chunks, resolve_chunk_tables
from src.core.plan_store import ChunkPlanStore
from src.core.release import abort_cleanup, release_fleet
from src.core.replication_client import ReplicationClient
from src.core.topology import discover_replicas

logger = get_logger('backup_coordinator')


@dataclass
class BackupReport:
    """실행 결과 요약"""
    run_id: str
    schema: str
    replicas: List[str] = field(default_factory=list)
    table_count: int = 0
    assignments: List[ChunkAssignment] = field(default_factory=list)
    chunk_tables: Dict[str, List[str]] = field(default_factory=dict)
    cut_position: Optional[ReplicationPosition] = None
    jobs: list = field(default_factory=list)
    errors: List[BackupError] = field(default_factory=list)
    plan_only: bool = False
    released: bool = False
    lock_conflict: bool = False

    @property
    def success(self) -> bool:
        return not self.lock_conflict and not any(e.fatal for e in self.errors)

    @property
    def exit_code(self) -> int:
        if self.lock_conflict:
            return EXIT_ALREADY_RUNNING
        return EXIT_OK if self.success else EXIT_FATAL

    def summary(self) -> str:
        """운영자용 결과 문자열 (알림 본문 겸용)"""
        lines = [
            f"Run {self.run_id} / schema '{self.schema}': {'성공' if self.success else '실패'}",
            f"Replica {len(self.replicas)}대, 테이블 {self.table_count}개",
        ]
        if self.cut_position:
            lines.append(f"절단점: {self.cut_position}")
        for assignment in self.assignments:
            lines.append(
                f"  {assignment.replica_id}: [{assignment.chunk_start}, {assignment.chunk_end}) "
                f"{assignment.chunk_size}개"
            )
            if self.plan_only:
                tables = self.chunk_tables.get(assignment.replica_id, [])
                lines.append(f"    {', '.join(tables) if tables else '(없음)'}")
        if not self.plan_only:
            lines.append(f"시작된 Export 작업: {len(self.jobs)}개")
        if self.errors:
            lines.append("오류:")
            for error in self.errors:
                level = "FATAL" if error.fatal else "WARN"
                lines.append(f"  [{level}] {error.phase}: {error}")
        return '\n'.join(lines)

    @classmethod
    def from_run(cls, run: BackupRun, plan_only: bool = False) -> 'BackupReport':
        return cls(
            run_id=run.run_id,
            schema=run.schema,
            replicas=[r.replica_id for r in run.replicas],
            table_count=len(run.tables),
            assignments=list(run.assignments),
            chunk_tables={a.replica_id: resolve_chunk_tables(run.tables, a) for a in run.assignments},
            cut_position=run.cut_position,
            jobs=list(run.dispatched_jobs),
            errors=list(run.errors),
            plan_only=plan_only,
            released=run.released,
        )


class DistributedBackup:
    """Replica 분산 백업 실행기"""

    def __init__(
        self,
        client: ReplicationClient,
        plan_store: ChunkPlanStore,
        dispatcher,
        schema: str,
        backup_root: str,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Args:
            client: 복제 제어 클라이언트
            plan_store: 청크 계획 저장소
            dispatcher: DumpDispatcher (dispatch_all 제공)
            schema: 백업 대상 스키마
            backup_root: 백업 루트 디렉토리 (실행 날짜 폴더가 추가됨)
            clock: 현재 시각 함수 (테스트 주입용)
        """
        self.client = client
        self.plan_store = plan_store
        self.dispatcher = dispatcher
        self.schema = schema
        self.backup_root = backup_root
        self._clock = clock

    def output_dir(self, run: BackupRun) -> str:
        return os.path.join(self.backup_root, run.started_at.strftime('%Y%m%d'))

    def prepare(self, run: BackupRun):
        """Replica 조회, 테이블 목록 조회, 청크 계획 저장"""
        run.replicas = discover_replicas(self.client)

        try:
            run.tables = self.client.list_tables(self.schema)
        except pymysql.Error as e:
            raise PartitionError(f"테이블 목록 조회 실패: {e}") from e
        logger.info(f"스키마 '{self.schema}' 테이블 {len(run.tables)}개")

        run.assignments = plan_chunks(len(run.tables), [r.replica_id for r in run.replicas])
        # 빈 계획이어도 이전 실행의 행은 반드시 비움
        self.plan_store.replace_plan(run.assignments)

    def run(self, plan_only: bool = False) -> BackupReport:
        """백업 1회 실행

        Args:
            plan_only: True면 계획만 계산하고 동결/Dump는 하지 않음
        """
        run = BackupRun(self.schema, started_at=self._clock())
        logger.info(f"백업 시작 (run_id={run.run_id}, schema={self.schema})")
        try:
            try:
                self.prepare(run)
            except BackupError as e:
                run.record_error(e)
                return BackupReport.from_run(run, plan_only)

            if plan_only:
                return BackupReport.from_run(run, plan_only=True)
            if not run.assignments:
                logger.info("백업할 테이블이 없습니다. 종료합니다")
                return BackupReport.from_run(run)

            try:
                establish_consistent_cut(run, self.client)
            except BackupError as e:
                run.record_error(e)
                abort_cleanup(run, self.client)
                return BackupReport.from_run(run)
            except BaseException:
                # 중단(KeyboardInterrupt, SIGTERM 등) 시에도 동결/정지 상태를 남기지 않음
                logger.error("절단점 확보 중 중단됨, 정리 후 종료")
                abort_cleanup(run, self.client)
                raise

            try:
                self.dispatcher.dispatch_all(run, self.plan_store, self.output_dir(run))
            finally:
                release_fleet(run, self.client)

            report = BackupReport.from_run(run)
            logger.info(f"백업 종료 (run_id={run.run_id}, 성공={report.success})")
            return report
        finally:
            run.finish()
