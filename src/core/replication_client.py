"""
복제 제어 클라이언트
- Primary / Replica 대상 제어 쿼리를 하나의 인터페이스로 추상화
- MySQL 버전에 따라 SLAVE/MASTER 또는 REPLICA/SOURCE 구문 선택
- 실패는 pymysql.Error (또는 SyncError)로 전파하고, 분류는 호출하는 단계에서 수행
"""
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from src.core.constants import (
    DEFAULT_FREEZE_STATEMENT, DEFAULT_MYSQL_PORT, DEFAULT_UNFREEZE_STATEMENT,
    REPLICA_KEYWORD_VERSION, REPLICA_UNTIL_SOURCE_VERSION
)
from src.core.db_connector import MySQLConnector
from src.core.errors import SyncError
from src.core.logger import get_logger
from src.core.models import Replica, ReplicationPosition

logger = get_logger('replication_client')


class ReplicationClient(ABC):
    """복제 제어 작업 인터페이스 (테스트에서는 Fake 구현 사용)"""

    @abstractmethod
    def list_replicas(self) -> List[Replica]:
        """Primary의 Replica 등록 정보 조회"""

    @abstractmethod
    def list_tables(self, schema: str) -> List[str]:
        """스키마 테이블 목록 (고정 순서)"""

    @abstractmethod
    def freeze_log(self):
        """Primary binlog 동결"""

    @abstractmethod
    def unfreeze_log(self):
        """Primary binlog 동결 해제"""

    @abstractmethod
    def get_applied_position(self, replica: Replica) -> ReplicationPosition:
        """Replica가 적용한 복제 위치"""

    @abstractmethod
    def force_sync_to(self, replica: Replica, position: ReplicationPosition):
        """복제 중지 후 position까지만 재생 (도달할 때까지 블로킹)"""

    @abstractmethod
    def resume_replication(self, replica: Replica):
        """Replica 복제 재개"""

    def close(self):
        """보유 연결 정리"""


class SQLDialect:
    """버전별 복제 제어 구문"""

    def __init__(self, version):
        self.version = tuple(version)
        self.modern = self.version >= REPLICA_KEYWORD_VERSION
        self.source_until = self.version >= REPLICA_UNTIL_SOURCE_VERSION

    @property
    def list_replicas(self) -> str:
        return "SHOW REPLICAS" if self.modern else "SHOW SLAVE HOSTS"

    @property
    def replica_status(self) -> str:
        return "SHOW REPLICA STATUS" if self.modern else "SHOW SLAVE STATUS"

    @property
    def stop_replication(self) -> str:
        return "STOP REPLICA" if self.modern else "STOP SLAVE"

    @property
    def start_replication(self) -> str:
        return "START REPLICA" if self.modern else "START SLAVE"

    @property
    def start_until(self) -> str:
        if self.source_until:
            return "START REPLICA UNTIL SOURCE_LOG_FILE = %s, SOURCE_LOG_POS = %s"
        if self.modern:
            return "START REPLICA UNTIL MASTER_LOG_FILE = %s, MASTER_LOG_POS = %s"
        return "START SLAVE UNTIL MASTER_LOG_FILE = %s, MASTER_LOG_POS = %s"

    @property
    def file_column(self) -> str:
        return "Relay_Source_Log_File" if self.modern else "Relay_Master_Log_File"

    @property
    def pos_column(self) -> str:
        return "Exec_Source_Log_Pos" if self.modern else "Exec_Master_Log_Pos"

    def position_from(self, status: Dict) -> ReplicationPosition:
        """상태 행에서 적용 위치 추출 (버전별 컬럼명이 없으면 다른 용어 컬럼 사용)"""
        for file_column, pos_column in (
            (self.file_column, self.pos_column),
            ("Relay_Master_Log_File", "Exec_Master_Log_Pos"),
            ("Relay_Source_Log_File", "Exec_Source_Log_Pos"),
        ):
            if file_column in status:
                return ReplicationPosition(log_file=status[file_column], log_pos=int(status[pos_column]))
        raise KeyError(self.file_column)


class MySQLReplicationClient(ReplicationClient):
    """pymysql 기반 복제 제어 클라이언트

    Primary 연결은 실행 내내 유지합니다. LOCK BINLOG FOR BACKUP은
    세션 잠금이라 연결이 끊기면 동결도 풀리기 때문입니다.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        freeze_statement: str = DEFAULT_FREEZE_STATEMENT,
        unfreeze_statement: str = DEFAULT_UNFREEZE_STATEMENT,
        poll_interval: float = 1.0,
        sync_timeout: Optional[float] = None,
        connector_factory: Callable[..., MySQLConnector] = MySQLConnector,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            host, port, user, password: Primary 접속 정보 (Replica에도 같은 계정 사용)
            freeze_statement: binlog 동결 구문
            unfreeze_statement: binlog 해제 구문
            poll_interval: 강제 동기화 대기 중 위치 조회 간격 (초)
            sync_timeout: 강제 동기화 최대 대기 시간 (None 또는 0이면 무제한)
            connector_factory: 연결 생성 함수 (테스트 주입용)
            sleep: 대기 함수 (테스트 주입용)
        """
        self.user = user
        self.password = password
        self.freeze_statement = freeze_statement
        self.unfreeze_statement = unfreeze_statement
        self.poll_interval = poll_interval
        self.sync_timeout = sync_timeout or None
        self._connector_factory = connector_factory
        self._sleep = sleep
        self.primary = connector_factory(host, port, user, password)
        self._replica_connectors: Dict[str, MySQLConnector] = {}

    # ------------------------------------------------------------------
    # 연결 관리
    # ------------------------------------------------------------------
    def _replica_connector(self, replica: Replica) -> MySQLConnector:
        connector = self._replica_connectors.get(replica.replica_id)
        if connector is None:
            connector = self._connector_factory(
                replica.host, replica.port, self.user, self.password
            )
            self._replica_connectors[replica.replica_id] = connector
        return connector

    def _dialect(self, connector: MySQLConnector) -> SQLDialect:
        return SQLDialect(connector.get_db_version())

    def close(self):
        for connector in self._replica_connectors.values():
            connector.disconnect()
        self._replica_connectors.clear()
        self.primary.disconnect()

    # ------------------------------------------------------------------
    # Primary
    # ------------------------------------------------------------------
    def list_replicas(self) -> List[Replica]:
        dialect = self._dialect(self.primary)
        rows = self.primary.execute(dialect.list_replicas)

        replicas = []
        for row in rows:
            host = row.get('Host') or ''
            if not host:
                # report_host 미설정 Replica는 접속할 수 없음
                logger.warning(f"Host 정보가 없는 Replica 제외 (Server_id={row.get('Server_id')})")
                continue
            server_id = row.get('Server_id', row.get('Server_Id'))
            replicas.append(Replica(host=host, port=int(row.get('Port') or DEFAULT_MYSQL_PORT), server_id=server_id))
        return replicas

    def list_tables(self, schema: str) -> List[str]:
        return self.primary.get_tables(schema)

    def freeze_log(self):
        self.primary.execute(self.freeze_statement)

    def unfreeze_log(self):
        self.primary.execute(self.unfreeze_statement)

    # ------------------------------------------------------------------
    # Replica
    # ------------------------------------------------------------------
    def _read_status(self, replica: Replica) -> Dict:
        connector = self._replica_connector(replica)
        dialect = self._dialect(connector)
        rows = connector.execute(dialect.replica_status)
        if not rows:
            raise SyncError("복제가 설정되어 있지 않습니다 (상태 결과 없음)", replica=replica.replica_id)
        return rows[0]

    def get_applied_position(self, replica: Replica) -> ReplicationPosition:
        dialect = self._dialect(self._replica_connector(replica))
        return dialect.position_from(self._read_status(replica))

    def force_sync_to(self, replica: Replica, position: ReplicationPosition):
        connector = self._replica_connector(replica)
        dialect = self._dialect(connector)

        connector.execute(dialect.stop_replication)
        connector.execute(dialect.start_until, (position.log_file, position.log_pos))
        logger.info(f"[{replica}] {dialect.start_replication} UNTIL {position} 실행")

        self._wait_for_position(replica, position)

    def _wait_for_position(self, replica: Replica, target: ReplicationPosition) -> ReplicationPosition:
        """applied position이 target 이상이 될 때까지 대기"""
        dialect = self._dialect(self._replica_connector(replica))
        started = time.monotonic()

        while True:
            status = self._read_status(replica)
            current = dialect.position_from(status)
            if current >= target:
                return current

            sql_errno = int(status.get('Last_SQL_Errno') or 0)
            if sql_errno:
                raise SyncError(
                    f"SQL 스레드 오류 ({sql_errno}): {status.get('Last_SQL_Error', '')}",
                    replica=replica.replica_id
                )

            if self.sync_timeout and time.monotonic() - started > self.sync_timeout:
                raise SyncError(
                    f"동기화 대기 시간 초과 ({self.sync_timeout}초): 현재 {current}, 목표 {target}",
                    replica=replica.replica_id
                )

            logger.debug(f"[{replica}] 동기화 대기 중: {current} → {target}")
            self._sleep(self.poll_interval)

    def resume_replication(self, replica: Replica):
        connector = self._replica_connector(replica)
        connector.execute(self._dialect(connector).start_replication)
