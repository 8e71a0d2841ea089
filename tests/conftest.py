"""
pytest 공용 fixtures
"""
import pytest
from unittest.mock import MagicMock

import pymysql

from src.core.models import Replica, ReplicationPosition
from src.core.replication_client import ReplicationClient


# ============================================================
# 복제 제어 Fake
# ============================================================

class FakeReplicationClient(ReplicationClient):
    """결정론적 Primary/Replica 동작 시뮬레이터

    DB 없이 토폴로지 조회, 절단점, 해제 단계를 테스트하기 위한
    ReplicationClient 대체 객체.
    """

    def __init__(self, replicas=None, tables=None, positions=None):
        self.replicas = list(replicas or [])
        self.tables = list(tables or [])
        self.positions = dict(positions or {})  # replica_id → ReplicationPosition
        self.unreachable = set()    # 모든 요청이 실패하는 replica_id
        self.fail_sync_for = set()  # force_sync_to만 실패하는 replica_id
        self.fail_resume_for = set()
        self.fail_on = {}           # 메서드명 → Exception
        self.calls = []             # (메서드명, 인자) 실행 이력
        self.frozen = False
        self.stopped = set()

    def _enter(self, name, arg=None):
        self.calls.append((name, arg))
        if name in self.fail_on:
            raise self.fail_on[name]

    def _check_reachable(self, replica):
        if replica.replica_id in self.unreachable:
            raise pymysql.err.OperationalError(2003, f"Can't connect to MySQL server on '{replica.host}'")

    def called(self, name):
        return [arg for call_name, arg in self.calls if call_name == name]

    def list_replicas(self):
        self._enter('list_replicas')
        return list(self.replicas)

    def list_tables(self, schema):
        self._enter('list_tables', schema)
        return list(self.tables)

    def freeze_log(self):
        self._enter('freeze_log')
        self.frozen = True

    def unfreeze_log(self):
        self._enter('unfreeze_log')
        self.frozen = False

    def get_applied_position(self, replica):
        self._enter('get_applied_position', replica.replica_id)
        self._check_reachable(replica)
        return self.positions[replica.replica_id]

    def force_sync_to(self, replica, position):
        self._enter('force_sync_to', (replica.replica_id, position))
        self._check_reachable(replica)
        self.stopped.add(replica.replica_id)
        if replica.replica_id in self.fail_sync_for:
            raise pymysql.err.OperationalError(1200, "The server is not configured as slave")
        # 앞서 있는 Replica는 되돌릴 수 없으므로 뒤처진 경우에만 따라잡음
        if self.positions[replica.replica_id] < position:
            self.positions[replica.replica_id] = position

    def resume_replication(self, replica):
        self._enter('resume_replication', replica.replica_id)
        self._check_reachable(replica)
        if replica.replica_id in self.fail_resume_for:
            raise pymysql.err.OperationalError(1200, "resume failed")
        self.stopped.discard(replica.replica_id)


def make_replicas(*hosts, port=3306):
    """host 이름으로 Replica 목록 생성"""
    return [Replica(host=h, port=port, server_id=i + 2) for i, h in enumerate(hosts)]


def pos(log_file, log_pos):
    """ReplicationPosition 빠른 생성 헬퍼"""
    return ReplicationPosition(log_file, log_pos)


@pytest.fixture(autouse=True)
def reset_active_backup_run():
    """테스트 간 BackupRun 활성 슬롯 초기화"""
    from src.core.backup_run import BackupRun
    BackupRun._active = None
    yield
    BackupRun._active = None


@pytest.fixture
def three_replicas():
    return make_replicas('replica-a', 'replica-b', 'replica-c')


@pytest.fixture
def ten_tables():
    return [f"t{i:02d}" for i in range(10)]


@pytest.fixture
def fake_client(three_replicas, ten_tables):
    """Replica 3대, 테이블 10개, 위치가 서로 다른 Fake 클라이언트"""
    return FakeReplicationClient(
        replicas=three_replicas,
        tables=ten_tables,
        positions={
            'replica-a:3306': pos('mysql-bin.000003', 100),
            'replica-b:3306': pos('mysql-bin.000005', 10),
            'replica-c:3306': pos('mysql-bin.000005', 50),
        }
    )


@pytest.fixture
def backup_run(three_replicas, ten_tables):
    """Replica/테이블이 채워진 BackupRun"""
    from src.core.backup_run import BackupRun
    run = BackupRun('sb')
    run.replicas = list(three_replicas)
    run.tables = list(ten_tables)
    yield run
    run.finish()


@pytest.fixture
def mock_mysql_connector():
    """MagicMock 기반 MySQLConnector (단순 테스트용)"""
    connector = MagicMock()
    connector.execute.return_value = []
    connector.execute_many.return_value = 0
    return connector


@pytest.fixture
def fake_dispatcher():
    """dispatch_all 호출만 기록하는 Dispatcher"""
    dispatcher = MagicMock()
    dispatcher.dispatch_all.return_value = []
    return dispatcher
