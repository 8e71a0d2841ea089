"""
Primary binlog 해제 및 Replica 복제 재개

- release_fleet: 절단점 확보 이후 정상 해제 (모든 Replica 대상)
- abort_cleanup: 절단점 확보 전 중단 시, 이미 잡은 자원만 best-effort로 원복
실패는 ReleaseError로 기록만 하고 나머지 Replica 재개는 계속합니다.
"""
from typing import Iterable

import pymysql

from src.core.backup_run import BackupRun
from src.core.errors import ReleaseError
from src.core.logger import get_logger
from src.core.models import Replica
from src.core.replication_client import ReplicationClient

logger = get_logger('release')


def _unfreeze(run: BackupRun, client: ReplicationClient):
    try:
        client.unfreeze_log()
        run.frozen = False
        logger.info("Primary binlog 동결 해제")
    except pymysql.Error as e:
        run.record_error(ReleaseError(f"binlog 해제 실패: {e}"))


def _resume(run: BackupRun, client: ReplicationClient, replicas: Iterable[Replica]):
    for replica in replicas:
        try:
            client.resume_replication(replica)
            logger.info(f"[{replica}] 복제 재개")
        except pymysql.Error as e:
            run.record_error(ReleaseError(f"복제 재개 실패: {e}", replica=replica.replica_id))


def release_fleet(run: BackupRun, client: ReplicationClient):
    """binlog 해제 후 모든 Replica 복제 재개"""
    if not run.cut_established:
        raise RuntimeError("절단점이 확보되지 않은 실행은 해제할 수 없습니다")

    _unfreeze(run, client)
    _resume(run, client, run.replicas)
    run.released = True


def abort_cleanup(run: BackupRun, client: ReplicationClient):
    """절단점 확보 실패/중단 시 정리

    동결에 성공한 경우에만 해제하고, 강제 동기화로 정지시켰을 수 있는 Replica만 재개합니다.
    """
    if run.frozen:
        _unfreeze(run, client)
    if run.synced_replicas:
        _resume(run, client, run.synced_replicas)
