"""
Replica 전체의 일관된 절단점(consistent cut) 확보

1. Freeze: Primary binlog 동결 → 이후 Replica 지연은 줄어들기만 함
2. Elect: 가장 앞선 Replica의 적용 위치 선출 (접속 불가 Replica는 투표 제외)
3. Force-sync: 모든 Replica를 선출 위치까지 재생 후 정지 (하나라도 실패 시 중단)

선출 단계는 접속 불가 Replica를 제외하고 진행하지만 강제 동기화 단계는
모든 Replica를 대상으로 하며 실패 시 치명적 오류입니다.
"""
from typing import List, Tuple

import pymysql

from src.core.backup_run import BackupRun
from src.core.errors import SyncError
from src.core.logger import get_logger
from src.core.models import Replica, ReplicationPosition
from src.core.replication_client import ReplicationClient

logger = get_logger('consistent_cut')

# 위치 조회 실패로 간주하는 예외
_POSITION_ERRORS = (pymysql.Error, SyncError, KeyError, ValueError)


def freeze_primary(run: BackupRun, client: ReplicationClient):
    """Primary binlog 동결

    Raises:
        SyncError: 동결 실패 (동결 없이 진행하면 절단점이 어긋날 수 있음)
    """
    try:
        client.freeze_log()
    except pymysql.Error as e:
        raise SyncError(f"binlog 동결 실패: {e}") from e
    run.frozen = True
    logger.info("Primary binlog 동결 완료")


def collect_positions(run: BackupRun, client: ReplicationClient) -> List[Tuple[Replica, ReplicationPosition]]:
    """접속 가능한 Replica의 적용 위치 수집 (실패한 Replica는 제외)"""
    positions = []
    for replica in run.replicas:
        try:
            position = client.get_applied_position(replica)
        except _POSITION_ERRORS as e:
            logger.warning(f"[{replica}] 위치 조회 실패, 선출에서 제외: {e}")
            continue
        logger.info(f"[{replica}] 적용 위치 {position}")
        positions.append((replica, position))
    return positions


def elect_furthest_replica(run: BackupRun, client: ReplicationClient) -> Tuple[Replica, ReplicationPosition]:
    """가장 앞선 Replica와 그 위치 선출

    Raises:
        SyncError: 접속 가능한 Replica가 하나도 없음
    """
    positions = collect_positions(run, client)
    if not positions:
        raise SyncError("위치를 조회할 수 있는 Replica가 없습니다")

    elected, position = max(positions, key=lambda item: item[1])
    run.elected_replica = elected
    run.cut_position = position
    logger.info(f"절단점 선출: {position} (기준 Replica {elected}, 투표 {len(positions)}/{len(run.replicas)})")
    return elected, position


def force_sync_replicas(run: BackupRun, client: ReplicationClient):
    """모든 Replica를 절단점까지 재생 후 위치 검증

    Raises:
        SyncError: 한 Replica라도 실패하거나 위치가 일치하지 않음
    """
    target = run.cut_position
    if target is None:
        raise SyncError("선출된 절단점이 없습니다")

    for replica in run.replicas:
        # STOP 이후 실패해도 정리 대상이 되도록 먼저 기록
        run.synced_replicas.append(replica)
        try:
            client.force_sync_to(replica, target)
            reached = client.get_applied_position(replica)
        except SyncError as e:
            if e.replica is None:
                e.replica = replica.replica_id
            raise
        except (pymysql.Error, KeyError, ValueError) as e:
            raise SyncError(f"강제 동기화 실패: {e}", replica=replica.replica_id) from e

        if reached != target:
            raise SyncError(f"동기화 위치 불일치: 목표 {target}, 실제 {reached}", replica=replica.replica_id)
        logger.info(f"[{replica}] {target} 동기화 완료")


def establish_consistent_cut(run: BackupRun, client: ReplicationClient) -> ReplicationPosition:
    """Freeze → Elect → Force-sync 순서로 절단점 확보"""
    freeze_primary(run, client)
    elect_furthest_replica(run, client)
    force_sync_replicas(run, client)
    run.cut_established = True
    return run.cut_position
