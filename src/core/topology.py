"""
Replica 토폴로지 조회
"""
from typing import List

import pymysql

from src.core.errors import TopologyError
from src.core.logger import get_logger
from src.core.models import Replica
from src.core.replication_client import ReplicationClient

logger = get_logger('topology')


def discover_replicas(client: ReplicationClient) -> List[Replica]:
    """Primary의 Replica 목록 조회

    반환 순서가 청크 번호(인덱스)로 그대로 쓰이므로 실행 중에는 변경하지 않습니다.
    같은 host:port가 중복 보고되면 첫 항목만 사용합니다.

    Raises:
        TopologyError: Primary 조회 실패 또는 Replica 0대
    """
    try:
        reported = client.list_replicas()
    except pymysql.Error as e:
        raise TopologyError(f"Replica 목록 조회 실패: {e}") from e

    replicas: List[Replica] = []
    seen = set()
    for replica in reported:
        if replica.replica_id in seen:
            logger.warning(f"중복 보고된 Replica 무시: {replica}")
            continue
        seen.add(replica.replica_id)
        replicas.append(replica)

    if not replicas:
        raise TopologyError("Primary에 등록된 Replica가 없습니다")

    logger.info(f"Replica {len(replicas)}대 발견: {', '.join(str(r) for r in replicas)}")
    return replicas
