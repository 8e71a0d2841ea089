"""
테이블 청크 분배

chunk_size = ceil(테이블 수 / Replica 수), i번째 Replica는 i * chunk_size부터 시작.
뒤쪽 Replica의 구간은 남은 테이블 수로 잘립니다 (0개일 수도 있음).
"""
from typing import List, Sequence

from src.core.errors import PartitionError
from src.core.models import ChunkAssignment


def compute_chunk_size(table_count: int, replica_count: int) -> int:
    """Replica당 테이블 수 (올림 나눗셈)"""
    if replica_count <= 0:
        raise PartitionError(f"Replica 수가 올바르지 않습니다: {replica_count}")
    if table_count < 0:
        raise PartitionError(f"테이블 수가 올바르지 않습니다: {table_count}")
    return -(-table_count // replica_count)


def plan_chunks(table_count: int, replica_ids: Sequence[str]) -> List[ChunkAssignment]:
    """Replica별 청크 배정 계산

    Args:
        table_count: 전체 테이블 수
        replica_ids: 조회 순서대로의 Replica ID 목록

    Returns:
        ChunkAssignment 목록 (table_count == 0이면 빈 목록, 백업할 것이 없음)

    Raises:
        PartitionError: Replica 0대 또는 음수 테이블 수
    """
    chunk_size = compute_chunk_size(table_count, len(replica_ids))
    if table_count == 0:
        return []

    assignments = []
    for index, replica_id in enumerate(replica_ids):
        chunk_start = min(index * chunk_size, table_count)
        size = max(0, min(chunk_size, table_count - chunk_start))
        assignments.append(ChunkAssignment(replica_id, chunk_start, size))
    return assignments


def resolve_chunk_tables(tables: Sequence[str], assignment: ChunkAssignment) -> List[str]:
    """청크 구간의 테이블 이름 목록 (목록 끝에서 잘림)"""
    if assignment.chunk_start < 0 or assignment.chunk_size < 0:
        raise PartitionError(
            f"잘못된 청크 구간: start={assignment.chunk_start}, size={assignment.chunk_size}",
            replica=assignment.replica_id
        )
    end = min(assignment.chunk_end, len(tables))
    return list(tables[assignment.chunk_start:end])
