"""
청크 분배 테스트
"""
import pytest


def _ids(n):
    return [f"replica-{i}:3306" for i in range(n)]


class TestComputeChunkSize:
    """compute_chunk_size 테스트"""

    def test_ceiling_division(self):
        from src.core.partitioner import compute_chunk_size

        assert compute_chunk_size(10, 3) == 4
        assert compute_chunk_size(9, 3) == 3
        assert compute_chunk_size(1, 5) == 1

    def test_zero_replicas_raises(self):
        from src.core.errors import PartitionError
        from src.core.partitioner import compute_chunk_size

        with pytest.raises(PartitionError):
            compute_chunk_size(10, 0)


class TestPlanChunks:
    """plan_chunks 테스트"""

    def test_ten_tables_three_replicas(self):
        """10개 / 3대 → [0:4), [4:8), [8:10)"""
        from src.core.partitioner import plan_chunks

        plan = plan_chunks(10, _ids(3))

        assert [(a.chunk_start, a.chunk_size) for a in plan] == [(0, 4), (4, 4), (8, 2)]
        assert [a.replica_id for a in plan] == _ids(3)

    @pytest.mark.parametrize("table_count,replica_count", [
        (1, 1), (1, 4), (5, 4), (7, 7), (10, 3), (11, 4), (100, 7), (3, 10),
    ])
    def test_covers_every_table_exactly_once(self, table_count, replica_count):
        """모든 테이블이 정확히 한 번 배정"""
        import math
        from src.core.partitioner import plan_chunks

        plan = plan_chunks(table_count, _ids(replica_count))
        covered = []
        for a in plan:
            covered.extend(range(a.chunk_start, a.chunk_end))

        assert covered == list(range(table_count))
        assert len(plan) == replica_count

        chunk_size = math.ceil(table_count / replica_count)
        full = [a for a in plan if a.chunk_size == chunk_size]
        partial = [a for a in plan if a.chunk_size != chunk_size]
        # 크기가 다른 청크는 모두 뒤쪽에 위치
        assert plan[:len(full)] == full
        assert all(0 <= a.chunk_size < chunk_size for a in partial)

    def test_trailing_replica_can_get_empty_chunk(self):
        """5개 / 4대 → 마지막 Replica는 0개 (범위를 넘지 않음)"""
        from src.core.partitioner import plan_chunks

        plan = plan_chunks(5, _ids(4))

        assert [(a.chunk_start, a.chunk_size) for a in plan] == [(0, 2), (2, 2), (4, 1), (5, 0)]
        assert all(a.chunk_end <= 5 for a in plan)

    def test_zero_tables_is_empty_plan(self):
        """테이블 0개 → 빈 계획 (오류 아님)"""
        from src.core.partitioner import plan_chunks

        assert plan_chunks(0, _ids(3)) == []

    def test_zero_replicas_raises(self):
        """Replica 0대 → PartitionError"""
        from src.core.errors import PartitionError
        from src.core.partitioner import plan_chunks

        with pytest.raises(PartitionError):
            plan_chunks(10, [])

    def test_negative_table_count_raises(self):
        from src.core.errors import PartitionError
        from src.core.partitioner import plan_chunks

        with pytest.raises(PartitionError):
            plan_chunks(-1, _ids(2))


class TestResolveChunkTables:
    """resolve_chunk_tables 테스트"""

    def test_last_chunk_clamped(self, ten_tables):
        """마지막 청크는 목록 끝에서 잘림 (2개, 4개 아님)"""
        from src.core.models import ChunkAssignment
        from src.core.partitioner import resolve_chunk_tables

        tables = resolve_chunk_tables(ten_tables, ChunkAssignment('r:3306', 8, 4))

        assert tables == ['t08', 't09']

    def test_each_replica_reads_its_slice(self, ten_tables):
        from src.core.partitioner import plan_chunks, resolve_chunk_tables

        plan = plan_chunks(len(ten_tables), _ids(3))
        slices = [resolve_chunk_tables(ten_tables, a) for a in plan]

        assert slices == [ten_tables[0:4], ten_tables[4:8], ten_tables[8:10]]

    def test_negative_start_rejected(self, ten_tables):
        from src.core.errors import PartitionError
        from src.core.models import ChunkAssignment
        from src.core.partitioner import resolve_chunk_tables

        with pytest.raises(PartitionError):
            resolve_chunk_tables(ten_tables, ChunkAssignment('r:3306', -1, 4))
