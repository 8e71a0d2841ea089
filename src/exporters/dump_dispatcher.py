"""
Replica별 병렬 Dump 실행
- Replica마다 배정된 테이블 청크만 독립 프로세스로 Export
- 프로세스 시작만 확인하고 완료는 기다리지 않음 (fire-and-forget)
- mysqldump (기본) / MySQL Shell util.dumpTables 지원
"""
import os
import json
import shutil
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

from src.core.backup_run import BackupRun
from src.core.constants import DUMP_TOOL_MYSQLDUMP, DUMP_TOOL_MYSQLSH, SUPPORTED_DUMP_TOOLS
from src.core.errors import DispatchError, PartitionError
from src.core.logger import get_logger
from src.core.models import Replica
from src.core.partitioner import resolve_chunk_tables
from src.core.plan_store import ChunkPlanStore

logger = get_logger('dump_dispatcher')

METADATA_FILE = '_backup_metadata.json'


@dataclass
class DumpConfig:
    """Dump 실행 설정"""
    user: str
    password: str
    schema: str
    tool: str = DUMP_TOOL_MYSQLDUMP
    lock_for_backup: bool = True
    mysqlsh_threads: int = 4
    mysqlsh_compression: str = "zstd"

    def __post_init__(self):
        if self.tool not in SUPPORTED_DUMP_TOOLS:
            raise ValueError(f"지원하지 않는 dump 도구: {self.tool}")

    def get_uri(self, replica: Replica) -> str:
        """mysqlsh URI 형식 반환 (비밀번호 제외, 사용자명은 percent-encoding)"""
        return f"{quote(self.user, safe='')}@{replica.host}:{replica.port}"


@dataclass
class DispatchedJob:
    """시작된 Export 작업"""
    replica_id: str
    tables: List[str]
    destination: str
    pid: Optional[int] = None
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())


class DumpToolChecker:
    """Dump 도구 설치 확인"""

    @staticmethod
    def check_installation(tool: str = DUMP_TOOL_MYSQLDUMP) -> Tuple[bool, str, Optional[str]]:
        """
        dump 도구 설치 확인

        Returns:
            (설치여부, 메시지, 버전)
        """
        try:
            result = subprocess.run(
                [tool, "--version"],
                capture_output=True,
                text=True,
                timeout=10
            )

            if result.returncode == 0:
                version = result.stdout.strip()
                return True, version, version
            else:
                return False, f"{tool} 실행 실패", None

        except FileNotFoundError:
            return False, f"{tool}가 설치되어 있지 않습니다.", None
        except subprocess.TimeoutExpired:
            return False, f"{tool} 버전 확인 시간 초과", None
        except OSError as e:
            return False, f"오류: {str(e)}", None


class MysqldumpCommand:
    """mysqldump 명령 구성 (결과는 stdout → 파일)"""

    def __init__(self, config: DumpConfig):
        self.config = config

    def destination(self, output_dir: str, replica: Replica) -> str:
        return os.path.join(output_dir, f"{replica.dump_basename}.sql")

    def build(self, replica: Replica, tables: List[str], destination: str) -> List[str]:
        cmd = [
            DUMP_TOOL_MYSQLDUMP,
            f"--host={replica.host}",
            f"--port={replica.port}",
            f"--user={self.config.user}",
            "--single-transaction",
        ]
        if self.config.lock_for_backup:
            cmd.append("--lock-for-backup")
        cmd.append(self.config.schema)
        cmd.extend(tables)
        return cmd

    def environment(self) -> Dict[str, str]:
        # 비밀번호는 명령줄 대신 환경 변수로 전달
        env = dict(os.environ)
        if self.config.password:
            env['MYSQL_PWD'] = self.config.password
        return env

    def stdin_payload(self) -> Optional[bytes]:
        return None

    @property
    def writes_stdout(self) -> bool:
        return True


class MySQLShellCommand:
    """MySQL Shell util.dumpTables 명령 구성 (결과는 디렉토리)"""

    def __init__(self, config: DumpConfig):
        self.config = config

    def destination(self, output_dir: str, replica: Replica) -> str:
        return os.path.join(output_dir, f"{replica.dump_basename}.dump")

    def build(self, replica: Replica, tables: List[str], destination: str) -> List[str]:
        tables_json = json.dumps(tables)
        destination_escaped = destination.replace('\\', '/')
        js_code = f"""
util.dumpTables("{self.config.schema}", {tables_json}, "{destination_escaped}", {{
    consistent: true,
    threads: {self.config.mysqlsh_threads},
    compression: "{self.config.mysqlsh_compression}",
    showProgress: false
}});
"""
        return [
            DUMP_TOOL_MYSQLSH,
            "--uri", self.config.get_uri(replica),
            "--passwords-from-stdin",
            "--js",
            "-e", js_code
        ]

    def environment(self) -> Dict[str, str]:
        return dict(os.environ)

    def stdin_payload(self) -> Optional[bytes]:
        # --passwords-from-stdin: 첫 줄을 비밀번호로 읽음
        return f"{self.config.password}\n".encode('utf-8')

    @property
    def writes_stdout(self) -> bool:
        return False


def ensure_directory(path: str):
    """출력 디렉토리 생성

    Raises:
        DispatchError: 생성 실패 (fatal)
    """
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise DispatchError(f"{path} 디렉토리를 만들 수 없습니다: {e}", fatal=True) from e
    logger.info(f"{path} 디렉토리 준비 완료")


class DumpDispatcher:
    """Replica별 Export 작업 시작기"""

    def __init__(self, config: DumpConfig, popen: Callable[..., subprocess.Popen] = subprocess.Popen):
        """
        Args:
            config: Dump 설정
            popen: 프로세스 생성 함수 (테스트 주입용)
        """
        self.config = config
        self._popen = popen
        if config.tool == DUMP_TOOL_MYSQLSH:
            self.command = MySQLShellCommand(config)
        else:
            self.command = MysqldumpCommand(config)
        # 완료를 기다리지 않지만 운영자가 확인할 수 있도록 핸들은 보관
        self.processes: Dict[str, subprocess.Popen] = {}

    def destination_for(self, output_dir: str, replica: Replica) -> str:
        return self.command.destination(output_dir, replica)

    def dispatch_export(self, replica: Replica, tables: List[str], destination: str) -> DispatchedJob:
        """Replica 하나에 대한 Export 시작 (완료 대기 없음)

        Raises:
            DispatchError: 프로세스를 시작하지 못함 (non-fatal)
        """
        cmd = self.command.build(replica, tables, destination)
        payload = self.command.stdin_payload()
        log_path = f"{destination}.err" if self.command.writes_stdout else f"{destination}.log"

        stdout_file = None
        log_file = None
        try:
            if not self.command.writes_stdout and os.path.exists(destination):
                # mysqlsh는 비어 있지 않은 디렉토리에 dump할 수 없음
                shutil.rmtree(destination)

            log_file = open(log_path, 'wb')
            if self.command.writes_stdout:
                stdout_file = open(destination, 'wb')

            process = self._popen(
                cmd,
                stdout=stdout_file if stdout_file else log_file,
                stderr=log_file,
                stdin=subprocess.PIPE if payload else subprocess.DEVNULL,
                env=self.command.environment(),
                start_new_session=True
            )
            if payload:
                process.stdin.write(payload)
                process.stdin.close()
        except OSError as e:
            raise DispatchError(f"Export 작업 시작 실패: {e}", replica=replica.replica_id) from e
        finally:
            # 자식 프로세스가 자체 파일 핸들을 가지므로 부모 쪽은 닫음
            if stdout_file:
                stdout_file.close()
            if log_file:
                log_file.close()

        self.processes[replica.replica_id] = process
        job = DispatchedJob(
            replica_id=replica.replica_id,
            tables=list(tables),
            destination=destination,
            pid=getattr(process, 'pid', None)
        )
        logger.info(f"[OK] Dumping {replica} → {destination} ({len(tables)}개 테이블, pid={job.pid})")
        return job

    def dispatch_all(self, run: BackupRun, plan_store: ChunkPlanStore, output_dir: str) -> List[DispatchedJob]:
        """모든 Replica의 Export 시작

        Replica별 실패는 run에 기록하고 나머지 Replica는 계속 진행합니다.
        """
        try:
            ensure_directory(output_dir)
        except DispatchError as e:
            run.record_error(e)
            return []

        jobs = []
        for replica in run.replicas:
            try:
                assignment = plan_store.lookup_chunk(replica.replica_id)
                tables = resolve_chunk_tables(run.tables, assignment)
            except PartitionError as e:
                run.record_error(DispatchError(f"청크 조회 실패: {e.message}", replica=replica.replica_id))
                continue

            if not tables:
                logger.info(f"[{replica}] 배정된 테이블이 없어 건너뜀")
                continue

            try:
                job = self.dispatch_export(replica, tables, self.destination_for(output_dir, replica))
            except DispatchError as e:
                run.record_error(e)
                continue
            jobs.append(job)

        run.dispatched_jobs = jobs
        self._write_metadata(output_dir, run, jobs)
        return jobs

    def _write_metadata(self, output_dir: str, run: BackupRun, jobs: List[DispatchedJob]):
        """백업 메타데이터 파일 생성 (절단점, 청크 배정, 시작된 작업)"""
        metadata = {
            "run_id": run.run_id,
            "export_time": datetime.now().isoformat(),
            "schema": run.schema,
            "tool": self.config.tool,
            "cut_position": {
                "log_file": run.cut_position.log_file,
                "log_pos": run.cut_position.log_pos,
            } if run.cut_position else None,
            "assignments": [a.to_dict() for a in run.assignments],
            "jobs": [
                {
                    "replica_id": job.replica_id,
                    "destination": os.path.basename(job.destination),
                    "tables": job.tables,
                    "pid": job.pid,
                }
                for job in jobs
            ],
        }

        filepath = os.path.join(output_dir, METADATA_FILE)
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(metadata, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.warning(f"메타데이터 파일 생성 실패: {e}")
