"""
MySQL 데이터베이스 연결 클래스
- 제어 쿼리(복제 제어, 청크 계획)는 실패 시 예외를 그대로 전파
- 세션 단위 잠금(LOCK BINLOG FOR BACKUP)을 위해 연결을 유지
"""
import pymysql
from typing import List, Dict, Any, Optional, Tuple

from src.core.logger import get_logger

logger = get_logger('db_connector')


class MySQLConnector:
    """MySQL 데이터베이스 연결 및 쿼리 실행 클래스"""

    def __init__(self, host: str, port: int, user: str, password: str,
                 database: str = None, connect_timeout: int = 10):
        """
        Args:
            host: MySQL 호스트
            port: MySQL 포트
            user: MySQL 사용자
            password: MySQL 비밀번호
            database: 기본 데이터베이스
            connect_timeout: 연결 타임아웃 (초)
        """
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.connect_timeout = connect_timeout
        self.connection: Optional[pymysql.Connection] = None
        self._version: Optional[Tuple[int, int, int]] = None

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def connect(self) -> Tuple[bool, str]:
        """데이터베이스 연결"""
        try:
            self.connection = pymysql.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                database=self.database,
                charset='utf8mb4',
                cursorclass=pymysql.cursors.DictCursor,
                connect_timeout=self.connect_timeout,
                autocommit=True
            )
            return True, "연결 성공"
        except pymysql.Error as e:
            error_code = e.args[0] if e.args else 0
            error_msg = e.args[1] if len(e.args) > 1 else str(e)
            return False, f"MySQL 오류 ({error_code}): {error_msg}"
        except Exception as e:
            return False, f"연결 오류: {str(e)}"

    def disconnect(self):
        """연결 종료"""
        if self.connection:
            try:
                self.connection.close()
            except Exception:
                pass
            finally:
                self.connection = None

    def ensure_connected(self):
        """연결이 없으면 연결 시도, 실패 시 pymysql.OperationalError"""
        if self.connection is not None:
            return
        success, msg = self.connect()
        if not success:
            raise pymysql.err.OperationalError(2003, f"{self.endpoint} 연결 실패: {msg}")

    def execute(self, query: str, params: tuple = None) -> List[Dict[str, Any]]:
        """쿼리 실행 및 결과 반환

        Raises:
            pymysql.Error: 연결 실패 또는 쿼리 오류
        """
        self.ensure_connected()
        logger.debug(f"[{self.endpoint}] {' '.join(query.split())}")
        with self.connection.cursor() as cursor:
            cursor.execute(query, params)
            return list(cursor.fetchall())

    def execute_many(self, query: str, data: List[tuple]) -> int:
        """배치 쿼리 실행 (단일 트랜잭션, 실패 시 롤백 후 예외 전파)"""
        self.ensure_connected()
        try:
            self.connection.begin()
            with self.connection.cursor() as cursor:
                cursor.executemany(query, data)
                rowcount = cursor.rowcount
            self.connection.commit()
            return rowcount
        except pymysql.Error:
            try:
                self.connection.rollback()
            except pymysql.Error:
                pass
            raise

    def get_tables(self, schema: str) -> List[str]:
        """스키마의 테이블 목록 조회 (TABLE_NAME 순서 고정)

        청크 오프셋이 이 순서를 기준으로 하므로 ORDER BY가 필수입니다.
        """
        rows = self.execute(
            """
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
            """,
            (schema,)
        )
        return [row['TABLE_NAME'] for row in rows]

    def get_db_version(self) -> Tuple[int, int, int]:
        """DB 버전 반환 (major, minor, patch)

        예: 8.0.32-ubuntu → (8, 0, 32), 5.7.44-48-log → (5, 7, 44)

        Returns:
            버전 튜플 (major, minor, patch) 또는 조회 실패 시 (0, 0, 0)
        """
        if self._version is not None:
            return self._version

        try:
            rows = self.execute("SELECT VERSION() AS version")
            if rows:
                version_clean = rows[0]['version'].split('-')[0]
                parts = version_clean.split('.')
                major = int(parts[0]) if len(parts) > 0 else 0
                minor = int(parts[1]) if len(parts) > 1 else 0
                patch = int(parts[2]) if len(parts) > 2 else 0
                self._version = (major, minor, patch)
                return self._version
        except (pymysql.Error, ValueError, KeyError) as e:
            logger.error(f"버전 조회 오류 ({self.endpoint}): {e}")

        return (0, 0, 0)
