"""중앙 상수 모듈

MySQL 관련 기본값과 분산 백업 기본 설정을 한 곳에서 관리합니다.
"""

# MySQL 기본 포트
DEFAULT_MYSQL_PORT = 3306

# 기본 Primary 호스트
DEFAULT_PRIMARY_HOST = 'localhost'

# 백업 대상 기본 스키마 / 계정
DEFAULT_SCHEMA = 'sb'
DEFAULT_MYSQL_USER = 'percona'

# 백업 파일 루트 (실행 날짜 YYYYMMDD 하위 폴더가 추가됨)
DEFAULT_BACKUP_ROOT = '/data/backups'

# 청크 배정 계획 저장 위치 (Primary에 생성)
DEFAULT_PLAN_SCHEMA = 'percona'
DEFAULT_PLAN_TABLE = 'metabackups'

# Binlog 동결/해제 구문 (Percona Server backup lock)
DEFAULT_FREEZE_STATEMENT = 'LOCK BINLOG FOR BACKUP'
DEFAULT_UNFREEZE_STATEMENT = 'UNLOCK BINLOG'

# 단일 실행 잠금 파일
DEFAULT_LOCK_FILE = '/var/lock/dumpforge.lock'

# Dump 도구
DUMP_TOOL_MYSQLDUMP = 'mysqldump'
DUMP_TOOL_MYSQLSH = 'mysqlsh'
SUPPORTED_DUMP_TOOLS = (DUMP_TOOL_MYSQLDUMP, DUMP_TOOL_MYSQLSH)

# SHOW REPLICAS / SHOW REPLICA STATUS 등 신규 용어가 도입된 버전
REPLICA_KEYWORD_VERSION = (8, 0, 22)

# START REPLICA UNTIL SOURCE_LOG_FILE / SOURCE_LOG_POS 옵션이 도입된 버전
REPLICA_UNTIL_SOURCE_VERSION = (8, 0, 23)

# 종료 코드
EXIT_OK = 0
EXIT_FATAL = 1
EXIT_ALREADY_RUNNING = 2
