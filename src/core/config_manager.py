import json
import os
import shutil
from dataclasses import dataclass, asdict, fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken

from src.core.constants import (
    DEFAULT_BACKUP_ROOT, DEFAULT_FREEZE_STATEMENT, DEFAULT_LOCK_FILE, DEFAULT_MYSQL_PORT,
    DEFAULT_MYSQL_USER, DEFAULT_PLAN_SCHEMA, DEFAULT_PLAN_TABLE, DEFAULT_PRIMARY_HOST,
    DEFAULT_SCHEMA, DEFAULT_UNFREEZE_STATEMENT, DUMP_TOOL_MYSQLDUMP, SUPPORTED_DUMP_TOOLS
)
from src.core.logger import get_logger

logger = get_logger('config_manager')

# 설정 파일 저장 경로: ~/.config/dumpforge
APP_DIR = os.path.join(os.path.expanduser('~'), '.config', 'dumpforge')

CONFIG_FILE_NAME = 'config.json'
KEY_FILE_NAME = '.encryption_key'
BACKUP_DIR_NAME = 'backups'
MAX_BACKUPS = 5


@dataclass
class BackupSettings:
    """분산 백업 실행 설정"""
    primary_host: str = DEFAULT_PRIMARY_HOST
    primary_port: int = DEFAULT_MYSQL_PORT
    mysql_user: str = DEFAULT_MYSQL_USER
    mysql_password: str = ""
    schema: str = DEFAULT_SCHEMA
    backup_root: str = DEFAULT_BACKUP_ROOT
    dump_tool: str = DUMP_TOOL_MYSQLDUMP
    lock_for_backup: bool = True
    plan_schema: str = DEFAULT_PLAN_SCHEMA
    plan_table: str = DEFAULT_PLAN_TABLE
    freeze_statement: str = DEFAULT_FREEZE_STATEMENT
    unfreeze_statement: str = DEFAULT_UNFREEZE_STATEMENT
    sync_poll_interval: float = 1.0
    sync_timeout: float = 0        # 0 = 무제한 대기
    lock_file: str = DEFAULT_LOCK_FILE
    mysqlsh_threads: int = 4
    mysqlsh_compression: str = "zstd"
    alert_webhook_url: str = ""
    alert_email: str = ""
    smtp_host: str = ""
    smtp_port: int = 25

    def validate(self) -> List[str]:
        """설정 검증, 문제 목록 반환 (빈 목록이면 정상)"""
        problems = []
        if not self.primary_host:
            problems.append("primary_host가 비어 있습니다")
        if not 0 < int(self.primary_port) < 65536:
            problems.append(f"primary_port 범위 오류: {self.primary_port}")
        if not self.schema:
            problems.append("schema가 비어 있습니다")
        if self.dump_tool not in SUPPORTED_DUMP_TOOLS:
            problems.append(f"지원하지 않는 dump_tool: {self.dump_tool}")
        if self.sync_poll_interval <= 0:
            problems.append("sync_poll_interval은 0보다 커야 합니다")
        if self.sync_timeout < 0:
            problems.append("sync_timeout은 음수가 될 수 없습니다")
        return problems

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BackupSettings':
        """딕셔너리에서 생성 (알 수 없는 키는 무시)"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"알 수 없는 설정 키 무시: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})


class CredentialEncryptor:
    """MySQL 자격 증명 암호화/복호화"""

    def __init__(self, key_file: str):
        self.key_file = key_file
        self._fernet = None
        self._ensure_key_exists()

    def _ensure_key_exists(self):
        """암호화 키 파일이 없으면 생성"""
        if not os.path.exists(self.key_file):
            key = Fernet.generate_key()
            with open(self.key_file, 'wb') as f:
                f.write(key)
            os.chmod(self.key_file, 0o600)

        with open(self.key_file, 'rb') as f:
            self._fernet = Fernet(f.read())

    def encrypt(self, plain_text: str) -> str:
        """평문을 암호화"""
        if not plain_text:
            return ""
        return self._fernet.encrypt(plain_text.encode('utf-8')).decode('utf-8')

    def decrypt(self, encrypted_text: str) -> str:
        """암호문을 복호화"""
        if not encrypted_text:
            return ""
        try:
            return self._fernet.decrypt(encrypted_text.encode('utf-8')).decode('utf-8')
        except InvalidToken:
            logger.error("비밀번호 복호화 실패 (암호화 키 불일치)")
            return ""


class ConfigManager:
    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: 설정 파일 경로 (None이면 ~/.config/dumpforge/config.json)
        """
        self.config_file = config_path or os.path.join(APP_DIR, CONFIG_FILE_NAME)
        self.app_dir = os.path.dirname(os.path.abspath(self.config_file))
        self.key_file = os.path.join(self.app_dir, KEY_FILE_NAME)
        self.backup_dir = os.path.join(self.app_dir, BACKUP_DIR_NAME)
        self._encryptor = None
        self._ensure_config_exists()

    def _ensure_config_exists(self):
        """설정 폴더와 파일이 없으면 기본값을 생성합니다."""
        os.makedirs(self.app_dir, exist_ok=True)

        if not os.path.exists(self.config_file):
            defaults = BackupSettings().to_dict()
            defaults.pop('mysql_password')
            defaults['mysql_password_encrypted'] = ""
            self.save_config({"backup": defaults})
            logger.info(f"기본 설정 파일 생성: {self.config_file}")

    def load_config(self) -> Dict[str, Any]:
        """설정 파일을 읽어서 반환합니다."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"설정 로드 오류: {e}")
            return {"backup": {}}

    def save_config(self, data: Dict[str, Any]):
        """설정 데이터를 파일에 저장합니다."""
        # 저장 전 자동 백업
        self._create_backup()

        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=4, ensure_ascii=False)
        logger.debug(f"설정 저장 완료: {self.config_file}")

    def _create_backup(self):
        """설정 변경 전 자동 백업"""
        if not os.path.exists(self.config_file):
            return

        try:
            os.makedirs(self.backup_dir, exist_ok=True)
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
            backup_path = os.path.join(self.backup_dir, f'config.backup.{timestamp}.json')
            shutil.copy2(self.config_file, backup_path)
            logger.debug(f"설정 백업 생성: {backup_path}")
            self._cleanup_old_backups()
        except OSError as e:
            logger.warning(f"백업 생성 실패: {e}")

    def _cleanup_old_backups(self):
        """오래된 백업 파일 정리 (MAX_BACKUPS 초과 시 삭제)"""
        backups = self.list_backups()
        for backup_file in backups[MAX_BACKUPS:]:
            os.remove(os.path.join(self.backup_dir, backup_file))
            logger.debug(f"오래된 백업 삭제: {backup_file}")

    def list_backups(self) -> List[str]:
        """백업 파일 목록 반환 (최신순 정렬)"""
        if not os.path.exists(self.backup_dir):
            return []

        backups = [
            name for name in os.listdir(self.backup_dir)
            if name.startswith('config.backup.') and name.endswith('.json')
        ]
        backups.sort(reverse=True)
        return backups

    def get_config_path(self) -> str:
        return self.config_file

    @property
    def encryptor(self) -> CredentialEncryptor:
        """암호화 도구 (지연 생성)"""
        if self._encryptor is None:
            self._encryptor = CredentialEncryptor(self.key_file)
        return self._encryptor

    def get_settings(self) -> BackupSettings:
        """설정 파일의 backup 섹션을 BackupSettings로 변환 (비밀번호 복호화)"""
        section = dict(self.load_config().get('backup', {}))
        encrypted_pw = section.pop('mysql_password_encrypted', '')
        settings = BackupSettings.from_dict(section)
        if encrypted_pw:
            settings.mysql_password = self.encryptor.decrypt(encrypted_pw)
        return settings

    def save_settings(self, settings: BackupSettings):
        """BackupSettings 저장 (비밀번호는 암호화하여 저장)"""
        data = self.load_config()
        section = settings.to_dict()
        section['mysql_password_encrypted'] = self.encryptor.encrypt(section.pop('mysql_password'))
        data['backup'] = section
        self.save_config(data)
        logger.info("백업 설정 저장 완료")


def apply_overrides(settings: BackupSettings, overrides: Dict[str, Any]) -> Tuple[BackupSettings, List[str]]:
    """CLI 인자 등으로 설정 덮어쓰기 (None 값은 무시)

    Returns:
        (설정, 실제로 변경된 키 목록)
    """
    known = {f.name for f in fields(BackupSettings)}
    changed = []
    for key, value in overrides.items():
        if value is None or key not in known:
            continue
        setattr(settings, key, value)
        changed.append(key)
    return settings, changed
