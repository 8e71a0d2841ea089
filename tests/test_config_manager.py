"""
ConfigManager / BackupSettings 테스트
"""
import json
import os

import pytest


class TestCredentialEncryptor:
    """CredentialEncryptor 클래스 테스트"""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        from src.core.config_manager import CredentialEncryptor
        self.key_file = str(tmp_path / '.encryption_key')
        self.encryptor = CredentialEncryptor(self.key_file)

    def test_encrypt_decrypt_roundtrip(self):
        """암호화 후 복호화 시 원본과 동일해야 함"""
        original = "my_secure_password_123!"
        encrypted = self.encryptor.encrypt(original)

        assert encrypted != original
        assert self.encryptor.decrypt(encrypted) == original

    def test_empty_string(self):
        assert self.encryptor.encrypt("") == ""
        assert self.encryptor.decrypt("") == ""

    def test_decrypt_invalid_text(self):
        """잘못된 암호문 복호화 시 빈 문자열 반환"""
        assert self.encryptor.decrypt("invalid_encrypted_text") == ""

    def test_key_file_permissions(self):
        """키 파일은 소유자만 읽기/쓰기"""
        if os.name == 'nt':
            pytest.skip("POSIX 권한 전용")
        assert os.stat(self.key_file).st_mode & 0o777 == 0o600

    def test_key_reused(self):
        from src.core.config_manager import CredentialEncryptor

        encrypted = self.encryptor.encrypt("secret")

        assert CredentialEncryptor(self.key_file).decrypt(encrypted) == "secret"


class TestBackupSettings:
    """BackupSettings 테스트"""

    def test_defaults_are_valid(self):
        from src.core.config_manager import BackupSettings

        assert BackupSettings().validate() == []

    def test_validate_reports_problems(self):
        from src.core.config_manager import BackupSettings

        settings = BackupSettings(primary_host='', dump_tool='xtrabackup', sync_poll_interval=0)
        problems = settings.validate()

        assert len(problems) == 3
        assert any('dump_tool' in p for p in problems)

    def test_from_dict_ignores_unknown_keys(self):
        from src.core.config_manager import BackupSettings

        settings = BackupSettings.from_dict({'schema': 'shop', 'retention_days': 7})

        assert settings.schema == 'shop'
        assert settings.primary_port == 3306

    def test_apply_overrides_skips_none(self):
        from src.core.config_manager import BackupSettings, apply_overrides

        settings, changed = apply_overrides(
            BackupSettings(), {'schema': 'shop', 'primary_host': None, 'unknown': 1}
        )

        assert changed == ['schema']
        assert settings.schema == 'shop'


class TestConfigManager:
    """ConfigManager 클래스 테스트"""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path):
        from src.core.config_manager import ConfigManager
        self.config_path = tmp_path / 'dumpforge' / 'config.json'
        self.config_mgr = ConfigManager(str(self.config_path))

    def test_default_config_created(self):
        """최초 실행 시 기본 설정 파일 생성"""
        config = self.config_mgr.load_config()

        assert self.config_mgr.get_config_path() == str(self.config_path)
        assert self.config_path.exists()
        assert config['backup']['schema'] == 'sb'
        assert config['backup']['mysql_password_encrypted'] == ""
        assert 'mysql_password' not in config['backup']

    def test_save_and_load_settings(self):
        """비밀번호는 암호화되어 저장되고 복호화되어 로드됨"""
        settings = self.config_mgr.get_settings()
        settings.mysql_password = 'p@ss'
        settings.primary_host = 'db-primary'
        self.config_mgr.save_settings(settings)

        with open(self.config_path, encoding='utf-8') as f:
            raw = json.load(f)
        assert 'p@ss' not in json.dumps(raw)

        loaded = self.config_mgr.get_settings()
        assert loaded.mysql_password == 'p@ss'
        assert loaded.primary_host == 'db-primary'

    def test_broken_config_file(self):
        self.config_path.write_text('{not json', encoding='utf-8')

        assert self.config_mgr.load_config() == {"backup": {}}
        assert self.config_mgr.get_settings().schema == 'sb'

    def test_backup_created_on_save(self):
        """설정 저장 시 이전 파일 백업"""
        self.config_mgr.save_config({"backup": {"schema": "a"}})
        self.config_mgr.save_config({"backup": {"schema": "b"}})

        assert len(self.config_mgr.list_backups()) >= 1

    def test_old_backups_cleaned(self):
        from src.core.config_manager import MAX_BACKUPS

        for i in range(MAX_BACKUPS + 3):
            self.config_mgr.save_config({"backup": {"schema": f"s{i}"}})

        assert len(self.config_mgr.list_backups()) == MAX_BACKUPS
