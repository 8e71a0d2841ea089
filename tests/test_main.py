"""
CLI 진입점 테스트
"""
import os
import signal

import pytest
from unittest.mock import MagicMock, patch

from tests.conftest import FakeReplicationClient


@pytest.fixture
def cli_args(tmp_path):
    return [
        '--config', str(tmp_path / 'config.json'),
        '--lock-file', str(tmp_path / 'dumpforge.lock'),
        '--backup-root', str(tmp_path / 'backups'),
    ]


class TestMain:
    """main() 테스트"""

    def test_plan_only(self, cli_args, fake_client, capsys):
        import main

        fake_client.close = MagicMock()
        with patch('main.MySQLReplicationClient', return_value=fake_client):
            code = main.main(cli_args + ['--plan-only'])

        assert code == 0
        out = capsys.readouterr().out
        assert 'replica-c:3306: [8, 10) 2개' in out
        assert fake_client.called('freeze_log') == []
        fake_client.close.assert_called_once()

    def test_invalid_settings(self, cli_args):
        import main

        with patch('main.MySQLReplicationClient') as mock_client:
            code = main.main(cli_args + ['--primary-port', '0'])

        assert code == 1
        mock_client.assert_not_called()

    def test_missing_dump_tool(self, cli_args):
        import main

        with patch('main.DumpToolChecker.check_installation',
                   return_value=(False, 'mysqldump가 설치되어 있지 않습니다.', None)):
            with patch('main.MySQLReplicationClient') as mock_client:
                code = main.main(cli_args)

        assert code == 1
        mock_client.assert_not_called()

    def test_already_running(self, cli_args, tmp_path, capsys):
        """잠금 파일이 있으면 종료 코드 2"""
        import main

        (tmp_path / 'dumpforge.lock').write_text('999\n')
        client = FakeReplicationClient()
        client.primary = MagicMock()

        with patch('main.MySQLReplicationClient', return_value=client):
            code = main.main(cli_args + ['--skip-tool-check'])

        assert code == 2
        assert client.calls == []
        assert 'LockError' in capsys.readouterr().err

    def test_full_run_releases_lock(self, cli_args, fake_client, tmp_path):
        import main

        fake_client.primary = MagicMock()

        with patch('main.MySQLReplicationClient', return_value=fake_client), \
                patch('main.DumpDispatcher') as mock_dispatcher:
            mock_dispatcher.return_value.dispatch_all.return_value = []
            code = main.main(cli_args + ['--skip-tool-check'])

        assert code == 0
        assert fake_client.frozen is False
        mock_dispatcher.return_value.dispatch_all.assert_called_once()
        assert not (tmp_path / 'dumpforge.lock').exists()


@pytest.mark.skipif(not hasattr(signal, 'SIGTERM') or os.name == 'nt', reason="POSIX 시그널 전용")
class TestTermination:
    """SIGTERM 수신 시 정리 테스트"""

    def test_sigterm_during_force_sync(self, cli_args, fake_client, tmp_path):
        """강제 동기화 중 SIGTERM → 동결 해제, 정지한 Replica 재개, 잠금 파일 삭제"""
        import main

        fake_client.primary = MagicMock()
        original = fake_client.force_sync_to

        def terminated(replica, position):
            if replica.host == 'replica-b':
                os.kill(os.getpid(), signal.SIGTERM)
            original(replica, position)

        fake_client.force_sync_to = terminated
        previous = signal.getsignal(signal.SIGTERM)

        with patch('main.MySQLReplicationClient', return_value=fake_client), \
                patch('main.DumpDispatcher') as mock_dispatcher:
            with pytest.raises(SystemExit) as exc_info:
                main.main(cli_args + ['--skip-tool-check'])

        assert exc_info.value.code == 128 + signal.SIGTERM
        assert fake_client.frozen is False
        assert fake_client.called('resume_replication') == ['replica-a:3306', 'replica-b:3306']
        assert fake_client.stopped == set()
        mock_dispatcher.return_value.dispatch_all.assert_not_called()
        assert not (tmp_path / 'dumpforge.lock').exists()
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_sigterm_during_dispatch_releases_fleet(self, cli_args, fake_client, tmp_path):
        import main

        fake_client.primary = MagicMock()

        def terminated(*args):
            os.kill(os.getpid(), signal.SIGTERM)
            return []

        with patch('main.MySQLReplicationClient', return_value=fake_client), \
                patch('main.DumpDispatcher') as mock_dispatcher:
            mock_dispatcher.return_value.dispatch_all.side_effect = terminated
            with pytest.raises(SystemExit):
                main.main(cli_args + ['--skip-tool-check'])

        assert fake_client.frozen is False
        assert len(fake_client.called('resume_replication')) == 3
        assert not (tmp_path / 'dumpforge.lock').exists()
