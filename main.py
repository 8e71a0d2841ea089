# -*- coding: utf-8 -*-
"""
DumpForge - Replica 분산 백업 CLI

Usage:
    python main.py
    python main.py --schema sb --primary-host db-primary --backup-root /data/backups
    python main.py --plan-only

종료 코드:
    0 성공 (비치명적 오류 포함 가능), 1 치명적 오류, 2 이미 실행 중
"""
import argparse
import json
import signal
import sys
from typing import List, Optional

from src.core.alerting import Alerter
from src.core.backup_coordinator import BackupReport, DistributedBackup
from src.core.backup_run import RunLock
from src.core.config_manager import ConfigManager, apply_overrides
from src.core.constants import EXIT_ALREADY_RUNNING, EXIT_FATAL, SUPPORTED_DUMP_TOOLS
from src.core.errors import LockError
from src.core.logger import get_log_file_path, get_logger, set_log_file
from src.core.plan_store import InMemoryChunkPlanStore, MySQLChunkPlanStore
from src.core.replication_client import MySQLReplicationClient
from src.exporters.dump_dispatcher import DumpConfig, DumpDispatcher, DumpToolChecker
from src.version import __app_name__, __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dumpforge',
        description=f'{__app_name__} {__version__} - Replica 분산 일관성 백업',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
예제:
  # 설정 파일 기준 실행
  dumpforge

  # 청크 배정만 확인 (동결/Dump 없음)
  dumpforge --schema sb --plan-only

  # mysqlsh로 Dump
  dumpforge --dump-tool mysqlsh --backup-root /backups
        """
    )
    parser.add_argument('--config', help='설정 파일 경로 (기본값: ~/.config/dumpforge/config.json)')
    parser.add_argument('--schema', help='백업 대상 스키마')
    parser.add_argument('--primary-host', dest='primary_host', help='Primary 호스트')
    parser.add_argument('--primary-port', dest='primary_port', type=int, help='Primary 포트')
    parser.add_argument('--user', dest='mysql_user', help='MySQL 사용자')
    parser.add_argument('--backup-root', dest='backup_root', help='백업 루트 디렉토리')
    parser.add_argument('--dump-tool', dest='dump_tool', choices=SUPPORTED_DUMP_TOOLS, help='Dump 도구')
    parser.add_argument('--lock-file', dest='lock_file', help='단일 실행 잠금 파일')
    parser.add_argument('--plan-only', action='store_true', help='청크 배정만 출력 (동결/Dump 없음)')
    parser.add_argument('--skip-tool-check', action='store_true', help='Dump 도구 설치 확인 생략')
    parser.add_argument('--log-file', help='로그 파일 경로')
    parser.add_argument('--version', action='version', version=f'{__app_name__} {__version__}')
    return parser


def _terminate(signum, frame):
    """SIGTERM을 SystemExit로 바꿔 정리 경로(finally, 잠금 해제)를 실행"""
    # 정리 도중 두 번째 SIGTERM으로 중단되지 않도록 무시
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    raise SystemExit(128 + signum)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.log_file:
        set_log_file(args.log_file)
    logger = get_logger('main')

    config_mgr = ConfigManager(args.config)
    logger.debug(f"설정 파일: {config_mgr.get_config_path()}, 로그 파일: {get_log_file_path()}")
    settings, changed = apply_overrides(config_mgr.get_settings(), {
        'schema': args.schema,
        'primary_host': args.primary_host,
        'primary_port': args.primary_port,
        'mysql_user': args.mysql_user,
        'backup_root': args.backup_root,
        'dump_tool': args.dump_tool,
        'lock_file': args.lock_file,
    })
    if changed:
        logger.debug(f"CLI 설정 덮어쓰기: {', '.join(changed)}")

    problems = settings.validate()
    if problems:
        for problem in problems:
            logger.error(f"설정 오류: {problem}")
        return EXIT_FATAL

    if not args.plan_only and not args.skip_tool_check:
        installed, msg, _ = DumpToolChecker.check_installation(settings.dump_tool)
        if not installed:
            logger.error(f"[ERROR] {msg}")
            return EXIT_FATAL
        logger.info(f"[OK] Found '{settings.dump_tool}' bin: {msg}")

    alerter = Alerter.from_settings(settings)
    client = MySQLReplicationClient(
        settings.primary_host,
        settings.primary_port,
        settings.mysql_user,
        settings.mysql_password,
        freeze_statement=settings.freeze_statement,
        unfreeze_statement=settings.unfreeze_statement,
        poll_interval=settings.sync_poll_interval,
        sync_timeout=settings.sync_timeout,
    )
    dispatcher = DumpDispatcher(DumpConfig(
        user=settings.mysql_user,
        password=settings.mysql_password,
        schema=settings.schema,
        tool=settings.dump_tool,
        lock_for_backup=settings.lock_for_backup,
        mysqlsh_threads=settings.mysqlsh_threads,
        mysqlsh_compression=settings.mysqlsh_compression,
    ))

    previous_handler = signal.signal(signal.SIGTERM, _terminate)
    try:
        if args.plan_only:
            backup = DistributedBackup(
                client, InMemoryChunkPlanStore(), dispatcher,
                settings.schema, settings.backup_root
            )
            report = backup.run(plan_only=True)
            print(report.summary())
            return report.exit_code

        lock = RunLock(settings.lock_file)
        try:
            with lock:
                plan_store = MySQLChunkPlanStore(client.primary, settings.plan_schema, settings.plan_table)
                backup = DistributedBackup(client, plan_store, dispatcher, settings.schema, settings.backup_root)
                report = backup.run()
        except LockError as e:
            report = BackupReport(run_id='-', schema=settings.schema, errors=[e], lock_conflict=True)
            alerter.send(report)
            print(report.summary(), file=sys.stderr)
            return EXIT_ALREADY_RUNNING

        alerter.send(report)
        print(report.summary())
        if report.jobs:
            print(json.dumps(
                [{'replica': j.replica_id, 'destination': j.destination, 'pid': j.pid} for j in report.jobs],
                indent=2, ensure_ascii=False
            ))
        return report.exit_code
    finally:
        client.close()
        signal.signal(signal.SIGTERM, previous_handler)


if __name__ == "__main__":
    sys.exit(main())
