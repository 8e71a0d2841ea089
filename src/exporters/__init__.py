from .dump_dispatcher import (
    DumpConfig, DumpDispatcher, DumpToolChecker, DispatchedJob,
    MysqldumpCommand, MySQLShellCommand, ensure_directory
)

__all__ = [
    'DumpConfig', 'DumpDispatcher', 'DumpToolChecker', 'DispatchedJob',
    'MysqldumpCommand', 'MySQLShellCommand', 'ensure_directory'
]
