import logging
import sys

import pytest

import main
from core.server_lifecycle import DevServer


@pytest.fixture(autouse=True)
def isolated_logging(tmp_path, monkeypatch):
    monkeypatch.setattr(main, 'get_app_data_dir', lambda: tmp_path)
    monkeypatch.setattr(sys, 'excepthook', sys.excepthook)
    monkeypatch.setenv('EDS_CONFIG', str(tmp_path / 'config.json'))
    for name in ('PORT', 'HOST', 'ROOT_DIR', 'PROXY_HOST', 'DEFAULT_DOCUMENT', 'PROXY_TIMEOUT', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_invalid_config_exits_with_two(monkeypatch):
    monkeypatch.setenv('PORT', 'not-a-port')

    assert main.main() == 2


def test_runs_dev_server(monkeypatch, tmp_path):
    started = []

    def fake_run(self):
        started.append(self.config)
        return 0

    monkeypatch.setenv('ROOT_DIR', str(tmp_path))
    monkeypatch.setenv('PORT', '4321')
    monkeypatch.setattr(DevServer, 'run', fake_run)

    assert main.main() == 0
    assert started[0].port == 4321
    assert started[0].root_dir == tmp_path.resolve()


def test_setup_logging_writes_rotating_file(monkeypatch, tmp_path):
    monkeypatch.setenv('LOG_LEVEL', 'debug')

    main.setup_logging(main.ConfigManager())
    logging.getLogger('tests').debug('hello log file')

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    for handler in root.handlers:
        handler.flush()
    assert 'hello log file' in (tmp_path / 'logs' / 'eds_dev_server.log').read_text(encoding='utf-8')


def test_unknown_log_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv('LOG_LEVEL', 'chatty')

    main.setup_logging(main.ConfigManager())

    assert logging.getLogger().level == logging.INFO


def test_unwritable_home_does_not_crash(monkeypatch, tmp_path):
    def unwritable():
        raise PermissionError(13, 'Permission denied')

    monkeypatch.delenv('EDS_CONFIG')
    monkeypatch.setattr('core.config_manager.get_app_data_dir', unwritable)
    monkeypatch.setattr(main, 'get_app_data_dir', unwritable)
    monkeypatch.setenv('ROOT_DIR', str(tmp_path))
    monkeypatch.setattr(DevServer, 'run', lambda self: 0)

    assert main.main() == 0
