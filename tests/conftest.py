"""
Shared test fixtures and configuration for pytest
"""
import json
import logging

import pytest

from popline.utils.config import ConfigManager

from .test_helpers import POP3TestHelper


@pytest.fixture
def pop3():
    """POP3 test helper"""
    return POP3TestHelper


@pytest.fixture
def config_path(tmp_path):
    """Path for a throwaway config file"""
    return tmp_path / "config.json"


@pytest.fixture
def account_config():
    """Sample account settings as stored on disk"""
    return {
        'host': 'pop.test.com',
        'port': 995,
        'use_tls': True,
        'verify_mode': 'verify-peer',
        'timeout': 15.0,
        'username': 'alice@test.com',
        'password': 'testpass',
    }


@pytest.fixture
def config_manager(config_path, account_config):
    """ConfigManager backed by a temporary file with a populated account"""
    config_path.write_text(json.dumps({'account': account_config}), encoding='utf-8')
    return ConfigManager(config_path)


@pytest.fixture
def restore_logging():
    """Put the popline logger back as it was after a test installs handlers"""
    root = logging.getLogger("popline")
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
