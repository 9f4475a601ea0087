"""
Pytest configuration file for Box Scanner tests.

Puts 'src' on sys.path so tests import modules the way the application does,
and provides shared fixtures for configuration and the scan logic.
"""

import configparser
import os
import sys
from pathlib import Path

import pytest

# Widgets are created without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Get the repository root directory (parent of tests directory)
repo_root = Path(__file__).parent.parent

src_dir = repo_root / 'src'
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from app_config import AppConfig  # noqa: E402


class FakeOpener:
    """Stands in for QDesktopServices.openUrl and records what was opened."""

    def __init__(self, result: bool = True):
        self.result = result
        self.opened = []

    def __call__(self, url) -> bool:
        self.opened.append(url.toString())
        return self.result


def make_config(cache_dir, **overrides) -> AppConfig:
    """
    Helper to build an AppConfig without a config.ini on disk.

    Args:
        cache_dir: Export directory
        **overrides: Extra keys for the [Export] / [Scanner] sections,
                     e.g. BoxPrefix="BX-" or MailRecipient="a@b.c"
    """
    parser = configparser.ConfigParser()
    parser.add_section('Scanner')
    parser.add_section('Export')
    parser.set('Export', 'CacheDir', str(cache_dir))
    for key, value in overrides.items():
        section = 'Scanner' if key == 'BoxPrefix' else 'Export'
        parser.set(section, key, value)
    return AppConfig(parser)


@pytest.fixture
def test_config(tmp_path):
    """AppConfig exporting into a temporary directory."""
    return make_config(tmp_path / "cache")


@pytest.fixture
def share_opener():
    return FakeOpener()


@pytest.fixture
def mail_opener():
    return FakeOpener()


@pytest.fixture
def scan_logic(test_config, share_opener, mail_opener):
    """BoxScanLogic wired to fake desktop openers."""
    from box_scan_logic import BoxScanLogic
    from handoff import MailService, ShareService

    return BoxScanLogic(
        config=test_config,
        share_service=ShareService(opener=share_opener),
        mail_service=MailService(
            recipient=test_config.mail_recipient,
            subject=test_config.mail_subject,
            opener=mail_opener,
        ),
    )
