"""
Application settings loaded from config.ini.

Missing file, section or key always falls back to a default, so the station
starts with no configuration at all.

Example config.ini:
    [Scanner]
    BoxPrefix = WB_

    [Export]
    CacheDir = C:\\Temp\\box_scanner
    FileName = PackingList.xlsx
    MailRecipient = warehouse@example.com
    MailSubject = Packing List

    [Logging]
    LogDir = C:\\Logs\\box_scanner
    LogLevel = INFO
    MaxLogSizeMB = 10
    LogRetentionDays = 30
"""

import configparser
import tempfile
from pathlib import Path

DEFAULT_CONFIG_PATH = "config.ini"

DEFAULT_BOX_PREFIX = "WB_"
DEFAULT_EXPORT_FILE_NAME = "PackingList.xlsx"
DEFAULT_MAIL_RECIPIENT = "youremail@example.com"
DEFAULT_MAIL_SUBJECT = "Packing List"


def read_config_file(config_path: str = DEFAULT_CONFIG_PATH) -> configparser.ConfigParser:
    """
    Read config.ini into a ConfigParser.

    Returns an empty parser if the file does not exist; callers use fallbacks.
    """
    config = configparser.ConfigParser()
    path = Path(config_path)
    if path.exists():
        config.read(path, encoding='utf-8')
    return config


class AppConfig:
    """
    Typed view over config.ini.

    Attributes:
        parser (configparser.ConfigParser): The underlying parser, shared with
                                            the logging setup.
    """

    def __init__(self, parser: configparser.ConfigParser = None):
        self.parser = parser if parser is not None else configparser.ConfigParser()

    @property
    def box_prefix(self) -> str:
        prefix = self.parser.get('Scanner', 'BoxPrefix', fallback=DEFAULT_BOX_PREFIX).strip()
        return prefix or DEFAULT_BOX_PREFIX

    @property
    def cache_dir(self) -> Path:
        configured = self.parser.get('Export', 'CacheDir', fallback='').strip()
        if configured:
            return Path(configured).expanduser()
        return Path(tempfile.gettempdir()) / "box_scanner_cache"

    @property
    def export_file_name(self) -> str:
        return self.parser.get('Export', 'FileName', fallback=DEFAULT_EXPORT_FILE_NAME).strip() or DEFAULT_EXPORT_FILE_NAME

    @property
    def mail_recipient(self) -> str:
        return self.parser.get('Export', 'MailRecipient', fallback=DEFAULT_MAIL_RECIPIENT).strip()

    @property
    def mail_subject(self) -> str:
        return self.parser.get('Export', 'MailSubject', fallback=DEFAULT_MAIL_SUBJECT)

    @property
    def log_dir(self) -> Path:
        configured = self.parser.get('Logging', 'LogDir', fallback='').strip()
        if configured:
            return Path(configured).expanduser()
        return Path.home() / ".box_scanner" / "logs"

    @property
    def log_level(self) -> str:
        return self.parser.get('Logging', 'LogLevel', fallback='INFO').upper()

    @property
    def max_log_size_mb(self) -> int:
        return self.parser.getint('Logging', 'MaxLogSizeMB', fallback=10)

    @property
    def log_retention_days(self) -> int:
        return self.parser.getint('Logging', 'LogRetentionDays', fallback=30)


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Load config.ini (or defaults) as an AppConfig."""
    return AppConfig(read_config_file(config_path))
