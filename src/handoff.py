"""
Handing an exported packing list to other applications.

ShareService opens the file with whatever the desktop registers for .xlsx;
MailService builds a mailto: link that mentions the file location and opens
it in the default mail client. Both go through QDesktopServices unless a
different opener is injected (tests inject a fake).
"""

from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import quote, urlencode

from PySide6.QtCore import QUrl
from PySide6.QtGui import QDesktopServices

from app_config import DEFAULT_MAIL_RECIPIENT, DEFAULT_MAIL_SUBJECT
from exceptions import MailUnavailableError, ShareUnavailableError
from export_formatter import XLSX_MIME_TYPE
from logger import get_logger

logger = get_logger(__name__)

SHARE_DIALOG_TITLE = "Packing List"
MAIL_BODY_TEMPLATE = "Here is the packing list: {location}"

UrlOpener = Callable[[QUrl], bool]


def open_with_desktop(url: QUrl) -> bool:
    return QDesktopServices.openUrl(url)


class ShareService:
    """
    Hands an exported file to the desktop.

    Attributes:
        dialog_title (str): Title used for the handoff.
        mime_type (str): MIME type of the shared file.
    """

    def __init__(self, opener: Optional[UrlOpener] = None,
                 dialog_title: str = SHARE_DIALOG_TITLE, mime_type: str = XLSX_MIME_TYPE):
        self._opener = opener or open_with_desktop
        self.dialog_title = dialog_title
        self.mime_type = mime_type

    def share(self, location: Union[str, Path]) -> None:
        """
        Open the exported file with the application registered for its type.

        Raises:
            ShareUnavailableError: The file is gone or nothing accepted it.
        """
        path = Path(location)
        if not path.is_file():
            raise ShareUnavailableError(f"Файл не найден: {path}", target=str(path))

        url = QUrl.fromLocalFile(str(path.resolve()))
        logger.info(f"{self.dialog_title}: sharing {path} as {self.mime_type}")

        if not self._opener(url):
            logger.warning(f"No application accepted {path}")
            raise ShareUnavailableError(
                "Не найдено приложение, чтобы открыть файл.", target=url.toString()
            )


class MailService:
    """
    Sends the export location by email through a mailto: link.

    Attributes:
        recipient (str): Address the link is addressed to.
        subject (str): Mail subject.
    """

    def __init__(self, recipient: str = DEFAULT_MAIL_RECIPIENT, subject: str = DEFAULT_MAIL_SUBJECT,
                 opener: Optional[UrlOpener] = None):
        self.recipient = recipient
        self.subject = subject
        self._opener = opener or open_with_desktop

    def build_url(self, location: Union[str, Path]) -> str:
        """Build the mailto: link whose body points at the exported file."""
        query = urlencode(
            {
                'subject': self.subject,
                'body': MAIL_BODY_TEMPLATE.format(location=location),
            },
            quote_via=quote,
        )
        return f"mailto:{quote(self.recipient, safe='@')}?{query}"

    def can_open(self, url: str) -> bool:
        """Whether url is a well-formed mailto: link with a recipient."""
        qurl = QUrl(url)
        return qurl.isValid() and qurl.scheme() == 'mailto' and bool(qurl.path())

    def send(self, location: Union[str, Path]) -> str:
        """
        Open the mail client with a message about the exported file.

        Returns:
            The mailto: URL that was opened.

        Raises:
            MailUnavailableError: The link cannot be opened here.
        """
        url = self.build_url(location)
        if not self.can_open(url):
            logger.warning(f"Cannot open mail link: {url}")
            raise MailUnavailableError("Невозможно открыть почтовый клиент.", target=url)

        if not self._opener(QUrl(url)):
            logger.warning("Mail client refused the link")
            raise MailUnavailableError("Почтовый клиент не найден.", target=url)

        logger.info(f"Mail link opened for {location}")
        return url
