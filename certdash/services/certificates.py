"""
Certificate resend and download managers.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional, Set

import requests
from pydantic import BaseModel

from ..errors import ApiError, NetworkError, RequestTimeoutError, retry, user_message
from ..models import ResendResult
from .notifications import NotificationCenter

logger = logging.getLogger(__name__)


class DownloadState(BaseModel):
    """Progress of the current certificate download."""
    status: str = 'idle'  # idle | downloading | completed | error
    progress: int = 0
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_downloading(self) -> bool:
        return self.status == 'downloading'


def safe_filename(name: str) -> str:
    """Strip path separators and odd characters from a server-provided filename."""
    cleaned = re.sub(r'[^\w.\- ]+', '_', name).strip(' .')
    return cleaned or 'certificate.pdf'


class ResendManager:
    """Resends certificates, skipping a resend already in flight for the same learner and course."""

    def __init__(self, api, center: NotificationCenter):
        self.api = api
        self.center = center
        self.resending: Set[str] = set()

    @property
    def is_resending(self) -> bool:
        return bool(self.resending)

    async def resend(self, learner_email: str, course_id: str) -> Optional[ResendResult]:
        key = f"{learner_email}-{course_id}"
        if key in self.resending:
            logger.debug(f"Resend already in progress for {key}")
            return None

        self.resending.add(key)
        try:
            result = await asyncio.to_thread(self.api.resend_certificate, learner_email, course_id)
            if result.success:
                self.center.success(f"Certificate has been resent to {learner_email}", title='Certificate Resent')
            else:
                self.center.error_toast(ApiError(result.message or 'Failed to resend certificate'),
                                        title='Resend Failed')
            return result
        except Exception as e:
            self.center.error_toast(e, title='Resend Failed')
            return None
        finally:
            self.resending.discard(key)


class DownloadManager:
    """Fetches a certificate's signed URL from the gateway and saves the PDF."""

    def __init__(
        self,
        api,
        center: NotificationCenter,
        http: Optional[requests.Session] = None,
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_delay: float = 1.0
    ):
        self.api = api
        self.center = center
        self.http = http or requests.Session()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.state = DownloadState()

    def reset(self) -> None:
        self.state = DownloadState()

    async def download(self, learner_email: str, course_id: str, directory: Path,
                       file_name: Optional[str] = None) -> Optional[Path]:
        self.state = DownloadState(status='downloading', file_name=file_name or 'Certificate')
        try:
            self.state.progress = 25
            link = await asyncio.to_thread(self.api.download_certificate, learner_email, course_id)
            if not link.download_url:
                raise ApiError('No download URL provided')

            self.state.progress = 50
            content = await asyncio.to_thread(
                retry, lambda: self._fetch(link.download_url), self.max_attempts, self.retry_delay)

            self.state.progress = 75
            name = safe_filename(link.filename or file_name or f"{learner_email}_{course_id}.pdf")
            target = Path(directory) / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)

            self.state = DownloadState(status='completed', progress=100, file_name=name, file_path=str(target))
            logger.info(f"Certificate for {learner_email} saved to {target}")
            return target
        except Exception as e:
            logger.error(f"Download error: {e}")
            self.state = self.state.model_copy(update={
                'status': 'error',
                'error_message': user_message(e) or 'Download failed',
            })
            self.center.error_toast(e, title='Download Failed')
            return None

    def _fetch(self, url: str) -> bytes:
        try:
            response = self.http.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise RequestTimeoutError()
        except requests.exceptions.RequestException as e:
            raise NetworkError(f'Failed to download file: {e}')
        if response.status_code != 200:
            raise ApiError('Failed to download file', code='DOWNLOAD_FAILED', status_code=response.status_code)
        return response.content
