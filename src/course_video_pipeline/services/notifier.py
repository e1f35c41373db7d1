"""Email notifications through the Postmark HTTP API."""

from __future__ import annotations

from datetime import timezone
from html import escape
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import get_settings
from ..exceptions import NotificationError
from ..logging_config import LoggerMixin
from ..models import JobRecord, Submission

SUCCESS_SUBJECT = "Course Generation Complete {job_id}"
FAILURE_SUBJECT = "Course Generation ERROR"


class EmailNotifier(LoggerMixin):
    """Send HTML emails; delivery problems are logged, never raised."""

    def __init__(self, settings=None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.api_url = self.settings.postmark_api_url
        self.timeout = int(getattr(self.settings, "email_timeout", 30))

        if session is None:
            # One retry on connection problems and throttling/server errors
            retries = Retry(
                total=1,
                connect=1,
                read=1,
                status=1,
                backoff_factor=0.5,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=frozenset(["POST"]),
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retries)
            session = requests.Session()
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    @property
    def enabled(self) -> bool:
        return bool(self.settings.postmark_key and self.settings.postmark_from)

    def send(self, html_body: str, to: str, subject: str) -> Optional[Dict[str, Any]]:
        """Send one email.

        Returns:
            The Postmark response body, or None when sending was suppressed
            or failed
        """
        if not self.enabled:
            self.logger.info("Email suppressed, Postmark is not configured", to=to, subject=subject)
            return None

        self.logger.info("Sending email", to=to, subject=subject)
        try:
            return self._post(html_body, to, subject)
        except NotificationError as exc:
            self.logger.error("Sending email error", to=to, subject=subject, error=str(exc))
            return None

    def _post(self, html_body: str, to: str, subject: str) -> Dict[str, Any]:
        headers = {
            "X-Postmark-Server-Token": self.settings.postmark_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        payload = {
            "From": self.settings.postmark_from,
            "To": to,
            "Subject": subject,
            "HtmlBody": html_body,
        }
        try:
            response = self.session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            detail = ""
            if getattr(exc, "response", None) is not None:
                detail = f": {exc.response.text[:500]}"
            raise NotificationError(f"{exc}{detail}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        return body if isinstance(body, dict) else {"response": body}


# ---------------------------
# Message builders
# ---------------------------

def build_success_email(
    record: JobRecord,
    full_url: Optional[str],
    short_url: Optional[str],
) -> str:
    """HTML body announcing finished videos."""

    def link(url: Optional[str]) -> str:
        if not url:
            return "not uploaded"
        return f'<a href="{escape(url)}">{escape(url)}</a>'

    created = record.created_at
    created_utc = created.astimezone(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")
    total = record.total_time
    return (
        "<html><body><strong>Course videos are ready:</strong><br><br>"
        f"ID {escape(record.job_id)} {escape(record.name)}<br><br>"
        f"Full video {link(full_url)}<br>"
        f"Short video {link(short_url)}<br><br>"
        f"Images items {len(record.images)}. Audio items {len(record.audios)}.<br><br>"
        f"Generation requested at {created.strftime('%Y-%m-%d %H:%M:%S')} ({created_utc}).<br>"
        f"The video was generating {round(total)} seconds ({round(total / 60, 1)} minutes)"
        "</body></html>"
    )


def build_failure_email(submission: Submission, error: BaseException) -> str:
    """HTML body reporting a failed job."""
    return (
        "<html><body><strong>Some error happened. "
        f"ID {escape(submission.job_id)}. Video \"{escape(submission.name)}\"</strong><br><br>"
        f"{type(error).__name__}: {escape(getattr(error, 'message', str(error)))}"
        "</body></html>"
    )


def success_subject(job_id: str) -> str:
    return SUCCESS_SUBJECT.format(job_id=job_id)
