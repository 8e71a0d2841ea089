"""
백업 오류 알림
- Webhook (JSON POST)
- 이메일 (SMTP)
알림 전송 실패는 로그만 남기고 예외를 전파하지 않습니다.
"""
import smtplib
import socket
from email.message import EmailMessage
from typing import Optional

import requests

from src.core.logger import get_logger
from src.version import __app_name__

logger = get_logger('alerting')


class Alerter:
    """백업 결과 알림 전송"""

    def __init__(self, webhook_url: str = "", email: str = "",
                 smtp_host: str = "", smtp_port: int = 25,
                 hostname: Optional[str] = None):
        self.webhook_url = webhook_url
        self.email = email
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.hostname = hostname or socket.gethostname()

    @classmethod
    def from_settings(cls, settings) -> 'Alerter':
        return cls(
            webhook_url=settings.alert_webhook_url,
            email=settings.alert_email,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url or (self.email and self.smtp_host))

    @property
    def subject(self) -> str:
        return f"[{self.hostname}] ALERT Parallel backup"

    def send(self, report) -> bool:
        """오류가 있는 보고서만 전송

        Returns:
            하나 이상의 채널로 전송 성공 여부
        """
        if not report.errors:
            return False
        if not self.enabled:
            logger.debug("알림 채널이 설정되지 않아 전송 생략")
            return False

        body = report.summary()
        sent = False
        if self.webhook_url:
            sent = self._send_webhook(report, body) or sent
        if self.email and self.smtp_host:
            sent = self._send_email(body) or sent
        return sent

    def _send_webhook(self, report, body: str) -> bool:
        payload = {
            'app': __app_name__,
            'host': self.hostname,
            'subject': self.subject,
            'success': report.success,
            'text': body,
        }
        try:
            response = requests.post(self.webhook_url, json=payload, timeout=30)
            response.raise_for_status()
            logger.info(f"Webhook 알림 전송 완료 ({response.status_code})")
            return True
        except requests.RequestException as e:
            logger.error(f"Webhook 알림 전송 실패: {e}")
            return False

    def _send_email(self, body: str) -> bool:
        message = EmailMessage()
        message['Subject'] = self.subject
        message['From'] = f"dumpforge@{self.hostname}"
        message['To'] = self.email
        message.set_content(body)

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as smtp:
                smtp.send_message(message)
            logger.info(f"이메일 알림 전송 완료: {self.email}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"이메일 알림 전송 실패: {e}")
            return False
