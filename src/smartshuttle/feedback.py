"""Feedback form submission and the server-side email relay."""

import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests

from .config import ApplicationConfig
from .errors import ConfigurationError, TransportError, UpstreamError, ValidationError
from .http_session import AsyncRequestsSession

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 10
MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024
REQUIRED_FIELDS = ("issue_type", "description")


@dataclass
class Attachment:
    """A file attached to a feedback report."""
    name: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def info(self) -> str:
        return f"Attached: {self.name} ({self.size} bytes, type: {self.mime_type})"

    def data_url(self) -> str:
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Attachment":
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, content=path.read_bytes(), mime_type=mime_type or "application/octet-stream")


@dataclass
class FeedbackSubmission:
    """A feedback form as filled in by the user."""
    issue_type: str
    description: str
    attachment: Optional[Attachment] = None

    def validate(self) -> None:
        """
        Raises:
            ValidationError: Naming the first invalid field.
        """
        if not (self.issue_type or "").strip():
            raise ValidationError("Please select an issue type before submitting.", field="issue_type")
        description = (self.description or "").strip()
        if not description:
            raise ValidationError("Please select a description before submitting.", field="description")
        if len(description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Please provide a more detailed description (at least {MIN_DESCRIPTION_LENGTH} characters).",
                field="description",
            )
        if self.attachment is not None and self.attachment.size > MAX_ATTACHMENT_BYTES:
            raise ValidationError(
                f"File size exceeds {MAX_ATTACHMENT_BYTES // (1024 * 1024)}MB limit. Please choose a smaller file.",
                field="attachment",
            )

    def to_payload(self, recipient: str) -> Dict[str, Any]:
        """Email template parameters sent to /api/send-feedback."""
        payload: Dict[str, Any] = {
            "to_name": recipient,
            "issue_type": self.issue_type.strip(),
            "description": self.description.strip(),
            "attachment_info": "No attachment",
        }
        if self.attachment is not None:
            payload["attachment_info"] = self.attachment.info
            if self.attachment.is_image:
                payload["image_attachment"] = self.attachment.data_url()
                payload["attachment_name"] = self.attachment.name
        return payload


@dataclass
class FeedbackResult:
    success: bool
    message: str
    delivered: bool = False


def validate_feedback_payload(body: Any) -> Dict[str, Any]:
    """
    Server-side check of a posted feedback body.

    Raises:
        ValidationError: If the body is not an object or lacks a required field.
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    for name in REQUIRED_FIELDS:
        value = body.get(name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Missing required field: {name}", field=name)
    return body


class EmailRelay:
    """Forwards feedback to EmailJS with server-held credentials."""

    def __init__(self, http: AsyncRequestsSession, config: ApplicationConfig):
        self.http = http
        self.config = config

    async def send(self, template_params: Dict[str, Any]) -> Any:
        """
        Returns:
            The relay's response body.

        Raises:
            ConfigurationError: Credentials are not configured.
            UpstreamError: The relay rejected the message.
            TransportError: The relay could not be reached.
        """
        if not self.config.emailjs_configured:
            raise ConfigurationError("Email service not configured")

        email_data = {
            "service_id": self.config.emailjs_service_id,
            "template_id": self.config.emailjs_template_id,
            "user_id": self.config.emailjs_public_key,
            "template_params": template_params,
        }
        try:
            response = await self.http.post(self.config.emailjs_url, json=email_data)
        except requests.RequestException as e:
            raise TransportError(f"Email relay unreachable: {e}") from e

        if not response.ok:
            raise UpstreamError(f"Email relay rejected feedback: {response.text}", status_code=response.status_code)
        try:
            return response.json()
        except ValueError:
            return response.text


class FeedbackClient:
    """Client side of the feedback form."""

    def __init__(self, http: AsyncRequestsSession, endpoint_url: str, recipient: str = "SmartShuttle Team"):
        self.http = http
        self.endpoint_url = endpoint_url
        self.recipient = recipient

    async def submit(self, submission: FeedbackSubmission) -> FeedbackResult:
        """
        Validate and send a submission.

        Raises:
            ValidationError: Before any network call if the form is invalid.
        """
        submission.validate()
        payload = submission.to_payload(self.recipient)

        try:
            response = await self.http.post(self.endpoint_url, json=payload)
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to send feedback: {e}")
            return FeedbackResult(False, "Failed to send feedback. Please try again.")

        if isinstance(data, dict) and data.get("success"):
            return FeedbackResult(True, "Your feedback has been received!", delivered=bool(data.get("delivered", True)))

        error = data.get("error") if isinstance(data, dict) else None
        logger.error(f"Failed to send feedback: {error or 'unknown error'}")
        return FeedbackResult(False, "Failed to send feedback. Please try again.")
