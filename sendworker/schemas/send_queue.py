from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, TypeAdapter, model_validator


class RecipientData(BaseModel):
    model_config = ConfigDict(frozen=True)

    recipient_id: str
    chat_id: str | None = None
    username: str | None = None


class ResolvedParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    chat_id: str
    text: str
    parse_mode: Literal["Markdown", "MarkdownV2", "HTML"] | None = None
    disable_web_page_preview: bool = True


class SendJob(BaseModel):
    """One queue message: deliver notification_id to one recipient."""

    model_config = ConfigDict(frozen=True)

    notification_id: str
    recipient_id: str
    recipient_data: RecipientData
    resolved_params: ResolvedParams | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_recipient_id(cls, data: Any) -> Any:
        # recipient_data is the source of truth; results for one job share one key.
        if isinstance(data, dict):
            recipient = data.get("recipient_data")
            if isinstance(recipient, dict) and recipient.get("recipient_id"):
                top = data.get("recipient_id")
                if top and top != recipient["recipient_id"]:
                    raise ValueError(
                        f"recipient_id {top!r} does not match recipient_data.recipient_id {recipient['recipient_id']!r}"
                    )
                data = {**data, "recipient_id": recipient["recipient_id"]}
        return data


@dataclass(frozen=True)
class DeliveryMetadata:
    """Facts supplied by the queue host for one invocation."""

    delivery_count: int
    enqueued_at: datetime | None
    message_id: str


job_adapter = TypeAdapter(SendJob)


def decode_job(payload: str | bytes | dict) -> SendJob:
    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    return job_adapter.validate_python(payload)


def encode_job(job: SendJob) -> dict:
    return job.model_dump(mode="json", exclude_none=True)
