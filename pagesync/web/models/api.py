"""Pydantic models for webhook payloads and API responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WebhookRepository(BaseModel):
    full_name: str


class WebhookEvent(BaseModel):
    """The part of a Gitea push event we read; other fields are ignored."""

    repository: WebhookRepository


class SyncEntryResponse(BaseModel):
    repo: str
    action: str
    detail: str = ""


class SyncReportResponse(BaseModel):
    """Mirrors pagesync.models.repository.SyncReport."""

    kind: str
    repo: str = ""
    started_at: str = ""
    finished_at: str = ""
    error: str = ""
    summary: str = ""
    entries: list[SyncEntryResponse] = Field(default_factory=list)


class StatusResponse(BaseModel):
    branch: str
    interval: float
    last_report: SyncReportResponse | None = None
