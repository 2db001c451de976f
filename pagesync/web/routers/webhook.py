"""Webhook router -- push notifications trigger single-repository sync."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from pagesync.models.repository import RepoId, SyncReport
from pagesync.sync.engine import SyncEngine
from pagesync.web.middleware.auth import get_engine, require_token
from pagesync.web.models.api import (
    StatusResponse,
    SyncEntryResponse,
    SyncReportResponse,
    WebhookEvent,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


def _report_to_response(report: SyncReport) -> SyncReportResponse:
    """Convert a SyncReport dataclass to a Pydantic response."""
    return SyncReportResponse(
        kind="full" if report.request.is_full else "repository",
        repo=str(report.request.repo or ""),
        started_at=report.started_at,
        finished_at=report.finished_at,
        error=report.error,
        summary=report.summary(),
        entries=[
            SyncEntryResponse(repo=str(e.repo), action=e.action.value, detail=e.detail)
            for e in report.entries
        ],
    )


@router.post(
    "/webhook",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_token)],
    summary="Receive a push webhook",
)
async def receive_webhook(request: Request, engine: SyncEngine = Depends(get_engine)):
    """Reconcile the repository named in a push event.

    The sync runs before the response is sent, but its outcome is not
    reported: the sender cannot act on it. The next full sync corrects
    anything this pass got wrong.
    """
    try:
        body = await request.body()
    except Exception:
        raise HTTPException(status_code=400, detail="error reading request body")

    try:
        event = WebhookEvent.model_validate_json(body)
        repo = RepoId.parse(event.repository.full_name)
    except (ValidationError, ValueError):
        raise HTTPException(status_code=400, detail="error parsing request body")

    logger.info("Got webhook for %s", repo)
    await run_in_threadpool(engine.sync_repo, repo)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.api_route(
    "/webhook",
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def reject_webhook_method():
    raise HTTPException(status_code=400, detail="invalid method")


@router.get(
    "/status",
    response_model=StatusResponse,
    dependencies=[Depends(require_token)],
    summary="Show the most recent reconciliation",
)
async def get_status(engine: SyncEngine = Depends(get_engine)):
    report = engine.last_report
    return StatusResponse(
        branch=engine.branch,
        interval=engine.config.interval,
        last_report=_report_to_response(report) if report else None,
    )
