"""HTTP routes for reading and generating reports."""

import logging

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request

from group_insight.constants import GENERATION_IN_PROGRESS_MESSAGE
from group_insight.container import ServiceContainer
from group_insight.services import ServiceUnavailable
from group_insight.utils.timezone import parse_report_date, today

logger = logging.getLogger(__name__)

router = APIRouter()


def _container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _is_admin(container: ServiceContainer, token: str | None) -> bool:
    admin_token = container.settings.admin_token
    return bool(admin_token) and token == admin_token


def _resolve_date(container: ServiceContainer, value: str) -> str:
    try:
        return parse_report_date(value, container.settings.timezone)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    return {"status": "ok", "services": _container(request).status()}


@router.get("/reports/{group_id}/{date}")
async def get_report(group_id: str, date: str, request: Request):
    container = _container(request)
    date = _resolve_date(container, date)

    report = await container.reports.get_report(group_id, date)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report.to_dict()


@router.get("/reports/{group_id}/{date}/batches")
async def get_batches(
    group_id: str,
    date: str,
    request: Request,
    x_admin_token: str | None = Header(default=None),
):
    """Cached state and attempt count of every completed batch (admin only)."""
    container = _container(request)
    if not _is_admin(container, x_admin_token):
        raise HTTPException(status_code=403, detail="admin token required")

    date = _resolve_date(container, date)
    overview = await container.assembler.batch_overview(group_id, date)
    return {
        "group_id": group_id,
        "date": date,
        "generating": await container.lock.is_locked(group_id, date),
        **overview.to_dict(),
    }


@router.post("/reports/{group_id}/{date}/batches/{index}")
async def reanalyze_batch(
    group_id: str,
    date: str,
    index: int,
    request: Request,
    x_admin_token: str | None = Header(default=None),
):
    """
    Analyze one completed batch again (admin only).

    Runs under the generation lock, so it answers 409 while a report for
    the same group and date is being generated.
    """
    container = _container(request)
    if not _is_admin(container, x_admin_token):
        raise HTTPException(status_code=403, detail="admin token required")

    try:
        container.llm.get()
    except ServiceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    date = _resolve_date(container, date)
    try:
        entry = await container.generator.regenerate_batch(group_id, date, index)
    except IndexError:
        raise HTTPException(status_code=404, detail=f"No completed batch {index} for {date}")
    if entry is None:
        raise HTTPException(status_code=409, detail=GENERATION_IN_PROGRESS_MESSAGE)
    return entry.to_dict()


@router.post("/reports/{group_id}/generate")
async def generate_report(
    group_id: str,
    request: Request,
    date: str | None = None,
    force: bool = False,
    requested_by: str = "http",
    x_admin_token: str | None = Header(default=None),
):
    """
    Generate the report of a group.

    Requests carrying the admin token bypass the cooldown and may force a
    full rebuild; other callers cannot force.
    """
    container = _container(request)
    privileged = _is_admin(container, x_admin_token)

    if force and not privileged:
        raise HTTPException(status_code=403, detail="force requires the admin token")

    try:
        container.llm.get()
    except ServiceUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    date = _resolve_date(container, date) if date else today(container.settings.timezone)

    logger.info(f"Report requested for {group_id}/{date} by {requested_by} (privileged={privileged}, force={force})")
    outcome = await container.generator.generate(
        group_id,
        date,
        requested_by=requested_by,
        privileged=privileged,
        force_regenerate=force,
    )
    return outcome.to_dict()


def setup_routes(app: FastAPI) -> None:
    app.include_router(router)
