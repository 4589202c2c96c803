"""API routes for the incident desk."""
import logging
from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response
from pydantic import ValidationError

from incident_desk import analytics, incident_service
from incident_desk.client import Client
from incident_desk.entities import EntityTable
from incident_desk.exceptions import NotFoundError, UnknownOperationError
from incident_desk.models import (
    AlertStatusRequest,
    AnalyticsFilters,
    DecisionRequest,
    FilterRequest,
    HealthResponse,
    ReportIncidentRequest,
    ResolveRequest,
    StatusChangeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _client(request: Request) -> Client:
    return request.app.state.client


def _table(request: Request, entity: str) -> EntityTable[Any]:
    table = _client(request).entities.by_table(entity)
    if table is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity: {entity}")
    return table


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    client = _client(request)
    return HealthResponse(
        status="ok",
        storage_backend=client.store.backend.name,
        durable=client.store.durable,
        llm_provider=client.llm.name,
    )


# --- identity ---


@router.get("/auth/me")
async def me(request: Request) -> dict[str, Any]:
    return (await _client(request).auth.me()).model_dump()


@router.post("/auth/logout")
async def logout(request: Request) -> dict[str, bool]:
    await _client(request).auth.logout()
    return {"ok": True}


# --- generic entity access ---


@router.get("/entities/{entity}")
async def list_entities(request: Request, entity: str, sort: str = "-created_date", limit: int = 100) -> list[dict[str, Any]]:
    rows = await _table(request, entity).list(sort=sort or None, limit=limit)
    return [r.model_dump(mode="json") for r in rows]


@router.post("/entities/{entity}/filter")
async def filter_entities(request: Request, entity: str, req: FilterRequest) -> list[dict[str, Any]]:
    rows = await _table(request, entity).filter(where=req.where, sort=req.sort, limit=req.limit)
    return [r.model_dump(mode="json") for r in rows]


@router.post("/entities/{entity}", status_code=201)
async def create_entity(request: Request, entity: str, data: dict[str, Any] = Body(...)) -> dict[str, Any]:
    try:
        record = await _table(request, entity).create(data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=jsonable_encoder(e.errors(include_url=False)))
    return record.model_dump(mode="json")


@router.patch("/entities/{entity}/{record_id}")
async def update_entity(request: Request, entity: str, record_id: str, data: dict[str, Any] = Body(...)) -> dict[str, Any]:
    try:
        record = await _table(request, entity).update(record_id, data)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=jsonable_encoder(e.errors(include_url=False)))
    return record.model_dump(mode="json")


@router.delete("/entities/{entity}/{record_id}")
async def delete_entity(request: Request, entity: str, record_id: str) -> dict[str, bool]:
    deleted = await _table(request, entity).delete(record_id)
    return {"ok": True, "deleted": deleted}


# --- generator dispatch ---


@router.post("/functions/{name}")
async def invoke_function(request: Request, name: str, payload: dict[str, Any] = Body(default_factory=dict)) -> dict[str, Any]:
    try:
        result = await _client(request).functions.invoke(name, payload)
    except (UnknownOperationError, NotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"data": jsonable_encoder(result)}


# --- incident workflows ---


@router.post("/incidents", status_code=201)
async def report_incident(request: Request, req: ReportIncidentRequest) -> dict[str, Any]:
    incident = await incident_service.report_incident(_client(request), req)
    return incident.model_dump(mode="json")


@router.post("/incidents/{incident_id}/decisions", status_code=201)
async def record_decision(request: Request, incident_id: str, req: DecisionRequest) -> dict[str, Any]:
    try:
        decision = await incident_service.record_decision(
            _client(request),
            incident_id,
            recommendation_action=req.recommendation_action,
            decision=req.decision,
            decision_reason=req.decision_reason,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return decision.model_dump(mode="json")


@router.post("/incidents/{incident_id}/status")
async def change_status(request: Request, incident_id: str, req: StatusChangeRequest) -> dict[str, Any]:
    try:
        incident = await incident_service.change_status(_client(request), incident_id, req.status)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return incident.model_dump(mode="json")


@router.post("/incidents/{incident_id}/resolve")
async def resolve_incident(request: Request, incident_id: str, req: ResolveRequest) -> dict[str, Any]:
    try:
        incident = await incident_service.resolve_incident(_client(request), incident_id, req.resolution_notes)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return incident.model_dump(mode="json")


@router.get("/incidents/{incident_id}/export")
async def export_incident(request: Request, incident_id: str, format: str = "markdown") -> Response:
    if format not in ("markdown", "json"):
        raise HTTPException(status_code=400, detail="format must be markdown or json")
    try:
        content, media_type = await incident_service.export_incident(_client(request), incident_id, format)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(content=content, media_type=media_type)


# --- knowledge base and predictions ---


@router.post("/articles/{article_id}/view")
async def record_article_view(request: Request, article_id: str) -> dict[str, Any]:
    try:
        article = await incident_service.record_article_view(_client(request), article_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return article.model_dump(mode="json")


@router.post("/articles/{article_id}/helpful")
async def mark_article_helpful(request: Request, article_id: str) -> dict[str, Any]:
    try:
        article = await incident_service.mark_article_helpful(_client(request), article_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return article.model_dump(mode="json")


@router.post("/alerts/{alert_id}/status")
async def update_alert_status(request: Request, alert_id: str, req: AlertStatusRequest) -> dict[str, Any]:
    try:
        alert = await incident_service.update_alert_status(
            _client(request), alert_id, req.status, dismissed_reason=req.dismissed_reason
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return alert.model_dump(mode="json")


# --- reporting ---


@router.get("/analytics")
async def analytics_report(
    request: Request,
    status: str = "all",
    severity: str = "all",
    system: str = "all",
    date_range: str = "all",
) -> dict[str, Any]:
    filters = AnalyticsFilters(status=status, severity=severity, system=system, date_range=date_range)
    try:
        report = await analytics.incident_analytics(_client(request), filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return report.model_dump(mode="json")


@router.get("/analytics/export")
async def export_analytics(
    request: Request,
    status: str = "all",
    severity: str = "all",
    system: str = "all",
    date_range: str = "all",
) -> Response:
    filters = AnalyticsFilters(status=status, severity=severity, system=system, date_range=date_range)
    try:
        content, filename = await analytics.export_analytics(_client(request), filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/governance")
async def governance(request: Request) -> dict[str, Any]:
    return (await analytics.governance_metrics(_client(request))).model_dump(mode="json")


@router.get("/system-health")
async def system_health(request: Request) -> dict[str, Any]:
    return (await analytics.system_health(_client(request))).model_dump(mode="json")


# --- store escape hatches ---


@router.get("/store/dump")
async def dump_store(request: Request) -> dict[str, Any]:
    return await _client(request).store.dump()


@router.post("/store/restore")
async def restore_store(request: Request, blob: dict[str, Any] = Body(...)) -> dict[str, bool]:
    try:
        await _client(request).store.restore(blob)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"ok": True}
