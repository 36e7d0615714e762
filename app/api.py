"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from app.schemas import (
    AlertEvaluationResponse,
    AlertModel,
    ChartPointModel,
    DoorEventModel,
    DoorEventRequest,
    IngestError,
    IngestResponse,
    LongevityResponse,
    ReliabilityResponse,
    SecuritySettingsPayload,
    SecurityStatusResponse,
    SeriesResponse,
    ThresholdResponse,
    TrendModel,
)
from models.channels import get_channel
from services.dashboard import DashboardService, build_default_service
from services.door_security import SecurityStatus
from services.thresholds import analyze_trend, flag_anomalies
from services.time_window import DEFAULT_LOOKBACK_HOURS

router = APIRouter()


def get_service() -> DashboardService:
    return build_default_service()


def _security_payload(service: DashboardService, current: SecurityStatus) -> SecurityStatusResponse:
    return SecurityStatusResponse(
        state=current.state,
        is_red_alert=current.is_red_alert,
        is_amber_warning=current.is_amber_warning,
        elapsed_seconds=current.elapsed_seconds,
        opened_at=current.opened_at,
        door_status=service.door_monitor.machine.door.status,
        entries_today=current.entries_today,
        recent_events=[DoorEventModel.model_validate(event) for event in current.recent_events],
    )


@router.post(
    "/readings",
    response_model=IngestResponse,
    summary="Upload a CSV file of sensor readings.",
)
async def upload_readings(
    file: UploadFile = File(..., description="CSV file containing sensor readings."),
    service: DashboardService = Depends(get_service),
) -> IngestResponse:
    try:
        contents = await file.read()
        result = service.ingest_csv(contents)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    finally:
        await file.close()
    return IngestResponse(
        status=result.status,
        accepted=len(result.readings),
        errors=[IngestError.model_validate(error) for error in result.errors],
        synced_at=service.session.last_sync_at,
    )


@router.get(
    "/channels/{channel}/series",
    response_model=SeriesResponse,
    summary="Backfilled chart series for one channel.",
)
async def get_series(
    channel: str,
    lookback_hours: int = Query(DEFAULT_LOOKBACK_HOURS, description="1, 24, 168 or 720."),
    weekly: bool = Query(False, description="Collapse the 720 h view into weeks."),
    service: DashboardService = Depends(get_service),
) -> SeriesResponse:
    try:
        descriptor = get_channel(channel)
        result = service.series(channel, lookback_hours, weekly)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return SeriesResponse(
        channel=result.channel,
        unit=descriptor.unit,
        lookback_hours=result.lookback_hours,
        resolution=result.resolution,
        source=result.source,
        points=[ChartPointModel.model_validate(point) for point in result.points],
    )


@router.get(
    "/channels/{channel}/thresholds",
    response_model=ThresholdResponse,
    summary="Dynamic thresholds for the visible window of one channel.",
)
async def get_thresholds(
    channel: str,
    lookback_hours: int = Query(DEFAULT_LOOKBACK_HOURS),
    sigma: float | None = Query(None, description="Critical multiplier; defaults to settings."),
    service: DashboardService = Depends(get_service),
) -> ThresholdResponse:
    try:
        result = service.channel_thresholds(channel, lookback_hours, sigma)
        values = service.threshold_values(channel, lookback_hours)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    anomalies = flag_anomalies(values, result.sigma)
    trend = analyze_trend(values, result.optimal_range)
    return ThresholdResponse.model_validate(result).model_copy(
        update={
            "anomaly_count": sum(1 for flag in anomalies if flag.is_anomaly),
            "trend": TrendModel.model_validate(trend),
        }
    )


@router.get(
    "/reliability",
    response_model=ReliabilityResponse,
    summary="Uptime, MTTR, MTBF, correlation and cost trend.",
)
async def get_reliability(
    period_hours: float = Query(24.0, description="Reporting period in hours."),
    service: DashboardService = Depends(get_service),
) -> ReliabilityResponse:
    try:
        report = service.reliability_report(period_hours)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ReliabilityResponse.model_validate(report)


@router.get(
    "/longevity",
    response_model=LongevityResponse,
    summary="Lifespan prediction, component health and condition scores.",
)
async def get_longevity(
    service: DashboardService = Depends(get_service),
) -> LongevityResponse:
    return LongevityResponse.model_validate(service.longevity_report())


@router.get(
    "/security/status",
    response_model=SecurityStatusResponse,
    summary="Current door security status.",
)
async def get_security_status(
    service: DashboardService = Depends(get_service),
) -> SecurityStatusResponse:
    return _security_payload(service, service.security_status())


@router.post(
    "/security/door-events",
    response_model=SecurityStatusResponse,
    summary="Record a door open or close event.",
)
async def post_door_event(
    event: DoorEventRequest,
    service: DashboardService = Depends(get_service),
) -> SecurityStatusResponse:
    current = service.record_door_event(event.kind, event.timestamp)
    return _security_payload(service, current)


@router.put(
    "/security/settings",
    response_model=SecuritySettingsPayload,
    summary="Update the restricted-hours schedule and overstay limit.",
)
async def put_security_settings(
    payload: SecuritySettingsPayload,
    service: DashboardService = Depends(get_service),
) -> SecuritySettingsPayload:
    try:
        updated = service.update_security_settings(
            payload.night_mode_start,
            payload.night_mode_end,
            payload.max_open_duration_seconds,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return SecuritySettingsPayload(
        night_mode_start=updated.night_mode_start.strftime("%H:%M"),
        night_mode_end=updated.night_mode_end.strftime("%H:%M"),
        max_open_duration_seconds=updated.max_open_duration_seconds,
    )


@router.post(
    "/alerts/evaluate",
    response_model=AlertEvaluationResponse,
    summary="Re-evaluate the latest readings and raise threshold alerts.",
)
async def evaluate_alerts(
    service: DashboardService = Depends(get_service),
) -> AlertEvaluationResponse:
    created = service.evaluate_alerts()
    return AlertEvaluationResponse(created=[AlertModel.model_validate(alert) for alert in created])


@router.post(
    "/session/logout",
    summary="End the session and drop cached results.",
    status_code=status.HTTP_200_OK,
)
async def logout(service: DashboardService = Depends(get_service)) -> dict[str, str]:
    service.logout()
    return {"status": "logged_out"}


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
