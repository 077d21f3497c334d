"""API Endpoints

This module provides the HTTP surface of the performance dashboard using
FastAPI: ingestion of client metrics and alerts, dashboard queries, health
monitoring and the dashboard page itself.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
import json
import logging

from fastapi import Depends, FastAPI, HTTPException, Path, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from ..error_handling.error_manager import MalformedPayloadError
from ..service import TelemetryService
from .dashboard_page import render_dashboard_page

logger = logging.getLogger(__name__)


def get_service(request: Request) -> TelemetryService:
    """Dependency to get the telemetry service owned by the app"""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Telemetry service not initialized")
    return service


async def _read_json(request: Request) -> Any:
    """Request body parsed as JSON

    Raises:
        MalformedPayloadError: If the body is not valid JSON
    """
    raw = await request.body()
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedPayloadError(f"Request body is not valid JSON: {e}")


def create_app(service: Optional[TelemetryService] = None, manage_lifecycle: bool = True) -> FastAPI:
    """Build the FastAPI application around a telemetry service

    Args:
        service: Service instance to expose (a default one is created if None)
        manage_lifecycle: Start and stop the service with the application
    """
    service = service or TelemetryService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await service.start()
        logger.info("Performance Dashboard API started")
        try:
            yield
        finally:
            if manage_lifecycle:
                await service.stop()
            logger.info("Performance Dashboard API shutdown completed")

    app = FastAPI(
        title="Performance Dashboard API",
        description="Real-time performance telemetry ingestion, aggregation and alerting",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.service = service

    api_config = service.config.api
    if api_config.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=api_config.cors_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"]
        )

    @app.post("/api/metrics")
    async def submit_metric(request: Request, svc: TelemetryService = Depends(get_service)) -> Dict[str, str]:
        """Submit a performance metric (always acknowledged)"""
        try:
            body = await _read_json(request)
        except MalformedPayloadError as e:
            return svc.ingestion_api.reject(e, "submit_metric")
        return await svc.ingestion_api.submit_metric(body)

    @app.post("/api/alerts")
    async def submit_alert(request: Request, svc: TelemetryService = Depends(get_service)) -> Dict[str, str]:
        """Submit a client alert (always acknowledged)"""
        try:
            body = await _read_json(request)
        except MalformedPayloadError as e:
            return svc.ingestion_api.reject(e, "submit_alert")
        return await svc.ingestion_api.submit_alert(body)

    @app.get("/api/dashboard/metrics")
    async def dashboard_metrics(svc: TelemetryService = Depends(get_service)) -> Dict[str, Any]:
        try:
            return svc.query_api.dashboard_metrics()
        except Exception as e:
            logger.error(f"Failed to build dashboard metrics: {e}")
            raise HTTPException(status_code=500, detail="Failed to build dashboard metrics")

    @app.get("/api/dashboard/alerts")
    async def dashboard_alerts(
        limit: int = Query(50, ge=0, description="Maximum number of alerts to return"),
        svc: TelemetryService = Depends(get_service)
    ) -> List[Dict[str, Any]]:
        try:
            return svc.query_api.recent_alerts(limit)
        except Exception as e:
            logger.error(f"Failed to get alerts: {e}")
            raise HTTPException(status_code=500, detail="Failed to retrieve alerts")

    @app.get("/api/dashboard/sessions")
    async def dashboard_sessions(svc: TelemetryService = Depends(get_service)) -> List[Dict[str, Any]]:
        try:
            return svc.query_api.active_sessions()
        except Exception as e:
            logger.error(f"Failed to get sessions: {e}")
            raise HTTPException(status_code=500, detail="Failed to retrieve sessions")

    @app.get("/api/dashboard/history/{metric}")
    async def dashboard_history(
        metric: str = Path(..., description="Metric name (e.g. page_load_time)"),
        time_range: str = Query("1h", alias="timeRange", description="1h, 6h, 24h or 7d"),
        svc: TelemetryService = Depends(get_service)
    ) -> List[Dict[str, Any]]:
        try:
            return svc.query_api.historical_data(metric, time_range)
        except Exception as e:
            logger.error(f"Failed to get history for {metric}: {e}")
            raise HTTPException(status_code=500, detail="Failed to retrieve historical data")

    @app.get("/api/health")
    async def health_check(svc: TelemetryService = Depends(get_service)) -> Dict[str, Any]:
        try:
            return svc.query_api.health()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=500, detail="Health check failed")

    @app.get("/", response_class=HTMLResponse)
    async def dashboard_page(svc: TelemetryService = Depends(get_service)):
        return render_dashboard_page(svc.config.websocket.port)

    return app
