"""Internal FastAPI application: sync triggers and the tender read surface.

Run with ``uvicorn tenderwatch.app.api:app``. Startup fails when the
Mercado Público ticket is missing or a placeholder.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Response, status
from fastapi.responses import PlainTextResponse

from tenderwatch import __version__
from tenderwatch.app.config import Settings, load_settings
from tenderwatch.app.dependencies import (
    CoordinatorDep,
    SchedulerDep,
    SyncRunRepositoryDep,
    TenderRepositoryDep,
)
from tenderwatch.domain.models import STATUS_PUBLISHED
from tenderwatch.infrastructure.observability import (
    configure_logging,
    format_prometheus,
    get_logger,
)
from tenderwatch.services.dto import (
    CleanupResponse,
    SyncRunView,
    SyncStatusResponse,
    TenderView,
    TriggerResponse,
)
from tenderwatch.services.scheduler import SyncScheduler
from tenderwatch.services.sync import SyncCoordinator

CoordinatorFactory = Callable[[Settings], SyncCoordinator]

logger = get_logger(__name__)


def create_app(
    *,
    settings_loader: Callable[[], Settings] = load_settings,
    coordinator_factory: CoordinatorFactory = SyncCoordinator.from_settings,
    start_scheduler: bool = True,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        settings = settings_loader()
        settings.api.validate()
        coordinator = coordinator_factory(settings)
        scheduler = SyncScheduler(coordinator) if start_scheduler else None
        app.state.coordinator = coordinator
        app.state.scheduler = scheduler
        if scheduler is not None:
            await scheduler.start()
        logger.info("Tenderwatch API started")
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            else:
                await coordinator.shutdown()
            coordinator.client.close()
            logger.info("Tenderwatch API stopped")

    app = FastAPI(title="Tenderwatch API", version=__version__, lifespan=lifespan)
    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/")
    async def root():
        """API root endpoint with links."""
        return {
            "name": "Tenderwatch API",
            "version": __version__,
            "docs": "/docs",
            "endpoints": {
                "tenders": "/tenders",
                "sync_trigger": "/sync/trigger",
                "sync_status": "/sync/status",
                "sync_runs": "/sync/runs",
                "cleanup": "/cleanup",
                "metrics": "/metrics",
            },
        }

    @app.post(
        "/sync/trigger", status_code=status.HTTP_202_ACCEPTED, response_model=TriggerResponse
    )
    async def trigger_sync(coordinator: CoordinatorDep, response: Response) -> TriggerResponse:
        result = await coordinator.trigger_async()
        if not result.accepted:
            response.status_code = status.HTTP_200_OK
        return TriggerResponse(status=result.status, message=result.message)

    @app.get("/sync/status", response_model=SyncStatusResponse)
    async def sync_status(
        coordinator: CoordinatorDep, scheduler: SchedulerDep
    ) -> SyncStatusResponse:
        snapshot = coordinator.status()
        return SyncStatusResponse(
            running=snapshot["running"],
            active_enrichments=snapshot["active_enrichments"],
            scheduler=scheduler.status if scheduler is not None else "disabled",
            last_result=snapshot["last_result"],
        )

    @app.get("/sync/runs", response_model=list[SyncRunView])
    async def list_sync_runs(
        runs: SyncRunRepositoryDep,
        limit: int = Query(20, ge=1, le=500),
    ) -> list[SyncRunView]:
        return [SyncRunView(**row) for row in runs.list_recent(limit)]

    @app.post("/cleanup", response_model=CleanupResponse)
    async def cleanup(coordinator: CoordinatorDep) -> CleanupResponse:
        deleted = await asyncio.to_thread(coordinator.cleanup_expired)
        return CleanupResponse(deleted=deleted)

    @app.get("/tenders", response_model=list[TenderView])
    async def list_tenders(
        tenders: TenderRepositoryDep,
        region: str | None = None,
        status_code: int | None = Query(STATUS_PUBLISHED, alias="status"),
        sort: str = "close_date",
        limit: int | None = Query(100, ge=1, le=1000),
    ) -> list[TenderView]:
        try:
            rows = tenders.list_tenders(
                region=region, status_code=status_code, sort_by=sort, limit=limit
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return [TenderView.from_tender(tender) for tender in rows]

    @app.get("/tenders/{external_code}", response_model=TenderView)
    async def get_tender(external_code: str, tenders: TenderRepositoryDep) -> TenderView:
        tender = tenders.find(external_code)
        if tender is None:
            raise HTTPException(status_code=404, detail=f"Tender '{external_code}' not found")
        return TenderView.from_tender(tender)

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics() -> str:
        return format_prometheus()


app = create_app()
