"""
Workload Schedule Operator - Main FastAPI Application

Purpose: serve the pod mutating webhook and host the WorkloadSchedule
reconcile loop in the same event loop.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import logging
from contextlib import asynccontextmanager
from typing import Optional

from schedule_common.config import OperatorSettings, get_settings, setup_logging
from schedule_operator.services.controller import ScheduleController
from schedule_operator.services.k8s_remote_client import KubeGateway
from schedule_operator.services.pod_mutator import PodMutator
from schedule_operator.services.reconciler import WorkloadScheduleReconciler
from schedule_operator.services.schedule_index import ScheduleIndex
from schedule_operator.services.time_client import WorldTimeClient
from schedule_operator.services.work_queue import WorkQueue

from .routes import admission

logger = logging.getLogger(__name__)


def build_controller(settings: OperatorSettings, index: ScheduleIndex) -> ScheduleController:
    """Wire gateway, time client, reconciler and queue from settings"""
    gateway = KubeGateway.from_settings(settings)
    time_client = WorldTimeClient(settings.time_api_url, settings.time_api_timeout_seconds)
    reconciler = WorkloadScheduleReconciler(
        gateway,
        time_client,
        requeue_interval=settings.requeue_interval_seconds,
    )
    queue = WorkQueue(settings.backoff_base_seconds, settings.backoff_max_seconds)
    return ScheduleController(
        gateway,
        reconciler,
        index,
        queue,
        namespace=settings.watch_namespace,
        workers=settings.max_concurrent_reconciles,
        watch_timeout_seconds=settings.watch_timeout_seconds,
        resync_interval_seconds=settings.resync_interval_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager
    - Startup: start the reconcile loop (list + watch, workers)
    - Shutdown: stop workers, close the time client and API client
    """
    settings: OperatorSettings = app.state.settings
    logger.info("=" * 60)
    logger.info(f"{settings.app_name} {settings.app_version} starting ({settings.environment})...")

    controller: Optional[ScheduleController] = None
    if settings.controller_enabled:
        controller = build_controller(settings, app.state.index)
        await controller.start()
        logger.info("✓ WorkloadSchedule controller started")
    else:
        logger.info("Controller disabled, serving admission webhook only")
    app.state.controller = controller

    logger.info(f"Admission webhook: /mutate--v1-pod on {settings.api_host}:{settings.api_port}")
    logger.info("=" * 60)

    yield

    logger.info(f"{settings.app_name} shutting down...")
    if controller is not None:
        await controller.stop()
        await controller.reconciler.time_client.close()
        controller.gateway.close()
    logger.info(f"{settings.app_name} stopped.")


def create_app(settings: Optional[OperatorSettings] = None, index: Optional[ScheduleIndex] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Operator settings (environment if omitted)
        index: Schedule index shared by controller and webhook
    """
    settings = settings or get_settings()
    index = index if index is not None else ScheduleIndex()

    app = FastAPI(
        title="Workload Schedule Operator",
        description="Time-window replica scaling with pod admission labeling",
        version=settings.app_version,
        debug=settings.debug,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.index = index
    app.state.mutator = PodMutator(index)
    app.state.controller = None

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": str(exc),
                "path": str(request.url)
            }
        )

    @app.get("/health")
    async def health_check():
        """Liveness"""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/readyz")
    async def readiness_check(request: Request):
        """Ready once the schedule index has been filled from a full list"""
        controller = request.app.state.controller
        ready = controller is None or request.app.state.index.synced
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ready": ready, "schedules_indexed": len(request.app.state.index)},
        )

    @app.get("/metrics")
    async def metrics(request: Request):
        """Operator counters"""
        data = {"schedules_indexed": len(request.app.state.index)}
        data.update(request.app.state.mutator.metrics)
        controller = request.app.state.controller
        if controller is not None:
            data.update(controller.metrics)
            data["queue_depth"] = len(controller.queue)
        return data

    app.include_router(admission.router, tags=["Admission"])
    return app


def main():
    import uvicorn

    settings = get_settings()
    log_level = "DEBUG" if settings.debug else settings.log_level
    setup_logging(settings.app_name, log_level, settings.log_format, settings.log_file)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        ssl_certfile=settings.tls_cert_file,
        ssl_keyfile=settings.tls_key_file,
        log_config=None,
        workers=1,  # the controller keeps its queue in-process
    )


if __name__ == "__main__":
    main()
