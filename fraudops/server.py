"""
FraudOps - API Backend
Cycle de vie, workflow des demandes, alertes et dossiers fraude

Démarre avec:
    uvicorn fraudops.server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from fraudops.config import (
    CORS_ORIGINS, LOG_LEVEL, ANOMALY_SWEEP_ENABLED, get_database, close_database,
)
from fraudops.services.errors import FraudOpsError
from fraudops.services.stores import Stores

# Configuration logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("fraudops")


def create_app(db=None) -> FastAPI:
    """
    Construit l'application. db=None → base MongoDB de la configuration;
    les tests injectent une base en mémoire.
    """
    app = FastAPI(
        title="FraudOps",
        description="Workflow demandes, cycles de vie contrat et investigation fraude",
        version="1.0.0"
    )
    use_default_db = db is None
    app.state.stores = Stores(db if db is not None else get_database())
    app.state.scheduler = None

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Erreurs métier → codes HTTP (422, 404, 400, 409)
    @app.exception_handler(FraudOpsError)
    async def fraudops_error_handler(request: Request, exc: FraudOpsError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc}")
        else:
            logger.warning(f"{request.method} {request.url.path} → {exc.status_code}: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    # ==================== IMPORT DES ROUTES ====================

    from fraudops.routes import demandes, cycles, alerts, cases, historiques, stats, event_log

    app.include_router(demandes.router, prefix="/api")
    app.include_router(cycles.router, prefix="/api")
    app.include_router(alerts.router, prefix="/api")
    app.include_router(cases.router, prefix="/api")
    app.include_router(historiques.router, prefix="/api")
    app.include_router(stats.router, prefix="/api")
    app.include_router(event_log.router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": "FraudOps API",
            "version": "1.0.0",
            "status": "running",
            "docs": "/docs"
        }

    # ==================== STARTUP / SHUTDOWN ====================

    @app.on_event("startup")
    async def startup():
        logger.info("FraudOps démarré")
        db = app.state.stores.db

        # Index MongoDB
        await db.demandes.create_index("id", unique=True)
        await db.demandes.create_index("status")
        await db.demandes.create_index("sla.date_echeance")
        await db.cycle_vies.create_index("id", unique=True)
        await db.cycle_vies.create_index("assure_id")
        await db.cycle_vies.create_index("current_stage")
        await db.cycle_transitions.create_index("cycle_vie_id")
        await db.cycle_alerts.create_index([("cycle_vie_id", 1), ("type", 1)])
        await db.historiques.create_index("demande_id")
        await db.alerts.create_index("status")
        await db.cases.create_index("status")
        await db.event_log.create_index("created_at")

        if ANOMALY_SWEEP_ENABLED:
            from fraudops.scheduler_service import TaskScheduler
            app.state.scheduler = TaskScheduler(app.state.stores)
            app.state.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown():
        if app.state.scheduler:
            app.state.scheduler.stop()
        if use_default_db:
            close_database()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
