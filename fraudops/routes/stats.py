"""
FraudOps - Routes Statistiques / KPI
"""

from fastapi import APIRouter, Depends

from fraudops.routes.deps import get_stores
from fraudops.services.stats import StatsService

router = APIRouter(prefix="/stats", tags=["Statistiques"])


@router.get("/demandes")
async def get_demande_stats(stores=Depends(get_stores)):
    return await StatsService(stores).demande_stats()


@router.get("/cycles")
async def get_cycle_stats(stores=Depends(get_stores)):
    return await StatsService(stores).cycle_vie_stats()


@router.get("/cases")
async def get_case_stats(stores=Depends(get_stores)):
    return await StatsService(stores).case_stats()


@router.get("/alerts")
async def get_alert_stats(stores=Depends(get_stores)):
    return await StatsService(stores).alert_stats()


@router.get("")
async def get_dashboard_stats(stores=Depends(get_stores)):
    """Vue d'ensemble pour le tableau de bord"""
    stats = StatsService(stores)
    return {
        "demandes": await stats.demande_stats(),
        "cycles": await stats.cycle_vie_stats(),
        "cases": await stats.case_stats(),
        "alerts": await stats.alert_stats(),
    }
