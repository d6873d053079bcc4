from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from jobboard.database import get_db
from jobboard.dependencies import require_admin
from jobboard.services import statistics_service
from jobboard.services.data_service import data_service
from jobboard.utils.timeutil import utcnow

router = APIRouter(
    prefix="/admin/statistics",
    tags=["statistics"],
    dependencies=[Depends(require_admin)],
)


def _check_period(period: str):
    if period not in statistics_service.PERIODS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid period. Must be one of: {', '.join(statistics_service.PERIODS)}",
        )


@router.get("")
async def get_statistics(period: str = "month", force_refresh: bool = False, db: Session = Depends(get_db)):
    _check_period(period)
    stats = data_service.get_statistics(db, force_refresh=force_refresh)[0]
    statistics_service.record_daily_snapshot(db, stats)
    return statistics_service.build_report(db, stats, period)


@router.get("/export")
async def export_statistics(period: str = "month", db: Session = Depends(get_db)):
    _check_period(period)
    stats = data_service.get_statistics(db)[0]
    report = statistics_service.build_report(db, stats, period)
    if not report["history"]:
        raise HTTPException(status_code=404, detail="No statistics to export")
    stamp = utcnow().strftime("%Y-%m-%d")
    return Response(
        content=statistics_service.export_history_csv(report["history"]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="statistics_{stamp}.csv"'},
    )
