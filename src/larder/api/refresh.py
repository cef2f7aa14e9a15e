"""Administrative trigger for the monthly summary refresh."""

from fastapi import APIRouter, Depends, HTTPException

from larder.core.auth import verify_api_key
from larder.daemon.runner import run_refresh
from larder.refresh import AggregationOverflow, ConcurrentRefreshSkipped, SourceUnavailable
from larder.schemas.run import RefreshResponse

router = APIRouter(prefix="/refresh", tags=["refresh"])


@router.post("", response_model=RefreshResponse)
async def refresh_monthly_summary(_: str = Depends(verify_api_key)):
    """Rebuild fact_monthly_sales from orders."""
    try:
        run = await run_refresh(trigger="manual")
    except ConcurrentRefreshSkipped as e:
        raise HTTPException(409, str(e))
    except SourceUnavailable as e:
        raise HTTPException(503, f"SourceUnavailable: {e}")
    except AggregationOverflow as e:
        raise HTTPException(500, f"AggregationOverflow: {e}")

    return RefreshResponse(status=run.status, run_id=run.id)
