from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import Optional

from collectors import birdeye_collector
from engine.pipeline import Radar

router = APIRouter()


def get_radar(request: Request) -> Radar:
    return request.app.state.radar


@router.get("/alphas")
async def get_alphas(radar: Radar = Depends(get_radar)):
    """Live, cooling, positioning, legend and dumped alphas from the last poll."""
    data = radar.snapshot.to_dict()
    if radar.last_refresh is None:
        data["message"] = "Waiting for the first feed poll..."
    return data


@router.get("/alphas/{address}/betas")
async def get_betas(address: str, wait: bool = Query(False, description="Block until AI/vision enrichment is done"),
                    radar: Radar = Depends(get_radar)):
    result = await radar.detect_betas(address, wait=wait)
    if result is None:
        raise HTTPException(status_code=404, detail="Token not found")
    return result.to_dict()


@router.get("/alphas/{address}/betas/latest")
async def get_latest_betas(address: str, radar: Radar = Depends(get_radar)):
    """Most recent result for an alpha, enriched if enrichment has landed."""
    result = radar.beta_results.get(address)
    if result is None:
        raise HTTPException(status_code=404, detail="No detection run for this token yet")
    return result.to_dict()


@router.get("/alphas/{address}/parent")
async def get_parent(address: str, radar: Radar = Depends(get_radar)):
    alpha = await radar.find_token(address)
    if alpha is None:
        raise HTTPException(status_code=404, detail="Token not found")
    match = await radar.parent_resolver.find_parent(alpha)
    if match is None:
        return {"parent": None}
    return match.to_dict()


@router.get("/szn")
async def get_szn(radar: Radar = Depends(get_radar)):
    clusters = radar.szn()
    return {"clusters": [c.to_dict() for c in clusters], "count": len(clusters)}


@router.get("/tokens/{address}/insights")
async def get_insights(address: str, radar: Radar = Depends(get_radar)):
    if not birdeye_collector.is_configured():
        raise HTTPException(status_code=503, detail="Birdeye not configured")
    insights = await radar.gateway.insights(address)
    return {"address": address, **(insights or {"has_data": False})}


@router.post("/refresh")
async def trigger_refresh(radar: Radar = Depends(get_radar)):
    """Run one poll now instead of waiting for the loop."""
    snapshot = await radar.refresh()
    return {"status": "ok", "live": len(snapshot.live), "cooling": len(snapshot.cooling)}


@router.get("/status")
async def get_status(radar: Radar = Depends(get_radar)):
    return {
        "last_refresh": radar.last_refresh,
        "last_error": radar.last_error,
        "poll_interval_seconds": radar.poll_interval,
        "ai_enabled": radar.ai.available,
        "insights_enabled": birdeye_collector.is_configured(),
        "tracked_alphas": len(radar.lifecycle.store),
    }
