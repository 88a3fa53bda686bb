"""
Metrics Endpoint
Prometheus text exposition of the request counters
"""
from fastapi import APIRouter, Request, Response

router = APIRouter()


@router.get("/metrics")
async def get_metrics(request: Request):
    metrics = request.app.state.metrics
    return Response(content=metrics.render(), media_type=metrics.content_type)
