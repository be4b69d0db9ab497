from fastapi import APIRouter, Response

from app.labtrack.core.metrics import metrics

router = APIRouter()


@router.get("/labtrack/ops/metrics")
def get_metrics():
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type)
