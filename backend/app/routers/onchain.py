from fastapi import APIRouter, Depends, HTTPException, status

from core.container import Container
from core.security.dependencies import get_container
from schemas.market import ChainMetricResponse

router = APIRouter(prefix="/api/onchain", tags=["Onchain"])

@router.get("/chains/{chain_name}", response_model=ChainMetricResponse)
async def get_chain_metrics(chain_name: str, container: Container = Depends(get_container)):
    metric = await container.onchain.chain_metrics(chain_name)
    if metric is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chain metrics not found")
    return ChainMetricResponse.model_validate(metric)
