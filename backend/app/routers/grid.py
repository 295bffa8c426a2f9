from fastapi import APIRouter, Depends

from ..deps import get_catalog, get_club_id, get_display_date, get_grid_options, get_upstream
from ..infrastructure.catalog import Catalog
from ..infrastructure.upstream import UpstreamClient
from ..schemas import ComfortGrid, EliteGrid
from ..usecases import availability as availability_usecase
from ..usecases.availability import GridOptions

router = APIRouter(prefix="/api", tags=["availability"])


@router.get("/availability_grid_elite", response_model=EliteGrid)
async def availability_grid_elite(
    date: str = Depends(get_display_date),
    club_id: str = Depends(get_club_id),
    catalog: Catalog = Depends(get_catalog),
    upstream: UpstreamClient = Depends(get_upstream),
    options: GridOptions = Depends(get_grid_options),
) -> EliteGrid:
    return await availability_usecase.get_elite_grid(
        upstream,
        catalog,
        club_id=club_id,
        date=date,
        options=options,
    )


@router.get("/availability_grid_comfort", response_model=ComfortGrid)
async def availability_grid_comfort(
    date: str = Depends(get_display_date),
    club_id: str = Depends(get_club_id),
    catalog: Catalog = Depends(get_catalog),
    upstream: UpstreamClient = Depends(get_upstream),
    options: GridOptions = Depends(get_grid_options),
) -> ComfortGrid:
    return await availability_usecase.get_comfort_grid(
        upstream,
        catalog,
        club_id=club_id,
        date=date,
        options=options,
    )
