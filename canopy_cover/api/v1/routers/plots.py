"""
API router for plot canopy cover endpoints.
"""
from fastapi import APIRouter, HTTPException, Path
from starlette.concurrency import run_in_threadpool
from typing import Annotated
import logging

from canopy_cover.api.dependencies import BatchCoverServiceDep, CoverEngineDep
from canopy_cover.api.v1.models.requests import BatchCoverRequest, PlotCoverRequest
from canopy_cover.api.v1.models.responses import (
    BatchCoverResponse,
    PlotCoverResponse,
    PlotLayoutResponse,
    SubplotCenter,
)
from canopy_cover.config import settings
from canopy_cover.domain.exceptions import CoverComputationError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/plots",
    tags=["plots"],
)


def _check_request_size(tree_count: int) -> None:
    if tree_count > settings.max_trees_per_request:
        raise HTTPException(
            status_code=400,
            detail=f"Request has {tree_count} trees, the limit is {settings.max_trees_per_request}"
        )


@router.get(
    "/layout",
    response_model=PlotLayoutResponse,
    summary="Get the plot layout",
    description="""
    Return the fixed four-subplot plot design in plot-local coordinates:
    subplot centers, subplot radius, sampled area and the sampled-area
    boundary (union of the four subplot disks) as GeoJSON.
    """,
)
async def get_plot_layout(engine: CoverEngineDep) -> PlotLayoutResponse:
    """
    Get the plot layout used by the cover computation.

    Args:
        engine: Crown cover engine (injected dependency)

    Returns:
        PlotLayoutResponse
    """
    layout = engine.layout
    return PlotLayoutResponse(
        subplot_radius=layout.subplot_radius,
        sampled_area=layout.sampled_area,
        subplots=[
            SubplotCenter(subplot=subplot, x=x, y=y)
            for subplot, (x, y) in sorted(layout.subplot_centers.items())
        ],
        boundary=layout.to_geojson(),
    )


@router.post(
    "/{plot_key}/cover",
    response_model=PlotCoverResponse,
    summary="Compute crown cover for one plot",
    description="""
    Compute overlap-corrected percent crown cover for a single plot.

    This endpoint:
    1. Drops dead and undersized trees, imputes missing crown widths by diameter class
    2. Places each tree from its subplot, distance and azimuth
    3. Clips every crown disk to the sampled area and dissolves overlaps
    4. Returns cover with and without overlap correction
    """,
    responses={
        400: {"description": "Request exceeds the tree limit"},
        422: {"description": "Invalid tree records or failed cover computation"},
    }
)
async def compute_plot_cover(
    plot_key: Annotated[str, Path(description="Plot key (PLT_CN)")],
    request: PlotCoverRequest,
    service: BatchCoverServiceDep,
) -> PlotCoverResponse:
    """
    Compute crown cover statistics for one plot.

    Args:
        plot_key: Plot key
        request: Trees of the plot
        service: Batch cover service (injected dependency)

    Returns:
        PlotCoverResponse

    Raises:
        HTTPException: If the request is too large
        CoverComputationError: If the plot's computation fails
    """
    _check_request_size(len(request.trees))

    if not request.trees:
        # An empty plot still has a defined (zero) cover
        plot_result = await run_in_threadpool(service.engine.compute_plot_cover, plot_key, [])
        return PlotCoverResponse(statistics=plot_result.statistics, diagnostics=[])

    records = [tree.to_record(plot_key) for tree in request.trees]
    result = await run_in_threadpool(service.run_pipeline, records)

    if result.failures:
        failure = result.failures[0]
        raise CoverComputationError(plot_key, failure.message)

    return PlotCoverResponse(
        statistics=result.statistics[0],
        diagnostics=result.diagnostics,
    )


@router.post(
    "/cover",
    response_model=BatchCoverResponse,
    summary="Compute crown cover for many plots",
    description="""
    Compute crown cover for every plot present in the submitted tree records.

    Trees are grouped by PLT_CN and each plot is computed independently.
    A plot whose computation fails is reported under `failures` and left
    out of `results`; the rest of the batch is unaffected.
    """,
)
async def compute_batch_cover(
    request: BatchCoverRequest,
    service: BatchCoverServiceDep,
) -> BatchCoverResponse:
    """
    Compute crown cover statistics for a batch of plots.

    Args:
        request: Trees of any number of plots
        service: Batch cover service (injected dependency)

    Returns:
        BatchCoverResponse
    """
    _check_request_size(len(request.trees))

    result = await run_in_threadpool(service.run_pipeline, request.trees)
    logger.info(f"Batch request: {len(result.statistics)} plots computed, "
                f"{result.failed_plot_count} failed")

    return BatchCoverResponse(
        plot_count=len(result.statistics),
        excluded_tree_count=result.excluded_tree_count,
        results=result.statistics,
        failures=result.failures,
        diagnostics=result.diagnostics,
    )
