"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from canopy_cover.services.domain.crown_cover_engine import CrownCoverEngine
from canopy_cover.services.application.batch_cover_service import BatchCoverService


def get_cover_engine() -> CrownCoverEngine:
    """
    Dependency factory for CrownCoverEngine.

    Returns:
        CrownCoverEngine instance
    """
    return CrownCoverEngine()


def get_batch_cover_service(
    engine: Annotated[CrownCoverEngine, Depends(get_cover_engine)],
) -> BatchCoverService:
    """
    Dependency factory for BatchCoverService.

    Args:
        engine: Crown cover engine (injected)

    Returns:
        BatchCoverService instance
    """
    return BatchCoverService(engine=engine)


# Type aliases for cleaner route signatures
CoverEngineDep = Annotated[CrownCoverEngine, Depends(get_cover_engine)]
BatchCoverServiceDep = Annotated[BatchCoverService, Depends(get_batch_cover_service)]
