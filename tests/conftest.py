"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Tree record factory
- Plot layout and cover engine
- Sample multi-plot tree lists
- FastAPI test clients
"""
import pytest
from typing import AsyncGenerator, Callable
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from canopy_cover.main import app
from canopy_cover.domain.models import TreeRecord
from canopy_cover.services.domain.crown_cover_engine import CrownCoverEngine
from canopy_cover.services.domain.plot_layout import PlotLayout, build_plot_layout


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def make_tree() -> Callable[..., TreeRecord]:
    """Factory for tree records with sensible defaults."""
    def _make_tree(
        subp: int = 1,
        dist: float = 0.0,
        azimuth: float = 0.0,
        crown_width: float | None = 20.0,
        plt_cn: str = "1001",
        dia: float = 10.0,
        **kwargs,
    ) -> TreeRecord:
        return TreeRecord(
            plt_cn=plt_cn,
            subp=subp,
            dist=dist,
            azimuth=azimuth,
            dia=dia,
            crown_width=crown_width,
            **kwargs,
        )
    return _make_tree


@pytest.fixture
def layout() -> PlotLayout:
    """Canonical four-subplot layout."""
    return build_plot_layout()


@pytest.fixture
def engine(layout) -> CrownCoverEngine:
    """Cover engine on the canonical layout."""
    return CrownCoverEngine(layout=layout)


@pytest.fixture
def sample_trees_by_plot(make_tree) -> dict[str, list[TreeRecord]]:
    """Three plots: one sparse, one with overlapping crowns, one empty."""
    return {
        "1001": [
            make_tree(plt_cn="1001", subp=1, dist=0, azimuth=0, crown_width=20),
        ],
        "1002": [
            make_tree(plt_cn="1002", subp=2, dist=3, azimuth=90, crown_width=16),
            make_tree(plt_cn="1002", subp=2, dist=6, azimuth=90, crown_width=16),
            make_tree(plt_cn="1002", subp=4, dist=12, azimuth=200, crown_width=12),
        ],
        "1003": [],
    }


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)


@pytest.fixture
async def async_test_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for FastAPI."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
