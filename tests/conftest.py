# tests/conftest.py
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from badge_redeem.client.badge_api import BadgeApiClient
from badge_redeem.config import RedeemConfig
from badge_redeem.core.artifacts import ArtifactStore
from badge_redeem.core.redemption_flow import TokenRedemptionFlow
from badge_redeem.models import BadgeAssignmentView, DownloadedArtifact
from badge_redeem.notifications import CollectingNotifier
from tests.factories import API_BASE, NOW, badge_info_payload, valid_response


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Tests against a local HTTP server")
    config.addinivalue_line("markers", "mocked: Tests with mocking")


@pytest.fixture
def badge_view() -> BadgeAssignmentView:
    return BadgeAssignmentView.from_api(badge_info_payload())


@pytest.fixture
def config(tmp_path) -> RedeemConfig:
    return RedeemConfig(api_base_url=API_BASE, output_dir=str(tmp_path))


@pytest.fixture
def notifier() -> CollectingNotifier:
    return CollectingNotifier()


@pytest.fixture
def api():
    """BadgeApiClient stand-in; every coroutine method is an AsyncMock"""
    mock = AsyncMock(spec=BadgeApiClient)
    mock.validate_token.return_value = valid_response()
    mock.download_by_token.return_value = DownloadedArtifact(
        filename="python-basics.png", content=b"\x89PNG fake", content_type="image/png"
    )
    return mock


@pytest.fixture
def clipboard():
    """Everything copied to the clipboard, in order"""
    return []


@pytest.fixture
def flow(api, config, notifier, tmp_path, clipboard) -> TokenRedemptionFlow:
    ticks = iter([NOW + timedelta(seconds=i) for i in range(100)])
    return TokenRedemptionFlow(
        api,
        config,
        notify=notifier,
        artifacts=ArtifactStore(tmp_path),
        clipboard=clipboard.append,
        clock=lambda: next(ticks),
    )
