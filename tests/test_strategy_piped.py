"""
Live tests for Piped relay instances.

Each test asks one Piped API instance for a stream and relays the first bytes.

Run:
    TUBEGATE_NETWORK_TESTS=1 pytest tests/test_strategy_piped.py -v
"""

import pytest

from .conftest import TEST_VIDEO_ID, assert_stream_playable, requires_network
from tubegate.errors import StrategyFailed
from tubegate.models import MediaKind
from tubegate.relays import RelayInstance
from tubegate.resolver import RelayStreamStrategy
from tubegate.search import RelaySearchStrategy

pytestmark = requires_network


@pytest.mark.parametrize("base_url", [
    "https://pipedapi.kavin.rocks",
    "https://pipedapi.syncpundit.io",
])
async def test_piped_stream(base_url):
    strategy = RelayStreamStrategy(RelayInstance(base_url))
    try:
        source = await strategy.attempt(TEST_VIDEO_ID, MediaKind.VIDEO)
    except StrategyFailed as e:
        pytest.skip(f"{base_url} skipped: {str(e)[:150]}")
    await assert_stream_playable(source, msg_prefix=strategy.name)
    print(f"\n✅ {strategy.name}: streaming")


async def test_piped_search():
    strategy = RelaySearchStrategy(RelayInstance("https://pipedapi.kavin.rocks"))
    try:
        videos = await strategy.attempt("rick astley", 5)
    except StrategyFailed as e:
        pytest.skip(f"piped search skipped: {str(e)[:150]}")
    assert 0 < len(videos) <= 5
