"""
Tests for the shared strategy loop
"""

import asyncio
from dataclasses import replace

import pytest

from conftest import OWNER
from strategies.base_strategy import BaseStrategy
from utils.exceptions import ConfigurationError


class RecordingStrategy(BaseStrategy):
    """Records evaluated targets and fails on the ones listed in `failing`"""

    def __init__(self, *args, failing=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.failing = set(failing)
        self.seen = []

    async def evaluate_target(self, target):
        self.seen.append(target)
        if target.token_id in self.failing:
            raise RuntimeError(f"boom {target.token_id}")


def second_target(target):
    return replace(target, token_id='2')


@pytest.mark.asyncio
class TestBaseStrategy:
    """Test target isolation and the polling loop"""

    async def test_failing_target_does_not_stop_others(self, registry, listing_target):
        targets = [listing_target, second_target(listing_target)]
        strategy = RecordingStrategy(registry, OWNER, targets, failing={'1'})

        result = await strategy.execute()

        assert result == {'evaluated': 2, 'failed': 1}
        assert strategy.seen == targets
        assert strategy.cycles == 1

    async def test_run_until_stopped(self, registry, listing_target):
        strategy = RecordingStrategy(registry, OWNER, [listing_target], interval_sec=0.01)

        task = asyncio.create_task(strategy.run())
        while strategy.cycles < 2:
            await asyncio.sleep(0.01)
        await strategy.stop()
        await asyncio.wait_for(task, timeout=1)

        assert not strategy.is_running
        assert len(strategy.seen) >= 2

    async def test_stop_when_not_running(self, registry, listing_target):
        strategy = RecordingStrategy(registry, OWNER, [listing_target])

        await strategy.stop()

        assert not strategy.is_running

    async def test_status(self, registry, listing_target):
        strategy = RecordingStrategy(registry, OWNER, [listing_target], dry_run=True)
        await strategy.execute()

        assert strategy.get_status() == {
            'name': 'RecordingStrategy',
            'is_running': False,
            'targets': 1,
            'cycles': 1,
            'dry_run': True,
        }

    async def test_unknown_chain(self, registry, listing_target):
        strategy = RecordingStrategy(registry, OWNER, [listing_target])

        assert strategy.order_manager('ethereum').owner_address == OWNER
        with pytest.raises(ConfigurationError):
            strategy.order_manager('base')
