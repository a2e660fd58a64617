"""Collection scheduler tests."""
import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from collector.scheduler import CollectionScheduler
from shared.utils import next_top_of_hour


def _collector(collecting=False):
    """Collector double with a real check-and-set guard."""
    collector = MagicMock()
    state = {"collecting": collecting}

    def try_begin():
        if state["collecting"]:
            return False
        state["collecting"] = True
        return True

    async def run_claimed():
        await asyncio.sleep(0)
        state["collecting"] = False

    collector.try_begin = MagicMock(side_effect=try_begin)
    collector.run_claimed = AsyncMock(side_effect=run_claimed)
    collector.collect_news = AsyncMock(return_value=None)
    collector.get_status = MagicMock(return_value={"is_collecting": False, "last_run": None, "last_result": None})
    return collector


class TestNextTopOfHour:
    """Tests for the hourly trigger time."""

    def test_mid_hour(self):
        """Test the next trigger is the following full hour."""
        now = datetime(2024, 2, 4, 10, 30, 15, tzinfo=timezone.utc)
        assert next_top_of_hour(now) == datetime(2024, 2, 4, 11, 0, tzinfo=timezone.utc)

    def test_exactly_on_the_hour(self):
        """Test a trigger at :00 schedules the next hour, not the current one."""
        now = datetime(2024, 2, 4, 23, 0, 0, tzinfo=timezone.utc)
        assert next_top_of_hour(now) == datetime(2024, 2, 5, 0, 0, tzinfo=timezone.utc)


class TestCollectionScheduler:
    """Tests for CollectionScheduler."""

    @pytest.mark.asyncio
    async def test_trigger_starts_background_cycle(self):
        """Test a manual trigger returns immediately and runs the cycle."""
        collector = _collector()
        scheduler = CollectionScheduler(collector, initial_delay=0)

        result = scheduler.trigger_collection()
        assert result.started is True

        await asyncio.gather(*scheduler._tasks)
        collector.run_claimed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_trigger_while_busy_reports_in_progress(self):
        """Test a second trigger before the first cycle runs is refused."""
        collector = _collector()
        scheduler = CollectionScheduler(collector, initial_delay=0)

        first = scheduler.trigger_collection()
        second = scheduler.trigger_collection()

        assert first.started is True
        assert second.started is False
        assert "already in progress" in second.message

        await scheduler.stop()
        assert collector.run_claimed.call_count == 1

    @pytest.mark.asyncio
    async def test_status_includes_next_run(self):
        """Test status adds the next top-of-hour trigger."""
        scheduler = CollectionScheduler(_collector(), initial_delay=0)

        status = scheduler.get_collection_status()

        assert status["is_collecting"] is False
        assert status["next_scheduled_run"].minute == 0
        assert status["next_scheduled_run"] > datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_start_runs_initial_collection(self):
        """Test a startup run happens after the initial delay."""
        collector = _collector()
        scheduler = CollectionScheduler(collector, initial_delay=0)

        await scheduler.start()
        for _ in range(3):
            await asyncio.sleep(0)
        await scheduler.stop()

        collector.collect_news.assert_awaited()
        assert scheduler._tasks == set()
