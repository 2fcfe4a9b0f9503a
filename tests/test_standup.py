# Tests for the daily standup report
# Created: 2026-02-14

import tempfile
from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from missioncontrol.config import Settings
from missioncontrol.daemon.standup import StandupReporter, format_date, main, window_start
from missioncontrol.errors import DeliveryError
from missioncontrol.models import (
    Activity,
    ActivityType,
    AgentProfile,
    AgentStatus,
    Task,
    TaskStatus,
)
from missioncontrol.store import FileMissionControlStore

NOW = datetime(2026, 2, 14, 18, 0, tzinfo=UTC)


class RecordingSink:
    def __init__(self, accept=True):
        self.accept = accept
        self.sent: list[tuple[str, str]] = []

    async def send(self, session_key: str, text: str) -> bool:
        self.sent.append((session_key, text))
        return self.accept


@pytest.fixture
def temp_store_path():
    """Create a temporary directory for test storage."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_store_path):
    return FileMissionControlStore(temp_store_path)


def _reporter(store, sink=None):
    return StandupReporter(store, sink, session_key="agent:main:main", clock=lambda: NOW)


async def _activity(store, activity_type, agent_id, message, at):
    await store.save_activity(
        Activity(type=activity_type, agent_id=agent_id, message=message, created_at=at.isoformat())
    )


async def _seed(store):
    friday = AgentProfile(name="Friday", role="Developer", status=AgentStatus.BUSY)
    jarvis = AgentProfile(name="Jarvis", role="Squad Lead", status=AgentStatus.IDLE)
    shuri = AgentProfile(name="Shuri", role="Product Analyst", status=AgentStatus.ERROR)
    vision = AgentProfile(name="Vision", role="Researcher", status=AgentStatus.OFFLINE)
    for agent in (friday, jarvis, shuri, vision):
        await store.save_agent(agent)

    await _activity(
        store,
        ActivityType.TASK_COMPLETED,
        jarvis.id,
        "Completed 'Ancient history'",
        datetime(2026, 2, 12, 23, 59, tzinfo=UTC),
    )
    await _activity(
        store,
        ActivityType.TASK_COMPLETED,
        jarvis.id,
        "Completed 'Competitor scan'",
        datetime(2026, 2, 13, 10, 0, tzinfo=UTC),
    )
    await _activity(
        store,
        ActivityType.TASK_STARTED,
        shuri.id,
        "Started 'Pricing page'",
        datetime(2026, 2, 14, 8, 0, tzinfo=UTC),
    )
    await _activity(
        store,
        ActivityType.MESSAGE_SENT,
        friday.id,
        "Blocked on API keys",
        datetime(2026, 2, 14, 9, 0, tzinfo=UTC),
    )

    await store.save_task(
        Task(title="Pricing page", status=TaskStatus.IN_PROGRESS, assignee_ids=[shuri.id])
    )
    await store.save_task(Task(title="Billing", status=TaskStatus.BLOCKED, assignee_ids=[friday.id]))
    await store.save_task(Task(title="Done already", status=TaskStatus.COMPLETED))
    return friday, jarvis, shuri, vision


class TestHelpers:
    def test_window_starts_yesterday_midnight(self):
        now = datetime(2026, 2, 14, 0, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert window_start(now) == datetime(2026, 2, 13, tzinfo=timezone(timedelta(hours=-5)))

    def test_format_date(self):
        assert format_date(NOW) == "Saturday, Feb 14, 2026"


class TestGenerate:
    @pytest.mark.asyncio
    async def test_full_report(self, store):
        await _seed(store)

        report = await _reporter(store).generate()

        assert report == (
            "📊 DAILY STANDUP — Saturday, Feb 14, 2026\n"
            "\n"
            "✅ COMPLETED TODAY\n"
            "• Jarvis: Completed 'Competitor scan'\n"
            "\n"
            "🔄 IN PROGRESS\n"
            "• Shuri: Pricing page\n"
            "\n"
            "🚫 BLOCKED\n"
            "• Friday: Billing\n"
            "\n"
            "💬 RECENT DISCUSSION\n"
            "• Friday: Blocked on API keys\n"
            "\n"
            "👥 AGENT STATUS\n"
            "🟢 Friday (Developer)\n"
            "⚪ Jarvis (Squad Lead) — 1 completed\n"
            "🔴 Shuri (Product Analyst) — 1 started\n"
            "⚫ Vision (Researcher)\n"
        )

    @pytest.mark.asyncio
    async def test_collect_partitions_by_agent(self, store):
        friday, jarvis, shuri, vision = await _seed(store)

        data = await _reporter(store).collect()

        assert data.window_start == datetime(2026, 2, 13, tzinfo=UTC)
        assert len(data.activities) == 3
        assert [a.message for a in data.digests[jarvis.id].completed] == [
            "Completed 'Competitor scan'"
        ]
        assert [t.title for t in data.digests[shuri.id].in_progress] == ["Pricing page"]
        assert [t.title for t in data.digests[friday.id].blocked] == ["Billing"]
        assert data.digests[vision.id].activities == []

    @pytest.mark.asyncio
    async def test_empty_report(self, store):
        report = await _reporter(store).generate()

        assert "• No tasks completed today" in report
        assert "• No tasks in progress" in report
        assert "🚫 BLOCKED" not in report
        assert "💬 RECENT DISCUSSION" not in report
        assert report.rstrip().endswith("👥 AGENT STATUS")

    @pytest.mark.asyncio
    async def test_recent_discussion_limited_to_five(self, store):
        agent = AgentProfile(name="Jarvis", role="Squad Lead")
        await store.save_agent(agent)
        for i in range(7):
            await _activity(
                store,
                ActivityType.MESSAGE_SENT,
                agent.id,
                f"message {i}",
                datetime(2026, 2, 14, 10, i, tzinfo=UTC),
            )

        report = await _reporter(store).generate()

        lines = [line for line in report.splitlines() if line.startswith("• Jarvis: message")]
        assert lines == [f"• Jarvis: message {i}" for i in (6, 5, 4, 3, 2)]

    @pytest.mark.asyncio
    async def test_unknown_agent_named_unknown(self, store):
        await _activity(
            store,
            ActivityType.TASK_COMPLETED,
            "ghost",
            "Completed 'Mystery'",
            datetime(2026, 2, 14, 10, 0, tzinfo=UTC),
        )
        report = await _reporter(store).generate()
        assert "• Unknown: Completed 'Mystery'" in report


class TestSend:
    @pytest.mark.asyncio
    async def test_send_to_lead_session(self, store):
        sink = RecordingSink()
        report = await _reporter(store, sink).send()
        assert sink.sent == [("agent:main:main", report)]

    @pytest.mark.asyncio
    async def test_sink_failure_raises(self, store):
        with pytest.raises(DeliveryError):
            await _reporter(store, RecordingSink(accept=False)).send()

    @pytest.mark.asyncio
    async def test_no_sink_raises(self, store):
        with pytest.raises(DeliveryError):
            await _reporter(store).send()


class TestMain:
    def test_success_exits_0(self, temp_store_path):
        sink = RecordingSink()
        settings = Settings(data_dir=temp_store_path, standup_session_key="agent:lead:main")
        with (
            patch("missioncontrol.daemon.standup.get_settings", return_value=settings),
            patch("missioncontrol.daemon.standup.setup_logging"),
            patch("missioncontrol.daemon.standup.create_sink", return_value=sink),
        ):
            assert main() == 0

        assert [key for key, _ in sink.sent] == ["agent:lead:main"]

    def test_sink_failure_exits_1(self, temp_store_path):
        settings = Settings(data_dir=temp_store_path)
        with (
            patch("missioncontrol.daemon.standup.get_settings", return_value=settings),
            patch("missioncontrol.daemon.standup.setup_logging"),
            patch(
                "missioncontrol.daemon.standup.create_sink",
                return_value=RecordingSink(accept=False),
            ),
        ):
            assert main() == 1

    def test_store_failure_exits_1(self, temp_store_path):
        blocker = temp_store_path / "file"
        blocker.write_text("x", encoding="utf-8")
        settings = Settings(data_dir=blocker)
        with (
            patch("missioncontrol.daemon.standup.get_settings", return_value=settings),
            patch("missioncontrol.daemon.standup.setup_logging"),
        ):
            assert main() == 1

    def test_uses_configured_log_level(self, temp_store_path):
        settings = Settings(data_dir=temp_store_path, log_level="DEBUG")
        with (
            patch("missioncontrol.daemon.standup.get_settings", return_value=settings),
            patch("missioncontrol.daemon.standup.setup_logging") as setup_mock,
            patch("missioncontrol.daemon.standup.create_sink", return_value=RecordingSink()),
        ):
            assert main() == 0

        setup_mock.assert_called_once_with("DEBUG")
