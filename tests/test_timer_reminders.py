from datetime import datetime, timedelta, timezone

from conftest import auth_headers, create_user
from config import settings
from cron_jobs import run_timer_reminders
from utils.reminder_utils import TIMER_REMINDER, send_timer_reminders, update_reminder_settings
from utils.time_utils import FakeClock
from utils.timer_utils import TimerSessionManager

MORNING = datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc)
EVENING = datetime(2026, 10, 17, 18, 30, tzinfo=timezone.utc)


class Outbox:
    def __init__(self, failing=()):
        self.messages = []
        self.failing = set(failing)

    async def __call__(self, message):
        if message["To"] in self.failing:
            raise ConnectionError("SMTP connection refused")
        self.messages.append(message)

    @property
    def recipients(self):
        return sorted(message["To"] for message in self.messages)


async def enable_reminders(database, reminder_time="18:00"):
    await update_reminder_settings(
        database, {"timer_reminder_time": reminder_time, "enable_timer_reminders": True}, MORNING
    )


async def start_session(database, user, description=None, at=MORNING):
    manager = TimerSessionManager(database.active_timer_sessions, FakeClock(at))
    return await manager.start(str(user["_id"]), description)


async def test_reminders_are_off_until_enabled(database):
    user = await create_user(database)
    await start_session(database, user)
    outbox = Outbox()

    assert await send_timer_reminders(database, EVENING, send=outbox) == 0
    assert outbox.messages == []


async def test_one_reminder_per_user_per_day(database):
    alice = await create_user(database, email="alice@example.com")
    bob = await create_user(database, email="bob@example.com")
    await create_user(database, email="idle@example.com")
    await start_session(database, alice, "Design review")
    await start_session(database, alice, "Standup", at=MORNING + timedelta(hours=1))
    await start_session(database, bob)
    await enable_reminders(database)
    outbox = Outbox()

    assert await send_timer_reminders(database, EVENING, send=outbox) == 2
    assert await send_timer_reminders(database, EVENING + timedelta(minutes=5), send=outbox) == 0
    assert outbox.recipients == ["alice@example.com", "bob@example.com"]

    alice_mail = next(m for m in outbox.messages if m["To"] == "alice@example.com")
    body = alice_mail.get_payload()
    assert "Design review" in body
    assert "Standup" in body
    assert "9h 30m" in body

    assert await send_timer_reminders(database, EVENING + timedelta(days=1), send=outbox) == 2
    assert await database.email_notifications.count_documents({"type": TIMER_REMINDER}) == 4


async def test_nothing_is_sent_before_the_reminder_time(database):
    user = await create_user(database)
    await start_session(database, user)
    await enable_reminders(database, reminder_time="19:00")

    assert await send_timer_reminders(database, EVENING, send=Outbox()) == 0


async def test_reminder_time_is_read_in_the_reference_time_zone(database, monkeypatch):
    user = await create_user(database)
    await start_session(database, user)
    await enable_reminders(database)
    monkeypatch.setattr(settings, "SUMMARY_TIMEZONE", "America/New_York")

    # 18:30 UTC is 14:30 in New York
    assert await send_timer_reminders(database, EVENING, send=Outbox()) == 0


async def test_failed_send_is_retried_on_the_next_tick(database):
    alice = await create_user(database, email="alice@example.com")
    bob = await create_user(database, email="bob@example.com")
    await start_session(database, alice)
    await start_session(database, bob)
    await enable_reminders(database)

    flaky = Outbox(failing={"alice@example.com"})
    assert await send_timer_reminders(database, EVENING, send=flaky) == 1
    assert flaky.recipients == ["bob@example.com"]

    healthy = Outbox()
    assert await send_timer_reminders(database, EVENING, send=healthy) == 1
    assert healthy.recipients == ["alice@example.com"]


async def test_inactive_users_are_skipped(database):
    user = await create_user(database, account_status="inactive")
    await start_session(database, user)
    await enable_reminders(database)

    assert await send_timer_reminders(database, EVENING, send=Outbox()) == 0


async def test_scheduled_reminders_swallow_failures():
    class BrokenDatabase:
        @property
        def system_settings(self):
            raise RuntimeError("database unavailable")

    assert await run_timer_reminders(BrokenDatabase(), send=Outbox()) is None


async def test_admin_manages_reminder_settings(client, database):
    admin = await create_user(database, email="admin@example.com", role="admin")
    worker = await create_user(database, email="worker@example.com")

    defaults = await client.get("/admin/settings", headers=auth_headers(admin))
    enabled = await client.patch("/admin/settings", json={"enable_timer_reminders": True},
                                 headers=auth_headers(admin))
    moved = await client.patch("/admin/settings", json={"timer_reminder_time": "17:15"},
                               headers=auth_headers(admin))
    invalid = await client.patch("/admin/settings", json={"timer_reminder_time": "25:00"},
                                 headers=auth_headers(admin))
    forbidden = await client.get("/admin/settings", headers=auth_headers(worker))

    assert defaults.json() == {"timer_reminder_time": "18:00", "enable_timer_reminders": False}
    assert enabled.json() == {"timer_reminder_time": "18:00", "enable_timer_reminders": True}
    assert moved.json() == {"timer_reminder_time": "17:15", "enable_timer_reminders": True}
    assert invalid.status_code == 422
    assert forbidden.status_code == 403
