from datetime import date, datetime, timedelta

import pytest
from tinydb.storages import MemoryStorage

from kasbot.bot.router import SessionRouter
from kasbot.config import Settings
from kasbot.db.repository import FinanceRepository, UserStoreRegistry
from kasbot.models.schemas import IntentResult, Loan
from kasbot.services.schedule import generate_schedule

NOW = datetime(2026, 3, 10, 9, 30)


class FakeClassifier:
    """Returns queued results in order and records every call."""

    def __init__(self, *results: IntentResult):
        self.results = list(results)
        self.calls: list[tuple[str, date, int]] = []

    async def classify(self, message: str, today: date, usage_count: int = 0) -> IntentResult:
        self.calls.append((message, today, usage_count))
        if self.results:
            return self.results.pop(0)
        return IntentResult.unknown()


def make_loan(
    platform: str = "Kredivo",
    total_installments: int = 3,
    monthly_amount: float = 500_000,
    due_day: int = 5,
    start_date: date = date(2026, 1, 1),
    late_fee_type: str = "percent_monthly",
    late_fee_value: float = 5,
) -> Loan:
    return Loan(
        platform=platform,
        original_amount=monthly_amount * total_installments * 0.8,
        total_with_interest=monthly_amount * total_installments,
        total_installments=total_installments,
        monthly_amount=monthly_amount,
        due_day=due_day,
        late_fee_type=late_fee_type,
        late_fee_value=late_fee_value,
        start_date=start_date,
        installments=generate_schedule(total_installments, monthly_amount, due_day, start_date),
    )


@pytest.fixture
def repo():
    repository = FinanceRepository(storage=MemoryStorage, session_ttl=timedelta(minutes=5))
    yield repository
    repository.close()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        telegram_bot_token="",
        openrouter_api_key="",
        deepseek_api_key="",
        session_ttl_minutes=5,
        alert_throttle_hours=6,
        alert_window_days=3,
        usage_per_primary_call=5,
    )


@pytest.fixture
def registry():
    reg = UserStoreRegistry("unused", storage=MemoryStorage, session_ttl=timedelta(minutes=5))
    yield reg
    reg.close()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def router(registry, classifier, settings):
    return SessionRouter(registry, classifier, settings)
