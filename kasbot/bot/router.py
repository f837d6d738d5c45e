"""Per-message dispatcher.

Every text goes down exactly one path, cheapest first:

1. ``/command``, even while a session is open
2. the cancel keyword
3. the open session (confirmation cards want buttons, wizards want answers)
4. keyword pre-routing for obvious queries
5. the classifier

Each identity is handled under its own lock, so one user's updates run one
at a time while different users proceed in parallel.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from loguru import logger

from kasbot.bot import messages
from kasbot.bot.vocabulary import CANCEL_KEYWORD, looks_like_other_feature, pre_route
from kasbot.config import Settings
from kasbot.db.repository import FinanceRepository, UserStoreRegistry
from kasbot.models.schemas import (
    CONFIRMATION_ACTIONS,
    WIZARD_ACTIONS,
    ConfirmExpenseState,
    ConfirmIncomeState,
    ConfirmPaymentState,
    IntentResult,
    Reply,
)
from kasbot.services import alerts, loans, payments, records, reports

CANCEL_CALLBACKS = {
    "confirm_income_no": "❌ Pencatatan pendapatan dibatalkan.",
    "confirm_expense_no": "❌ Pencatatan pengeluaran dibatalkan.",
    "confirm_loan_no": loans.LOAN_CANCELLED,
    "payment_confirm_no": "❌ Pembayaran tidak dicatat.",
}

LATE_FEE_PREFIX = "loan_late_fee:"


class SessionRouter:
    def __init__(self, registry: UserStoreRegistry, classifier, settings: Settings):
        self.registry = registry
        self.classifier = classifier
        self.settings = settings
        self.commands = {
            "/start": self._cmd_start,
            "/help": self._cmd_help,
            "/batal": self._cmd_cancel,
            "/cancel": self._cmd_cancel,
            "/hutang": self._cmd_dashboard,
            "/dashboard": self._cmd_dashboard,
            "/denda": self._cmd_penalty,
            "/penalty": self._cmd_penalty,
            "/ringkasan": self._cmd_summary,
            "/summary": self._cmd_summary,
            "/progres": self._cmd_progress,
            "/progress": self._cmd_progress,
        }

    def now(self) -> datetime:
        """Wall-clock time in the configured timezone, as a naive datetime."""
        return datetime.now(ZoneInfo(self.settings.timezone)).replace(tzinfo=None)

    # ── inbound events ───────────────────────────────────────────

    async def handle_text(
        self,
        identity: str,
        name: str,
        text: str,
        now: datetime | None = None,
        on_start: Callable[[], Awaitable[None]] | None = None,
    ) -> list[Reply]:
        """Route one text message.

        ``on_start`` runs once the identity lock is held, so a transport can
        show a typing indicator without giving up its place in the queue.
        """
        now = now or self.now()
        async with self.registry.lock(identity):
            if on_start is not None:
                await on_start()
            repo = self.registry.get(identity)
            replies = []
            alert = alerts.check_alerts(
                repo,
                now,
                throttle=timedelta(hours=self.settings.alert_throttle_hours),
                window_days=self.settings.alert_window_days,
            )
            if alert is not None:
                replies.append(alert)
            replies.extend(await self._route_text(repo, identity, name, text.strip(), now))
            return replies

    async def handle_callback(self, identity: str, data: str, now: datetime | None = None) -> list[Reply]:
        now = now or self.now()
        async with self.registry.lock(identity):
            repo = self.registry.get(identity)
            return self._route_callback(repo, data, now)

    async def handle_photo(self, identity: str, name: str, now: datetime | None = None) -> list[Reply]:
        now = now or self.now()
        async with self.registry.lock(identity):
            repo = self.registry.get(identity)
            repo.register_user(identity, name)
            if repo.get_session(now) is not None:
                return [Reply(text=messages.USE_BUTTONS)]
            return [Reply(text=messages.OCR_COMING_SOON)]

    # ── text routing ─────────────────────────────────────────────

    async def _route_text(self, repo: FinanceRepository, identity: str, name: str, text: str, now: datetime) -> list[Reply]:
        if text.startswith("/"):
            parts = text.split(maxsplit=1)
            command = parts[0].lower().split("@", 1)[0]
            arg = parts[1].strip() if len(parts) > 1 else None
            handler = self.commands.get(command)
            if handler is None:
                return [Reply(text=messages.UNKNOWN_COMMAND)]
            logger.info("Command {} from {}", command, identity)
            return handler(repo, identity, name, arg, now)

        if text.lower() == CANCEL_KEYWORD:
            return self._cmd_cancel(repo, identity, name, None, now)

        state = repo.get_session(now)
        if state is not None:
            if state.pending_action in CONFIRMATION_ACTIONS:
                return [Reply(text=messages.USE_BUTTONS)]
            if state.pending_action in WIZARD_ACTIONS:
                if looks_like_other_feature(text):
                    logger.info("Wizard {} refused input that looks like another feature", state.pending_action)
                    return [Reply(text=messages.INTENT_LEAK)]
                return loans.dispatch(repo, state, "text", text, now)

        repo.register_user(identity, name)
        if not text:
            return [Reply(text=messages.DIDNT_UNDERSTAND)]

        result = pre_route(text)
        if result is not None:
            logger.info("Keyword route: {}", result.intent)
        else:
            today = now.date()
            usage = repo.get_usage(today)
            result = await self.classifier.classify(text, today, usage)
            if result.provider == "primary":
                repo.increment_usage(today, self.settings.usage_per_primary_call)
        return self.dispatch_intent(repo, result, now)

    def dispatch_intent(self, repo: FinanceRepository, result: IntentResult, now: datetime) -> list[Reply]:
        params = result.params
        today = now.date()
        intent = result.intent

        if intent == "record_income":
            return records.start_income(repo, params, now)
        if intent == "record_expense":
            return records.start_expense(repo, params, now)
        if intent == "register_loan":
            return loans.start_from_extracted_fields(repo, params.to_draft(), now)
        if intent == "pay_installment":
            return payments.start_payment(repo, params.platform, now)
        if intent == "view_loans":
            return reports.loan_dashboard(repo, today)
        if intent == "view_penalty":
            return reports.penalty_report(repo, today)
        if intent == "view_progress":
            return reports.payoff_progress(repo, today)
        if intent == "view_report":
            return reports.period_report(repo, today, params.period)
        if intent in ("set_target", "view_target"):
            return [Reply(text=messages.TARGET_COMING_SOON)]
        if intent == "help":
            return [Reply(text=messages.HELP)]
        return [Reply(text=messages.DIDNT_UNDERSTAND)]

    # ── commands ─────────────────────────────────────────────────

    def _cmd_start(self, repo, identity, name, arg, now):
        repo.register_user(identity, name)
        return [Reply(text=messages.WELCOME)]

    def _cmd_help(self, repo, identity, name, arg, now):
        return [Reply(text=messages.HELP)]

    def _cmd_cancel(self, repo, identity, name, arg, now):
        had_session = repo.clear_session()
        return [Reply(text=messages.CANCELLED if had_session else messages.NOTHING_TO_CANCEL)]

    def _cmd_dashboard(self, repo, identity, name, arg, now):
        return reports.loan_dashboard(repo, now.date())

    def _cmd_penalty(self, repo, identity, name, arg, now):
        return reports.penalty_report(repo, now.date(), arg)

    def _cmd_summary(self, repo, identity, name, arg, now):
        return reports.monthly_summary(repo, now.date(), arg)

    def _cmd_progress(self, repo, identity, name, arg, now):
        return reports.payoff_progress(repo, now.date())

    # ── button presses ───────────────────────────────────────────

    def _route_callback(self, repo: FinanceRepository, data: str, now: datetime) -> list[Reply]:
        if data in CANCEL_CALLBACKS:
            repo.clear_session()
            return [Reply(text=CANCEL_CALLBACKS[data], edit=True)]

        state = repo.get_session(now)
        replies = None
        if data == "confirm_income_yes":
            if isinstance(state, ConfirmIncomeState):
                replies = records.confirm_income(repo, state, now)
        elif data == "confirm_expense_yes":
            if isinstance(state, ConfirmExpenseState):
                replies = records.confirm_expense(repo, state, now)
        elif data == "payment_confirm_yes":
            if isinstance(state, ConfirmPaymentState):
                replies = payments.confirm_payment(repo, state, now)
        elif data == "confirm_loan_yes":
            replies = loans.dispatch(repo, state, "save", None, now)
        elif data == "confirm_loan_edit":
            replies = loans.dispatch(repo, state, "edit", None, now)
        elif data.startswith(LATE_FEE_PREFIX):
            replies = loans.dispatch(repo, state, "late_fee_type", data[len(LATE_FEE_PREFIX):], now)
        else:
            logger.warning("Unknown callback payload {!r}", data)
            return [Reply(text=messages.UNKNOWN_ACTION)]

        if replies is None:
            logger.info("Callback {} does not match session {}", data, state.pending_action if state else None)
            return [Reply(text=messages.SESSION_EXPIRED)]
        return replies
