import asyncio
import re
from collections import OrderedDict
from datetime import date, datetime, timedelta
from pathlib import Path

from loguru import logger
from pydantic import ValidationError
from tinydb import Query, TinyDB
from tinydb.operations import add

from kasbot.errors import InstallmentNotFound
from kasbot.models.schemas import (
    ConversationRecord,
    ExpenseRecord,
    IncomeRecord,
    Loan,
    SessionState,
    User,
)

SESSION_KEY = "current"


class FinanceRepository:
    """All data belonging to one chat identity, kept in its own TinyDB file.

    Installments live inside their loan document, so removing a loan removes
    its schedule and paying an installment is one document write.
    """

    def __init__(
        self,
        db_path: str | None = None,
        *,
        storage=None,
        session_ttl: timedelta = timedelta(minutes=5),
    ):
        if storage is not None:
            self.db = TinyDB(storage=storage)
        else:
            self.db = TinyDB(db_path)
        self.session_ttl = session_ttl
        self.users = self.db.table("users")
        self.income = self.db.table("income")
        self.expenses = self.db.table("expenses")
        self.loans = self.db.table("loans")
        self.conversation = self.db.table("conversation")
        self.usage = self.db.table("usage")
        self.meta = self.db.table("meta")

    def close(self) -> None:
        self.db.close()

    # ── users ────────────────────────────────────────────────────

    def get_user(self, telegram_id: str) -> User | None:
        U = Query()
        doc = self.users.get(U.telegram_id == telegram_id)
        if doc is None:
            return None
        return User.model_validate(doc)

    def register_user(self, telegram_id: str, name: str) -> User:
        """Create the user on first contact; afterwards only the name is refreshed."""
        U = Query()
        existing = self.get_user(telegram_id)
        if existing is not None:
            now = datetime.now()
            self.users.update(
                {"name": name, "updated_at": now.isoformat()}, U.telegram_id == telegram_id
            )
            return existing.model_copy(update={"name": name, "updated_at": now})

        user = User(telegram_id=telegram_id, name=name)
        self.users.insert(user.model_dump(mode="json"))
        logger.info("Registered user {}", telegram_id)
        return user

    # ── income / expenses ────────────────────────────────────────

    def add_income(self, record: IncomeRecord) -> IncomeRecord:
        data = record.model_dump(mode="json")
        data.pop("id", None)
        record.id = self.income.insert(data)
        return record

    def add_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        data = record.model_dump(mode="json")
        data.pop("id", None)
        record.id = self.expenses.insert(data)
        return record

    def get_income(self, start: date, end: date) -> list[IncomeRecord]:
        """Income with ``start <= effective_date < end``."""
        docs = self.income.search(_date_between("effective_date", start, end))
        return [IncomeRecord(id=doc.doc_id, **doc) for doc in docs]

    def get_expenses(self, start: date, end: date) -> list[ExpenseRecord]:
        docs = self.expenses.search(_date_between("effective_date", start, end))
        return [ExpenseRecord(id=doc.doc_id, **doc) for doc in docs]

    # ── loans ────────────────────────────────────────────────────

    def add_loan(self, loan: Loan) -> Loan:
        data = loan.model_dump(mode="json")
        data.pop("id", None)
        loan.id = self.loans.insert(data)
        logger.info(
            "Registered loan #{} {} with {} installments", loan.id, loan.platform, len(loan.installments)
        )
        return loan

    def get_loan(self, loan_id: int) -> Loan | None:
        doc = self.loans.get(doc_id=loan_id)
        if doc is None:
            return None
        return Loan(id=doc.doc_id, **doc)

    def get_loans(self, status: str | None = None) -> list[Loan]:
        if status:
            L = Query()
            docs = self.loans.search(L.status == status)
        else:
            docs = self.loans.all()
        loans = [Loan(id=doc.doc_id, **doc) for doc in docs]
        loans.sort(key=lambda loan: (loan.due_day, loan.id))
        return loans

    def find_active_loans(self, fragment: str) -> list[Loan]:
        needle = fragment.strip().lower()
        return [loan for loan in self.get_loans(status="active") if needle in loan.platform.lower()]

    def mark_installment_paid(
        self,
        loan_id: int,
        installment_no: int,
        paid_amount: float,
        late_fee: float,
        paid_date: date,
    ) -> Loan:
        """Mark one installment paid and advance the loan counter in a single write.

        The loan flips to ``paid_off`` when the counter reaches the total.
        """
        loan = self.get_loan(loan_id)
        if loan is None:
            raise InstallmentNotFound(loan_id, installment_no)
        target = next(
            (inst for inst in loan.installments if inst.installment_no == installment_no and inst.is_open),
            None,
        )
        if target is None:
            raise InstallmentNotFound(loan_id, installment_no)

        target.status = "paid"
        target.paid_amount = paid_amount
        target.late_fee = late_fee
        target.paid_date = paid_date
        loan.paid_installments = min(loan.paid_installments + 1, loan.total_installments)
        if loan.paid_installments == loan.total_installments:
            loan.status = "paid_off"
        loan.updated_at = datetime.now()

        updated = Loan.model_validate(loan.model_dump())
        data = updated.model_dump(mode="json", include={"installments", "paid_installments", "status", "updated_at"})
        self.loans.update(data, doc_ids=[loan_id])
        logger.info(
            "Loan #{} installment {} paid ({}/{}, {})",
            loan_id,
            installment_no,
            updated.paid_installments,
            updated.total_installments,
            updated.status,
        )
        return updated

    # ── conversation state ───────────────────────────────────────

    def get_session(self, now: datetime) -> SessionState | None:
        """Return the open session, or ``None``.

        Expired and unreadable rows are deleted as a side effect.
        """
        C = Query()
        doc = self.conversation.get(C.key == SESSION_KEY)
        if doc is None:
            return None
        try:
            record = ConversationRecord.model_validate_json(doc["state"])
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("Dropping unreadable conversation state: {}", e)
            self.clear_session()
            return None
        if record.expires_at <= now:
            logger.debug("Conversation state {} expired", record.state.pending_action)
            self.clear_session()
            return None
        return record.state

    def set_session(self, state: SessionState, now: datetime) -> None:
        record = ConversationRecord(state=state, expires_at=now + self.session_ttl)
        C = Query()
        self.conversation.upsert(
            {"key": SESSION_KEY, "state": record.model_dump_json()}, C.key == SESSION_KEY
        )

    def clear_session(self) -> bool:
        """Delete the session row; return whether there was one."""
        C = Query()
        return bool(self.conversation.remove(C.key == SESSION_KEY))

    # ── classifier usage counter ─────────────────────────────────

    def get_usage(self, day: date) -> int:
        U = Query()
        doc = self.usage.get(U.date == day.isoformat())
        return doc["count"] if doc else 0

    def increment_usage(self, day: date, amount: int = 1) -> None:
        U = Query()
        if not self.usage.update(add("count", amount), U.date == day.isoformat()):
            self.usage.insert({"date": day.isoformat(), "count": amount})

    # ── misc key/value ───────────────────────────────────────────

    def get_meta(self, key: str) -> str | None:
        M = Query()
        doc = self.meta.get(M.key == key)
        return doc["value"] if doc else None

    def set_meta(self, key: str, value: str) -> None:
        M = Query()
        self.meta.upsert({"key": key, "value": value}, M.key == key)


def _date_between(field: str, start: date, end: date):
    Q = Query()
    lo, hi = start.isoformat(), end.isoformat()
    return Q[field].test(lambda val: lo <= val < hi)


class UserStoreRegistry:
    """Hands out one repository and one lock per chat identity.

    Holding the lock while handling a message serialises a single user's
    updates; different users never share a lock and run in parallel.

    At most ``max_open`` file-backed stores stay open. Past that, the least
    recently used stores whose lock is free are closed and reopened on the
    next message.
    """

    def __init__(
        self,
        data_dir: str,
        *,
        storage=None,
        session_ttl: timedelta = timedelta(minutes=5),
        max_open: int = 256,
    ):
        self.data_dir = Path(data_dir)
        self.storage = storage
        self.session_ttl = session_ttl
        self.max_open = max_open
        self._repos: OrderedDict[str, FinanceRepository] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._repos)

    def get(self, identity: str) -> FinanceRepository:
        repo = self._repos.get(identity)
        if repo is not None:
            self._repos.move_to_end(identity)
            return repo

        if self.storage is not None:
            repo = FinanceRepository(storage=self.storage, session_ttl=self.session_ttl)
        else:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            path = self.data_dir / f"{_safe_name(identity)}.json"
            repo = FinanceRepository(str(path), session_ttl=self.session_ttl)
        self._repos[identity] = repo
        self._evict_idle()
        return repo

    def _evict_idle(self) -> None:
        # In-memory stores lose their data on close
        if self.storage is not None:
            return
        # The newest entry is the one being handed out
        for identity in list(self._repos)[:-1]:
            if len(self._repos) <= self.max_open:
                break
            lock = self._locks.get(identity)
            if lock is not None and lock.locked():
                continue
            self._repos.pop(identity).close()
            self._locks.pop(identity, None)
            logger.debug("Closed idle store for {}", identity)

    def lock(self, identity: str) -> asyncio.Lock:
        return self._locks.setdefault(identity, asyncio.Lock())

    def close(self) -> None:
        for repo in self._repos.values():
            repo.close()
        self._repos.clear()


def _safe_name(identity: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "_", identity)
