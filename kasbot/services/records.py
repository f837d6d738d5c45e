from datetime import datetime, timedelta

from kasbot.bot.messages import (
    EXPENSE_EMOJI,
    EXPENSE_LABELS,
    INCOME_LABELS,
    NO_EXPENSE_AMOUNT,
    NO_INCOME_AMOUNT,
    format_rupiah,
)
from kasbot.models.schemas import (
    Button,
    ConfirmExpenseState,
    ConfirmIncomeState,
    ExpenseRecord,
    IncomeRecord,
    RecordExpenseParams,
    RecordIncomeParams,
    Reply,
)


def start_income(repo, params: RecordIncomeParams, now: datetime) -> list[Reply]:
    if not params.amount or params.amount <= 0:
        return [Reply(text=NO_INCOME_AMOUNT)]

    state = ConfirmIncomeState(
        amount=params.amount,
        type=params.type,
        effective_date=params.effective_date or now.date(),
        note=params.note,
    )
    repo.set_session(state, now)
    text = (
        "📝 <b>Catat Pendapatan</b>\n\n"
        f"{INCOME_LABELS[state.type]}\n"
        f"💰 Jumlah: <b>{format_rupiah(state.amount)}</b>\n"
        f"📅 Tanggal: {state.effective_date.isoformat()}\n"
    )
    if state.note:
        text += f"📌 Catatan: {state.note}\n"
    text += "\nSudah benar?"
    buttons = [
        [
            Button(text="✅ Ya, Simpan", callback_data="confirm_income_yes"),
            Button(text="❌ Batal", callback_data="confirm_income_no"),
        ]
    ]
    return [Reply(text=text, buttons=buttons)]


def confirm_income(repo, state: ConfirmIncomeState, now: datetime) -> list[Reply]:
    repo.add_income(
        IncomeRecord(
            amount=state.amount,
            type=state.type,
            note=state.note,
            effective_date=state.effective_date,
            created_at=now,
        )
    )
    repo.clear_session()

    day = state.effective_date
    records = repo.get_income(day, day + timedelta(days=1))
    food = sum(r.amount for r in records if r.type == "food")
    spx = sum(r.amount for r in records if r.type == "spx")
    label = "Food" if state.type == "food" else "SPX"
    text = (
        "✅ <b>Pendapatan dicatat!</b>\n\n"
        f"{label}: {format_rupiah(state.amount)}\n\n"
        "📊 <b>Total Hari Ini:</b>\n"
        f"🍔 Food: {format_rupiah(food)}\n"
        f"📦 SPX: {format_rupiah(spx)}\n"
        f"💰 Total: <b>{format_rupiah(food + spx)}</b> ({len(records)} transaksi)"
    )
    return [Reply(text=text, edit=True)]


def start_expense(repo, params: RecordExpenseParams, now: datetime) -> list[Reply]:
    if not params.amount or params.amount <= 0:
        return [Reply(text=NO_EXPENSE_AMOUNT)]

    state = ConfirmExpenseState(
        amount=params.amount,
        category=params.category,
        effective_date=params.effective_date or now.date(),
        note=params.note,
    )
    repo.set_session(state, now)
    text = (
        "📝 <b>Catat Pengeluaran</b>\n\n"
        f"{EXPENSE_EMOJI[state.category]} Kategori: {EXPENSE_LABELS[state.category]}\n"
        f"💸 Jumlah: <b>{format_rupiah(state.amount)}</b>\n"
        f"📅 Tanggal: {state.effective_date.isoformat()}\n"
    )
    if state.note:
        text += f"📌 Catatan: {state.note}\n"
    text += "\nSudah benar?"
    buttons = [
        [
            Button(text="✅ Ya, Simpan", callback_data="confirm_expense_yes"),
            Button(text="❌ Batal", callback_data="confirm_expense_no"),
        ]
    ]
    return [Reply(text=text, buttons=buttons)]


def confirm_expense(repo, state: ConfirmExpenseState, now: datetime) -> list[Reply]:
    repo.add_expense(
        ExpenseRecord(
            amount=state.amount,
            category=state.category,
            note=state.note,
            effective_date=state.effective_date,
            created_at=now,
        )
    )
    repo.clear_session()

    day = state.effective_date
    records = repo.get_expenses(day, day + timedelta(days=1))
    by_category: dict[str, float] = {}
    for record in records:
        by_category[record.category] = by_category.get(record.category, 0) + record.amount

    lines = [
        "✅ <b>Pengeluaran dicatat!</b>\n",
        f"{EXPENSE_EMOJI[state.category]} {EXPENSE_LABELS[state.category]}: {format_rupiah(state.amount)}\n",
        "📊 <b>Pengeluaran Hari Ini:</b>",
    ]
    for category, total in sorted(by_category.items(), key=lambda item: -item[1]):
        lines.append(f"{EXPENSE_EMOJI[category]} {EXPENSE_LABELS[category]}: {format_rupiah(total)}")
    lines.append(
        f"💸 Total: <b>{format_rupiah(sum(by_category.values()))}</b> ({len(records)} transaksi)"
    )
    return [Reply(text="\n".join(lines), edit=True)]
