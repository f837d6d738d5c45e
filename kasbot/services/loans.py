"""Loan registration: classifier fields merged with a fill-in-the-blanks wizard.

The wizard is a small state machine. Its states are the session variants
``loan_fill_missing``, ``loan_edit_select``, ``loan_edit_field`` and
``confirm_loan``; ``TRANSITIONS`` maps (state, event) to the step that
handles it. Events are ``text`` (a typed answer), ``late_fee_type`` (a
keyboard press), ``save`` and ``edit``.
"""

from datetime import datetime

from loguru import logger

from kasbot.bot.messages import LATE_FEE_LABELS, format_fee_policy, format_rupiah
from kasbot.models.schemas import (
    LATE_FEE_TYPES,
    LOAN_FIELDS,
    REQUIRED_LOAN_FIELDS,
    Button,
    ConfirmLoanState,
    Loan,
    LoanDraft,
    LoanEditFieldState,
    LoanEditSelectState,
    LoanFillMissingState,
    Reply,
)
from kasbot.parsing import (
    parse_count,
    parse_due_day,
    parse_fee_value,
    parse_platform,
    parse_positive_amount,
    parse_total_with_interest,
)
from kasbot.services.schedule import generate_schedule

FIELD_LABELS = {
    "platform": "Nama platform",
    "original_amount": "Jumlah pinjaman (pokok)",
    "total_with_interest": "Total harus dibayar (dengan bunga)",
    "total_installments": "Jumlah cicilan (tenor)",
    "monthly_amount": "Cicilan per bulan",
    "due_day": "Tanggal jatuh tempo",
    "late_fee_type": "Jenis denda",
    "late_fee_value": "Besar denda",
}

FIELD_PROMPTS = {
    "platform": "Ketik nama platform pinjaman (contoh: Shopee Pinjam, Kredivo, SPayLater, SeaBank):",
    "original_amount": "Berapa jumlah uang yang kamu pinjam (pokok)? Contoh: <i>3500000</i> atau <i>3.5jt</i>",
    "total_with_interest": (
        "Berapa total yang harus dibayar (termasuk bunga)? Contoh: <i>4.9jt</i>\n"
        "Ketik <i>skip</i> kalau tidak tahu."
    ),
    "total_installments": "Berapa kali cicilan? Contoh: <i>10</i> atau <i>12 bulan</i>",
    "monthly_amount": "Berapa cicilan per bulan? Contoh: <i>435917</i> atau <i>500rb</i>",
    "due_day": "Tanggal berapa jatuh tempo tiap bulan? Contoh: <i>13</i> (1-31)",
    "late_fee_type": "Bagaimana denda keterlambatannya? Pilih salah satu:",
    "late_fee_value": (
        "Berapa besar dendanya?\n"
        "• Persen: ketik angkanya, contoh <i>5</i> atau <i>0.25</i>\n"
        "• Nominal tetap: contoh <i>50rb</i>"
    ),
}

INVALID_ANSWERS = {
    "platform": "❌ Nama platform tidak boleh kosong. Coba lagi:",
    "original_amount": "❌ Jumlah tidak valid. Coba lagi dengan angka, contoh: <i>3500000</i> atau <i>3.5jt</i>",
    "total_with_interest": "❌ Jumlah tidak valid. Contoh: <i>4904446</i>, atau ketik <i>skip</i>.",
    "total_installments": "❌ Jumlah cicilan tidak valid. Coba lagi dengan angka, contoh: <i>10</i>",
    "monthly_amount": "❌ Jumlah tidak valid. Coba lagi dengan angka, contoh: <i>435917</i>",
    "due_day": "❌ Tanggal harus angka 1-31. Coba lagi, contoh: <i>13</i>",
    "late_fee_type": "👆 Pilih jenis denda pakai tombol di atas ya.",
    "late_fee_value": "❌ Besar denda tidak valid. Contoh: <i>5</i>, <i>0.25</i> atau <i>50rb</i>",
}

FIELD_PARSERS = {
    "platform": parse_platform,
    "original_amount": parse_positive_amount,
    "total_with_interest": parse_total_with_interest,
    "total_installments": parse_count,
    "monthly_amount": parse_positive_amount,
    "due_day": parse_due_day,
    "late_fee_value": parse_fee_value,
}

# Number keys on the edit screen; 7 covers the late-fee type and value together.
EDIT_CHOICES = (
    "platform",
    "original_amount",
    "total_with_interest",
    "total_installments",
    "monthly_amount",
    "due_day",
    "late_fee_type",
)

LATE_FEE_KEYBOARD = [
    [
        Button(text=LATE_FEE_LABELS["percent_monthly"], callback_data="loan_late_fee:percent_monthly"),
        Button(text=LATE_FEE_LABELS["percent_daily"], callback_data="loan_late_fee:percent_daily"),
    ],
    [
        Button(text=LATE_FEE_LABELS["fixed"], callback_data="loan_late_fee:fixed"),
        Button(text=LATE_FEE_LABELS["none"], callback_data="loan_late_fee:none"),
    ],
]

CONFIRM_KEYBOARD = [
    [
        Button(text="✅ Simpan", callback_data="confirm_loan_yes"),
        Button(text="✏️ Edit", callback_data="confirm_loan_edit"),
    ],
    [Button(text="❌ Batal", callback_data="confirm_loan_no")],
]

LOAN_USAGE = """\
🏦 <b>Daftar Pinjaman Baru</b>

Kirim detail pinjamanmu dalam satu pesan, contoh:
• <i>"kredivo 5jt 12 bulan 500rb per bulan no denda"</i>
• <i>"hutang shopee 3.5jt total 4.9jt 10x tanggal 13 denda 5%/bln"</i>
• <i>"pinjam seabank 1.5jt 7 bulan 232rb tanggal 5 denda 0.25% per hari"</i>

Yang belum disebut nanti aku tanyakan satu per satu."""

LOAN_CANCELLED = "❌ Pendaftaran pinjaman dibatalkan."


# ── rendering ────────────────────────────────────────────────────


def _field_value(draft: LoanDraft, field: str) -> str | None:
    value = getattr(draft, field)
    if field == "platform":
        return f"<b>{value}</b>" if value else None
    if field in ("original_amount", "monthly_amount"):
        return format_rupiah(value) if value else None
    if field == "total_with_interest":
        return format_rupiah(value) if value else None
    if field == "total_installments":
        return f"{value}x" if value else None
    if field == "due_day":
        return f"tanggal {value}" if value else None
    if field == "late_fee_type":
        if value is None:
            return None
        return format_fee_policy(value, draft.late_fee_value)
    return None


def _interest_line(draft: LoanDraft) -> str | None:
    if not draft.total_with_interest or not draft.original_amount:
        return None
    interest = draft.total_with_interest - draft.original_amount
    rate = interest / draft.original_amount * 100
    return f"📈 Bunga: <b>{format_rupiah(interest)}</b> ({rate:.1f}%)"


def _draft_summary(draft: LoanDraft) -> str:
    lines = [
        f"🏦 Platform: {_field_value(draft, 'platform') or '-'}",
        f"💰 Pinjaman: {_field_value(draft, 'original_amount') or '-'}",
        f"💳 Total bayar: {_field_value(draft, 'total_with_interest') or 'tidak diketahui'}",
    ]
    interest = _interest_line(draft)
    if interest:
        lines.append(interest)
    lines += [
        f"🔢 Tenor: {_field_value(draft, 'total_installments') or '-'}",
        f"📆 Cicilan: {_field_value(draft, 'monthly_amount') or '-'}/bulan",
        f"📅 Jatuh tempo: {_field_value(draft, 'due_day') or '-'}",
        f"⚠️ Denda: {_field_value(draft, 'late_fee_type') or 'tidak ada'}",
    ]
    return "\n".join(lines)


def _field_prompt(field: str, position: int | None = None, total: int | None = None) -> Reply:
    header = f"<b>{FIELD_LABELS[field]}</b>"
    if position is not None:
        header = f"<b>Langkah {position}/{total}: {FIELD_LABELS[field]}</b>"
    text = f"{header}\n{FIELD_PROMPTS[field]}"
    if field == "late_fee_type":
        return Reply(text=text, buttons=LATE_FEE_KEYBOARD)
    return Reply(text=text)


def _edit_menu() -> str:
    return "\n".join(f"{i}. {FIELD_LABELS[field]}" for i, field in enumerate(EDIT_CHOICES, 1))


def _edit_select_text(draft: LoanDraft) -> str:
    lines = ["✏️ <b>Edit Pinjaman</b>\n", "Pilih yang mau diubah (ketik angkanya):\n"]
    for i, field in enumerate(EDIT_CHOICES, 1):
        lines.append(f"{i}. {FIELD_LABELS[field]}: {_field_value(draft, field) or '-'}")
    return "\n".join(lines)


# ── entry point ──────────────────────────────────────────────────


def start_from_extracted_fields(repo, params: LoanDraft, now: datetime) -> list[Reply]:
    """Open the registration flow from whatever the classifier pulled out of one message."""
    extracted = params.extracted_fields()
    if not extracted:
        return [Reply(text=LOAN_USAGE)]

    draft = LoanDraft(**{field: getattr(params, field) for field in LOAN_FIELDS if field in extracted})
    if draft.late_fee_type == "none":
        draft.late_fee_value = 0

    missing_required = [field for field in REQUIRED_LOAN_FIELDS if field not in extracted]
    if not missing_required and not _fee_incomplete(draft):
        return show_confirmation(repo, draft, now)

    missing = [field for field in LOAN_FIELDS if field not in extracted]
    caught = [
        f"• {FIELD_LABELS[field]}: {_field_value(draft, field)}"
        for field in LOAN_FIELDS
        if field in extracted and _field_value(draft, field)
    ]
    wanted = [f"{i}. {FIELD_LABELS[field]}" for i, field in enumerate(missing, 1)]
    intro = (
        "🏦 <b>Daftar Pinjaman Baru</b>\n\n"
        "Yang sudah aku tangkap:\n" + "\n".join(caught) + "\n\n"
        "Masih perlu diisi:\n" + "\n".join(wanted) + "\n\n"
        "Ketik /batal kapan saja untuk membatalkan."
    )
    logger.info("Loan wizard opened, missing {}", missing)
    state = LoanFillMissingState(draft=draft, missing=missing, cursor=0)
    repo.set_session(state, now)
    return [Reply(text=intro), _field_prompt(missing[0], 1, len(missing))]


def _fee_incomplete(draft: LoanDraft) -> bool:
    return draft.late_fee_type not in (None, "none") and draft.late_fee_value is None


def show_confirmation(repo, draft: LoanDraft, now: datetime, prefix: str = "") -> list[Reply]:
    repo.set_session(ConfirmLoanState(draft=draft), now)
    text = f"{prefix}📋 <b>Konfirmasi Pinjaman</b>\n\n{_draft_summary(draft)}\n\nSudah benar?"
    return [Reply(text=text, buttons=CONFIRM_KEYBOARD)]


# ── fill-missing steps ───────────────────────────────────────────


def _advance(repo, draft: LoanDraft, missing: list[str], cursor: int, now: datetime, ack: str) -> list[Reply]:
    if draft.late_fee_type == "none":
        draft.late_fee_value = 0
        # Value is implicitly zero, so it is never asked
        missing = missing[:cursor] + [field for field in missing[cursor:] if field != "late_fee_value"]

    if cursor >= len(missing):
        return show_confirmation(repo, draft, now, prefix=f"{ack}\n\n" if ack else "")

    state = LoanFillMissingState(draft=draft, missing=missing, cursor=cursor)
    repo.set_session(state, now)
    prompt = _field_prompt(missing[cursor], cursor + 1, len(missing))
    return [Reply(text=f"{ack}\n\n{prompt.text}", buttons=prompt.buttons)]


def _ack(draft: LoanDraft, field: str) -> str:
    if field == "total_with_interest" and not draft.total_with_interest:
        return "✅ Total bayar: tidak diketahui"
    line = f"✅ {FIELD_LABELS[field]}: {_field_value(draft, field)}"
    if field == "total_with_interest":
        interest = _interest_line(draft)
        if interest:
            line += f"\n{interest}"
    return line


def _apply(draft: LoanDraft, field: str, value) -> LoanDraft:
    return draft.model_copy(update={field: value})


def _fill_missing_text(repo, state: LoanFillMissingState, text: str, now: datetime) -> list[Reply]:
    field = state.current_field
    if field is None:
        return show_confirmation(repo, state.draft, now)
    if field == "late_fee_type":
        return [Reply(text=INVALID_ANSWERS[field], buttons=LATE_FEE_KEYBOARD)]

    value = FIELD_PARSERS[field](text)
    if value is None:
        return [Reply(text=INVALID_ANSWERS[field])]
    draft = _apply(state.draft, field, value)
    if field == "late_fee_value":
        ack = f"✅ Denda: {format_fee_policy(draft.late_fee_type, value)}"
    else:
        ack = _ack(draft, field)
    return _advance(repo, draft, list(state.missing), state.cursor + 1, now, ack)


def _fill_missing_fee_type(repo, state: LoanFillMissingState, fee_type: str, now: datetime) -> list[Reply] | None:
    if state.current_field != "late_fee_type":
        return None
    draft = _apply(state.draft, "late_fee_type", fee_type)
    ack = f"✅ Jenis denda: {LATE_FEE_LABELS[fee_type]}"
    return _advance(repo, draft, list(state.missing), state.cursor + 1, now, ack)


# ── edit steps ───────────────────────────────────────────────────


def _open_edit_select(repo, state: ConfirmLoanState, _payload, now: datetime) -> list[Reply]:
    repo.set_session(LoanEditSelectState(draft=state.draft), now)
    return [Reply(text=_edit_select_text(state.draft), edit=True)]


def _edit_select_text_answer(repo, state: LoanEditSelectState, text: str, now: datetime) -> list[Reply]:
    choice = text.strip()
    if not choice.isdigit() or not 1 <= int(choice) <= len(EDIT_CHOICES):
        return [Reply(text=f"❌ Ketik angka 1-{len(EDIT_CHOICES)}:\n\n{_edit_menu()}")]
    field = EDIT_CHOICES[int(choice) - 1]
    repo.set_session(LoanEditFieldState(draft=state.draft, field=field), now)
    return [_field_prompt(field)]


def _edit_field_text(repo, state: LoanEditFieldState, text: str, now: datetime) -> list[Reply]:
    field = state.field
    if field == "late_fee_type":
        return [Reply(text=INVALID_ANSWERS[field], buttons=LATE_FEE_KEYBOARD)]
    value = FIELD_PARSERS[field](text)
    if value is None:
        return [Reply(text=INVALID_ANSWERS[field])]
    draft = _apply(state.draft, field, value)
    return show_confirmation(repo, draft, now, prefix="✅ Diperbarui.\n\n")


def _edit_field_fee_type(repo, state: LoanEditFieldState, fee_type: str, now: datetime) -> list[Reply] | None:
    if state.field != "late_fee_type":
        return None
    previous = state.draft.late_fee_type
    draft = _apply(state.draft, "late_fee_type", fee_type)
    if fee_type == "none":
        draft.late_fee_value = 0
        return show_confirmation(repo, draft, now, prefix="✅ Diperbarui.\n\n")
    if draft.late_fee_value is None or previous in (None, "none"):
        # A denda without its amount cannot be confirmed
        draft.late_fee_value = None
        repo.set_session(LoanEditFieldState(draft=draft, field="late_fee_value"), now)
        prompt = _field_prompt("late_fee_value")
        return [Reply(text=f"✅ Jenis denda: {LATE_FEE_LABELS[fee_type]}\n\n{prompt.text}")]
    return show_confirmation(repo, draft, now, prefix="✅ Diperbarui.\n\n")


# ── save ─────────────────────────────────────────────────────────


def build_loan(draft: LoanDraft, now: datetime) -> Loan:
    """Turn a confirmed draft into a loan with its full installment schedule."""
    start = now.date()
    installments = generate_schedule(draft.total_installments, draft.monthly_amount, draft.due_day, start)
    fee_type = draft.late_fee_type or "none"
    return Loan(
        platform=draft.platform,
        original_amount=draft.original_amount,
        total_with_interest=draft.total_with_interest or 0,
        total_installments=draft.total_installments,
        monthly_amount=draft.monthly_amount,
        due_day=draft.due_day,
        late_fee_type=fee_type,
        late_fee_value=0 if fee_type == "none" else (draft.late_fee_value or 0),
        start_date=start,
        created_at=now,
        updated_at=now,
        installments=installments,
    )


def _save(repo, state: ConfirmLoanState, _payload, now: datetime) -> list[Reply]:
    missing = [field for field in REQUIRED_LOAN_FIELDS if not getattr(state.draft, field)]
    if missing:
        # Only reachable through a hand-edited session; send the user back to editing
        return _open_edit_select(repo, state, None, now)

    loan = repo.add_loan(build_loan(state.draft, now))
    repo.clear_session()

    text = (
        "✅ <b>Pinjaman berhasil didaftarkan!</b>\n\n"
        f"🏦 {loan.platform}\n"
        f"💰 Pinjaman: {format_rupiah(loan.original_amount)}\n"
    )
    if loan.total_with_interest > 0:
        interest = loan.total_with_interest - loan.original_amount
        rate = interest / loan.original_amount * 100
        text += f"💳 Total bayar: {format_rupiah(loan.total_with_interest)}\n"
        text += f"📈 Bunga: {format_rupiah(interest)} ({rate:.1f}%)\n"
    first = loan.installments[0]
    last = loan.installments[-1]
    text += (
        f"📆 {loan.total_installments}x {format_rupiah(loan.monthly_amount)}, tiap tanggal {loan.due_day}\n"
        f"⚠️ Denda: {format_fee_policy(loan.late_fee_type, loan.late_fee_value)}\n\n"
        f"🗓️ Cicilan pertama: {first.due_date.isoformat()}\n"
        f"🏁 Cicilan terakhir: {last.due_date.isoformat()}\n\n"
        'Ketik <i>"bayar cicilan ' + loan.platform + '"</i> setiap kali kamu bayar.'
    )
    return [Reply(text=text, edit=True)]


# ── transition table ─────────────────────────────────────────────

TRANSITIONS = {
    ("loan_fill_missing", "text"): _fill_missing_text,
    ("loan_fill_missing", "late_fee_type"): _fill_missing_fee_type,
    ("loan_edit_select", "text"): _edit_select_text_answer,
    ("loan_edit_field", "text"): _edit_field_text,
    ("loan_edit_field", "late_fee_type"): _edit_field_fee_type,
    ("confirm_loan", "save"): _save,
    ("confirm_loan", "edit"): _open_edit_select,
}


def dispatch(repo, state, event: str, payload, now: datetime) -> list[Reply] | None:
    """Run the step for ``(state, event)``; ``None`` when the pair has no transition."""
    if state is None:
        return None
    step = TRANSITIONS.get((state.pending_action, event))
    if step is None:
        return None
    if event == "late_fee_type" and payload not in LATE_FEE_TYPES:
        return None
    return step(repo, state, payload, now)
