from datetime import datetime

from loguru import logger

from kasbot.bot.messages import format_date_short, format_rupiah
from kasbot.errors import InstallmentNotFound
from kasbot.models.schemas import Button, ConfirmPaymentState, Reply
from kasbot.services.schedule import days_late, late_fee, next_open_installment

PAYMENT_USAGE = """\
🏦 <b>Bayar Cicilan</b>

Ketik nama platform pinjamannya, contoh:
• <i>"bayar cicilan Kredivo"</i>
• <i>"sudah bayar Shopee"</i>
• <i>"lunas SeaBank bulan ini"</i>"""


def start_payment(repo, platform: str | None, now: datetime) -> list[Reply]:
    """Find the loan by name fragment and preview its next open installment."""
    fragment = (platform or "").strip()
    if not fragment:
        return [Reply(text=PAYMENT_USAGE)]

    matches = repo.find_active_loans(fragment)
    if len(matches) > 1:
        exact = [loan for loan in matches if loan.platform.lower() == fragment.lower()]
        if len(exact) == 1:
            matches = exact
    if not matches:
        return [
            Reply(
                text=(
                    f"❌ Tidak menemukan pinjaman aktif dengan nama <b>{fragment}</b>.\n\n"
                    'Ketik "lihat hutang" untuk melihat semua pinjaman, atau ketik nama platform yang tepat.'
                )
            )
        ]
    if len(matches) > 1:
        lines = [f"🔍 Ditemukan {len(matches)} pinjaman yang cocok:\n"]
        for i, loan in enumerate(matches, 1):
            lines.append(
                f"{i}. <b>{loan.platform}</b> ({loan.paid_installments}/{loan.total_installments} dibayar)"
            )
        lines.append("\nKetik nama platform yang lebih spesifik.")
        return [Reply(text="\n".join(lines))]

    loan = matches[0]
    installment = next_open_installment(loan)
    if installment is None:
        return [
            Reply(
                text=(
                    f"✅ <b>{loan.platform}</b>\n\n"
                    "Semua cicilan sudah lunas! 🎉\n\n"
                    f"Total: {loan.paid_installments}/{loan.total_installments} cicilan dibayar."
                )
            )
        ]

    today = now.date()
    until = -days_late(installment.due_date, today)
    fee = late_fee(loan.late_fee_type, loan.late_fee_value, installment.amount, -until)
    total = installment.amount + fee

    text = (
        "💳 <b>Konfirmasi Pembayaran Cicilan</b>\n\n"
        f"🏦 Platform: <b>{loan.platform}</b>\n"
        f"🔢 Cicilan ke-{installment.installment_no} dari {loan.total_installments}\n"
        f"💰 Jumlah: <b>{format_rupiah(installment.amount)}</b>\n"
        f"📅 Jatuh tempo: <b>{format_date_short(installment.due_date)}</b>"
    )
    if until < 0:
        text += f" <b>(TELAT {abs(until)} hari!)</b>\n"
        if fee > 0:
            text += f"⚠️ Denda: <b>{format_rupiah(fee)}</b>\n"
            text += f"💸 <b>Total bayar: {format_rupiah(total)}</b>"
    elif until == 0:
        text += " <b>(HARI INI)</b>"
    elif until <= 3:
        text += f" <b>({until} hari lagi)</b>"
    else:
        text += f" ({until} hari lagi)"
    text += "\n\nSudah dibayar?"

    state = ConfirmPaymentState(
        loan_id=loan.id,
        platform=loan.platform,
        installment_no=installment.installment_no,
        total_installments=loan.total_installments,
        amount=installment.amount,
        late_fee=fee,
        total_amount=total,
    )
    repo.set_session(state, now)
    buttons = [
        [
            Button(text="✅ Sudah Bayar", callback_data="payment_confirm_yes"),
            Button(text="❌ Belum", callback_data="payment_confirm_no"),
        ]
    ]
    return [Reply(text=text, buttons=buttons)]


def confirm_payment(repo, state: ConfirmPaymentState, now: datetime) -> list[Reply]:
    """Mark the previewed installment paid with the fee computed at preview time."""
    try:
        loan = repo.mark_installment_paid(
            state.loan_id,
            state.installment_no,
            paid_amount=state.total_amount,
            late_fee=state.late_fee,
            paid_date=now.date(),
        )
    except InstallmentNotFound as e:
        logger.warning("Payment confirm rejected: {}", e)
        repo.clear_session()
        return [Reply(text="⚠️ Cicilan ini sudah tercatat lunas atau tidak ditemukan.", edit=True)]
    repo.clear_session()

    text = (
        "✅ <b>Pembayaran Berhasil Dicatat!</b>\n\n"
        f"🏦 {state.platform}\n"
        f"🔢 Cicilan ke-{state.installment_no}\n"
        f"💰 Dibayar: {format_rupiah(state.amount)}"
    )
    if state.late_fee > 0:
        text += f"\n⚠️ Denda: {format_rupiah(state.late_fee)}"
        text += f"\n💸 Total: {format_rupiah(state.total_amount)}"
    text += f"\n\n📊 <b>Progress:</b> {loan.paid_installments}/{loan.total_installments} cicilan lunas"

    if loan.status == "paid_off":
        text += "\n\n🎉 <b>LUNAS!</b> Semua cicilan sudah dibayar!"
    else:
        remaining = loan.remaining_installments
        text += (
            f"\n💳 Sisa: {remaining}x × {format_rupiah(loan.monthly_amount)}"
            f" = {format_rupiah(remaining * loan.monthly_amount)}"
        )
    return [Reply(text=text, edit=True)]
