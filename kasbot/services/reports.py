"""Read-only views: loan dashboard, penalties, monthly summary, reports, progress."""

from collections import defaultdict
from datetime import date, timedelta

from kasbot.bot.messages import (
    DOUBLE_SEPARATOR,
    EXPENSE_EMOJI,
    EXPENSE_LABELS,
    MONTH_NAMES,
    SEPARATOR,
    due_countdown,
    due_icon,
    format_date_long,
    format_fee_policy,
    format_month_year,
    format_rupiah,
    progress_bar,
)
from kasbot.models.schemas import Reply
from kasbot.services.schedule import (
    add_months,
    days_late,
    next_open_installment,
    overdue_charges,
    payoff_projection,
)

NO_LOANS = """\
🏦 <b>Daftar Pinjaman</b>

Belum ada pinjaman yang terdaftar.

Untuk mendaftarkan pinjaman, kirim pesan seperti:
• <i>"kredivo 5jt 12 bulan 500rb/bln"</i>
• <i>"shopee pinjam 3.5jt 10x tanggal 13"</i>"""

NO_ACTIVE_LOANS = (
    "📋 Tidak ada pinjaman aktif.\n\n"
    "Daftar pinjaman dulu dengan mengetik nama platform dan detailnya."
)

MONTH_USAGE = """\
❌ Format bulan tidak valid.

Contoh:
• /ringkasan: bulan ini
• /ringkasan 3: Maret
• /ringkasan 2026-03: Maret 2026"""


# ── dashboard ────────────────────────────────────────────────────


def loan_dashboard(repo, today: date) -> list[Reply]:
    active = repo.get_loans(status="active")
    paid_off = repo.get_loans(status="paid_off")
    if not active and not paid_off:
        return [Reply(text=NO_LOANS)]

    cards = []
    for loan in active:
        installment = next_open_installment(loan)
        until = -days_late(installment.due_date, today) if installment else None
        cards.append((loan, until))
    # Overdue first, then soonest; loans with nothing left to pay go last
    cards.sort(key=lambda card: (card[1] is None, card[1] if card[1] is not None else 0))

    lines = ["🏦 <b>Dashboard Pinjaman</b>", f"📅 {format_date_long(today)}", SEPARATOR]
    for loan, until in cards:
        percent = loan.paid_installments / loan.total_installments * 100
        remaining = loan.remaining_installments
        lines.append("")
        lines.append(f"{due_icon(until)} <b>{loan.platform}</b>")
        lines.append(
            f"{progress_bar(percent)} {round(percent)}% {loan.paid_installments}/{loan.total_installments}"
        )
        lines.append(f"💰 Cicilan: {format_rupiah(loan.monthly_amount)}/bln")
        lines.append(f"💳 Sisa: {format_rupiah(remaining * loan.monthly_amount)} ({remaining}x)")
        if until is not None:
            lines.append(f"📅 Jatuh tempo: Tgl {loan.due_day}, {due_countdown(until)}")

    total_remaining = sum(loan.remaining_installments * loan.monthly_amount for loan in active)
    monthly = sum(loan.monthly_amount for loan in active)
    lines += [
        "",
        SEPARATOR,
        "📊 <b>Ringkasan</b>",
        f"💸 Total sisa hutang: <b>{format_rupiah(total_remaining)}</b>",
        f"📆 Cicilan per bulan: <b>{format_rupiah(monthly)}</b>",
    ]
    count_line = f"🏦 Pinjaman aktif: <b>{len(active)}</b>"
    if paid_off:
        count_line += f" | Lunas: <b>{len(paid_off)}</b>"
    lines.append(count_line)
    nearest = next(((loan, until) for loan, until in cards if until is not None), None)
    if nearest:
        lines.append(f"⏰ Terdekat: <b>{nearest[0].platform}</b>, {due_countdown(nearest[1])}")
    if paid_off:
        lines.append("")
        lines.append("✅ <b>Lunas:</b> " + ", ".join(loan.platform for loan in paid_off))
    return [Reply(text="\n".join(lines))]


# ── penalties ────────────────────────────────────────────────────


def penalty_report(repo, today: date, platform: str | None = None) -> list[Reply]:
    loans = repo.get_loans(status="active")
    if not loans:
        return [Reply(text=NO_ACTIVE_LOANS)]

    if platform:
        needle = platform.strip().lower()
        loans = [loan for loan in loans if needle in loan.platform.lower()]
        if not loans:
            return [
                Reply(
                    text=(
                        f"❌ Tidak menemukan pinjaman aktif dengan nama <b>{platform}</b>.\n\n"
                        "Ketik /denda tanpa nama untuk melihat semua, atau /hutang untuk cek daftar pinjaman."
                    )
                )
            ]

    charges = overdue_charges(loans, today)
    if not charges:
        scope = f"<b>{platform}</b>" if platform else "Semua pinjaman"
        return [
            Reply(
                text=(
                    "✅ <b>Tidak ada cicilan telat!</b>\n\n"
                    f"{scope}: semua cicilan terbayar tepat waktu. 👍\n\n"
                    "Ketik /hutang untuk melihat dashboard pinjaman."
                )
            )
        ]

    by_loan = defaultdict(list)
    for charge in charges:
        by_loan[charge.loan.id].append(charge)

    lines = ["🧮 <b>Kalkulator Denda</b>", f"📅 Per tanggal: {format_date_long(today)}", SEPARATOR]
    for loan_charges in by_loan.values():
        loan = loan_charges[0].loan
        lines.append("")
        lines.append(f"🏦 <b>{loan.platform}</b>")
        lines.append(f"📌 Jenis denda: {format_fee_policy(loan.late_fee_type, loan.late_fee_value)}")
        for charge in loan_charges:
            lines.append(f"  Cicilan ke-{charge.installment.installment_no}: telat <b>{charge.days_late} hari</b>")
            lines.append(f"  💰 Pokok: {format_rupiah(charge.installment.amount)}")
            if charge.fee > 0:
                lines.append(f"  ⚠️ Denda: <b>{format_rupiah(charge.fee)}</b>")
                lines.append(f"  💸 Total: <b>{format_rupiah(charge.total)}</b>")
            else:
                lines.append("  ✅ Denda: Rp0 (tidak ada denda)")
        if len(loan_charges) > 1:
            lines.append(f"  📊 Subtotal {loan.platform}:")
            lines.append(f"  Denda: {format_rupiah(sum(c.fee for c in loan_charges))}")
            lines.append(f"  Total bayar: <b>{format_rupiah(sum(c.total for c in loan_charges))}</b>")

    total_fees = sum(c.fee for c in charges)
    if len(by_loan) > 1:
        lines += [
            SEPARATOR,
            "📊 <b>Total Semua Denda:</b>",
            f"⚠️ Total denda: <b>{format_rupiah(total_fees)}</b>",
            f"💸 Total harus bayar: <b>{format_rupiah(sum(c.total for c in charges))}</b>",
        ]
    lines += ["", SEPARATOR, "💡 <b>Tips:</b>"]
    if total_fees > 0:
        lines.append("• Semakin lama telat, denda makin besar")
        lines.append("• Bayar sekarang untuk stop denda bertambah")
    else:
        lines.append("• Cicilan telat tapi tanpa denda, tetap bayar segera ya!")
    lines.append('• Ketik <i>"bayar cicilan [nama]"</i> untuk bayar')
    return [Reply(text="\n".join(lines))]


# ── monthly summary ──────────────────────────────────────────────


def parse_month_arg(arg: str, default_year: int) -> tuple[int, int] | None:
    """``"3"`` / ``"03"`` -> (default_year, 3); ``"2026-03"`` -> (2026, 3)."""
    text = arg.strip()
    if "-" in text:
        parts = text.split("-")
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            return None
        year, month = int(parts[0]), int(parts[1])
    elif text.isdigit():
        year, month = default_year, int(text)
    else:
        return None
    # The summary also needs the following month to exist
    if not 1 <= month <= 12 or not date.min.year <= year < date.max.year:
        return None
    return year, month


def monthly_summary(repo, today: date, month_arg: str | None = None) -> list[Reply]:
    year, month = today.year, today.month
    if month_arg:
        parsed = parse_month_arg(month_arg, today.year)
        if parsed is None:
            return [Reply(text=MONTH_USAGE)]
        year, month = parsed

    start = date(year, month, 1)
    end = add_months(start, 1, 1)
    income = sum(r.amount for r in repo.get_income(start, end))
    expenses = sum(r.amount for r in repo.get_expenses(start, end))

    rows = []
    for loan in repo.get_loans():
        if loan.status == "cancelled":
            continue
        for inst in loan.installments:
            if start <= inst.due_date < end:
                rows.append((loan, inst))
    rows.sort(key=lambda row: row[1].due_date)

    title = f"📋 <b>Ringkasan {MONTH_NAMES[month - 1]} {year}</b>"
    if not rows and income == 0 and expenses == 0:
        return [
            Reply(
                text=(
                    f"{title}\n\nTidak ada data untuk bulan ini.\n\n"
                    "Daftar pinjaman dulu atau catat pendapatan/pengeluaran."
                )
            )
        ]

    lines = [title, DOUBLE_SEPARATOR]
    if income > 0 or expenses > 0:
        lines += [
            "",
            "💰 <b>Pendapatan & Pengeluaran</b>",
            f"  📈 Pendapatan: {format_rupiah(income)}",
            f"  📉 Pengeluaran: {format_rupiah(expenses)}",
        ]
        net = income - expenses
        if net >= 0:
            lines.append(f"  💵 Sisa: {format_rupiah(net)}")
        else:
            lines.append(f"  ⚠️ Defisit: {format_rupiah(abs(net))}")

    if not rows:
        lines.append("")
        lines.append("✅ Tidak ada cicilan jatuh tempo bulan ini.")
        return [Reply(text="\n".join(lines))]

    paid = [inst for _, inst in rows if inst.status == "paid"]
    unpaid = [inst for _, inst in rows if inst.is_open]
    overdue = [inst for inst in unpaid if inst.due_date < today]
    upcoming = [inst for inst in unpaid if inst.due_date >= today]
    obligations = sum(inst.amount for _, inst in rows)
    paid_fees = sum(inst.late_fee for inst in paid)

    paid_line = f"  ✅ Terbayar: {len(paid)}x = {format_rupiah(sum(i.paid_amount or i.amount for i in paid))}"
    if paid_fees > 0:
        paid_line += f" (+ denda {format_rupiah(paid_fees)})"
    lines += [
        "",
        "📊 <b>Kewajiban Cicilan</b>",
        f"  Total cicilan: {len(rows)}x = {format_rupiah(obligations)}",
        paid_line,
    ]
    if overdue:
        lines.append(f"  🔴 Telat: {len(overdue)}x = {format_rupiah(sum(i.amount for i in overdue))}")
    if upcoming:
        lines.append(f"  🟡 Belum bayar: {len(upcoming)}x = {format_rupiah(sum(i.amount for i in upcoming))}")
    percent = round(len(paid) / len(rows) * 100)
    lines.append(f"  {progress_bar(percent)} {percent}%")

    if income > 0 and obligations > 0:
        ratio = round(obligations / income * 100)
        lines += ["", "💡 <b>Rasio Hutang</b>", f"  Cicilan = {ratio}% dari pendapatan"]
        if ratio > 50:
            lines.append("  ⚠️ Cicilan lebih dari 50% pendapatan, hati-hati!")
        elif ratio > 30:
            lines.append("  🟡 Cicilan 30-50% pendapatan, masih bisa diatur")
        else:
            lines.append("  ✅ Rasio cicilan sehat (di bawah 30%)")

    lines += ["", DOUBLE_SEPARATOR, "📝 <b>Detail Per Pinjaman</b>"]
    by_loan = defaultdict(list)
    for loan, inst in rows:
        by_loan[loan.id].append((loan, inst))
    for group in by_loan.values():
        loan = group[0][0]
        lines.append("")
        lines.append(f"🏦 <b>{loan.platform}</b>")
        for _, inst in group:
            lines.append(
                f"  {_installment_status(inst, today)} tgl {inst.due_date.day}: "
                f"ke-{inst.installment_no}/{loan.total_installments} {format_rupiah(inst.amount)}"
            )

    if (year, month) == (today.year, today.month) and unpaid:
        lines += ["", DOUBLE_SEPARATOR, "💡 <b>Aksi</b>"]
        if overdue:
            lines.append("• /denda: lihat total denda keterlambatan")
        lines.append('• Ketik <i>"bayar cicilan [nama]"</i> untuk bayar')
        lines.append("• /hutang: lihat dashboard semua pinjaman")
    return [Reply(text="\n".join(lines))]


def _installment_status(inst, today: date) -> str:
    if inst.status == "paid":
        paid_on = f" {inst.paid_date.day} {MONTH_NAMES[inst.paid_date.month - 1][:3]}" if inst.paid_date else ""
        return f"✅ (dibayar{paid_on})"
    late = days_late(inst.due_date, today)
    if late > 0:
        return f"🔴 (telat {late} hari)"
    if late == 0:
        return "⚠️ (HARI INI)"
    icon = "🟡" if -late <= 3 else "⏳"
    return f"{icon} ({-late} hari lagi)"


# ── income / expense report ──────────────────────────────────────


def period_report(repo, today: date, period: str) -> list[Reply]:
    """``today`` / ``week`` totals; ``month`` is the full monthly summary."""
    if period == "month":
        return monthly_summary(repo, today)
    if period == "week":
        start, title = today - timedelta(days=6), "7 Hari Terakhir"
    else:
        start, title = today, "Hari Ini"
    end = today + timedelta(days=1)

    income = repo.get_income(start, end)
    expenses = repo.get_expenses(start, end)
    food = sum(r.amount for r in income if r.type == "food")
    spx = sum(r.amount for r in income if r.type == "spx")
    by_category: dict[str, float] = defaultdict(float)
    for record in expenses:
        by_category[record.category] += record.amount
    total_income = food + spx
    total_expense = sum(by_category.values())

    lines = [
        f"📊 <b>Laporan {title}</b>",
        SEPARATOR,
        "",
        "📈 <b>Pendapatan</b>",
        f"  🍔 Food: {format_rupiah(food)}",
        f"  📦 SPX: {format_rupiah(spx)}",
        f"  💰 Total: <b>{format_rupiah(total_income)}</b> ({len(income)} transaksi)",
        "",
        "📉 <b>Pengeluaran</b>",
    ]
    for category, total in sorted(by_category.items(), key=lambda item: -item[1]):
        lines.append(f"  {EXPENSE_EMOJI[category]} {EXPENSE_LABELS[category]}: {format_rupiah(total)}")
    lines.append(f"  💸 Total: <b>{format_rupiah(total_expense)}</b> ({len(expenses)} transaksi)")
    net = total_income - total_expense
    lines.append("")
    if net >= 0:
        lines.append(f"💵 Bersih: <b>{format_rupiah(net)}</b>")
    else:
        lines.append(f"⚠️ Defisit: <b>{format_rupiah(abs(net))}</b>")
    return [Reply(text="\n".join(lines))]


# ── payoff progress ──────────────────────────────────────────────


def payoff_progress(repo, today: date) -> list[Reply]:
    loans = [loan for loan in repo.get_loans() if loan.status != "cancelled"]
    if not loans:
        return [
            Reply(
                text=(
                    "📋 Belum ada pinjaman terdaftar.\n\n"
                    "Daftar pinjaman dulu dengan mengetik nama platform dan detailnya."
                )
            )
        ]

    projection = payoff_projection(loans, today)
    percent = projection.percent
    active = projection.active
    paid_off = projection.paid_off

    paid_line = f"✅ Sudah bayar: {format_rupiah(projection.paid_amount)}"
    if projection.late_fees_paid > 0:
        paid_line += f" (termasuk denda {format_rupiah(projection.late_fees_paid)})"
    lines = [
        "📊 <b>Progres Pelunasan Hutang</b>",
        DOUBLE_SEPARATOR,
        "",
        f"{progress_bar(percent, 20)} <b>{percent}%</b>",
        "",
        f"💰 Total hutang: {format_rupiah(projection.total_debt)}",
        paid_line,
        f"📉 Sisa hutang: <b>{format_rupiah(projection.remaining_amount)}</b>",
        f"🔢 Cicilan: {projection.paid_installments}/{projection.total_installments} lunas",
        f"🏦 Pinjaman: {len(paid_off)} lunas, {len(active)} aktif",
    ]
    if projection.payoff_date:
        lines.append("")
        lines.append(
            f"📅 <b>Perkiraan lunas:</b> {format_month_year(projection.payoff_date)}"
            f" (~{projection.months_left} bulan lagi)"
        )

    if active:
        lines += ["", DOUBLE_SEPARATOR, "🏦 <b>Pinjaman Aktif</b>"]
        for progress in sorted(active, key=lambda p: -p.percent):
            loan = progress.loan
            lines.append("")
            lines.append(f"<b>{loan.platform}</b>")
            lines.append(
                f"  {progress_bar(progress.percent)} {progress.percent}%"
                f" ({progress.paid_count}/{loan.total_installments})"
            )
            lines.append(f"  💰 Hutang: {format_rupiah(progress.total_debt)}")
            lines.append(f"  ✅ Dibayar: {format_rupiah(progress.paid_amount)}")
            remaining = f"  📉 Sisa: {format_rupiah(progress.remaining_amount)}"
            if progress.months_left:
                remaining += f" (~{progress.months_left} bln)"
            lines.append(remaining)
            if progress.late_fees_paid > 0:
                lines.append(f"  ⚠️ Denda terbayar: {format_rupiah(progress.late_fees_paid)}")
            if progress.next_due:
                until = -days_late(progress.next_due, today)
                if until < 0:
                    lines.append(f"  🔴 Cicilan berikut: TELAT {abs(until)} hari")
                elif until == 0:
                    lines.append("  ⚠️ Cicilan berikut: HARI INI")
                else:
                    lines.append(f"  📅 Cicilan berikut: {until} hari lagi")

    if paid_off:
        lines += ["", DOUBLE_SEPARATOR, "🎉 <b>Sudah Lunas!</b>", ""]
        for progress in paid_off:
            line = (
                f"  ✅ <b>{progress.loan.platform}</b>: {format_rupiah(progress.total_debt)}"
                f" ({progress.loan.total_installments}x cicilan)"
            )
            if progress.late_fees_paid > 0:
                line += f" + denda {format_rupiah(progress.late_fees_paid)}"
            lines.append(line)

    lines += ["", DOUBLE_SEPARATOR, motivation(percent)]
    return [Reply(text="\n".join(lines))]


def motivation(percent: int) -> str:
    if percent >= 100:
        return "🎊 <b>SELAMAT! Semua hutang lunas!</b> 🎊\nBebas dari hutang, pertahankan! 💪"
    if percent >= 75:
        return "💪 <b>Hampir lunas!</b> Tinggal sedikit lagi, semangat!"
    if percent >= 50:
        return "👏 <b>Sudah lewat setengah jalan!</b> Terus konsisten bayar."
    if percent >= 25:
        return "🚶 <b>Sudah seperempat jalan.</b> Langkah kecil tapi pasti!"
    if percent > 0:
        return "🌱 <b>Awal yang bagus!</b> Setiap cicilan mendekatkanmu ke bebas hutang."
    return (
        "⏳ Belum ada pembayaran. Yuk mulai bayar cicilan pertama!\n"
        'Ketik <i>"bayar cicilan [nama]"</i> untuk mulai.'
    )
