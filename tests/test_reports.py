from datetime import date, datetime, timedelta

import pytest

from conftest import make_loan
from kasbot.bot.messages import due_icon, format_fee_policy, format_rupiah, progress_bar
from kasbot.models.schemas import ExpenseRecord, IncomeRecord
from kasbot.services import alerts, reports

TODAY = date(2026, 3, 10)


def test_format_rupiah():
    assert format_rupiah(3_500_000) == "Rp3.500.000"
    assert format_rupiah(0) == "Rp0"
    assert format_rupiah(-20_000) == "-Rp20.000"


def test_progress_bar_bounds():
    assert progress_bar(0) == "░" * 10
    assert progress_bar(100) == "█" * 10
    assert progress_bar(150) == "█" * 10
    assert len(progress_bar(33, 20)) == 20


@pytest.mark.parametrize("days, icon", [(-1, "🔴"), (0, "🟠"), (3, "🟠"), (7, "🟡"), (8, "🟢"), (None, "🏦")])
def test_due_icon(days, icon):
    assert due_icon(days) == icon


def test_fee_policy_text():
    assert format_fee_policy("percent_monthly", 5.0) == "5% per bulan"
    assert format_fee_policy("percent_daily", 0.25) == "0.25% per hari"
    assert format_fee_policy("fixed", 50_000) == "Rp50.000 (tetap)"
    assert format_fee_policy("none", 0) == "Tidak ada denda"


def test_dashboard_without_loans(repo):
    assert reports.loan_dashboard(repo, TODAY)[0].text == reports.NO_LOANS


def test_dashboard_lists_overdue_first(repo):
    repo.add_loan(make_loan("SeaBank", start_date=date(2026, 2, 20), due_day=25))
    repo.add_loan(make_loan("Kredivo", start_date=date(2026, 1, 1), due_day=5))

    text = reports.loan_dashboard(repo, TODAY)[0].text

    assert text.index("Kredivo") < text.index("SeaBank")
    assert "TELAT" in text
    assert "Total sisa hutang: <b>Rp3.000.000</b>" in text


def test_penalty_report_totals(repo):
    repo.add_loan(make_loan("Kredivo", start_date=date(2026, 1, 1), due_day=5))

    text = reports.penalty_report(repo, TODAY)[0].text

    # Installment 1 is 33 days late (two started months), installment 2 is 5 days late
    assert "Cicilan ke-1: telat <b>33 hari</b>" in text
    assert "Denda: <b>Rp50.000</b>" in text
    assert "Denda: <b>Rp25.000</b>" in text
    assert "Total bayar: <b>Rp1.075.000</b>" in text


def test_penalty_report_filtered_by_platform(repo):
    repo.add_loan(make_loan("Kredivo", start_date=date(2026, 1, 1), due_day=5))

    assert "Tidak menemukan" in reports.penalty_report(repo, TODAY, "akulaku")[0].text
    assert "Tidak ada cicilan telat" in reports.penalty_report(repo, date(2026, 1, 2), "kredivo")[0].text


def test_penalty_report_without_active_loans(repo):
    assert reports.penalty_report(repo, TODAY)[0].text == reports.NO_ACTIVE_LOANS


@pytest.mark.parametrize(
    "arg, expected",
    [
        ("3", (2026, 3)),
        ("03", (2026, 3)),
        ("2025-12", (2025, 12)),
        ("13", None),
        ("maret", None),
        ("2026-3-1", None),
        ("0-3", None),
        ("9999-12", None),
        ("10000-1", None),
    ],
)
def test_parse_month_arg(arg, expected):
    assert reports.parse_month_arg(arg, 2026) == expected


def test_monthly_summary_ratio(repo):
    repo.add_income(IncomeRecord(amount=2_000_000, type="food", effective_date=date(2026, 3, 2)))
    repo.add_expense(ExpenseRecord(amount=300_000, category="fuel", effective_date=date(2026, 3, 3)))
    repo.add_loan(make_loan("Kredivo", start_date=date(2026, 1, 1), due_day=5))

    text = reports.monthly_summary(repo, TODAY)[0].text

    assert "Ringkasan Maret 2026" in text
    assert "Pendapatan: Rp2.000.000" in text
    assert "Sisa: Rp1.700.000" in text
    assert "Cicilan = 25% dari pendapatan" in text
    assert "Rasio cicilan sehat" in text


def test_monthly_summary_bad_month(repo):
    assert reports.monthly_summary(repo, TODAY, "abc")[0].text == reports.MONTH_USAGE


def test_monthly_summary_rejects_years_out_of_range(repo):
    assert reports.monthly_summary(repo, TODAY, "0-3")[0].text == reports.MONTH_USAGE
    assert reports.monthly_summary(repo, TODAY, "9999-12")[0].text == reports.MONTH_USAGE


def test_monthly_summary_empty_month(repo):
    assert "Tidak ada data" in reports.monthly_summary(repo, TODAY, "7")[0].text


def test_week_report_covers_last_seven_days(repo):
    repo.add_income(IncomeRecord(amount=100_000, type="food", effective_date=TODAY - timedelta(days=6)))
    repo.add_income(IncomeRecord(amount=50_000, type="spx", effective_date=TODAY))
    repo.add_income(IncomeRecord(amount=999_000, type="food", effective_date=TODAY - timedelta(days=7)))
    repo.add_expense(ExpenseRecord(amount=200_000, category="meals", effective_date=TODAY))

    text = reports.period_report(repo, TODAY, "week")[0].text

    assert "7 Hari Terakhir" in text
    assert "Total: <b>Rp150.000</b> (2 transaksi)" in text
    assert "Defisit: <b>Rp50.000</b>" in text


def test_progress_report(repo):
    loan = repo.add_loan(make_loan("Kredivo", total_installments=4))
    repo.mark_installment_paid(loan.id, 1, 500_000, 0, date(2026, 2, 5))

    text = reports.payoff_progress(repo, TODAY)[0].text

    assert "<b>25%</b>" in text
    assert "Cicilan: 1/4 lunas" in text
    assert "~3 bulan lagi" in text
    assert reports.motivation(25) in text


def test_alert_window_and_urgency():
    loan = make_loan("Kredivo", start_date=date(2026, 1, 1), due_day=12)
    # Due 2026-02-12 (overdue), 2026-03-12 (in two days), 2026-04-12 (outside window)
    items = alerts.alertable_installments([loan], TODAY, window_days=3)

    assert [(i.installment_no, i.urgency) for i in items] == [(1, "overdue"), (2, "soon")]
    assert items[1].days_until == 2
    assert "TELAT BAYAR" in alerts.render_alert(items)


def test_check_alerts_stores_throttle_time(repo):
    repo.add_loan(make_loan("Kredivo", start_date=date(2026, 2, 1), due_day=10))
    now = datetime(2026, 3, 10, 8, 0)

    reply = alerts.check_alerts(repo, now, throttle=timedelta(hours=6), window_days=3)

    assert "JATUH TEMPO HARI INI" in reply.text
    assert repo.get_meta(alerts.LAST_ALERT_KEY) == now.isoformat()
    assert alerts.check_alerts(repo, now + timedelta(hours=5), timedelta(hours=6), 3) is None


def test_no_alert_without_due_installments(repo):
    repo.add_loan(make_loan("Kredivo", start_date=date(2026, 3, 1), due_day=28))
    assert alerts.check_alerts(repo, datetime(2026, 3, 10, 8, 0), timedelta(hours=6), 3) is None
    assert repo.get_meta(alerts.LAST_ALERT_KEY) is None
