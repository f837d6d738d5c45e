from dataclasses import dataclass
from datetime import date, datetime, timedelta

from loguru import logger

from kasbot.bot.messages import format_rupiah
from kasbot.models.schemas import Reply
from kasbot.services.schedule import days_late

LAST_ALERT_KEY = "last_alert_at"


@dataclass
class AlertItem:
    platform: str
    installment_no: int
    total_installments: int
    amount: float
    days_until: int

    @property
    def urgency(self) -> str:
        if self.days_until < 0:
            return "overdue"
        if self.days_until == 0:
            return "today"
        return "soon"


def alertable_installments(loans, today: date, window_days: int = 3) -> list[AlertItem]:
    """Open installments of active loans that are overdue or due within the window."""
    horizon = today + timedelta(days=window_days)
    items = []
    for loan in loans:
        if loan.status != "active":
            continue
        for inst in loan.installments:
            if inst.is_open and inst.due_date <= horizon:
                items.append(
                    AlertItem(
                        platform=loan.platform,
                        installment_no=inst.installment_no,
                        total_installments=loan.total_installments,
                        amount=inst.amount,
                        days_until=-days_late(inst.due_date, today),
                    )
                )
    items.sort(key=lambda item: item.days_until)
    return items


def render_alert(items: list[AlertItem]) -> str:
    lines = ["⏰ <b>Pengingat Cicilan</b>"]
    overdue = [a for a in items if a.urgency == "overdue"]
    today = [a for a in items if a.urgency == "today"]
    soon = [a for a in items if a.urgency == "soon"]

    if overdue:
        lines += ["", "🔴 <b>TELAT BAYAR:</b>"]
        for a in overdue:
            lines.append(
                f"• <b>{a.platform}</b> ke-{a.installment_no}/{a.total_installments}: "
                f"{format_rupiah(a.amount)} (telat {abs(a.days_until)} hari)"
            )
    if today:
        lines += ["", "⚠️ <b>JATUH TEMPO HARI INI:</b>"]
        for a in today:
            lines.append(
                f"• <b>{a.platform}</b> ke-{a.installment_no}/{a.total_installments}: {format_rupiah(a.amount)}"
            )
    if soon:
        lines += ["", "🟡 <b>SEGERA JATUH TEMPO:</b>"]
        for a in soon:
            lines.append(
                f"• <b>{a.platform}</b> ke-{a.installment_no}/{a.total_installments}: "
                f"{format_rupiah(a.amount)} ({a.days_until} hari lagi)"
            )
    lines += ["", '💡 Ketik <i>"bayar cicilan [nama]"</i> untuk mencatat pembayaran.']
    return "\n".join(lines)


def check_alerts(repo, now: datetime, throttle: timedelta, window_days: int) -> Reply | None:
    """Return a reminder banner if one is due, updating the throttle timestamp."""
    last = repo.get_meta(LAST_ALERT_KEY)
    if last is not None:
        try:
            if now - datetime.fromisoformat(last) < throttle:
                return None
        except ValueError:
            logger.warning("Ignoring unreadable {} value {!r}", LAST_ALERT_KEY, last)

    items = alertable_installments(repo.get_loans(status="active"), now.date(), window_days)
    if not items:
        return None
    repo.set_meta(LAST_ALERT_KEY, now.isoformat())
    logger.info("Sending due-date alert for {} installment(s)", len(items))
    return Reply(text=render_alert(items))
