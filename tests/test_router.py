"""End-to-end message routing with a fake classifier and in-memory stores."""

import asyncio
from datetime import date, timedelta

from conftest import NOW, make_loan
from kasbot.bot import messages
from kasbot.models.schemas import (
    ConfirmExpenseState,
    IntentResult,
    LoanDraft,
    LoanFillMissingState,
    PayInstallmentParams,
    RecordExpenseParams,
    RecordIncomeParams,
)
from kasbot.services import loans, reports


def send(router, text, now=NOW, identity="42"):
    return asyncio.run(router.handle_text(identity, "Budi", text, now=now))


def press(router, data, now=NOW, identity="42"):
    return asyncio.run(router.handle_callback(identity, data, now=now))


def expense_result(amount=20_000, provider="primary"):
    return IntentResult(
        intent="record_expense",
        params=RecordExpenseParams(amount=amount, category="fuel"),
        confidence=0.9,
        provider=provider,
    )


def open_wizard(router, identity="42"):
    repo = router.registry.get(identity)
    loans.start_from_extracted_fields(repo, LoanDraft(original_amount=5_000_000), NOW)
    return repo


def test_start_registers_user(router):
    replies = send(router, "/start")

    assert replies[0].text == messages.WELCOME
    assert router.registry.get("42").get_user("42").name == "Budi"


def test_unknown_command(router):
    assert send(router, "/terbang")[0].text == messages.UNKNOWN_COMMAND


def test_command_with_bot_suffix(router):
    assert send(router, "/help@kasbot_bot")[0].text == messages.HELP


def test_wizard_refuses_other_feature_input(router, classifier):
    repo = open_wizard(router)
    before = repo.get_session(NOW)
    assert before.current_field == "platform"

    replies = send(router, "bensin 20rb")

    assert replies[0].text == messages.INTENT_LEAK
    assert repo.get_session(NOW) == before
    assert classifier.calls == []


def test_wizard_accepts_lender_name_with_pinjam(router):
    repo = open_wizard(router)

    send(router, "Shopee Pinjam")

    state = repo.get_session(NOW)
    assert isinstance(state, LoanFillMissingState)
    assert state.draft.platform == "Shopee Pinjam"
    assert state.current_field == "total_with_interest"


def test_command_bypasses_open_session(router):
    repo = open_wizard(router)

    replies = send(router, "/hutang")

    assert replies[0].text == reports.NO_LOANS
    assert isinstance(repo.get_session(NOW), LoanFillMissingState)


def test_cancel_keyword_clears_session(router):
    repo = open_wizard(router)

    assert send(router, "Batal")[0].text == messages.CANCELLED
    assert repo.get_session(NOW) is None
    assert send(router, "/batal")[0].text == messages.NOTHING_TO_CANCEL


def test_confirmation_card_wants_buttons(router, classifier):
    classifier.results.append(expense_result())
    send(router, "bensin 20rb")

    replies = send(router, "parkir 5rb")

    assert replies[0].text == messages.USE_BUTTONS
    assert len(classifier.calls) == 1


def test_keyword_query_skips_classifier(router, classifier):
    replies = send(router, "lihat hutang")

    assert replies[0].text == reports.NO_LOANS
    assert classifier.calls == []


def test_primary_call_counts_towards_usage(router, classifier):
    classifier.results.append(expense_result(provider="primary"))
    send(router, "bensin 20rb")

    repo = router.registry.get("42")
    assert repo.get_usage(NOW.date()) == 5
    assert classifier.calls[0] == ("bensin 20rb", NOW.date(), 0)


def test_fallback_call_does_not_count(router, classifier):
    classifier.results.append(expense_result(provider="fallback"))
    send(router, "bensin 20rb")

    assert router.registry.get("42").get_usage(NOW.date()) == 0


def test_expense_confirmed_by_button(router, classifier):
    classifier.results.append(expense_result(20_000))
    replies = send(router, "bensin 20rb")

    assert [b.callback_data for b in replies[0].buttons[0]] == ["confirm_expense_yes", "confirm_expense_no"]
    assert isinstance(router.registry.get("42").get_session(NOW), ConfirmExpenseState)

    replies = press(router, "confirm_expense_yes")

    assert replies[0].edit is True
    [record] = router.registry.get("42").get_expenses(NOW.date(), NOW.date() + timedelta(days=1))
    assert record.amount == 20_000
    assert record.category == "fuel"

    assert press(router, "confirm_expense_yes")[0].text == messages.SESSION_EXPIRED


def test_income_cancelled_by_button(router, classifier):
    classifier.results.append(
        IntentResult(
            intent="record_income",
            params=RecordIncomeParams(amount=150_000, type="food"),
            confidence=0.9,
            provider="primary",
        )
    )
    send(router, "dapet 150rb food")

    replies = press(router, "confirm_income_no")

    assert replies[0].edit is True
    assert router.registry.get("42").get_session(NOW) is None
    assert router.registry.get("42").get_income(date(2026, 1, 1), date(2027, 1, 1)) == []


def test_expired_confirmation_button(router, classifier):
    classifier.results.append(expense_result())
    send(router, "bensin 20rb")

    replies = press(router, "confirm_expense_yes", now=NOW + timedelta(minutes=6))

    assert replies[0].text == messages.SESSION_EXPIRED
    assert router.registry.get("42").get_expenses(date(2026, 1, 1), date(2027, 1, 1)) == []


def test_unknown_callback(router):
    assert press(router, "launch_rocket")[0].text == messages.UNKNOWN_ACTION


def test_missing_amount_is_reported(router, classifier):
    classifier.results.append(
        IntentResult(intent="record_expense", params=RecordExpenseParams(), confidence=0.6, provider="primary")
    )
    assert send(router, "beli bensin tadi")[0].text == messages.NO_EXPENSE_AMOUNT


def test_unknown_intent(router):
    assert send(router, "halo apa kabar")[0].text == messages.DIDNT_UNDERSTAND


def test_payment_flow_through_router(router, classifier):
    repo = router.registry.get("42")
    repo.add_loan(make_loan("Kredivo", late_fee_type="none", late_fee_value=0))
    classifier.results.append(
        IntentResult(
            intent="pay_installment",
            params=PayInstallmentParams(platform="kredivo"),
            confidence=0.95,
            provider="primary",
        )
    )

    send(router, "bayar cicilan kredivo")
    replies = press(router, "payment_confirm_yes")

    assert replies[0].edit is True
    assert repo.get_loans()[0].paid_installments == 1


def test_due_soon_alert_is_throttled(router):
    repo = router.registry.get("42")
    # Installments fall on the 12th; NOW is the 10th
    repo.add_loan(make_loan("Kredivo", start_date=date(2026, 2, 1), due_day=12))

    first = send(router, "/help")
    second = send(router, "/help", now=NOW + timedelta(hours=1))
    third = send(router, "/help", now=NOW + timedelta(hours=7))

    assert len(first) == 2
    assert "Pengingat Cicilan" in first[0].text
    assert first[1].text == messages.HELP
    assert len(second) == 1
    assert len(third) == 2


def test_photo_reply_depends_on_session(router):
    assert asyncio.run(router.handle_photo("42", "Budi", now=NOW))[0].text == messages.OCR_COMING_SOON
    open_wizard(router)
    assert asyncio.run(router.handle_photo("42", "Budi", now=NOW))[0].text == messages.USE_BUTTONS


def test_identities_do_not_share_sessions(router):
    open_wizard(router, identity="1")

    replies = send(router, "lihat hutang", identity="2")

    assert replies[0].text == reports.NO_LOANS
    assert router.registry.get("2").get_session(NOW) is None
    assert router.registry.get("1").get_session(NOW) is not None
