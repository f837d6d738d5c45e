"""Keyword vocabulary shared by the wizard intent-leak guard and the keyword pre-router.

Keeping both behaviours on one table means a word that routes a query
directly is also a word that stops the loan wizard from swallowing it.
"""

import re

from kasbot.models.schemas import EmptyParams, IntentResult, ViewReportParams

# Words that belong to a feature other than "answer the current wizard step".
# "pinjam" is left out on purpose: it is part of lender names such as "Shopee Pinjam".
FEATURE_KEYWORDS: dict[str, frozenset[str]] = {
    "loan": frozenset({"hutang", "utang", "pinjaman", "pinjol", "tenor"}),
    "payment": frozenset({"bayar", "lunas", "cicilan"}),
    "income": frozenset({"dapet", "dapat", "pendapatan", "income", "orderan", "penghasilan", "gaji"}),
    "expense": frozenset(
        {
            "bensin", "bbm", "parkir", "makan", "rokok", "pulsa", "kuota",
            "servis", "bengkel", "listrik", "belanja", "pengeluaran",
        }
    ),
    "report": frozenset({"laporan", "rekap", "ringkasan", "report", "denda", "progres", "progress"}),
}

# Any of these means the user wants to create something, so a query shortcut must not fire.
REGISTER_WORDS = frozenset({"daftar", "tambah", "tambahin", "catat", "baru", "register"})

LOAN_VIEW_WORDS = frozenset({"hutang", "utang", "pinjaman", "pinjol"})
HELP_PHRASES = frozenset({"help", "bantuan", "cara pakai", "panduan", "bisa ngapain aja"})

CANCEL_KEYWORD = "batal"

_WORD = re.compile(r"[a-z]+")


def words(text: str) -> list[str]:
    return _WORD.findall(text.lower())


def feature_hits(text: str) -> dict[str, set[str]]:
    """Feature name -> keywords of that feature found as whole words in ``text``."""
    found = set(words(text))
    hits = {}
    for feature, keywords in FEATURE_KEYWORDS.items():
        matched = found & keywords
        if matched:
            hits[feature] = matched
    return hits


def looks_like_other_feature(text: str) -> bool:
    """True for multi-word input that mentions another feature's vocabulary."""
    if len(text.split()) < 2:
        return False
    return bool(feature_hits(text))


def pre_route(text: str) -> IntentResult | None:
    """Map obvious query phrasings straight to an intent without the classifier.

    Returns ``None`` when the text carries digits or registration words,
    since those usually describe data to record rather than a question.
    """
    lowered = " ".join(text.lower().split())
    if not lowered:
        return None
    if lowered in HELP_PHRASES:
        return _direct("help")

    tokens = set(words(lowered))
    if any(ch.isdigit() for ch in lowered) or tokens & REGISTER_WORDS:
        return None

    if "denda" in tokens:
        return _direct("view_penalty")
    if tokens & {"progres", "progress"} or "kapan lunas" in lowered:
        return _direct("view_progress")
    if tokens & {"laporan", "rekap", "ringkasan", "report"}:
        if "bulan" in tokens or "ringkasan" in tokens:
            period = "month"
        elif "minggu" in tokens:
            period = "week"
        else:
            period = "today"
        return IntentResult(intent="view_report", params=ViewReportParams(period=period), confidence=1.0)
    if tokens & LOAN_VIEW_WORDS and not tokens & {"bayar", "lunas"}:
        return _direct("view_loans")
    return None


def _direct(intent: str) -> IntentResult:
    return IntentResult(intent=intent, params=EmptyParams(intent=intent), confidence=1.0)
