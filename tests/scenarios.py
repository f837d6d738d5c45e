"""
Classifier scenario script.

Calls IntentClassifier.classify() against the configured backends with
real-world driver messages and prints the decoded intents in a readable
chat-style format. Needs OPENROUTER_API_KEY and/or DEEPSEEK_API_KEY.

Usage:
    python -m tests.scenarios
"""

import asyncio
import sys
from datetime import date
from pathlib import Path

from kasbot.config import get_settings
from kasbot.llm.parser import build_classifier

SEPARATOR = "=" * 60
LOG_FILE = Path(__file__).parent / "results.log"

SCENARIOS = [
    {"name": "Income with slang amount", "message": "alhamdulillah dapet 150rb dari food hari ini"},
    {"name": "SPX income yesterday", "message": "kemarin spx 85rb"},
    {"name": "Fuel expense", "message": "bensin 20rb"},
    {"name": "Expense without amount", "message": "tadi beli rokok"},
    {
        "name": "Full loan in one message",
        "message": "hutang shopee pinjam 3.5jt total 4.9jt 10x 435rb tanggal 13 denda 5% per bulan",
    },
    {"name": "Partial loan", "message": "daftar pinjaman kredivo 5 juta"},
    {"name": "Pay installment", "message": "udah bayar cicilan seabank bulan ini"},
    {"name": "Weekly report", "message": "gimana pemasukan minggu ini?"},
    {"name": "Target", "message": "target harian 300rb"},
    # ── Adversarial ─────────────────────────────────────────────
    {"name": "Lender name that looks like a verb", "message": "pinjam di Shopee Pinjam 2jt"},
    {"name": "Chit-chat", "message": "halo bot, lagi hujan nih"},
    {"name": "Two records in one message", "message": "dapet 200rb food terus bensin 25rb"},
]


async def run() -> None:
    classifier = build_classifier(get_settings())
    today = date.today()
    out = [SEPARATOR]
    for scenario in SCENARIOS:
        result = await classifier.classify(scenario["message"], today)
        out.append(f"## {scenario['name']}")
        out.append(f"USER: {scenario['message']}")
        out.append(f"BOT ({result.provider}, {result.confidence:.2f}): {result.intent}")
        out.append(result.params.model_dump_json(indent=2, exclude_none=True))
        out.append(SEPARATOR)

    text = "\n".join(out)
    print(text)
    LOG_FILE.write_text(text + "\n", encoding="utf-8")
    print(f"\nSaved to {LOG_FILE}", file=sys.stderr)


if __name__ == "__main__":
    asyncio.run(run())
