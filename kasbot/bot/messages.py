"""Indonesian reply texts and small formatting helpers (HTML parse mode)."""

from datetime import date

MONTH_NAMES = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]
MONTH_SHORT = ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"]
DAY_NAMES = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]

SEPARATOR = "─" * 24
DOUBLE_SEPARATOR = "═" * 28

INCOME_LABELS = {"food": "🍔 Food Delivery", "spx": "📦 SPX Express"}
EXPENSE_LABELS = {
    "fuel": "Bensin",
    "parking": "Parkir",
    "meals": "Makan & Minum",
    "cigarettes": "Rokok",
    "data_plan": "Pulsa/Data",
    "vehicle_service": "Servis Motor",
    "household": "Kebutuhan Rumah",
    "electricity": "Listrik & Air",
    "emergency": "Darurat",
    "other": "Lainnya",
}
EXPENSE_EMOJI = {
    "fuel": "⛽",
    "parking": "🅿️",
    "meals": "🍜",
    "cigarettes": "🚬",
    "data_plan": "📱",
    "vehicle_service": "🔧",
    "household": "🏠",
    "electricity": "💡",
    "emergency": "🚨",
    "other": "📋",
}
LATE_FEE_LABELS = {
    "percent_monthly": "📊 Persen per bulan",
    "percent_daily": "📅 Persen per hari",
    "fixed": "💵 Nominal tetap",
    "none": "✅ Tidak ada denda",
}

WELCOME = """\
🏍️💰 <b>Selamat datang di Kasbot!</b>

Bot ini membantu kamu mencatat keuangan sebagai driver ojol.

💬 <b>Cara Pakai:</b>
Cukup kirim pesan biasa, bot mengerti bahasa sehari-hari:
• <i>"Dapet 150rb food"</i>: catat pendapatan
• <i>"Bensin 20rb"</i>: catat pengeluaran
• <i>"Kredivo 5jt 12 bulan 500rb/bln"</i>: daftar pinjaman
• <i>"Bayar cicilan Kredivo"</i>: catat pembayaran
• <i>"Hutang gue berapa"</i>: cek pinjaman
• <i>"Ada denda ga"</i>: hitung denda
• <i>"Progres hutang"</i>: progres pelunasan

Ketik /help untuk panduan lengkap."""

HELP = """\
📖 <b>Panduan Kasbot</b>

Kirim pesan biasa, bot mengerti bahasa sehari-hari kamu.

<b>📝 Catat Pendapatan:</b>
• <i>"Dapet 150rb food"</i>
• <i>"SPX hari ini 80rb"</i>

<b>💸 Catat Pengeluaran:</b>
• <i>"Bensin 20rb"</i>
• <i>"Parkir 5000"</i>
• <i>"Servis motor 150rb"</i>

<b>🏦 Pinjaman / Hutang:</b>
• <i>"Kredivo 5jt 12 bulan 500rb/bln"</i>: daftar baru
• <i>"Bayar cicilan Kredivo"</i>: catat pembayaran
• <i>"Hutang gue berapa"</i>: cek semua pinjaman

<b>📊 Laporan:</b>
• <i>"Laporan hari ini"</i>
• <i>"Rekap minggu ini"</i>

<b>⌨️ Shortcut Perintah:</b>
/hutang: Dashboard pinjaman
/denda: Hitung denda telat
/ringkasan: Ringkasan bulanan
/progres: Progres pelunasan
/batal: Batalkan proses
/help: Panduan ini

<b>💡 Tips:</b>
Ketik "batal" kapan saja untuk membatalkan proses."""

CANCELLED = "✅ Proses dibatalkan. Silakan mulai pesan baru."
NOTHING_TO_CANCEL = "ℹ️ Tidak ada proses yang sedang berjalan."
UNKNOWN_COMMAND = "❓ Perintah tidak dikenal. Ketik /help untuk panduan."
USE_BUTTONS = "⏳ Gunakan tombol di atas untuk konfirmasi, atau ketik /batal untuk membatalkan."
SESSION_EXPIRED = "⌛ Sesi sudah berakhir. Silakan kirim pesan baru."
UNKNOWN_ACTION = "❓ Aksi tidak dikenal."
OCR_COMING_SOON = "📷 Fitur baca foto (OCR) akan hadir di update berikutnya!"
TARGET_COMING_SOON = "🎯 Fitur target pendapatan akan hadir segera!"
GENERIC_ERROR = "⚠️ Maaf, ada gangguan. Coba lagi sebentar lagi ya."

INTENT_LEAK = (
    "⚠️ Sepertinya kamu mau melakukan hal lain, tapi pendaftaran pinjaman masih berjalan.\n\n"
    "Jawab pertanyaan di atas, atau ketik /batal dulu untuk membatalkan."
)

DIDNT_UNDERSTAND = """\
🤔 Maaf, aku belum mengerti pesanmu.

Coba kirim seperti:
• <i>"Dapet 150rb food"</i>: catat pendapatan
• <i>"Bensin 20rb"</i>: catat pengeluaran
• <i>"Lihat hutang"</i>: cek pinjaman

Ketik /help untuk panduan lengkap."""

NO_INCOME_AMOUNT = '❌ Tidak bisa mendeteksi jumlah pendapatan. Coba lagi, contoh: "dapet 150rb food"'
NO_EXPENSE_AMOUNT = '❌ Tidak bisa mendeteksi jumlah pengeluaran. Coba lagi, contoh: "bensin 20rb"'


def format_rupiah(amount: float) -> str:
    """``3500000`` -> ``Rp3.500.000``."""
    value = round(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}Rp{abs(value):,}".replace(",", ".")


def format_number(value: float) -> str:
    """Drop a trailing ``.0`` so ``5.0`` shows as ``5`` and ``0.25`` stays."""
    if value == int(value):
        return str(int(value))
    return f"{value:g}"


def format_date_long(d: date) -> str:
    return f"{DAY_NAMES[d.weekday()]}, {d.day} {MONTH_NAMES[d.month - 1]} {d.year}"


def format_date_short(d: date) -> str:
    return f"{d.day} {MONTH_SHORT[d.month - 1]} {d.year}"


def format_month_year(d: date) -> str:
    return f"{MONTH_NAMES[d.month - 1]} {d.year}"


def progress_bar(percent: float, width: int = 10) -> str:
    filled = max(0, min(width, round(percent / 100 * width)))
    return "█" * filled + "░" * (width - filled)


def due_icon(days_until: int | None) -> str:
    if days_until is None:
        return "🏦"
    if days_until < 0:
        return "🔴"
    if days_until <= 3:
        return "🟠"
    if days_until <= 7:
        return "🟡"
    return "🟢"


def due_countdown(days_until: int) -> str:
    if days_until < 0:
        return f"<b>TELAT {abs(days_until)} hari!</b>"
    if days_until == 0:
        return "<b>HARI INI!</b>"
    if days_until <= 3:
        return f"<b>{days_until} hari lagi!</b>"
    return f"{days_until} hari lagi"


def format_fee_policy(fee_type: str | None, value: float | None) -> str:
    if fee_type == "percent_monthly":
        return f"{format_number(value or 0)}% per bulan"
    if fee_type == "percent_daily":
        return f"{format_number(value or 0)}% per hari"
    if fee_type == "fixed":
        return f"{format_rupiah(value or 0)} (tetap)"
    if fee_type == "none":
        return "Tidak ada denda"
    return "-"
