"""Outbound text for reminders and scheduled payments.

Plain reminder descriptions ("llamar a mamá") get wrapped in one of several
phrasings picked at random so recurring reminders do not read the same every
time. Text that already looks like a finished message (machine-generated
summaries, email-derived reminders) is sent as-is.
"""

from __future__ import annotations

import random
import re
from decimal import Decimal
from typing import Callable, List

Template = Callable[[str], str]


def _cap(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


TEMPLATES: List[Template] = [
    lambda d: f"⏰ Ey! No te olvidés: *{d}*",
    lambda d: f"🔔 Che, acordate que tenés que: *{d}*",
    lambda d: f"📌 *Recordatorio:*\n{d}",
    lambda d: f"🎯 Es la hora de: *{d}*",
    lambda d: f"💬 Psst! No se te pase: *{d}*",
    lambda d: f"⌚ *{_cap(d)}*, ¡es ahora!",
    lambda d: f"🚀 Anotaste esto y llegó el momento:\n*{d}*",
    lambda d: f"💡 Tenés pendiente: *{d}*",
    lambda d: f"🎉 Opa! Esto no se puede olvidar: *{d}*",
    lambda d: f"⚡ Pa! Acordate:\n*{d}*",
    lambda d: f"📢 *{_cap(d)}* ← lo anotaste vos 😏",
    lambda d: f"🔮 Tu vos del pasado te manda saludos:\n*{d}*",
    lambda d: f"👋 Ey, yo de antes: *no te olvidés de {d}*",
    lambda d: f"🗓️ Agendaste esto y ya llegó:\n*{d}*",
    lambda d: f"💭 Sí, sí... *{d}*. Ese recordatorio que pusiste.",
    lambda d: f"🔔 Momento! Tenías algo pendiente:\n*{d}*",
    lambda d: f"😤 Dale, que podés: *{d}*",
    lambda d: f"🪄 ¡Pum! Te recuerdo: *{d}*",
]

FULL_MESSAGE_EMOJIS = (
    "⏰", "🔔", "📌", "🎯", "💬", "🚀", "💡", "🎉", "🗓", "⚡",
    "📢", "🔮", "👋", "💭", "😤", "🪄",
)
_FULL_MESSAGE_OPENERS = re.compile(r"^(Te |Ey!|Che!|Opa!|Hola!|Pa!|Psst|Acordate)", re.IGNORECASE)


def is_full_message(text: str) -> bool:
    return text.startswith(FULL_MESSAGE_EMOJIS) or bool(_FULL_MESSAGE_OPENERS.match(text))


def build_reminder_notification(text: str) -> str:
    if is_full_message(text):
        return text
    return random.choice(TEMPLATES)(text)


# ──────────────────────────────
# Scheduled payments
# ──────────────────────────────

_CBU_RE = re.compile(r"^\d{22}$")
MP_TRANSFER_URL = "https://www.mercadopago.com.ar/money-transfer/send"


def format_amount(amount) -> str:
    """es-AR style: thousands with dots, two decimals after a comma."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    return f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")


def payment_link(recipient: str, amount) -> str:
    param = f"cbu={recipient}" if _CBU_RE.match(recipient) else f"alias={recipient}"
    plain = format(Decimal(str(amount)).normalize(), "f")
    return f"{MP_TRANSFER_URL}?{param}&amount={plain}"


def build_payment_notification(payment) -> str:
    lines = [
        "💸 *Recordatorio de pago programado*",
        "",
        f"💰 *Monto:* ${format_amount(payment.amount)}",
        f"👤 *Destinatario:* {payment.recipient}",
    ]
    if payment.description:
        lines.append(f"📝 *Descripción:* {payment.description}")
    if payment.total_payments:
        lines.append(f"📊 Pago {payment.paid_count + 1} de {payment.total_payments}")
    lines += [
        "",
        "🔗 *Pagá con Mercado Pago:*",
        payment_link(payment.recipient, payment.amount),
        "",
        '_Para cancelar: "cancela el pago recurrente 1"_',
    ]
    return "\n".join(lines)
