"""Check-in, reminder and escalation message builders."""

from __future__ import annotations

import random
import re
from typing import Any

from watch_spine.notify.protocol import CardMessage, TextMessage
from watch_spine.store.models import Subject

ACK_POSTBACK = "watch:ok"
ACK_LABEL = "I'm OK"

CHECKIN_PHRASES = (
    "Hello! Just checking in to see how you are doing today.",
    "Hi there! Hope your day is going well.",
    "Hey, it's your check-in buddy. How are you feeling?",
    "Good day! We are thinking of you and cheering you on.",
    "Hi! How has your day been so far?",
    "Hello again! Anything troubling you? We are always here to listen.",
    "Hi! If anything comes up, just let us know.",
    "Keep it up! Remember we are on your side.",
    "Thanks for another day of hard work. We hope you can rest well.",
    "Hello! Wishing you a wonderful day.",
)

_NON_DIAL = re.compile(r"[^0-9+]")


def pick_phrase(rng: random.Random | None = None) -> str:
    return (rng or random).choice(CHECKIN_PHRASES)


def mask_phone(raw: str | None) -> str:
    """Hide every digit except the last four.

    >>> mask_phone("090-1234-5678")
    '*******5678'
    """
    digits = _NON_DIAL.sub("", str(raw or ""))
    if not digits:
        return ""
    head, tail = digits[:-4], digits[-4:]
    return re.sub(r"[0-9]", "*", head) + tail


def tel_button(label: str, tel: str | None) -> dict[str, Any] | None:
    raw = str(tel or "").strip()
    if not raw:
        return None
    return {
        "type": "button",
        "style": "primary",
        "height": "sm",
        "action": {"type": "uri", "label": label, "uri": f"tel:{raw}"},
    }


def _ack_card(alt_text: str, title: str) -> CardMessage:
    return CardMessage(
        alt_text=alt_text,
        contents={
            "type": "bubble",
            "body": {
                "type": "box",
                "layout": "vertical",
                "contents": [
                    {"type": "text", "text": title, "weight": "bold", "size": "xl"},
                    {
                        "type": "text",
                        "text": "Tap the button if you are OK. A reply or a sticker works too!",
                        "wrap": True,
                        "margin": "md",
                    },
                ],
            },
            "footer": {
                "type": "box",
                "layout": "vertical",
                "contents": [
                    {
                        "type": "button",
                        "style": "primary",
                        "action": {
                            "type": "postback",
                            "label": ACK_LABEL,
                            "data": ACK_POSTBACK,
                            "displayText": ACK_LABEL,
                        },
                    }
                ],
            },
        },
    )


def checkin_messages(rng: random.Random | None = None) -> list[TextMessage | CardMessage]:
    phrase = pick_phrase(rng)
    return [
        TextMessage(f"{phrase} If you are OK, please tap \"{ACK_LABEL}\"."),
        _ack_card("Watch check-in", "Watch check-in"),
    ]


def reminder_messages(rng: random.Random | None = None) -> list[TextMessage | CardMessage]:
    phrase = pick_phrase(rng)
    return [
        TextMessage(
            f"{phrase} We have not heard back from yesterday's check-in yet. "
            "If you are OK, please tap the button."
        ),
        _ack_card("Watch reminder", "Watch reminder"),
    ]


def officer_alert_messages(subject: Subject, elapsed_hours: int) -> list[TextMessage | CardMessage]:
    """Lead text plus an alert card for the responsible party."""
    name = subject.display_name
    self_phone = (
        subject.profile.get("phone") or subject.emergency_contact.get("selfPhone") or ""
    )
    kin_name = subject.emergency_contact.get("contactName") or ""
    kin_phone = subject.emergency_contact.get("contactPhone") or ""
    kind = f"No check-in reply ({elapsed_hours}h)"

    body: list[dict[str, Any]] = [
        {"type": "text", "text": f"[{kind}]", "weight": "bold", "size": "lg", "color": "#CC0000"},
        {"type": "text", "text": f"Name: {name}", "wrap": True},
        {"type": "text", "text": f"User ID: {subject.id}", "size": "sm", "color": "#777777", "wrap": True},
    ]
    if self_phone:
        body.append(
            {"type": "text", "text": f"Phone: {mask_phone(self_phone)}", "size": "sm", "color": "#777777"}
        )
    if kin_phone:
        body.append(
            {
                "type": "text",
                "text": f"Emergency contact: {kin_name or '-'} ({mask_phone(kin_phone)})",
                "size": "sm",
                "color": "#777777",
                "wrap": True,
            }
        )

    buttons = [
        b
        for b in (tel_button("Call subject", self_phone), tel_button("Call contact", kin_phone))
        if b is not None
    ]
    contents: dict[str, Any] = {
        "type": "bubble",
        "body": {"type": "box", "layout": "vertical", "spacing": "sm", "contents": body},
    }
    if buttons:
        contents["footer"] = {"type": "box", "layout": "vertical", "spacing": "sm", "contents": buttons}

    return [
        TextMessage("[No check-in reply] Could someone available please follow up?"),
        CardMessage(alt_text=f"[{kind}] {name}", contents=contents),
    ]


__all__ = [
    "ACK_POSTBACK",
    "CHECKIN_PHRASES",
    "checkin_messages",
    "mask_phone",
    "officer_alert_messages",
    "pick_phrase",
    "reminder_messages",
    "tel_button",
]
