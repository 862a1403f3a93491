"""Outbound text helpers shared by the bridge and the commands."""

import re

# WhatsApp accepts much longer texts, but long replies read better in chunks
MAX_MESSAGE_LENGTH = 4096


def format_number(value) -> str:
    """Thousands-separated integer, or the value as-is if it is not numeric."""
    try:
        return f"{int(value):,}"
    except (TypeError, ValueError):
        return str(value)


def clean_text(text: str) -> str:
    """Collapse runs of blank lines and trim."""
    return re.sub(r"\n{3,}", "\n\n", text or "").strip()


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split a long message into chunks respecting platform length limits.

    Tries to split at newlines first, then spaces, then hard-cuts.
    """
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        split_at = remaining.rfind("\n", 0, max_length)
        if split_at <= 0:
            split_at = remaining.rfind(" ", 0, max_length)
        if split_at <= 0:
            split_at = max_length

        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:].lstrip()

    return chunks
