"""Message splitting for Telegram's 4096-unit message limit.

Telegram measures message length in UTF-16 code units, so a character
outside the BMP (most emoji) costs two units. Lengths here are counted the
same way, and cuts always land between code points so a surrogate pair is
never split.

Provides:
  - utf16_len(): text length in Telegram's units.
  - split_message(): splits long text into Telegram-safe chunks, preferring
    paragraph breaks, then line breaks, then a hard cut.
"""

TELEGRAM_MAX_MESSAGE_LENGTH = 4096


def utf16_len(text: str) -> int:
    """Length of text in UTF-16 code units."""
    return len(text) + sum(1 for ch in text if ord(ch) > 0xFFFF)


def _limit_index(text: str, max_units: int) -> int:
    """Largest code point index whose prefix fits in max_units."""
    units = 0
    for i, ch in enumerate(text):
        units += 2 if ord(ch) > 0xFFFF else 1
        if units > max_units:
            return i
    return len(text)


def split_message(
    text: str, max_length: int = TELEGRAM_MAX_MESSAGE_LENGTH
) -> list[str]:
    """Split a message into chunks that fit Telegram's length limit.

    Each cut is made at the last blank line inside the window, provided it
    sits in the back half of the window; otherwise at the last newline under
    the same rule; otherwise exactly at the limit. Newlines at the start of
    the remainder are dropped. Pure function of (text, max_length).
    """
    if max_length < 2:
        raise ValueError("max_length must be at least 2")
    if utf16_len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    while text:
        if utf16_len(text) <= max_length:
            chunks.append(text)
            break

        limit = _limit_index(text, max_length)
        half = max(limit // 2, 1)

        cut = text.rfind("\n\n", 0, limit)
        if cut < half:
            cut = text.rfind("\n", 0, limit)
        if cut < half:
            cut = limit

        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")

    return chunks
