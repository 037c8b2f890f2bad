"""Markdown → Telegram MarkdownV2 conversion layer.

Eve answers in standard Markdown; Telegram only renders its own MarkdownV2
dialect with aggressive escaping. `telegramify_markdown` does the
translation. Callers always keep the original text around so they can
resend it as plain text when Telegram rejects the converted version.

Key function: convert_markdown(text) → MarkdownV2 string.
"""

import telegramify_markdown


def convert_markdown(text: str) -> str:
    """Convert standard Markdown to Telegram MarkdownV2 format.

    Whitespace is kept as-is so code blocks and indented lists survive.
    """
    return telegramify_markdown.markdownify(text, normalize_whitespace=False)
