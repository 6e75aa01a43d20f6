"""
Pass 00 — Input Normalization

Normalizes the raw document before parsing:
- Decodes bytes as UTF-8 (BOM tolerated)
- Unicode normalization (NFC)
- Line endings to \\n

Line structure is preserved exactly: unit locations refer to
the lines of the original input.
"""

import unicodedata
from typing import Union

from checkdoc.core.context import CheckContext
from checkdoc.core.errors import DocumentParseError
from checkdoc.core.logging import get_pass_logger

PASS_NAME = "p00_normalize"
log = get_pass_logger(PASS_NAME)


def normalize_text(raw: Union[str, bytes]) -> str:
    """
    Normalize document text. Idempotent.

    Raises:
        DocumentParseError: If bytes are not UTF-8 or text contains NUL
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            line = raw[: e.start].count(b"\n") + 1
            raise DocumentParseError("document is not valid UTF-8", line=line) from e

    nul = raw.find("\x00")
    if nul != -1:
        raise DocumentParseError(
            "document contains NUL characters (binary input?)",
            line=raw.count("\n", 0, nul) + 1,
        )

    text = raw.lstrip("\ufeff")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return unicodedata.normalize("NFC", text)


def normalize(ctx: CheckContext) -> CheckContext:
    """Normalize ctx.raw_text into ctx.normalized_text."""
    raw = ctx.raw_text
    raw_len = len(raw)

    log.verbose("starting_normalization", input_chars=raw_len)

    text = normalize_text(raw)

    log.info(
        "normalized",
        input_chars=raw_len,
        output_chars=len(text),
        lines=text.count("\n") + 1 if text else 0,
    )

    ctx.normalized_text = text
    ctx.add_trace(
        pass_name=PASS_NAME,
        action="normalized_input",
        before=f"{raw_len} chars",
        after=f"{len(text)} chars",
    )

    return ctx
