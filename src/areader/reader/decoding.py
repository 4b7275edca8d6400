"""Decoding of raw document bytes into text.

Documents arrive in whatever encoding the user downloaded them in. Decoding
walks an ordered list of attempts and the first one that succeeds wins:

1. strict UTF-8 (a leading byte-order mark is dropped),
2. the configured legacy encoding with replacement characters,
3. UTF-8 with replacement characters, which cannot fail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

LOGGER = logging.getLogger(__name__)

DEFAULT_LEGACY_ENCODING = "gbk"


@dataclass(frozen=True, slots=True)
class DecodeAttempt:
    encoding: str
    errors: str = "strict"

    def decode(self, data: bytes) -> str | None:
        try:
            return data.decode(self.encoding, errors=self.errors)
        except (UnicodeDecodeError, LookupError) as exc:
            LOGGER.debug("Decoding as %s (%s) failed: %s", self.encoding, self.errors, exc)
            return None


@dataclass(frozen=True, slots=True)
class DecodedText:
    text: str
    encoding: str
    lossy: bool


FINAL_ATTEMPT = DecodeAttempt("utf-8-sig", "replace")


def build_decode_chain(legacy_encoding: str = DEFAULT_LEGACY_ENCODING) -> tuple[DecodeAttempt, ...]:
    return (
        DecodeAttempt("utf-8-sig", "strict"),
        DecodeAttempt(legacy_encoding, "replace"),
        FINAL_ATTEMPT,
    )


def decode_bytes(data: bytes, attempts: Sequence[DecodeAttempt] | None = None) -> DecodedText:
    """Decode ``data`` with the first attempt that succeeds. Never raises."""
    chain = tuple(attempts) if attempts is not None else build_decode_chain()
    for attempt in chain:
        text = attempt.decode(data)
        if text is not None:
            return DecodedText(text=text, encoding=attempt.encoding, lossy=attempt.errors != "strict")
    text = data.decode(FINAL_ATTEMPT.encoding, errors=FINAL_ATTEMPT.errors)
    return DecodedText(text=text, encoding=FINAL_ATTEMPT.encoding, lossy=True)


def read_document(path: Path, legacy_encoding: str = DEFAULT_LEGACY_ENCODING) -> DecodedText:
    """Read and decode a document from disk.

    Only I/O errors propagate; decoding itself always produces text.
    """
    data = Path(path).read_bytes()
    decoded = decode_bytes(data, build_decode_chain(legacy_encoding))
    LOGGER.debug("Decoded %s as %s (%d bytes)", path, decoded.encoding, len(data))
    return decoded
