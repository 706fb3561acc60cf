"""Asterisk Manager Interface wire codec.

AMI messages are blocks of ``Name: Value`` lines terminated by CRLF, with an
empty line closing the block.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping

LINE_TERMINATOR = b"\r\n"

FieldPairs = Mapping[str, str] | Iterable[tuple[str, str]]


class AmiMessage(dict[str, str]):
    """One decoded AMI message (field name -> value, insertion ordered)."""

    @property
    def event(self) -> str:
        return self.get("Event", "")

    @property
    def response(self) -> str:
        return self.get("Response", "")

    @property
    def action_id(self) -> str:
        return self.get("ActionID", "")

    @property
    def is_event(self) -> bool:
        return "Event" in self

    @property
    def is_response(self) -> bool:
        return "Response" in self and "Event" not in self

    def value(self, *names: str) -> str:
        """Return the first non-empty value among ``names`` (AMI spelling varies)."""

        for name in names:
            value = self.get(name)
            if value:
                return value
        return ""


def parse_line(line: str) -> tuple[str, str] | None:
    name, sep, value = line.partition(":")
    if not sep:
        return None
    return name.strip(), value.strip()


def read_message(readline: Callable[[], bytes]) -> AmiMessage | None:
    """Assemble the next message from a ``readline`` callable.

    Only an empty line closes a block. Lines without a colon (whitespace-only
    ones included) are skipped; empty lines before any field are ignored.
    Returns None when the stream ends; a partially assembled block at end of
    stream is discarded.
    """

    message = AmiMessage()
    while True:
        raw = readline()
        if not raw:
            return None
        line = raw.rstrip(b"\r\n").decode("utf-8", errors="replace")
        if not line:
            if message:
                return message
            continue
        pair = parse_line(line)
        if pair is None:
            continue
        name, value = pair
        message[name] = value


def iter_messages(data: bytes) -> Iterator[AmiMessage]:
    lines = iter(data.splitlines(keepends=True))
    while True:
        message = read_message(lambda: next(lines, b""))
        if message is None:
            return
        yield message


def decode_messages(data: bytes) -> list[AmiMessage]:
    """Decode every complete message contained in ``data``."""

    return list(iter_messages(data))


def has_line_break(text: str) -> bool:
    return "\r" in text or "\n" in text


def encode_action(fields: FieldPairs) -> bytes:
    """Encode one action block.

    Raises ValueError when a name or value contains CR/LF, or a name contains
    a colon; either would change the framing of the block.
    """

    pairs = fields.items() if isinstance(fields, Mapping) else fields
    out = bytearray()
    for name, value in pairs:
        value = str(value)
        if not name or ":" in name or has_line_break(name):
            raise ValueError(f"Invalid AMI field name: {name!r}")
        if has_line_break(value):
            raise ValueError(f"Line break in value of AMI field {name!r}")
        out += f"{name}: {value}".encode("utf-8") + LINE_TERMINATOR
    out += LINE_TERMINATOR
    return bytes(out)
