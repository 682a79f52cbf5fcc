"""Reader for Xcode ``project.pbxproj`` files (OpenStep ASCII property lists).

Only the subset Xcode writes is supported: dictionaries, arrays, quoted and
bare strings, and ``/* */`` or ``//`` comments. Everything comes back as
``dict``/``list``/``str``.
"""

from __future__ import annotations

from typing import Any

_BARE_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_$+/:.-"
)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\", "'": "'"}


class PbxprojError(ValueError):
    """The file is not a well-formed OpenStep property list."""


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def error(self, message: str) -> PbxprojError:
        line = self.text.count("\n", 0, self.pos) + 1
        return PbxprojError(f"{message} at line {line}")

    def skip(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch.isspace():
                self.pos += 1
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end + 1
            elif text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    raise self.error("Unterminated comment")
                self.pos = end + 2
            else:
                break

    def expect(self, ch: str) -> None:
        self.skip()
        if self.pos >= len(self.text) or self.text[self.pos] != ch:
            raise self.error(f"Expected '{ch}'")
        self.pos += 1

    def peek(self) -> str:
        self.skip()
        if self.pos >= len(self.text):
            raise self.error("Unexpected end of input")
        return self.text[self.pos]

    def value(self) -> Any:
        ch = self.peek()
        if ch == "{":
            return self.dictionary()
        if ch == "(":
            return self.array()
        return self.string()

    def dictionary(self) -> dict[str, Any]:
        self.expect("{")
        result: dict[str, Any] = {}
        while self.peek() != "}":
            key = self.string()
            self.expect("=")
            result[key] = self.value()
            self.expect(";")
        self.pos += 1
        return result

    def array(self) -> list[Any]:
        self.expect("(")
        result: list[Any] = []
        while self.peek() != ")":
            result.append(self.value())
            if self.peek() == ",":
                self.pos += 1
        self.pos += 1
        return result

    def string(self) -> str:
        ch = self.peek()
        if ch == '"':
            return self.quoted()
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in _BARE_CHARS:
            self.pos += 1
        if start == self.pos:
            raise self.error(f"Unexpected character {ch!r}")
        return self.text[start:self.pos]

    def quoted(self) -> str:
        self.pos += 1
        out = []
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == '"':
                self.pos += 1
                return "".join(out)
            if ch == "\\" and self.pos + 1 < len(text):
                nxt = text[self.pos + 1]
                out.append(_ESCAPES.get(nxt, nxt))
                self.pos += 2
                continue
            out.append(ch)
            self.pos += 1
        raise self.error("Unterminated string")


def parse_pbxproj(text: str) -> dict[str, Any]:
    """Parse the contents of a project.pbxproj file.

    Raises:
        PbxprojError: If the text is malformed.
    """
    parser = _Parser(text)
    result = parser.value()
    if not isinstance(result, dict):
        raise PbxprojError("Top-level value is not a dictionary")
    return result


def objects_of(graph: dict[str, Any], isa: str) -> dict[str, dict[str, Any]]:
    """All objects of one ``isa`` type, keyed by object id."""
    objects = graph.get("objects")
    if not isinstance(objects, dict):
        return {}
    return {
        oid: obj
        for oid, obj in objects.items()
        if isinstance(obj, dict) and obj.get("isa") == isa
    }
