"""Rewriting of paths and embedded path text between canonical and local forms.

A mapping is an ordered list of ``(canonical_prefix, local_prefix)`` pairs.
Path rewrites stop at the first pair that matches and replace only the first
occurrence; content rewrites apply every pair, in order, to every occurrence.

This is a textual substitution, not a parser. Round trips are only exact when
the prefixes do not overlap and do not appear inside unrelated text. With
``anchored=True`` a prefix whose edge is a word character only matches where
it is not glued to further word characters, so ``/work/app`` does not rewrite
``/work/app2``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

_WORD_CHAR = re.compile(r"[A-Za-z0-9_]")


def _pattern(prefix: str) -> re.Pattern[str]:
    body = re.escape(prefix)
    if _WORD_CHAR.match(prefix[0]):
        body = r"(?<![A-Za-z0-9_])" + body
    if _WORD_CHAR.match(prefix[-1]):
        body = body + r"(?![A-Za-z0-9_])"
    return re.compile(body)


def _bytes_pattern(prefix: str) -> re.Pattern[bytes]:
    return re.compile(_pattern(prefix).pattern.encode("utf-8"))


class PathMapper:
    """Bidirectional prefix rewriting between canonical and local namespaces."""

    def __init__(
        self,
        mappings: Mapping[str, str] | Iterable[tuple[str, str]] = (),
        *,
        anchored: bool = False,
    ) -> None:
        pairs = list(mappings.items()) if isinstance(mappings, Mapping) else list(mappings)
        for canonical, local in pairs:
            if not canonical or not local:
                msg = f"Path mapping prefixes must be non-empty: {canonical!r} -> {local!r}"
                raise ValueError(msg)
        self._pairs: list[tuple[str, str]] = pairs
        self.anchored = anchored

    @property
    def pairs(self) -> list[tuple[str, str]]:
        return list(self._pairs)

    def __bool__(self) -> bool:
        return bool(self._pairs)

    def _replace_first(self, path: str, old: str, new: str) -> str | None:
        if self.anchored:
            rewritten, count = _pattern(old).subn(lambda _m: new, path, count=1)
            return rewritten if count else None
        if old in path:
            return path.replace(old, new, 1)
        return None

    def _replace_all(self, data: bytes, old: str, new: str) -> bytes:
        replacement = new.encode("utf-8")
        if self.anchored:
            return _bytes_pattern(old).sub(lambda _m: replacement, data)
        return data.replace(old.encode("utf-8"), replacement)

    def to_local(self, path: str) -> str:
        """Rewrite a canonical path into this machine's namespace."""
        for canonical, local in self._pairs:
            rewritten = self._replace_first(path, canonical, local)
            if rewritten is not None:
                return rewritten
        return path

    def to_canonical(self, path: str) -> str:
        """Rewrite a local path into the relay's canonical namespace."""
        for canonical, local in self._pairs:
            rewritten = self._replace_first(path, local, canonical)
            if rewritten is not None:
                return rewritten
        return path

    def content_to_local(self, data: bytes) -> bytes:
        """Rewrite every canonical prefix embedded in file content."""
        for canonical, local in self._pairs:
            data = self._replace_all(data, canonical, local)
        return data

    def content_to_canonical(self, data: bytes) -> bytes:
        """Rewrite every local prefix embedded in file content."""
        for canonical, local in self._pairs:
            data = self._replace_all(data, local, canonical)
        return data
