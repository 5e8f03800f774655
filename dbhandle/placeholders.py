"""Placeholder translation from ``:name`` / ``?`` markers to psycopg2 pyformat.

Callers write queries with named (``WHERE id = :id``) or positional
(``WHERE id = ?``) markers. psycopg2 only understands ``%(id)s`` and ``%s``,
and treats every other ``%`` as a format character once parameters are
passed, so literal percent signs are doubled during translation.
"""

import re
from collections.abc import Mapping
from typing import Optional

from .errors import BindError

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_DOLLAR_TAG_RE = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")


def strip_sigil(key: str) -> str:
    return key[1:] if key.startswith(":") else key


def translate(query: str, params=None) -> tuple[str, Optional[object]]:
    """Return (query, params) ready for cursor.execute().

    With no params the query is returned untouched so that literal ``%``
    characters reach the server as written.
    """
    if params is None:
        return query, None

    if isinstance(params, Mapping):
        values = {strip_sigil(str(k)): v for k, v in params.items()}
        sql, names, _ = _rewrite(query, named=True)
        missing = [n for n in names if n not in values]
        if missing:
            raise BindError(f"no value bound for placeholder :{missing[0]}")
        return sql, values

    if isinstance(params, (list, tuple)):
        sql, _, count = _rewrite(query, named=False)
        if count != len(params):
            raise BindError(
                f"query has {count} positional placeholders but "
                f"{len(params)} values were bound"
            )
        return sql, tuple(params)

    raise BindError(f"params must be a mapping or sequence, not {type(params).__name__}")


def _skip_quoted(query: str, start: int, backslash_escapes: bool = False) -> int:
    """Index just past the quoted literal/identifier opening at `start`.

    With `backslash_escapes` (E'...' strings) a backslash escapes the next
    character, including the quote.
    """
    quote = query[start]
    i = start + 1
    n = len(query)
    while i < n:
        ch = query[i]
        if backslash_escapes and ch == "\\":
            i += 2
        elif ch == quote:
            # doubled quote is an escaped quote
            if i + 1 < n and query[i + 1] == quote:
                i += 2
            else:
                return i + 1
        else:
            i += 1
    return n


def _skip_dollar_quoted(query: str, start: int, tag: str) -> int:
    """Index just past the $tag$...$tag$ body whose opening tag ends at `start`."""
    end = query.find(tag, start)
    return len(query) if end == -1 else end + len(tag)


def _follows_word(query: str, i: int) -> bool:
    return i > 0 and (query[i - 1].isalnum() or query[i - 1] in "_$")


def _rewrite(query: str, named: bool) -> tuple[str, list[str], int]:
    out = []
    names = []
    positional = 0
    i = 0
    n = len(query)

    while i < n:
        c = query[i]
        dollar = _DOLLAR_TAG_RE.match(query, i) if c == "$" else None

        if c in "Ee" and query.startswith("'", i + 1) and not _follows_word(query, i):
            end = _skip_quoted(query, i + 1, backslash_escapes=True)
            out.append(query[i:end].replace("%", "%%"))
            i = end
        elif c in ("'", '"'):
            end = _skip_quoted(query, i)
            out.append(query[i:end].replace("%", "%%"))
            i = end
        elif dollar and not _follows_word(query, i):
            tag = dollar.group(0)
            end = _skip_dollar_quoted(query, i + len(tag), tag)
            out.append(query[i:end].replace("%", "%%"))
            i = end
        elif query.startswith("--", i):
            end = query.find("\n", i)
            end = n if end == -1 else end
            out.append(query[i:end].replace("%", "%%"))
            i = end
        elif query.startswith("/*", i):
            end = query.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append(query[i:end].replace("%", "%%"))
            i = end
        elif query.startswith("::", i):
            # type cast, e.g. created_at::date
            out.append("::")
            i += 2
        elif c == ":" and named:
            match = _NAME_RE.match(query, i + 1)
            if match:
                names.append(match.group(0))
                out.append(f"%({match.group(0)})s")
                i = match.end()
            else:
                out.append(c)
                i += 1
        elif c == "?" and not named:
            positional += 1
            out.append("%s")
            i += 1
        elif c == "%":
            out.append("%%")
            i += 1
        else:
            out.append(c)
            i += 1

    return "".join(out), names, positional
