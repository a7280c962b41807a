"""
SQL text helpers: quoting, placeholders and derived object names.

Every statement this package sends is assembled from these pieces:
- `quote_identifier()` - Quote table/column/index/constraint names
- `quote_literal()` - Render a Python scalar as a SQL literal
- `make_placeholders()` - Positional placeholders for bound values
- `standardize_placeholders()` - Normalize a caller's WHERE fragment for psycopg
- `index_name()` / `constraint_name()` - Deterministic default names
"""
import datetime
import decimal
import json
import re
from collections.abc import Sequence
from typing import Any

from libb import issequence

__all__ = [
    'quote_identifier',
    'quote_literal',
    'make_placeholders',
    'standardize_placeholders',
    'index_name',
    'constraint_name',
]

# String literals and quoted identifiers are matched first so that anything
# placeholder-like inside them is left alone.
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*')
    |(?P<ident>"(?:[^"]|"")*")
    |(?P<numbered>\$(?P<number>\d+))
    |(?P<percent_s>%s)
    |(?P<percent_escaped>%%)
    |(?P<percent>%)
""", re.VERBOSE)

_UNESCAPED_PERCENT = re.compile(r'(?<!%)%(?!%)')


def quote_identifier(identifier: str) -> str:
    """Safely quote a database identifier.

    Parameters
        identifier: Table, column, index or constraint name

    Returns
        Identifier wrapped in double quotes with embedded quotes doubled
    """
    return '"' + str(identifier).replace('"', '""') + '"'


def _quote_text(text: str, cast: str | None = None) -> str:
    """Quote text as a standard string literal, switching to E'' syntax
    when backslashes are present.
    """
    quoted = "'" + text.replace("'", "''")
    if '\\' in text:
        quoted = 'E' + quoted.replace('\\', '\\\\')
    quoted += "'"
    if cast:
        quoted += f'::{cast}'
    return quoted


def quote_literal(value: Any) -> str:
    """Render a Python value as a SQL literal for direct inclusion in SQL text.

    Bound parameters are preferred everywhere a value can be bound; this is
    for the places PostgreSQL does not accept parameters (DEFAULT clauses).

    Parameters
        value: None, bool, number, str, bytes, date/time, dict or sequence

    Returns
        SQL literal text
    """
    if value is None:
        return 'NULL'
    if value is True:
        return "'t'"
    if value is False:
        return "'f'"
    if isinstance(value, bytes | bytearray | memoryview):
        return "E'\\\\x" + bytes(value).hex() + "'"
    if isinstance(value, datetime.date | datetime.time):
        return _quote_text(value.isoformat())
    if isinstance(value, dict):
        return _quote_text(json.dumps(value), cast='jsonb')
    if issequence(value) and not isinstance(value, str):
        return '(' + ', '.join(quote_literal(v) for v in value) + ')'
    if isinstance(value, int | float | decimal.Decimal):
        return _quote_text(str(value))
    return _quote_text(str(value))


def make_placeholders(count: int) -> str:
    """Create a comma-separated list of psycopg positional placeholders.
    """
    return ', '.join(['%s'] * count)


def _tokenize(clause: str):
    """Yield (kind, match-or-text) pairs covering the whole clause.
    """
    last_end = 0
    for match in _TOKENIZE.finditer(clause):
        start, end = match.span()
        if start > last_end:
            yield 'text', clause[last_end:start]
        yield match.lastgroup, match
        last_end = end
    if last_end < len(clause):
        yield 'text', clause[last_end:]


def standardize_placeholders(clause: str, values: Sequence[Any] | None,
                             bound: bool = False) -> tuple[str, tuple]:
    """Prepare a caller-supplied SQL fragment and its values for psycopg.

    The fragment uses psycopg's positional `%s` placeholders. PostgreSQL's
    numbered `$1` style is accepted too: each `$n` becomes `%s` and the
    values are reordered (and repeated) to match. Once values are bound,
    psycopg reads every `%` as a placeholder marker, so stray percent signs
    (in LIKE patterns or the modulo operator) are doubled.

    Parameters
        clause: SQL fragment, e.g. `last_name = %s` or `last_name = $1`
        values: Values referenced by the fragment's placeholders
        bound: Escape percent signs even when values is empty, for a
            fragment embedded in a statement that binds other values

    Returns
        Tuple of (clause, values) ready for cursor.execute()

    Raises
        ValueError: If `%s` and `$n` placeholders are mixed, or a `$n`
            refers past the end of values
    """
    values = tuple(values or ())
    if not values and not bound:
        return clause, values

    parts: list[str] = []
    ordered: list[Any] = []
    saw_positional = saw_numbered = False

    for kind, token in _tokenize(clause):
        if kind == 'text':
            parts.append(token)
        elif kind in {'string', 'ident'}:
            parts.append(_UNESCAPED_PERCENT.sub('%%', token.group(0)))
        elif kind == 'numbered':
            saw_numbered = True
            number = int(token.group('number'))
            if not 1 <= number <= len(values):
                raise ValueError(f'Placeholder ${number} has no matching value ({len(values)} supplied)')
            ordered.append(values[number - 1])
            parts.append('%s')
        elif kind == 'percent_s':
            saw_positional = True
            parts.append('%s')
        elif kind == 'percent_escaped':
            parts.append('%%')
        else:
            parts.append('%%')

    if saw_positional and saw_numbered:
        raise ValueError('Cannot mix %s and $n placeholders in one clause')

    if saw_numbered:
        return ''.join(parts), tuple(ordered)
    return ''.join(parts), values


def index_name(table: str, column_name: str | Sequence[str]) -> str:
    """Default index name: `<table>_<column1>[_<column2>...]_idx`.

    The result is not quoted; quote it where it is used.
    """
    columns = [column_name] if isinstance(column_name, str) else list(column_name)
    return '_'.join([table, *columns, 'idx'])


def constraint_name(table: str, column: str) -> str:
    """Default foreign key constraint name: `<table>_<column>_fkey`.
    """
    return '_'.join([table, column, 'fkey'])
