"""Built-in stdlib functions (print, strings, arrays, maps, ...) registered via register_stdlib."""

from __future__ import annotations

import bisect
import math
import random
import re
import sys
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .runtime import register_stdlib
from .types import (
    Frame,
    ZsArray,
    ZsBool,
    ZsDateTime,
    ZsIterator,
    ZsMap,
    ZsNull,
    ZsNumber,
    ZsString,
    ZsValue,
    ZScriptArityError,
    ZScriptIndexError,
    ZScriptIOError,
    ZScriptRuntimeError,
    ZScriptTypeError,
    type_name,
)
from .utils import as_index, render_value, value_in_list, values_equal

# ---------------- argument helpers ----------------

def _expect_arity_at_least(name: str, args: List[ZsValue], count: int) -> None:
    if len(args) < count:
        raise ZScriptArityError(f"'{name}' expects at least {count} argument(s); got {len(args)}.")

def _string(name: str, arg: ZsValue, position: str = "") -> str:
    if isinstance(arg, ZsString):
        return arg.value

    where = f" as {position} argument" if position else " argument"
    raise ZScriptTypeError(f"'{name}' requires a string{where} (got {type_name(arg)}).")

def _int(name: str, arg: ZsValue) -> int:
    if isinstance(arg, ZsNumber):
        idx = as_index(arg.value)
        if idx is not None:
            return idx

    raise ZScriptTypeError(f"'{name}' requires an integer (got {render_value(arg)}).")

def _number(name: str, arg: ZsValue) -> float:
    if isinstance(arg, ZsNumber):
        return arg.value

    raise ZScriptTypeError(f"'{name}' requires a number (got {type_name(arg)}).")

def _array(name: str, arg: ZsValue) -> List[ZsValue]:
    if isinstance(arg, ZsArray):
        return arg.items

    raise ZScriptTypeError(f"'{name}' can only be used on arrays (got {type_name(arg)}).")

def _map(name: str, arg: ZsValue) -> Dict[str, ZsValue]:
    if isinstance(arg, ZsMap):
        return arg.entries

    raise ZScriptTypeError(f"'{name}' can only be used on maps (got {type_name(arg)}).")

def _num(value: float) -> ZsNumber:
    return ZsNumber(float(value))

def _sort_key(name: str, items: List[ZsValue]):
    """Arrays sort when they hold only numbers or only strings."""
    if all(isinstance(x, ZsNumber) for x in items):
        return lambda v: v.value
    if all(isinstance(x, ZsString) for x in items):
        return lambda v: v.value
    raise ZScriptTypeError(f"'{name}' requires an array of only numbers or only strings.")

# ---------------- output ----------------

@register_stdlib("print")
def std_print(_frame: Frame, args: List[ZsValue]) -> ZsNull:
    print(" ".join(render_value(arg) for arg in args), end="")
    return ZsNull()

@register_stdlib("println")
def std_println(_frame: Frame, args: List[ZsValue]) -> ZsNull:
    print(" ".join(render_value(arg) for arg in args))
    return ZsNull()

_FORMAT_RE = re.compile(r"%[vsdfg%]")

def format_values(name: str, args: List[ZsValue]) -> str:
    """Go-flavoured formatting: every verb renders its value like to_str()."""
    _expect_arity_at_least(name, args, 1)
    fmt = _string(name, args[0], "first")
    rest = iter(args[1:])

    def repl(match: re.Match) -> str:
        if match.group(0) == "%%":
            return "%"
        try:
            return render_value(next(rest))
        except StopIteration:
            raise ZScriptArityError(f"'{name}' format needs more arguments than were given.") from None

    return _FORMAT_RE.sub(repl, fmt)

@register_stdlib("sprintf")
def std_sprintf(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(format_values("sprintf", args))

@register_stdlib("errorf")
def std_errorf(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(format_values("errorf", args))

@register_stdlib("printf")
def std_printf(_frame: Frame, args: List[ZsValue]) -> ZsNull:
    print(format_values("printf", args), end="")
    return ZsNull()

# ---------------- files ----------------

@register_stdlib("read_file", arity=1)
def std_read_file(_frame: Frame, args: List[ZsValue]) -> ZsString:
    path = _string("read_file", args[0])
    try:
        with open(path, encoding="utf-8") as fh:
            return ZsString(fh.read())
    except OSError as exc:
        raise ZScriptIOError(f"Could not read file '{path}': {exc.strerror or exc}.") from exc
    except UnicodeDecodeError as exc:
        raise ZScriptIOError(f"Could not read file '{path}': not valid UTF-8 text (byte {exc.start}).") from exc

@register_stdlib("write_file", arity=2)
def std_write_file(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    path = _string("write_file", args[0], "first")
    content = _string("write_file", args[1], "second")
    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(content)
    except OSError as exc:
        raise ZScriptIOError(f"Could not write file '{path}': {exc.strerror or exc}.") from exc
    except UnicodeEncodeError as exc:
        raise ZScriptIOError(f"Could not write file '{path}': text is not encodable as UTF-8.") from exc
    return ZsBool(True)

# ---------------- conversion ----------------

@register_stdlib("to_str", arity=1)
def std_to_str(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(render_value(args[0]))

@register_stdlib("to_number", arity=1)
def std_to_number(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    arg = args[0]
    if isinstance(arg, ZsNumber):
        return arg

    text = _string("to_number", arg).strip()
    try:
        return ZsNumber(float(text))
    except ValueError:
        raise ZScriptTypeError(f"'to_number' cannot convert '{text}' to a number.") from None

@register_stdlib("type_of", arity=1)
def std_type_of(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(type_name(args[0]))

# ---------------- strings ----------------

@register_stdlib("str_length", arity=1)
def std_str_length(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    return _num(len(_string("str_length", args[0])))

@register_stdlib("char_at", arity=2)
def std_char_at(_frame: Frame, args: List[ZsValue]) -> ZsString:
    s = _string("char_at", args[0], "first")
    idx = _int("char_at", args[1])
    if idx < 0 or idx >= len(s):
        raise ZScriptIndexError(f"'char_at' index {idx} out of bounds (length {len(s)}).")
    return ZsString(s[idx])

@register_stdlib("substring", arity=3)
def std_substring(_frame: Frame, args: List[ZsValue]) -> ZsString:
    s = _string("substring", args[0], "first")
    start = _int("substring", args[1])
    end = _int("substring", args[2])
    if start < 0 or end > len(s) or start > end:
        raise ZScriptIndexError(f"'substring' range {start}..{end} out of bounds (length {len(s)}).")
    return ZsString(s[start:end])

@register_stdlib("str_index_of", arity=2)
def std_str_index_of(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    s = _string("str_index_of", args[0], "first")
    return _num(s.find(_string("str_index_of", args[1], "second")))

@register_stdlib("str_last_index_of", arity=2)
def std_str_last_index_of(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    s = _string("str_last_index_of", args[0], "first")
    return _num(s.rfind(_string("str_last_index_of", args[1], "second")))

@register_stdlib("str_contains", arity=2)
def std_str_contains(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    s = _string("str_contains", args[0], "first")
    return ZsBool(_string("str_contains", args[1], "second") in s)

@register_stdlib("starts_with", arity=2)
def std_starts_with(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    s = _string("starts_with", args[0], "first")
    return ZsBool(s.startswith(_string("starts_with", args[1], "second")))

@register_stdlib("ends_with", arity=2)
def std_ends_with(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    s = _string("ends_with", args[0], "first")
    return ZsBool(s.endswith(_string("ends_with", args[1], "second")))

@register_stdlib("to_upper", arity=1)
def std_to_upper(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(_string("to_upper", args[0]).upper())

@register_stdlib("to_lower", arity=1)
def std_to_lower(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(_string("to_lower", args[0]).lower())

@register_stdlib("trim", arity=1)
def std_trim(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(_string("trim", args[0]).strip())

@register_stdlib("split", arity=2)
def std_split(_frame: Frame, args: List[ZsValue]) -> ZsArray:
    s = _string("split", args[0], "first")
    sep = _string("split", args[1], "second")
    parts = list(s) if sep == "" else s.split(sep)
    return ZsArray([ZsString(p) for p in parts])

@register_stdlib("replace", arity=3)
def std_replace(_frame: Frame, args: List[ZsValue]) -> ZsString:
    s = _string("replace", args[0], "first")
    old = _string("replace", args[1], "second")
    new = _string("replace", args[2], "third")
    return ZsString(s.replace(old, new))

@register_stdlib("to_chars", arity=1)
def std_to_chars(_frame: Frame, args: List[ZsValue]) -> ZsArray:
    return ZsArray([ZsString(ch) for ch in _string("to_chars", args[0])])

# ---------------- arrays ----------------

@register_stdlib("len", arity=1)
def std_len(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    match args[0]:
        case ZsArray(items=items):
            return _num(len(items))
        case ZsString(value=s):
            return _num(len(s))
        case ZsMap(entries=entries):
            return _num(len(entries))
        case other:
            raise ZScriptTypeError(f"'len' can only be used on arrays, strings and maps (got {type_name(other)}).")

@register_stdlib("push")
def std_push(_frame: Frame, args: List[ZsValue]) -> ZsNull:
    _expect_arity_at_least("push", args, 1)
    _array("push", args[0]).extend(args[1:])
    return ZsNull()

@register_stdlib("pop", arity=1)
def std_pop(_frame: Frame, args: List[ZsValue]) -> ZsValue:
    items = _array("pop", args[0])
    if not items:
        raise ZScriptIndexError("Cannot pop from an empty array.")
    return items.pop()

@register_stdlib("array_sort", arity=1)
def std_array_sort(_frame: Frame, args: List[ZsValue]) -> ZsValue:
    items = _array("array_sort", args[0])
    items.sort(key=_sort_key("array_sort", items))
    return args[0]

@register_stdlib("array_reverse", arity=1)
def std_array_reverse(_frame: Frame, args: List[ZsValue]) -> ZsValue:
    _array("array_reverse", args[0]).reverse()
    return args[0]

@register_stdlib("array_contains", arity=2)
def std_array_contains(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    return ZsBool(value_in_list(_array("array_contains", args[0]), args[1]))

@register_stdlib("array_clear", arity=1)
def std_array_clear(_frame: Frame, args: List[ZsValue]) -> ZsNull:
    _array("array_clear", args[0]).clear()
    return ZsNull()

@register_stdlib("array_remove", arity=2)
def std_array_remove(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    """Remove the first element equal to the value; true when one was removed."""
    items = _array("array_remove", args[0])
    for i, elem in enumerate(items):
        if values_equal(elem, args[1]):
            del items[i]
            return ZsBool(True)
    return ZsBool(False)

@register_stdlib("array_join")
def std_array_join(_frame: Frame, args: List[ZsValue]) -> ZsArray:
    _expect_arity_at_least("array_join", args, 1)
    joined: List[ZsValue] = []
    for arg in args:
        joined.extend(_array("array_join", arg))
    return ZsArray(joined)

@register_stdlib("array_split", arity=2)
def std_array_split(_frame: Frame, args: List[ZsValue]) -> ZsArray:
    items = _array("array_split", args[0])
    chunks: List[ZsValue] = []
    current: List[ZsValue] = []

    for elem in items:
        if values_equal(elem, args[1]):
            chunks.append(ZsArray(current))
            current = []
        else:
            current.append(elem)

    chunks.append(ZsArray(current))
    return ZsArray(chunks)

@register_stdlib("array_to_string", arity=1)
def std_array_to_string(_frame: Frame, args: List[ZsValue]) -> ZsString:
    _array("array_to_string", args[0])
    return ZsString(render_value(args[0]))

@register_stdlib("array_linear_search", arity=2)
def std_array_linear_search(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    items = _array("array_linear_search", args[0])
    for i, elem in enumerate(items):
        if values_equal(elem, args[1]):
            return _num(i)
    return _num(-1)

@register_stdlib("index_of", arity=2)
def std_index_of(frame: Frame, args: List[ZsValue]) -> ZsNumber:
    _array("index_of", args[0])
    return std_array_linear_search(frame, args)

@register_stdlib("last_index_of", arity=2)
def std_last_index_of(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    items = _array("last_index_of", args[0])
    for i in range(len(items) - 1, -1, -1):
        if values_equal(items[i], args[1]):
            return _num(i)
    return _num(-1)

@register_stdlib("array_binary_search", arity=2)
def std_array_binary_search(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    """Index of the value in an already sorted array, -1 when absent."""
    items = _array("array_binary_search", args[0])
    if not items:
        return _num(-1)

    key = _sort_key("array_binary_search", [*items, args[1]])
    keys = [key(x) for x in items]
    target = key(args[1])
    idx = bisect.bisect_left(keys, target)
    if idx < len(keys) and keys[idx] == target:
        return _num(idx)
    return _num(-1)

@register_stdlib("array_sorted_push", arity=2)
def std_array_sorted_push(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    """Insert after every element that sorts at or before the value; returns the new length.

    Numbers and strings order naturally when the array holds only one of them,
    anything else orders by its rendered text.
    """
    items = _array("array_sorted_push", args[0])
    value = args[1]
    everything = [*items, value]
    if all(isinstance(x, ZsNumber) for x in everything) or all(isinstance(x, ZsString) for x in everything):
        key = _sort_key("array_sorted_push", everything)
    else:
        key = render_value

    items.insert(bisect.bisect_right(items, key(value), key=key), value)
    return _num(len(items))

@register_stdlib("shuffle", arity=1)
def std_shuffle(_frame: Frame, args: List[ZsValue]) -> ZsValue:
    random.shuffle(_array("shuffle", args[0]))
    return args[0]

# ---------------- maps ----------------

@register_stdlib("map_remove", arity=2)
def std_map_remove(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    entries = _map("map_remove", args[0])
    key = _string("map_remove", args[1], "second")
    return ZsBool(entries.pop(key, None) is not None)

@register_stdlib("map_contains_key", arity=2)
def std_map_contains_key(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    entries = _map("map_contains_key", args[0])
    return ZsBool(_string("map_contains_key", args[1], "second") in entries)

@register_stdlib("map_contains_value", arity=2)
def std_map_contains_value(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    entries = _map("map_contains_value", args[0])
    return ZsBool(value_in_list(list(entries.values()), args[1]))

@register_stdlib("map_size", arity=1)
def std_map_size(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    return _num(len(_map("map_size", args[0])))

@register_stdlib("map_clear", arity=1)
def std_map_clear(_frame: Frame, args: List[ZsValue]) -> ZsNull:
    _map("map_clear", args[0]).clear()
    return ZsNull()

@register_stdlib("map_keys", arity=1)
def std_map_keys(_frame: Frame, args: List[ZsValue]) -> ZsArray:
    return ZsArray([ZsString(k) for k in _map("map_keys", args[0])])

@register_stdlib("map_values", arity=1)
def std_map_values(_frame: Frame, args: List[ZsValue]) -> ZsArray:
    return ZsArray(list(_map("map_values", args[0]).values()))

# ---------------- misc ----------------

@register_stdlib("clock", arity=0)
def std_clock(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    return ZsNumber(time.perf_counter())

@register_stdlib("random_between", arity=2)
def std_random_between(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    lo = _number("random_between", args[0])
    hi = _number("random_between", args[1])
    if lo > hi:
        raise ZScriptRuntimeError("'random_between' min must be less than or equal to max.")

    if lo.is_integer() and hi.is_integer():
        return _num(random.randint(int(lo), int(hi)))
    return ZsNumber(random.uniform(lo, hi))

RANDOM_STRING_CHARSET = (
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    "!@#$%^&*()_+-=[]{}|;:,.<>?"
)

@register_stdlib("random_string", arity=1)
def std_random_string(_frame: Frame, args: List[ZsValue]) -> ZsString:
    size = _int("random_string", args[0])
    if size < 0:
        raise ZScriptRuntimeError("'random_string' size must be non-negative.")
    return ZsString("".join(random.choices(RANDOM_STRING_CHARSET, k=size)))

_INT_RE = re.compile(r"[+-]?[0-9]+")
# signed 64-bit range, same as the integers the CLI accepts elsewhere
_INT_MIN, _INT_MAX = -(2**63), 2**63 - 1

@register_stdlib("parse_int", arity=1)
def std_parse_int(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    """Strict decimal integer: optional sign and ASCII digits, no spaces."""
    text = _string("parse_int", args[0])
    if not _INT_RE.fullmatch(text):
        raise ZScriptTypeError(f"'parse_int' cannot parse '{text}' as an integer.")
    if len(text.lstrip("+-").lstrip("0")) > 19:
        raise ZScriptTypeError(f"'parse_int' value '{text}' is out of range.")

    value = int(text)
    if not _INT_MIN <= value <= _INT_MAX:
        raise ZScriptTypeError(f"'parse_int' value '{text}' is out of range.")
    return _num(value)

# ---------------- debugging ----------------

@register_stdlib("enable_debug", arity=0)
def std_enable_debug(frame: Frame, args: List[ZsValue]) -> ZsNull:
    frame.context.debug = True
    return ZsNull()

@register_stdlib("disable_debug", arity=0)
def std_disable_debug(frame: Frame, args: List[ZsValue]) -> ZsNull:
    frame.context.debug = False
    return ZsNull()

@register_stdlib("enable_trace", arity=0)
def std_enable_trace(frame: Frame, args: List[ZsValue]) -> ZsNull:
    frame.context.trace = True
    return ZsNull()

@register_stdlib("disable_trace", arity=0)
def std_disable_trace(frame: Frame, args: List[ZsValue]) -> ZsNull:
    frame.context.trace = False
    return ZsNull()

# ---------------- iterators ----------------

def _iterator(name: str, arg: ZsValue) -> ZsIterator:
    if isinstance(arg, ZsIterator):
        return arg

    raise ZScriptTypeError(f"'{name}' can only be used on iterators (got {type_name(arg)}).")

@register_stdlib("array_iter", arity=1)
def std_array_iter(_frame: Frame, args: List[ZsValue]) -> ZsIterator:
    return ZsIterator(_array("array_iter", args[0]))

@register_stdlib("iter_next", arity=1)
def std_iter_next(_frame: Frame, args: List[ZsValue]) -> ZsNull:
    _iterator("iter_next", args[0]).index += 1
    return ZsNull()

@register_stdlib("iter_value", arity=1)
def std_iter_value(_frame: Frame, args: List[ZsValue]) -> ZsValue:
    """Element under the cursor, null once the iterator is done."""
    it = _iterator("iter_value", args[0])
    return ZsNull() if it.done else it.items[it.index]

@register_stdlib("iter_done", arity=1)
def std_iter_done(_frame: Frame, args: List[ZsValue]) -> ZsBool:
    return ZsBool(_iterator("iter_done", args[0]).done)

# ---------------- input ----------------

def _read_line(name: str) -> str:
    if sys.stdin is None:
        raise ZScriptIOError(f"'{name}' has no input stream to read from.")

    try:
        line = sys.stdin.readline()
    except (OSError, UnicodeDecodeError) as exc:
        raise ZScriptIOError(f"Error reading input: {exc}.") from exc
    if not line:
        raise ZScriptIOError("Error reading input: EOF.")
    return line.removesuffix("\n").removesuffix("\r")

@register_stdlib("scan", arity=0)
def std_scan(_frame: Frame, args: List[ZsValue]) -> ZsArray:
    """Next input line split on whitespace."""
    return ZsArray([ZsString(part) for part in _read_line("scan").split()])

@register_stdlib("scanln", arity=0)
def std_scanln(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return ZsString(_read_line("scanln"))

@register_stdlib("scanf", arity=1)
def std_scanf(_frame: Frame, args: List[ZsValue]) -> ZsString:
    """Next input line; the format string is checked but not applied."""
    _string("scanf", args[0])
    return ZsString(_read_line("scanf"))

# ---------------- dates and times ----------------

DATETIME_LAYOUTS = {
    "Date": ("%Y-%m-%d", "YYYY-MM-DD"),
    "Time": ("%H:%M:%S", "HH:MM:SS"),
    "DateTime": ("%Y-%m-%d %H:%M:%S", "YYYY-MM-DD HH:MM:SS"),
}
DATETIME_COMPONENTS = {
    "Date": ("year", "month", "day"),
    "DateTime": ("year", "month", "day", "hour", "minute", "second"),
}
# Time values live on this day; only their clock fields are observable
TIME_ANCHOR = datetime(2000, 1, 1)

_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_GO_LAYOUT_RE = re.compile(
    r"January|Jan|Monday|Mon|2006|Z07:00|-07:00|-0700|MST|PM|pm|_2|15|01|02|03|04|05|06|1|2|3|4|5"
)

def _go_field(moment: datetime, token: str) -> str:
    match token:
        case "2006":
            return f"{moment.year:04d}"
        case "06":
            return f"{moment.year % 100:02d}"
        case "January":
            return _MONTH_NAMES[moment.month - 1]
        case "Jan":
            return _MONTH_NAMES[moment.month - 1][:3]
        case "01":
            return f"{moment.month:02d}"
        case "1":
            return str(moment.month)
        case "Monday":
            return _DAY_NAMES[moment.weekday()]
        case "Mon":
            return _DAY_NAMES[moment.weekday()][:3]
        case "02":
            return f"{moment.day:02d}"
        case "_2":
            return f"{moment.day:>2d}"
        case "2":
            return str(moment.day)
        case "15":
            return f"{moment.hour:02d}"
        case "03":
            return f"{moment.hour % 12 or 12:02d}"
        case "3":
            return str(moment.hour % 12 or 12)
        case "04":
            return f"{moment.minute:02d}"
        case "4":
            return str(moment.minute)
        case "05":
            return f"{moment.second:02d}"
        case "5":
            return str(moment.second)
        case "PM":
            return "PM" if moment.hour >= 12 else "AM"
        case "pm":
            return "pm" if moment.hour >= 12 else "am"
        case "MST":
            return "UTC"
        case "-0700":
            return "+0000"
        case "-07:00":
            return "+00:00"
        case _:
            return "Z"

def format_moment(moment: datetime, layout: str) -> str:
    """Render with a Go reference layout such as ``2006-01-02 15:04:05``."""
    return _GO_LAYOUT_RE.sub(lambda m: _go_field(moment, m.group(0)), layout)

def _whole(name: str, arg: ZsValue) -> int:
    num = _number(name, arg)
    if not math.isfinite(num):
        raise ZScriptTypeError(f"'{name}' requires a finite number (got {render_value(arg)}).")
    return int(num)

def _moment(name: str, year: int, month: int = 1, day: int = 1, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    """Build a moment, rolling overflowing fields into the next larger unit (month 13 is next January)."""
    carry, month_index = divmod(month - 1, 12)
    try:
        start = datetime(year + carry, month_index + 1, 1)
        return start + timedelta(days=day - 1, hours=hour, minutes=minute, seconds=second)
    except (ValueError, OverflowError) as exc:
        raise ZScriptRuntimeError(f"'{name}' result is outside the supported date range.") from exc

def _make(kind: str, moment: datetime) -> ZsDateTime:
    if kind == "Date":
        moment = datetime(moment.year, moment.month, moment.day)
    elif kind == "Time":
        moment = TIME_ANCHOR.replace(hour=moment.hour, minute=moment.minute, second=moment.second)
    else:
        moment = moment.replace(microsecond=0)
    return ZsDateTime(kind, moment)

def _clock(name: str, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    return _moment(name, TIME_ANCHOR.year, TIME_ANCHOR.month, TIME_ANCHOR.day, hour, minute, second)

def _datetime_arg(name: str, arg: ZsValue, kind: str) -> ZsDateTime:
    if isinstance(arg, ZsDateTime) and arg.kind == kind:
        return arg

    raise ZScriptTypeError(f"'{name}' first argument must be a {kind} (got {type_name(arg)}).")

def _construct(kind: str, args: List[ZsValue]) -> ZsDateTime:
    full = 6 if kind == "DateTime" else 3
    if not args:
        return _make(kind, datetime.now())
    if len(args) not in (1, full):
        raise ZScriptArityError(f"'{kind}' expects 0, 1 or {full} arguments; got {len(args)}.")

    parts = [_whole(kind, arg) for arg in args]
    if kind == "Time":
        return _make(kind, _clock(kind, *parts))
    return _make(kind, _moment(kind, *parts))

@register_stdlib("Date")
def std_date(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    """Date(), Date(year) or Date(year, month, day)."""
    return _construct("Date", args)

@register_stdlib("Time")
def std_time(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    """Time(), Time(hour) or Time(hour, minute, second)."""
    return _construct("Time", args)

@register_stdlib("DateTime")
def std_datetime(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    """DateTime(), DateTime(year) or DateTime(year, month, day, hour, minute, second)."""
    return _construct("DateTime", args)

@register_stdlib("date_now", arity=0)
def std_date_now(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _make("Date", datetime.now())

@register_stdlib("time_now", arity=0)
def std_time_now(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _make("Time", datetime.now())

@register_stdlib("datetime_now", arity=0)
def std_datetime_now(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _make("DateTime", datetime.now())

def _parse(name: str, kind: str, arg: ZsValue) -> ZsDateTime:
    text = _string(name, arg)
    layout, hint = DATETIME_LAYOUTS[kind]
    try:
        return _make(kind, datetime.strptime(text, layout))
    except ValueError:
        raise ZScriptRuntimeError(f"Invalid {kind.lower()} format: {text} (use '{hint}').") from None

@register_stdlib("date_parse_datetime", arity=1)
def std_date_parse(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _parse("date_parse_datetime", "Date", args[0])

@register_stdlib("time_parse", arity=1)
def std_time_parse(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _parse("time_parse", "Time", args[0])

@register_stdlib("datetime_parse", arity=1)
def std_datetime_parse(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _parse("datetime_parse", "DateTime", args[0])

def _format(name: str, kind: str, args: List[ZsValue]) -> ZsString:
    value = _datetime_arg(name, args[0], kind)
    return ZsString(format_moment(value.moment, _string(name, args[1], "second")))

@register_stdlib("date_format_datetime", arity=2)
def std_date_format(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return _format("date_format_datetime", "Date", args)

@register_stdlib("time_format", arity=2)
def std_time_format(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return _format("time_format", "Time", args)

@register_stdlib("datetime_format", arity=2)
def std_datetime_format(_frame: Frame, args: List[ZsValue]) -> ZsString:
    return _format("datetime_format", "DateTime", args)

def _shift(name: str, kind: str, args: List[ZsValue], sign: int) -> ZsDateTime:
    """Move by (years, months, days), (hours, minutes, seconds) or all six, Go AddDate style."""
    m = _datetime_arg(name, args[0], kind).moment
    deltas = [sign * _whole(name, arg) for arg in args[1:]]

    if kind == "Time":
        hours, minutes, seconds = deltas
        return _make(kind, _clock(name, m.hour + hours, m.minute + minutes, m.second + seconds))

    years, months, days, hours, minutes, seconds = (deltas + [0, 0, 0])[:6]
    return _make(kind, _moment(
        name,
        m.year + years,
        m.month + months,
        m.day + days,
        m.hour + hours,
        m.minute + minutes,
        m.second + seconds,
    ))

@register_stdlib("date_add_datetime", arity=4)
def std_date_add(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("date_add_datetime", "Date", args, 1)

@register_stdlib("date_subtract_datetime", arity=4)
def std_date_subtract(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("date_subtract_datetime", "Date", args, -1)

@register_stdlib("time_add", arity=4)
def std_time_add(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("time_add", "Time", args, 1)

@register_stdlib("time_subtract", arity=4)
def std_time_subtract(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("time_subtract", "Time", args, -1)

@register_stdlib("datetime_add", arity=7)
def std_datetime_add(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("datetime_add", "DateTime", args, 1)

@register_stdlib("datetime_subtract", arity=7)
def std_datetime_subtract(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("datetime_subtract", "DateTime", args, -1)

@register_stdlib("date_add_days", arity=2)
def std_date_add_days(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("date_add_days", "Date", [args[0], ZsNumber(0), ZsNumber(0), args[1]], 1)

@register_stdlib("date_subtract_days", arity=2)
def std_date_subtract_days(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("date_subtract_days", "Date", [args[0], ZsNumber(0), ZsNumber(0), args[1]], -1)

@register_stdlib("datetime_add_days", arity=2)
def std_datetime_add_days(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("datetime_add_days", "DateTime", [args[0], ZsNumber(0), ZsNumber(0), args[1]], 1)

@register_stdlib("datetime_subtract_days", arity=2)
def std_datetime_subtract_days(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _shift("datetime_subtract_days", "DateTime", [args[0], ZsNumber(0), ZsNumber(0), args[1]], -1)

def _component(name: str, kind: str, args: List[ZsValue]) -> Tuple[ZsDateTime, str]:
    value = _datetime_arg(name, args[0], kind)
    component = _string(name, args[1], "second")
    allowed = DATETIME_COMPONENTS[kind]
    if component not in allowed:
        choices = ", ".join(f"'{c}'" for c in allowed)
        raise ZScriptRuntimeError(f"Invalid component '{component}' for {kind} (use {choices}).")
    return value, component

@register_stdlib("date_get_component", arity=2)
def std_date_get_component(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    value, component = _component("date_get_component", "Date", args)
    return _num(getattr(value.moment, component))

@register_stdlib("datetime_get_component", arity=2)
def std_datetime_get_component(_frame: Frame, args: List[ZsValue]) -> ZsNumber:
    value, component = _component("datetime_get_component", "DateTime", args)
    return _num(getattr(value.moment, component))

def _set_component(name: str, kind: str, args: List[ZsValue]) -> ZsDateTime:
    """Replace one field in place; out-of-range values roll over like the constructors."""
    value, component = _component(name, kind, args)
    fields = {c: getattr(value.moment, c) for c in DATETIME_COMPONENTS["DateTime"]}
    fields[component] = _whole(name, args[2])
    value.moment = _make(kind, _moment(name, **fields)).moment
    return value

@register_stdlib("date_set_component", arity=3)
def std_date_set_component(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _set_component("date_set_component", "Date", args)

@register_stdlib("datetime_set_component", arity=3)
def std_datetime_set_component(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    return _set_component("datetime_set_component", "DateTime", args)

@register_stdlib("time_get_timezone", arity=1)
def std_time_get_timezone(_frame: Frame, args: List[ZsValue]) -> ZsString:
    _datetime_arg("time_get_timezone", args[0], "Time")
    return ZsString("UTC")

@register_stdlib("time_convert_timezone", arity=2)
def std_time_convert_timezone(_frame: Frame, args: List[ZsValue]) -> ZsDateTime:
    """Clock reading of a UTC Time in another IANA zone, on the anchor day."""
    value = _datetime_arg("time_convert_timezone", args[0], "Time")
    zone_name = _string("time_convert_timezone", args[1], "second")
    try:
        zone = ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise ZScriptRuntimeError(f"Invalid timezone: {zone_name}.") from None

    converted = value.moment.replace(tzinfo=timezone.utc).astimezone(zone)
    return _make("Time", converted.replace(tzinfo=None))
