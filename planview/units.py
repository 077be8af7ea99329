# Copyright (c) 2019-2022 Varada, Inc.
# This file is part of Plan View.
#
# Plan View is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Plan View is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with Plan View.  If not, see <https://www.gnu.org/licenses/>.

import re

import logbook

log = logbook.Logger("units")

NOT_AVAILABLE = "N/A"

# longer suffixes first, "ms" must not be read as "m"
TIME_UNITS = [
    ("ns", 1e-9),
    ("us", 1e-6),
    ("ms", 1e-3),
    ("s", 1),
    ("m", 60),
    ("h", 60 * 60),
]

# shortest readable unit, largest first
TIME_FORMAT_UNITS = [
    ("h", 60 * 60),
    ("m", 60),
    ("s", 1),
    ("ms", 1e-3),
    ("us", 1e-6),
    ("ns", 1e-9),
]

SIZE_UNITS = [
    ("TB", 1024 * 1024 * 1024 * 1024),
    ("GB", 1024 * 1024 * 1024),
    ("MB", 1024 * 1024),
    ("KB", 1024),
    ("B", 1),
]

ROW_UNITS = [
    ("B", 1e9),
    ("M", 1e6),
    ("K", 1e3),
]

_TIME_TOKEN = re.compile(r"(\d+(?:\.\d+)?)\s*(ns|us|ms|s|m|h)", re.IGNORECASE)
_TIME_FULL = re.compile(r"(?:\d+(?:\.\d+)?\s*(?:ns|us|ms|s|m|h)\s*)+", re.IGNORECASE)
_SIZE = re.compile(r"([\d.]+)\s*(TB|GB|MB|KB|B)\b", re.IGNORECASE)
_EXACT = re.compile(r"\((-?\d+)\)")
_ROWS = re.compile(r"^(-?[\d.]+)\s*([KMB])?$", re.IGNORECASE)


def _is_missing(s):
    """None, placeholders and anything that is not text are read as no value."""
    if s is None:
        return True
    if not isinstance(s, str):
        log.debug("unexpected metric value: {!r}", s)
        return True
    return s.strip() in ("", "-", NOT_AVAILABLE)


def _plain_number(s):
    try:
        return float(str(s).replace(",", "").strip())
    except ValueError:
        log.debug("not a number: {!r}", s)
        return 0.0


def parse_time(s):
    """
    Parses a duration such as "1.592ms", "26s134ms" or "1h2m" into seconds.
    Missing or malformed values are 0.
    """
    if isinstance(s, (int, float)):
        return float(s)
    if _is_missing(s):
        return 0.0
    s = s.strip()
    if _TIME_FULL.fullmatch(s):
        total = 0.0
        factors = dict(TIME_UNITS)
        for value, suffix in _TIME_TOKEN.findall(s):
            total += float(value) * factors[suffix.lower()]
        return total
    return _plain_number(s)


def format_time(seconds):
    if not seconds:
        return "0"
    for suffix, factor in TIME_FORMAT_UNITS:
        if abs(seconds) >= factor:
            break
    value = "{:.3f}".format(seconds / factor).rstrip("0").rstrip(".")
    return value + suffix


def parse_bytes(s):
    if isinstance(s, (int, float)):
        return float(s)
    if _is_missing(s):
        return 0.0
    match = _SIZE.search(s)
    if match:
        factor = dict(SIZE_UNITS)[match.group(2).upper()]
        try:
            return float(match.group(1)) * factor
        except ValueError:
            log.debug("bad size: {!r}", s)
            return 0.0
    return _plain_number(s)


def format_bytes(n):
    for suffix, factor in SIZE_UNITS:
        if n >= factor:
            return "{:.2f} {}".format(n / factor, suffix)
    return "{:.2f} B".format(n)


def parse_rows(s):
    """
    Parses a row count. The exact integer in parentheses (e.g. "207.615K (207615)")
    wins over the shorthand in front of it.
    """
    if isinstance(s, (int, float)):
        return int(s)
    if _is_missing(s):
        return 0
    match = _EXACT.search(s)
    if match:
        return int(match.group(1))
    match = _ROWS.match(s.replace(",", "").strip())
    if not match:
        log.debug("bad row count: {!r}", s)
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    if match.group(2):
        value *= dict(ROW_UNITS)[match.group(2).upper()]
    return int(round(value))


def format_rows(n):
    for suffix, factor in ROW_UNITS:
        if n >= factor:
            return "{:.2f}{}".format(n / factor, suffix)
    return "{:,}".format(int(n))


def parse_value(s):
    """
    Best-effort numeric value of a metric whose kind is unknown:
    exact row counts, then sizes, then durations, then plain numbers.
    """
    if isinstance(s, (int, float)):
        return s
    if _is_missing(s):
        return 0
    s = s.strip()
    match = _EXACT.search(s)
    if match:
        return int(match.group(1))
    if _SIZE.search(s):
        return parse_bytes(s)
    if _TIME_FULL.fullmatch(s):
        return parse_time(s)
    if _ROWS.match(s.replace(",", "")):
        return parse_rows(s)
    return _plain_number(s)
