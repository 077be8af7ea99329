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

import enum

import logbook

from planview.units import (
    NOT_AVAILABLE,
    format_bytes,
    format_rows,
    format_time,
    parse_bytes,
    parse_rows,
    parse_time,
    parse_value,
)

log = logbook.Logger("metrics")

PRIMARY_SCAN_OPERATORS = ("CONNECTOR_SCAN", "OLAP_SCAN")
EXCHANGE_SOURCE = "EXCHANGE_SOURCE"
EXCHANGE_SINK = "EXCHANGE_SINK"

TOTAL_TIME = "OperatorTotalTime"
SCAN_TIME = "ScanTime"
NETWORK_TIME = "NetworkTime"
PULL_ROWS = "PullRowNum"
PUSH_ROWS = "PushRowNum"


class OperatorClass(enum.Enum):
    SCAN = "scan"
    JOIN = "join"
    EXCHANGE = "exchange"
    AGGREGATE = "aggregate"
    PROJECT = "project"
    UNION = "union"
    RESULT = "result"
    OTHER = "other"


# classes a filter query may name with type=...
FILTERABLE_CLASSES = {
    c.value: c
    for c in (
        OperatorClass.SCAN,
        OperatorClass.JOIN,
        OperatorClass.EXCHANGE,
        OperatorClass.AGGREGATE,
        OperatorClass.PROJECT,
        OperatorClass.UNION,
    )
}

# used when a node's class has to be inferred from its operator instances
_INSTANCE_PRECEDENCE = [
    OperatorClass.SCAN,
    OperatorClass.JOIN,
    OperatorClass.EXCHANGE,
    OperatorClass.AGGREGATE,
    OperatorClass.UNION,
    OperatorClass.PROJECT,
    OperatorClass.RESULT,
    OperatorClass.OTHER,
]


def classify_operator(name):
    """
    Maps an operator or plan node name (e.g. "HASH_JOIN_PROBE", "OLAP_SCAN") to its class.
    This is the only place operator names are matched by substring.
    """
    n = (name or "").upper()
    if "RESULT" in n:
        return OperatorClass.RESULT
    if "SCAN" in n:
        return OperatorClass.SCAN
    if "JOIN" in n:
        return OperatorClass.JOIN
    if "EXCHANGE" in n:
        return OperatorClass.EXCHANGE
    if "AGG" in n:
        return OperatorClass.AGGREGATE
    if "UNION" in n:
        return OperatorClass.UNION
    if "PROJECT" in n or "CHUNK_ACCUMULATE" in n:
        return OperatorClass.PROJECT
    return OperatorClass.OTHER


class OperatorInstance:
    __slots__ = ("name", "common_metrics", "unique_metrics", "fragment_id", "pipeline_id", "operator_class")

    def __init__(self, name, common_metrics=None, unique_metrics=None, fragment_id=None, pipeline_id=None):
        self.name = name
        self.common_metrics = dict(common_metrics or {})
        self.unique_metrics = dict(unique_metrics or {})
        self.fragment_id = fragment_id
        self.pipeline_id = pipeline_id
        self.operator_class = classify_operator(name)

    def common(self, key):
        return self.common_metrics.get(key)

    def unique(self, key):
        return self.unique_metrics.get(key)

    @property
    def total_time(self):
        return parse_time(self.common(TOTAL_TIME))

    def __repr__(self):
        return "OperatorInstance({!r}, fragment={}, pipeline={})".format(self.name, self.fragment_id, self.pipeline_id)


def _time_of(instance):
    return instance.total_time if instance is not None else 0.0


def _metric(instance, key, source="common"):
    if instance is None:
        return None
    if source == "common":
        return instance.common(key)
    return instance.unique(key)


def _text(value):
    if value is None or value == "":
        return NOT_AVAILABLE
    return str(value)


class ScanView:
    def __init__(self, instance):
        self.instance = instance

    @property
    def operator_time(self):
        return _time_of(self.instance)

    @property
    def scan_time(self):
        return parse_time(_metric(self.instance, SCAN_TIME, "unique"))

    @property
    def total_time(self):
        return self.operator_time + self.scan_time

    @property
    def table(self):
        return _metric(self.instance, "Table", "unique")


class JoinView:
    def __init__(self, probe, build):
        self.probe = probe
        self.build = build

    @property
    def total_time(self):
        return _time_of(self.probe) + _time_of(self.build)


class ExchangeView:
    def __init__(self, source, sink):
        self.source = source
        self.sink = sink

    @property
    def network_time(self):
        return parse_time(_metric(self.sink, NETWORK_TIME, "unique"))

    @property
    def total_time(self):
        return _time_of(self.source) + _time_of(self.sink) + self.network_time


class NodeMetrics:
    """
    All operator instances found for one plan node, in discovery order.
    Views are derived on demand since the same instances read differently per operator class.
    """

    def __init__(self, instances=None):
        self.instances = list(instances or [])

    def __len__(self):
        return len(self.instances)

    @property
    def operator_class(self):
        classes = {i.operator_class for i in self.instances}
        for c in _INSTANCE_PRECEDENCE:
            if c in classes:
                return c
        return OperatorClass.OTHER

    def _first(self, predicate):
        for instance in self.instances:
            if predicate(instance.name):
                return instance
        return None

    def scan_view(self):
        instance = (
            self._first(lambda name: name in PRIMARY_SCAN_OPERATORS)
            or self._first(lambda name: "SCAN" in name)
            or (self.instances[0] if self.instances else None)
        )
        return ScanView(instance)

    def join_view(self):
        return JoinView(
            probe=self._first(lambda name: "JOIN_PROBE" in name),
            build=self._first(lambda name: "JOIN_BUILD" in name),
        )

    def exchange_view(self):
        return ExchangeView(
            source=self._first(lambda name: name == EXCHANGE_SOURCE),
            sink=self._first(lambda name: name == EXCHANGE_SINK),
        )

    def total_time(self, operator_class=None):
        operator_class = operator_class or self.operator_class
        if operator_class is OperatorClass.SCAN:
            return self.scan_view().total_time
        elif operator_class is OperatorClass.JOIN:
            return self.join_view().total_time
        elif operator_class is OperatorClass.EXCHANGE:
            return self.exchange_view().total_time
        elif operator_class in (
            OperatorClass.AGGREGATE,
            OperatorClass.PROJECT,
            OperatorClass.UNION,
            OperatorClass.RESULT,
            OperatorClass.OTHER,
        ):
            return sum(i.total_time for i in self.instances)
        raise ValueError("unsupported operator class: {}".format(operator_class))

    def output_rows(self, operator_class=None):
        operator_class = operator_class or self.operator_class
        if operator_class is OperatorClass.SCAN:
            return parse_rows(_metric(self.scan_view().instance, PULL_ROWS))
        elif operator_class is OperatorClass.JOIN:
            return parse_rows(_metric(self.join_view().probe, PULL_ROWS))
        elif operator_class is OperatorClass.EXCHANGE:
            view = self.exchange_view()
            rows = _metric(view.source, PULL_ROWS)
            if rows is None:
                rows = _metric(view.sink, PUSH_ROWS)
            return parse_rows(rows)
        instance = self._first(lambda name: name.endswith("_SOURCE")) or (
            self.instances[0] if self.instances else None
        )
        return parse_rows(_metric(instance, PULL_ROWS))

    def skew(self, key=TOTAL_TIME):
        """
        max/min ratio of a per-instance metric across parallel drivers, or None
        when the profile carries no __MAX_OF_/__MIN_OF_ pair for it.
        """
        ratios = []
        for instance in self.instances:
            max_value = instance.common("__MAX_OF_" + key)
            min_value = instance.common("__MIN_OF_" + key)
            if max_value is None or min_value is None:
                continue
            max_value, min_value = parse_value(max_value), parse_value(min_value)
            if min_value > 0:
                ratios.append(max_value / min_value)
        return max(ratios) if ratios else None

    def detail_rows(self, operator_class=None):
        """Ordered (label, value) rows for the node's popover."""
        operator_class = operator_class or self.operator_class
        if operator_class is OperatorClass.SCAN:
            rows = _scan_rows(self.scan_view())
        elif operator_class is OperatorClass.JOIN:
            rows = _join_rows(self.join_view())
        elif operator_class is OperatorClass.EXCHANGE:
            rows = _exchange_rows(self.exchange_view())
        else:
            rows = _other_rows(self, operator_class)
        skew = self.skew()
        if skew is not None:
            rows.append(("Skew", "{:.1f}x".format(skew)))
        return rows


def _formatted(instance, key, source, formatter, parser):
    value = _metric(instance, key, source)
    if value is None:
        return NOT_AVAILABLE
    return formatter(parser(value))


def _scan_rows(view):
    i = view.instance
    return [
        ("Table", _text(view.table)),
        ("Operator Time", _formatted(i, TOTAL_TIME, "common", format_time, parse_time)),
        ("Scan Time", _formatted(i, SCAN_TIME, "unique", format_time, parse_time)),
        ("IO Wait", _formatted(i, "IOTaskWaitTime", "unique", format_time, parse_time)),
        ("IO Exec", _formatted(i, "IOTaskExecTime", "unique", format_time, parse_time)),
        ("Pull Rows", _formatted(i, PULL_ROWS, "common", format_rows, parse_rows)),
        ("Bytes Read", _formatted(i, "BytesRead", "unique", format_bytes, parse_bytes)),
        ("Raw Rows", _formatted(i, "RawRowsRead", "unique", format_rows, parse_rows)),
        ("Rows Read", _formatted(i, "RowsRead", "unique", format_rows, parse_rows)),
        ("Predicates", _text(_metric(i, "Predicates", "unique"))),
        ("Tablets", _text(_metric(i, "TabletCount", "unique"))),
    ]


def _join_rows(view):
    probe, build = view.probe, view.build
    return [
        ("Join Type", _text(_metric(probe, "JoinType", "unique") or _metric(build, "JoinType", "unique"))),
        (
            "Distribution",
            _text(_metric(probe, "DistributionMode", "unique") or _metric(build, "DistributionMode", "unique")),
        ),
        (
            "Predicates",
            _text(_metric(build, "JoinPredicates", "unique") or _metric(probe, "JoinPredicates", "unique")),
        ),
        ("Probe Time", _formatted(probe, TOTAL_TIME, "common", format_time, parse_time)),
        ("Build Time", _formatted(build, TOTAL_TIME, "common", format_time, parse_time)),
        ("Probe Push Rows", _formatted(probe, PUSH_ROWS, "common", format_rows, parse_rows)),
        ("Probe Pull Rows", _formatted(probe, PULL_ROWS, "common", format_rows, parse_rows)),
        ("Build Push Rows", _formatted(build, PUSH_ROWS, "common", format_rows, parse_rows)),
        ("Hash Table Memory", _formatted(build, "HashTableMemoryUsage", "unique", format_bytes, parse_bytes)),
        ("Rows Spilled", _formatted(build, "RowsSpilled", "unique", format_rows, parse_rows)),
    ]


def _exchange_rows(view):
    source, sink = view.source, view.sink
    return [
        ("Source Time", _formatted(source, TOTAL_TIME, "common", format_time, parse_time)),
        ("Sink Time", _formatted(sink, TOTAL_TIME, "common", format_time, parse_time)),
        ("Network Time", _formatted(sink, NETWORK_TIME, "unique", format_time, parse_time)),
        ("Sink Push Rows", _formatted(sink, PUSH_ROWS, "common", format_rows, parse_rows)),
        ("Source Pull Rows", _formatted(source, PULL_ROWS, "common", format_rows, parse_rows)),
        ("Bytes Sent", _formatted(sink, "BytesSent", "unique", format_bytes, parse_bytes)),
    ]


def _other_rows(metrics, operator_class):
    rows = [
        ("Total Time", format_time(metrics.total_time(operator_class))),
        ("Pull Rows", format_rows(metrics.output_rows(operator_class))),
    ]
    for instance in metrics.instances:
        rows.append((instance.name, _formatted(instance, TOTAL_TIME, "common", format_time, parse_time)))
    return rows
