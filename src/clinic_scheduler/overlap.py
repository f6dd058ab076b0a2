"""Appointment conflict detection.

Two appointments conflict when they belong to the same doctor, neither is
cancelled, and their half-open intervals ``[start, start + duration)``
intersect. Back-to-back appointments (one ends exactly when the next starts)
do not conflict.

Records are duck-typed: anything exposing ``doctor_id``, ``start_time``,
``duration_minutes`` and, for stored appointments, ``status`` and ``id`` works,
including the ORM ``Appointment`` model and the ``Candidate`` tuple below.
"""

from datetime import datetime, timedelta
from typing import Iterable, NamedTuple, Sequence

CANCELLED = "cancelled"


class Interval(NamedTuple):
    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start


class Candidate(NamedTuple):
    """A proposed appointment that is not stored yet."""

    doctor_id: str | None
    start_time: datetime | str
    duration_minutes: int


def parse_start_time(value: datetime | str) -> datetime:
    """Return an aware datetime; naive values are read as host-local time."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        # Naive datetimes are treated as local time, like the booking form produces them.
        value = value.astimezone()
    return value


def appointment_interval(record) -> Interval:
    start = parse_start_time(record.start_time)
    return Interval(start, start + timedelta(minutes=record.duration_minutes))


def intervals_overlap(a: Interval, b: Interval) -> bool:
    """Half-open intersection test shared by the checker and the scanners."""
    if a.is_empty or b.is_empty:
        return False
    return a.start < b.end and a.end > b.start


def _is_active(record) -> bool:
    return getattr(record, "status", None) != CANCELLED


def _same_doctor(a, b) -> bool:
    # A missing doctor is a bucket of one and never matches, not even another missing one.
    return a.doctor_id is not None and a.doctor_id == b.doctor_id


def check_overlap(candidate, existing: Iterable) -> list:
    """Return the non-cancelled appointments of the candidate's doctor that overlap it.

    Input order is preserved. An empty list means the slot is free.
    """
    window = appointment_interval(candidate)
    return [
        appt
        for appt in existing
        if _same_doctor(candidate, appt)
        and _is_active(appt)
        and intervals_overlap(window, appointment_interval(appt))
    ]


def find_conflicts(appointments: Sequence) -> list:
    """Return every appointment involved in at least one conflict.

    Pairs ``(i, j)`` with ``i < j`` are compared once each, and two entries
    sharing an ``id`` are the same appointment, never a conflict. The result is
    a flagging set keyed by ``id`` in first-encountered order; it does not say
    which appointments collide with each other (see ``find_conflicts_with``).
    """
    items = list(appointments)
    intervals = [appointment_interval(appt) for appt in items]
    flagged: list = []
    seen: set = set()
    for i, a in enumerate(items):
        for j in range(i + 1, len(items)):
            b = items[j]
            if a.id == b.id or not _same_doctor(a, b):
                continue
            if not _is_active(a) or not _is_active(b):
                continue
            if intervals_overlap(intervals[i], intervals[j]):
                for appt in (a, b):
                    if appt.id not in seen:
                        seen.add(appt.id)
                        flagged.append(appt)
    return flagged


def find_conflicts_sweep(appointments: Sequence) -> list:
    """Bucket by doctor, sort by start and sweep; same flagged ids as ``find_conflicts``.

    Runs in O(n log n). A cluster of mutually chained intervals is flagged when
    it holds at least two distinct ids. Results follow input order, one entry
    per id.
    """
    buckets: dict[object, list[tuple[Interval, object]]] = {}
    for appt in appointments:
        if appt.doctor_id is None or not _is_active(appt):
            continue
        interval = appointment_interval(appt)
        if interval.is_empty:
            continue
        buckets.setdefault(appt.doctor_id, []).append((interval, appt.id))

    flagged: set = set()
    for entries in buckets.values():
        entries.sort(key=lambda entry: (entry[0].start, entry[0].end))
        cluster: set = set()
        cluster_end = None
        for interval, appt_id in entries:
            if cluster_end is not None and interval.start < cluster_end:
                cluster.add(appt_id)
                cluster_end = max(cluster_end, interval.end)
                continue
            if len(cluster) > 1:
                flagged.update(cluster)
            cluster = {appt_id}
            cluster_end = interval.end
        if len(cluster) > 1:
            flagged.update(cluster)

    result: list = []
    for appt in appointments:
        if appt.id in flagged:
            flagged.discard(appt.id)
            result.append(appt)
    return result


def find_conflicts_with(appointment, appointments: Iterable) -> list:
    """Pair-level detail for one appointment: the others it collides with."""
    if not _is_active(appointment):
        return []
    others = [appt for appt in appointments if appt.id != appointment.id]
    return check_overlap(appointment, others)


__all__ = [
    "CANCELLED",
    "Candidate",
    "Interval",
    "appointment_interval",
    "check_overlap",
    "find_conflicts",
    "find_conflicts_sweep",
    "find_conflicts_with",
    "intervals_overlap",
    "parse_start_time",
]
