import bisect
import dataclasses
import typing

from killer._types import _errors


@dataclasses.dataclass(frozen=True)
class Timespan:
    """Data structure for a half-open `[start, end)` span of integer seconds."""

    start: int
    end: int

    def __post_init__(self):
        if self.end < self.start:
            raise _errors.InvalidTimespanError(
                f"Timespan ends at {self.end} before it starts at {self.start}."
            )

    @property
    def duration(self) -> int:
        """Number of seconds covered by the span."""
        return self.end - self.start

    def clip(self, window_start: int, window_end: int) -> typing.Optional["Timespan"]:
        """
        Clip the span to the given window.

        :return:
            The portion of this span within `[window_start, window_end)` or
            None if the span has no seconds inside the window.
        """
        start = max(self.start, window_start)
        end = min(self.end, window_end)
        if end <= start:
            return None
        return Timespan(start, end)

    def to_tuple(self) -> typing.Tuple[int, int]:
        """Convert to a `(start, end)` tuple."""
        return self.start, self.end


class IntervalSet:
    """
    Canonical set of disjoint half-open spans of integer seconds.

    Spans are kept sorted by start and are never allowed to overlap or adjoin,
    so any two sets covering the same seconds hold identical spans. Inserting
    and removing spans are the only operations that change the structure; the
    set algebra is built from those two.
    """

    def __init__(
        self,
        spans: typing.Iterable[typing.Union[Timespan, typing.Tuple[int, int]]] = None,
    ):
        self._spans: typing.List[Timespan] = []
        for span in spans or []:
            start, end = span.to_tuple() if isinstance(span, Timespan) else span
            self.insert(start, end)

    def insert(self, start: int, end: int) -> "IntervalSet":
        """
        Add `[start, end)` to the set.

        Any existing spans that overlap or adjoin the new span are merged with it
        into a single span. Zero length spans are ignored.
        """
        span = Timespan(start, end)
        if not span.duration:
            return self

        # Spans from `lo` up to `hi` touch the new span: they end at or after
        # its start and begin at or before its end.
        lo = bisect.bisect_left(self._spans, start, key=lambda s: s.end)
        hi = bisect.bisect_right(self._spans, end, key=lambda s: s.start)
        if lo < hi:
            start = min(start, self._spans[lo].start)
            end = max(end, self._spans[hi - 1].end)

        self._spans[lo:hi] = [Timespan(start, end)]
        return self

    def remove(self, start: int, end: int) -> "IntervalSet":
        """
        Remove `[start, end)` from the set.

        Spans overlapping the removed span are dropped, shrunk or split in two.
        """
        span = Timespan(start, end)
        if not span.duration:
            return self

        # Spans from `lo` up to `hi` share at least one second with the
        # removed span.
        lo = bisect.bisect_right(self._spans, start, key=lambda s: s.end)
        hi = bisect.bisect_left(self._spans, end, key=lambda s: s.start)
        if lo >= hi:
            return self

        remainders = []
        if self._spans[lo].start < start:
            remainders.append(Timespan(self._spans[lo].start, start))
        if self._spans[hi - 1].end > end:
            remainders.append(Timespan(end, self._spans[hi - 1].end))

        self._spans[lo:hi] = remainders
        return self

    def update(self, other: "IntervalSet") -> "IntervalSet":
        """Add every span of the other set to this one."""
        for span in list(other):
            self.insert(span.start, span.end)
        return self

    def difference_update(self, other: "IntervalSet") -> "IntervalSet":
        """Remove every span of the other set from this one."""
        for span in list(other):
            self.remove(span.start, span.end)
        return self

    def intersection_update(self, other: "IntervalSet") -> "IntervalSet":
        """Keep only the seconds covered by both this set and the other one."""
        outside = self.difference(other)
        return self.difference_update(outside)

    def union(self, other: "IntervalSet") -> "IntervalSet":
        """Create a new set covering the seconds of either set."""
        return self.copy().update(other)

    def difference(self, other: "IntervalSet") -> "IntervalSet":
        """Create a new set covering the seconds of this set not in the other."""
        return self.copy().difference_update(other)

    def intersection(self, other: "IntervalSet") -> "IntervalSet":
        """Create a new set covering the seconds shared by both sets."""
        return self.copy().intersection_update(other)

    def copy(self) -> "IntervalSet":
        """Create an independent copy of this set."""
        output = IntervalSet()
        output._spans = list(self._spans)
        return output

    def spans_between(
        self,
        window_start: int,
        window_end: int,
    ) -> typing.Iterator[Timespan]:
        """
        Iterate in ascending order over the spans clipped to the given window.

        Each call starts a fresh iteration. Callers wanting to stop early
        simply stop iterating.
        """
        lo = bisect.bisect_right(self._spans, window_start, key=lambda s: s.end)
        for span in self._spans[lo:]:
            if span.start >= window_end:
                return
            clipped = span.clip(window_start, window_end)
            if clipped is not None:
                yield clipped

    def for_each_span(
        self,
        window_start: int,
        window_end: int,
        visitor: typing.Callable[[int, int], bool],
    ):
        """
        Visit the spans clipped to the given window in ascending order.

        The visitor is called with the start and end of each span and stops the
        iteration by returning False.
        """
        for span in self.spans_between(window_start, window_end):
            if not visitor(span.start, span.end):
                return

    def total_seconds(self, window_start: int, window_end: int) -> int:
        """Count the seconds covered by the set within the given window."""
        spans = self.spans_between(window_start, window_end)
        return sum(s.duration for s in spans)

    def contains(self, instant: int) -> bool:
        """Determine whether the given second lies inside one of the spans."""
        index = bisect.bisect_right(self._spans, instant, key=lambda s: s.start)
        return index > 0 and instant < self._spans[index - 1].end

    def to_list(self) -> typing.List[typing.Tuple[int, int]]:
        """Convert to a list of `(start, end)` tuples."""
        return [s.to_tuple() for s in self._spans]

    def __iter__(self) -> typing.Iterator[Timespan]:
        return iter(list(self._spans))

    def __len__(self) -> int:
        return len(self._spans)

    def __bool__(self) -> bool:
        return bool(self._spans)

    def __eq__(self, other: typing.Any) -> bool:
        if not isinstance(other, IntervalSet):
            return NotImplemented
        return self._spans == other._spans

    def __repr__(self) -> str:
        return f"IntervalSet({self.to_list()!r})"
