import math
from bisect import bisect_left, bisect_right
from typing import Iterator

import numpy as np

from Include import *


def iterateInvocations(function: Function, duration: int) -> Iterator[tuple[int, float, int]]:
    """Walk the real invocations of the first ``duration`` minutes.

    Yields ``(minute, offset, runtime)`` with the start offset inside the
    minute in microseconds and the runtime in milliseconds. The trailing gap
    of every IAT row only pads the minute and is never yielded.
    """
    IAT = function.specification.IAT
    runtimeSpecification = function.specification.RuntimeSpecification
    invocations = function.Invocations

    minuteIndex, invocationIndex = 0, 0
    offset = 0.0
    while minuteIndex < duration:
        if invocations[minuteIndex] == 0:
            minuteIndex += 1
            invocationIndex = 0
            offset = 0.0
            continue

        offset += IAT[minuteIndex][invocationIndex]
        yield minuteIndex, offset, runtimeSpecification[minuteIndex][invocationIndex].Runtime

        invocationIndex += 1
        if invocations[minuteIndex] == invocationIndex:
            minuteIndex += 1
            invocationIndex = 0
            offset = 0.0


def timelineLength(duration: int, ticksPerSecond: int) -> int:
    return duration * 60 * ticksPerSecond + math.ceil(MAX_EXEC_TIME_MILLI * ticksPerSecond / 1000)


def generateFunctionTimeline(function: Function, duration: int, granularity: float) -> np.ndarray:
    """Dense concurrency: slot t counts the invocations running during tick t."""
    ticksPerSecond = int(round(1 / granularity))
    ticksPerMinute = 60 * ticksPerSecond
    maxTime = timelineLength(duration, ticksPerSecond)

    starts, ends = [], []
    for minute, offset, runtime in iterateInvocations(function, duration):
        startTime = minute * ticksPerMinute + int(offset * ticksPerSecond / 1e6)
        starts.append(startTime)
        # partial ticks count as busy
        ends.append(startTime + math.ceil(runtime * ticksPerSecond / 1000))

    delta = np.zeros(maxTime + 1, dtype=np.int32)
    np.add.at(delta, np.asarray(starts, dtype=np.int64), 1)
    np.add.at(delta, np.asarray(ends, dtype=np.int64), -1)
    return np.cumsum(delta[:-1], dtype=np.int32)


def generateFunctionTimelineCompressed(function: Function, duration: int, slowdown: float = 1.0) -> list[TimelineEntry]:
    timeline = []
    for minute, offset, runtime in iterateInvocations(function, duration):
        length = runtime / 1000 * slowdown
        if length <= 0:
            # never busy, never needs an instance
            continue
        startTime = min2s(minute) + offset / 1e6
        timeline.append(TimelineEntry(startTime, 1))
        timeline.append(TimelineEntry(startTime + length, -1))
    return mergeTimeline(timeline)


def mergeTimeline(timeline: list[TimelineEntry]) -> list[TimelineEntry]:
    # entries order by (timestamp, delta): simultaneous ends go before starts
    merged = []
    concurrency = 0
    for entry in sorted(timeline):
        concurrency += entry.concurrency
        if concurrency < 0:
            raise ValueError(f"Negative concurrency at {entry.timestamp}, more ends than starts")
        merged.append(TimelineEntry(entry.timestamp, concurrency))
    return merged


def _timestamp(entry: TimelineEntry) -> float:
    return entry.timestamp


def _window(timeline: list[TimelineEntry], start: float, end: float, openStart: bool, closedEnd: bool) -> range:
    if openStart:
        low = bisect_right(timeline, start, key=_timestamp)
    else:
        low = bisect_left(timeline, start, key=_timestamp)
    # step in effect when the window opens
    if low > 0:
        low -= 1
    if closedEnd:
        high = bisect_right(timeline, end, key=_timestamp)
    else:
        high = bisect_left(timeline, end, key=_timestamp)
    return range(low, high)


def maxOverRange(timeline: list[TimelineEntry], start: float, end: float,
                 openStart: bool = False, closedEnd: bool = False) -> int:
    """Maximum concurrency over [start, end) of a merged timeline."""
    maximum = 0
    for i in _window(timeline, start, end, openStart, closedEnd):
        if timeline[i].concurrency > maximum:
            maximum = timeline[i].concurrency
    return maximum


def exceedsOverRange(timeline: list[TimelineEntry], start: float, end: float, threshold: int,
                     openStart: bool = False, closedEnd: bool = False) -> bool:
    return any(timeline[i].concurrency > threshold for i in _window(timeline, start, end, openStart, closedEnd))


def averageTimeline(timeline: list[TimelineEntry], granularity: float) -> list[AvgTimelineEntry]:
    """Time-weighted mean of a sorted step function per ``granularity`` bucket.

    Buckets are aligned to multiples of ``granularity`` and run until the
    bucket start passes the last timestamp, so a timeline ending at zero gets
    a trailing zero bucket. An empty timeline gives no buckets.
    """
    if len(timeline) == 0:
        return []
    minTime = timeline[0].timestamp
    maxTime = timeline[-1].timestamp

    origin = math.floor(minTime / granularity) * granularity
    bucket = 0
    currentTime = origin
    intervalEnd = origin + granularity
    prevTimestamp = currentTime
    concurrency = 0
    i = 0

    avgTimeline = []
    while currentTime <= maxTime:
        area = 0.0
        while i < len(timeline) and timeline[i].timestamp <= intervalEnd:
            area += concurrency * (timeline[i].timestamp - prevTimestamp)
            concurrency = timeline[i].concurrency
            prevTimestamp = timeline[i].timestamp
            i += 1
        # rest of the bucket at the last known value
        area += concurrency * (intervalEnd - prevTimestamp)
        prevTimestamp = intervalEnd

        avgTimeline.append(AvgTimelineEntry(currentTime, area / granularity))
        bucket += 1
        currentTime = intervalEnd
        intervalEnd = origin + (bucket + 1) * granularity
    return avgTimeline
