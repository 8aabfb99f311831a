from typing import Iterator

import numpy as np

from Include import *
from Timeline import exceedsOverRange


def getColdStarts(concurrency: np.ndarray, keepalive: int) -> Iterator[int]:
    """Yield the tick of every instance that has to be provisioned from scratch.

    Instances seen anywhere in the last ``keepalive`` ticks are still warm, so
    an increase only cold starts the part above that trailing maximum. A
    keepalive of zero still keeps the instances busy in the previous tick.
    """
    concurrency = np.asarray(concurrency)
    if len(concurrency) == 0:
        return
    window = max(keepalive, 1)

    for _ in range(int(concurrency[0])):
        yield 0
    for i in np.flatnonzero(np.diff(concurrency) > 0) + 1:
        capacity = int(concurrency[max(0, i - window):i].max())
        for _ in range(capacity, int(concurrency[i])):
            yield int(i)


def generateInstanceTimeline(timeline: list[TimelineEntry], keepalive: float) -> list[TimelineEntry]:
    """Project a merged concurrency timeline onto provisioned instances.

    Scale-downs are postponed by ``keepalive`` and dropped if capacity above
    the new level is needed again within (t, t + keepalive]. Scale-ups only
    appear if nothing in [t - keepalive, t) was already at that level.
    """
    instanceTimeline = []
    previous = 0
    for entry in timeline:
        if entry.concurrency <= previous:
            needed = exceedsOverRange(timeline, entry.timestamp, entry.timestamp + keepalive, entry.concurrency,
                                      openStart=True, closedEnd=True)
            if not needed:
                instanceTimeline.append(TimelineEntry(entry.timestamp + keepalive, entry.concurrency))
        else:
            retained = exceedsOverRange(timeline, entry.timestamp - keepalive, entry.timestamp, entry.concurrency - 1)
            if not retained:
                instanceTimeline.append(entry)
        previous = entry.concurrency
    return instanceTimeline
