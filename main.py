import argparse
import csv
from queue import Queue
from threading import BoundedSemaphore, Lock, Thread
from typing import Callable, Iterator

import numpy as np
from tqdm import tqdm

import config
from config import Settings
from Include import *
from Simulator import *
from Timeline import *
from TraceGen import *

# records buffered between the workers and the writer before workers block
CHANNEL_SIZE = 1000

HEADERS = {
    RecordKind.COLD_START: ["timestamp", "functionNum"],
    RecordKind.CPU: ["timestamp", "function", "cpu"],
    RecordKind.MEMORY: ["timestamp", "function", "memory"],
}


def coldStarts(function: Function, settings: Settings) -> Iterator[Record]:
    timeline = generateFunctionTimeline(function, settings.duration, settings.granularity)
    keepalive = int(round(settings.keepalive * settings.ticksPerSecond))
    for t in getColdStarts(timeline, keepalive):
        yield Record(RecordKind.COLD_START, t, function.index)


def estimateCPUUsage(function: Function, settings: Settings) -> Iterator[Record]:
    timeline = generateFunctionTimelineCompressed(function, settings.duration, settings.slowdown)
    for entry in averageTimeline(timeline, settings.avgGranularity):
        yield Record(RecordKind.CPU, entry.timestamp, function.index, entry.value)


def estimateMemoryUsage(function: Function, settings: Settings) -> Iterator[Record]:
    timeline = generateFunctionTimelineCompressed(function, settings.duration, settings.slowdown)
    instanceTimeline = generateInstanceTimeline(timeline, settings.keepalive)
    for entry in averageTimeline(instanceTimeline, settings.avgGranularity):
        yield Record(RecordKind.MEMORY, entry.timestamp, function.index, entry.value)


ANALYSES: dict[str, Callable[[Function, Settings], Iterator[Record]]] = {
    "coldstart": coldStarts,
    "cpu": estimateCPUUsage,
    "memory": estimateMemoryUsage,
}


class CSVRecordSink:
    def __init__(self, location: str, kind: RecordKind):
        self.file = open(location, "w", newline="")
        self.writer = csv.writer(self.file)
        self.writer.writerow(HEADERS[kind])

    def write(self, record: Record):
        self.writer.writerow(record.row())

    def close(self):
        self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class RecordWriter(Thread):
    """Single consumer of the record channel; stops at the ``None`` sentinel."""

    def __init__(self, sink, channel: Queue):
        super().__init__(name="record-writer", daemon=True)
        self.sink = sink
        self.channel = channel
        self.error = None
        self.written = 0

    def run(self):
        while True:
            record = self.channel.get()
            if record is None:
                break
            if self.error is not None:
                # keep draining so blocked workers can finish
                continue
            try:
                self.sink.write(record)
                self.written += 1
            except Exception as e:
                self.error = e


def runAnalysis(functions: list[Function], settings: Settings, sink) -> int:
    """Run the configured analysis for every function, at most ``threads`` at once.

    Records of all functions go through one bounded channel to ``sink``. The
    first failure stops the run: no further functions are started and the
    error is raised once the running ones and the writer are done.
    """
    analysis = ANALYSES[settings.analysis]
    limiter = BoundedSemaphore(settings.threads)
    channel = Queue(maxsize=CHANNEL_SIZE)
    logLock = Lock()
    errors = []

    writer = RecordWriter(sink, channel)
    writer.start()

    def process(function: Function):
        try:
            validateSpecification(function, settings.duration)
            count = 0
            for record in analysis(function, settings):
                channel.put(record)
                count += 1
            with logLock:
                log(f"function {function.index} ({function.name}): {count} records\n",
                    filename=settings.logFile, verbose=settings.verbose)
        except Exception as e:
            errors.append(e)
        finally:
            limiter.release()

    workers = []
    for function in tqdm(functions, desc=f"{settings.analysis:10}", disable=not settings.progressBar, leave=False):
        limiter.acquire()
        if errors:
            limiter.release()
            break
        worker = Thread(target=process, args=(function,), name=f"function-{function.index}")
        workers.append(worker)
        worker.start()
    for worker in workers:
        worker.join()

    channel.put(None)
    writer.join()
    if errors:
        raise errors[0]
    if writer.error is not None:
        raise writer.error
    return writer.written


def prepareFunctions(settings: Settings) -> list[Function]:
    distribution, shift = parseIATDistribution(settings.iatDistribution)
    functions = load_data(settings.tracePath, settings.duration)
    print(f"Traces contain the following {len(functions)} functions")

    rng = np.random.default_rng(settings.randSeed)
    for function in tqdm(functions, desc="Generating", disable=not settings.progressBar, leave=False):
        function.specification = generateSpecification(function, distribution, shift, rng)
    return functions


def parseArgs(argv=None) -> Settings:
    parser = argparse.ArgumentParser(description="Estimate cold starts and resource usage of a FaaS trace")
    parser.add_argument("--tracePath", default=config.datasetLocation, help="Path to folder where the trace is located")
    parser.add_argument("--outputFile", default=config.outputFile, help="Path to output file")
    parser.add_argument("--duration", type=int, default=config.duration, help="Duration of the traces in minutes")
    parser.add_argument("--iatDistribution", default=config.iatDistribution,
                        help="IAT distribution, one of [exponential(_shift), gamma(_shift), uniform(_shift), equidistant]")
    parser.add_argument("--randSeed", type=int, default=config.randSeed, help="Seed for the random number generator")
    parser.add_argument("--keepalive", type=float, default=config.keepalive, help="Keepalive period in seconds")
    parser.add_argument("--type", dest="analysis", default=config.analysis, choices=config.ANALYSES,
                        help="Type of analysis to perform")
    parser.add_argument("--slowdown", type=float, default=config.slowdown,
                        help="Slowdown factor for each invocation for the analysis")
    parser.add_argument("-j", dest="threads", type=int, default=config.threads,
                        help="Number of threads to use for processing")
    parser.add_argument("--granularity", type=float, default=config.granularity,
                        help="Tick size in seconds of the cold start timeline")
    parser.add_argument("--avgGranularity", type=float, default=config.avgGranularity,
                        help="Bucket size in seconds of the usage estimates")
    parser.add_argument("--logFile", default=config.logFile)
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--noProgress", dest="progressBar", action="store_false")
    args = parser.parse_args(argv)
    return Settings(**vars(args)).validate()


def main(argv=None):
    settings = parseArgs(argv)
    log(f"Analysis {settings.analysis}, trace {settings.tracePath}, duration {settings.duration}\n",
        filename=settings.logFile, newfile=True, verbose=settings.verbose)
    functions = prepareFunctions(settings)
    with CSVRecordSink(settings.outputFile, RecordKind(settings.analysis)) as sink:
        written = runAnalysis(functions, settings, sink)
    print(f"{written} records written to {settings.outputFile}")


if __name__ == "__main__":
    main()
