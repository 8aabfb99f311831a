import os
from dataclasses import dataclass
from enum import Enum

# longest single invocation the dense timeline has to absorb past the window
MAX_EXEC_TIME_MILLI = 60_000
MINUTE_MICRO = 60_000_000


class MalformedTraceError(ValueError):
    pass


# HashOwner,HashApp,HashFunction,Average,Count,Minimum,Maximum,...
class Duration:
    def __init__(self, HashOwner, HashApp, HashFunction, Average, Count, Minimum, Maximum):
        self.HashOwner = HashOwner
        self.HashApp = HashApp
        self.HashFunction = HashFunction
        self.Average = Average
        self.Count = Count
        self.Minimum = Minimum
        self.Maximum = Maximum


# HashOwner,HashApp,[HashFunction,]SampleCount,AverageAllocatedMb,...
class Memory:
    def __init__(self, HashOwner, HashApp, SampleCount, AverageAllocatedMb, HashFunction=None):
        self.HashOwner = HashOwner
        self.HashApp = HashApp
        self.HashFunction = HashFunction
        self.SampleCount = SampleCount
        self.AverageAllocatedMb = AverageAllocatedMb


# HashOwner,HashApp,HashFunction,Trigger,1..1440
class Invocation:
    def __init__(self, HashOwner, HashApp, HashFunction, Trigger: str, Counts: list[int]):
        self.HashOwner = HashOwner
        self.HashApp = HashApp
        self.HashFunction = HashFunction
        self.Trigger = Trigger
        self.Counts = Counts


@dataclass
class RuntimeSpecification:
    Runtime: int  # ms
    Memory: float  # MB


@dataclass
class FunctionSpecification:
    # IAT[m] holds Invocations[m] + 1 gaps in microseconds, the last one is the
    # residual to the end of the minute
    IAT: list[list[float]]
    RuntimeSpecification: list[list[RuntimeSpecification]]


class Function:
    def __init__(self, index: int, invocation: Invocation, duration: Duration = None, memory: float = 0):
        self.index = index
        self.HashOwner = invocation.HashOwner
        self.HashApp = invocation.HashApp
        self.HashFunction = invocation.HashFunction
        self.invocation = invocation
        self.duration = duration
        self.memory = memory
        self.specification: FunctionSpecification = None

    @property
    def Invocations(self) -> list[int]:
        return self.invocation.Counts

    @property
    def name(self) -> str:
        return f"{self.HashFunction[:8]}-{self.index}"


@dataclass(frozen=True, order=True)
class TimelineEntry:
    # delta before merging, absolute concurrency after
    timestamp: float
    concurrency: int


@dataclass(frozen=True)
class AvgTimelineEntry:
    timestamp: float
    value: float


class RecordKind(Enum):
    COLD_START = "coldstart"
    CPU = "cpu"
    MEMORY = "memory"


@dataclass(frozen=True)
class Record:
    kind: RecordKind
    timestamp: float
    function: int
    value: float = None

    def row(self) -> list:
        if self.kind == RecordKind.COLD_START:
            return [self.timestamp, self.function]
        return [self.timestamp, self.function, self.value]


def min2s(minute: float) -> float:
    return minute * 60


def log(msg: str, filename: str = "log.txt", newfile: bool = False, verbose: bool = True):
    if not verbose:
        return
    directory = os.path.dirname(filename)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filename, "w" if newfile else "a") as f:
        f.write(msg)
