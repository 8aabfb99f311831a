from dataclasses import dataclass

datasetLocation = "data/traces/"
outputFile = "output.csv"
logFile = "log/analysis.log"

# in min
duration = 1440
# in s
keepalive = 6
granularity = 1e-3
avgGranularity = 1.0

iatDistribution = "exponential"
randSeed = 42
analysis = "coldstart"
slowdown = 1.0
threads = 12

ANALYSES = ("coldstart", "cpu", "memory")


@dataclass
class Settings:
    tracePath: str = datasetLocation
    outputFile: str = outputFile
    duration: int = duration
    iatDistribution: str = iatDistribution
    randSeed: int = randSeed
    keepalive: float = keepalive
    analysis: str = analysis
    slowdown: float = slowdown
    threads: int = threads
    granularity: float = granularity
    avgGranularity: float = avgGranularity
    progressBar: bool = True
    verbose: bool = False
    logFile: str = logFile

    @property
    def ticksPerSecond(self) -> int:
        return int(round(1 / self.granularity))

    def validate(self):
        if self.analysis not in ANALYSES:
            raise ValueError(f"Unsupported analysis type {self.analysis}, one of {list(ANALYSES)}")
        if self.duration < 0:
            raise ValueError(f"Duration must be non-negative, got {self.duration}")
        if self.keepalive < 0:
            raise ValueError(f"Keepalive must be non-negative, got {self.keepalive}")
        if self.slowdown < 0:
            raise ValueError(f"Slowdown must be non-negative, got {self.slowdown}")
        if self.threads < 1:
            raise ValueError(f"Need at least one thread, got {self.threads}")
        if self.avgGranularity <= 0:
            raise ValueError(f"Averaging granularity must be positive, got {self.avgGranularity}")
        if self.granularity <= 0 or abs(1 / self.granularity - self.ticksPerSecond) > 1e-6:
            raise ValueError(f"Granularity must evenly divide one second, got {self.granularity}")
        return self
