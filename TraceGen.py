import numpy as np
import csv
import os
from Include import *

# shape of the gamma IAT distribution, scale is irrelevant after normalisation
GAMMA_SHAPE = 2.0


def readCSV(path: str) -> list[list[str]]:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Could not read trace file: {path}")
    with open(path, "r", newline="") as f:
        return list(csv.reader(f))


def load_data(datasetPath: str, duration: int) -> list[Function]:
    """Read an Azure Functions style trace directory.

    Expects ``invocations.csv``, ``durations.csv`` and ``memory.csv``. The
    returned functions keep the order of the invocation file and are indexed
    accordingly; per-minute counts are cut (or zero padded) to ``duration``.
    """
    invocationData = readCSV(os.path.join(datasetPath, "invocations.csv"))
    durationData = readCSV(os.path.join(datasetPath, "durations.csv"))
    memoryData = readCSV(os.path.join(datasetPath, "memory.csv"))

    # key: (HashOwner, HashApp)
    durationMap: dict[tuple, dict[str, Duration]] = {}
    memoryMap: dict[tuple, Memory] = {}

    for line in durationData[1:]:
        HashOwner, HashApp, HashFunction = line[0], line[1], line[2]
        Average = float(line[3])
        Count = int(float(line[4]))
        Minimum = float(line[5])
        Maximum = float(line[6])
        functions = durationMap.setdefault((HashOwner, HashApp), {})
        if HashFunction not in functions:
            functions[HashFunction] = Duration(HashOwner, HashApp, HashFunction, Average, Count, Minimum, Maximum)

    # memory is either app level or already per function
    perFunction = len(memoryData) > 0 and "HashFunction" in memoryData[0]
    for line in memoryData[1:]:
        if perFunction:
            memory = Memory(line[0], line[1], int(float(line[3])), float(line[4]), HashFunction=line[2])
            key = (line[0], line[1], line[2])
        else:
            memory = Memory(line[0], line[1], int(float(line[2])), float(line[3]))
            key = (line[0], line[1])
        if key not in memoryMap:
            memoryMap[key] = memory

    functions: list[Function] = []
    for line in invocationData[1:]:
        HashOwner, HashApp, HashFunction, Trigger = line[0], line[1], line[2], line[3]
        durationInfo = durationMap.get((HashOwner, HashApp), {}).get(HashFunction)
        if durationInfo is None:
            continue
        Counts = list(map(int, line[4:4 + duration]))
        Counts += [0] * (duration - len(Counts))

        if perFunction:
            memory = memoryMap.get((HashOwner, HashApp, HashFunction))
            functionMemory = memory.AverageAllocatedMb if memory else 0
        else:
            memory = memoryMap.get((HashOwner, HashApp))
            count = len(durationMap[(HashOwner, HashApp)])
            functionMemory = memory.AverageAllocatedMb / count if memory else 0

        invocation = Invocation(HashOwner, HashApp, HashFunction, Trigger, Counts)
        functions.append(Function(len(functions), invocation, durationInfo, functionMemory))
    print("Data loaded successfully")

    return functions


def parseIATDistribution(iat: str) -> tuple[str, bool]:
    if iat == "equidistant":
        return iat, False
    for distribution in ("exponential", "gamma", "uniform"):
        if iat == distribution:
            return distribution, False
        if iat == f"{distribution}_shift":
            return distribution, True
    raise ValueError(f"Unsupported IAT distribution {iat}, one of [exponential(_shift), gamma(_shift), uniform(_shift), equidistant]")


def generateIAT(count: int, distribution: str, shift: bool, rng: np.random.Generator) -> list[float]:
    # count + 1 gaps in microseconds summing to one minute
    if count == 0:
        return [float(MINUTE_MICRO)]
    if distribution == "equidistant":
        step = MINUTE_MICRO / count
        return [0.0] + [step] * count
    if distribution == "exponential":
        samples = rng.exponential(1.0, count + 1)
    elif distribution == "gamma":
        samples = rng.gamma(GAMMA_SHAPE, 1.0, count + 1)
    elif distribution == "uniform":
        samples = rng.uniform(0.0, 1.0, count + 1)
    else:
        raise ValueError(f"Unsupported IAT distribution {distribution}")
    if not shift:
        # first invocation lands on the minute boundary
        samples[0] = 0.0
    total = samples.sum()
    if total <= 0:
        step = MINUTE_MICRO / count
        return [0.0] + [step] * count
    return (samples * (MINUTE_MICRO / total)).tolist()


def sampleRuntime(duration: Duration, rng: np.random.Generator) -> int:
    low = duration.Minimum
    high = max(duration.Maximum, duration.Minimum)
    runtime = rng.uniform(low, high) if high > low else low
    return int(np.clip(round(runtime), 1, MAX_EXEC_TIME_MILLI))


def generateSpecification(function: Function, distribution: str, shift: bool,
                          rng: np.random.Generator) -> FunctionSpecification:
    IAT, runtimeSpecification = [], []
    for count in function.Invocations:
        IAT.append(generateIAT(count, distribution, shift, rng))
        runtimeSpecification.append(
            [RuntimeSpecification(sampleRuntime(function.duration, rng), function.memory) for _ in range(count)]
        )
    return FunctionSpecification(IAT, runtimeSpecification)


def validateSpecification(function: Function, duration: int):
    specification = function.specification
    if specification is None:
        raise MalformedTraceError(f"Function {function.name} has no invocation specification")
    IAT, runtimeSpecification = specification.IAT, specification.RuntimeSpecification
    if len(function.Invocations) < duration or len(IAT) < duration:
        raise MalformedTraceError(
            f"Function {function.name}: trace covers {min(len(function.Invocations), len(IAT))} minutes, need {duration}"
        )
    for minute in range(duration):
        count = function.Invocations[minute]
        row = IAT[minute]
        runtimes = runtimeSpecification[minute] if minute < len(runtimeSpecification) else []
        if count < 0 or (count > 0 and len(row) != count + 1) or (count == 0 and len(row) > 1):
            raise MalformedTraceError(
                f"Function {function.name}, minute {minute}: {count} invocations but {len(row)} IAT entries"
            )
        if not count <= len(runtimes) <= max(len(row), count):
            raise MalformedTraceError(
                f"Function {function.name}, minute {minute}: {len(runtimes)} runtimes for {len(row)} IAT entries"
            )
        for spec in runtimes[:count]:
            if not 0 <= spec.Runtime <= MAX_EXEC_TIME_MILLI:
                raise MalformedTraceError(
                    f"Function {function.name}, minute {minute}: runtime {spec.Runtime}ms outside [0, {MAX_EXEC_TIME_MILLI}]"
                )
