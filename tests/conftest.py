import pytest

from Include import *


def buildFunction(iat, runtimes, index=0):
    counts = [len(row) - 1 if len(row) > 0 else 0 for row in iat]
    invocation = Invocation("owner", "app", f"function{index:04d}", "http", counts)
    function = Function(index, invocation, memory=1)
    function.specification = FunctionSpecification(
        iat, [[RuntimeSpecification(runtime, 1) for runtime in row] for row in runtimes]
    )
    return function


@pytest.fixture
def makeFunction():
    return buildFunction
