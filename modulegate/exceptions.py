"""
Error types for modulegate.

Only NotFound is raised out of evaluation. The others describe bad stored
data; the evaluator builds them, logs them and keeps them on
`ProgressionEvaluator.issues`, then carries on with a conservative answer.
"""


class NotFound(LookupError):
    """A learner or module id did not resolve through the store."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class MalformedPrerequisiteGraph(ValueError):
    """Module prerequisites loop back on themselves."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"Circular module prerequisites: {' -> '.join(self.cycle)}")


class UnsatisfiableRequirementCount(ValueError):
    """requirement_count asks for more requirements than the module has."""

    def __init__(self, module_id: str, requirement_count: int, available: int):
        self.module_id = module_id
        self.requirement_count = requirement_count
        self.available = available
        super().__init__(
            f"Module {module_id} requires {requirement_count} requirements but has "
            f"{available}; all {available} are needed"
        )


class InconsistentCompletionFact(ValueError):
    """A completion fact that cannot count toward a requirement."""

    def __init__(self, learner_id: str, module_id: str, item_id: str, reason: str):
        self.learner_id = learner_id
        self.module_id = module_id
        self.item_id = item_id
        self.reason = reason
        super().__init__(
            f"Ignoring completion fact for learner {learner_id}, "
            f"module {module_id}, item {item_id}: {reason}"
        )
