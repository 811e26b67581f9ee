from __future__ import annotations


class EngineError(ValueError):
    pass


class CyclicHierarchyError(EngineError):
    def __init__(self, kind: str, cycle: list[str]) -> None:
        super().__init__(f"{kind} cycle detected: {' -> '.join(cycle)}")
        self.kind = kind
        self.cycle = list(cycle)


class OrphanedReferenceError(EngineError):
    def __init__(self, kind: str, node_id: str, missing_id: str) -> None:
        super().__init__(f"{node_id} references missing {kind} {missing_id}")
        self.kind = kind
        self.node_id = node_id
        self.missing_id = missing_id


class InvalidTransitionError(EngineError):
    pass
