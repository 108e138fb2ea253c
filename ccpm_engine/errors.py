from typing import Any, Dict, List, Optional


class CCPMError(Exception):
    """
    Base exception for the CCPM analysis engine.

    Every error carries a stable machine-readable code and an HTTP-like status
    so the API layer can surface it without inspecting the exception type.
    """

    code = "CCPM_ERROR"
    status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the error to its wire representation.

        Returns:
            dict: {"error": {"code", "message", "details"}}
        """
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code}, message={self.message!r})"


class CycleDetectedError(CCPMError):
    """The dependency edges of a project do not form a DAG."""

    code = "CYCLE_DETECTED"
    status = 422

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        path = " -> ".join(str(task_id) for task_id in self.cycle)
        super().__init__(
            f"Task dependencies contain a cycle: {path}", {"cycle": self.cycle}
        )


class ProjectNotFoundError(CCPMError):
    code = "PROJECT_NOT_FOUND"
    status = 404

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(
            f"Project '{project_id}' not found", {"projectId": project_id}
        )


class BufferNotFoundError(CCPMError):
    code = "BUFFER_NOT_FOUND"
    status = 404

    def __init__(self, buffer_id: str):
        self.buffer_id = buffer_id
        super().__init__(f"Buffer '{buffer_id}' not found", {"bufferId": buffer_id})


class InsufficientDataError(CCPMError):
    code = "CCPM_INSUFFICIENT_DATA"
    status = 422


class InvalidSimulationCountError(CCPMError):
    code = "INVALID_SIMULATION_COUNT"
    status = 400

    def __init__(self, simulations: Any, minimum: int, maximum: int):
        self.simulations = simulations
        super().__init__(
            f"simulations must be an integer between {minimum} and {maximum}, "
            f"got {simulations!r}",
            {"simulations": simulations, "min": minimum, "max": maximum},
        )


class InvalidConsumptionError(CCPMError):
    code = "INVALID_CONSUMPTION"
    status = 400


class BufferArchivedError(CCPMError):
    code = "BUFFER_ARCHIVED"
    status = 409

    def __init__(self, buffer_id: str):
        self.buffer_id = buffer_id
        super().__init__(
            f"Buffer '{buffer_id}' is archived and cannot be modified",
            {"bufferId": buffer_id},
        )


class SimulationFailedError(CCPMError):
    """A forecast trial failed; the whole forecast is discarded."""

    code = "SIMULATION_FAILED"
    status = 500
