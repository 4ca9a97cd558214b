"""
In-process metrics for workflow executions
"""

from typing import Any

from storeflow.types import WorkflowStatus

_STATUS_COUNTERS = {
    WorkflowStatus.SUCCEEDED: "total_succeeded",
    WorkflowStatus.FAILED_CLEAN: "total_failed_clean",
    WorkflowStatus.FAILED_DIRTY: "total_failed_dirty",
}


class WorkflowMetrics:
    """Collect and expose execution counters and timings"""

    def __init__(self):
        self.metrics: dict[str, Any] = {
            "total_executed": 0,
            "total_succeeded": 0,
            "total_failed_clean": 0,
            "total_failed_dirty": 0,
            "compensation_failures": 0,
            "average_execution_time": 0.0,
            "by_workflow": {},
        }

    def record_execution(self, workflow_name: str, status: WorkflowStatus, duration: float):
        self.metrics["total_executed"] += 1
        counter = _STATUS_COUNTERS.get(status)
        if counter:
            self.metrics[counter] += 1

        total = self.metrics["total_executed"]
        previous = self.metrics["average_execution_time"] * (total - 1)
        self.metrics["average_execution_time"] = (previous + duration) / total

        stats = self.metrics["by_workflow"].setdefault(
            workflow_name, {"count": 0, "succeeded": 0, "failed_clean": 0, "failed_dirty": 0}
        )
        stats["count"] += 1
        if counter:
            stats[counter.removeprefix("total_")] += 1

    def record_compensation_failure(self, workflow_name: str, step_name: str):
        self.metrics["compensation_failures"] += 1
        stats = self.metrics["by_workflow"].setdefault(
            workflow_name, {"count": 0, "succeeded": 0, "failed_clean": 0, "failed_dirty": 0}
        )
        failed_steps = stats.setdefault("failed_compensations", {})
        failed_steps[step_name] = failed_steps.get(step_name, 0) + 1

    def get_metrics(self) -> dict[str, Any]:
        executed = self.metrics["total_executed"]
        return {
            **self.metrics,
            "success_rate": (
                f"{self.metrics['total_succeeded'] / executed * 100:.2f}%" if executed else "0.00%"
            ),
        }

    def reset(self) -> None:
        self.__init__()
