"""Quality metric and gate commands for the pe CLI."""

from cyclopts import App

from project_entities.models import GateStatus, MetricStatus

quality_app = App(name="quality", help="Record quality metric readings and gate verdicts")


@quality_app.command
def metric(quality_id: str, metric_id: str, current: float, status: MetricStatus) -> None:
    """Record a reading for one metric of a quality entry.

    Args:
        quality_id: Quality ID, e.g. qual-001
        metric_id: Metric ID within the entry
        current: Measured value
        status: in_progress, met or not_met
    """
    from project_entities.cli import get_project

    get_project().quality.update_metric(quality_id, metric_id, current, status)
    print(f"Updated metric {metric_id} of {quality_id}")


@quality_app.command
def gate(quality_id: str, name: str, status: GateStatus) -> None:
    """Record the verdict of a quality gate."""
    from project_entities.cli import get_project

    get_project().quality.update_gate(quality_id, name, status)
    print(f"Gate '{name}' of {quality_id} is {status.value}")
