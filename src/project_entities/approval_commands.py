"""Approval queue commands for the pe CLI."""

from cyclopts import App

approval_app = App(name="approval", help="Review actions waiting for approval")


@approval_app.command
def pending() -> None:
    """List pending approvals."""
    from project_entities.cli import get_project

    project = get_project()
    approvals = project.pending()

    if not approvals:
        print("No pending approvals")
        return

    print(f"{len(approvals)} pending approval(s):\n")
    for approval in approvals:
        print(f"  {approval.id} [{approval.type}] {approval.description} ({approval.created_at})")


@approval_app.command
def show(approval_id: str) -> None:
    """Show an approval, pending or resolved."""
    from project_entities.cli import get_project

    approval = get_project().approvals.get(approval_id)
    print(f"Approval: {approval.id}")
    print(f"Type: {approval.type}")
    print(f"Description: {approval.description}")
    print(f"Status: {approval.status.value}")
    if approval.approved_by:
        print(f"Approved by: {approval.approved_by}")
    if approval.rejected_by:
        print(f"Rejected by: {approval.rejected_by}")
    if approval.reason:
        print(f"Reason: {approval.reason}")


@approval_app.command
def approve(approval_id: str) -> None:
    """Approve a pending approval and apply it."""
    from project_entities.cli import get_project

    result = get_project().approve(approval_id)
    print(f"Approved {result.approval.id}")
    if result.entity_id:
        print(f"Created {result.entity_id}")


@approval_app.command
def reject(approval_id: str, reason: str = "") -> None:
    """Reject a pending approval."""
    from project_entities.cli import get_project

    result = get_project().reject(approval_id, reason)
    print(f"Rejected {result.approval.id}")
