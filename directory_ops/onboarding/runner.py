"""Onboarding workflow: Import -> Group Assignment -> Provisioning."""

from typing import Any, Dict, List, Optional

from ..log import get_logger
from .report import GROUP_ASSIGNMENT, PROVISIONING, StageResult, WorkflowReport
from .stages import assign_groups, import_rows, provision_applications

logger = get_logger(__name__)


def run_onboarding_workflow(
    directory: Any,
    rows: List[Dict[str, str]],
    activate: bool = True,
    notify: bool = True,
    default_groups: Optional[List[str]] = None,
    group_mappings: Optional[Dict[str, Dict[str, str]]] = None,
    application_ids: Optional[List[str]] = None,
) -> WorkflowReport:
    """Run all three stages over a batch of rows and return the report.

    Stages 2 and 3 both consume exactly the entity keys that succeeded in
    stage 1; neither sees the other's output.  A stage with no configuration
    (empty mapping / application list) is not run and reported as not
    configured.  No stage rolls back an earlier one.

    Args:
        directory:       Directory client.
        rows:            Parsed CSV rows.
        activate:        Activate users right after creation.
        notify:          Send the activation notification.
        default_groups:  Group ids every created user joins during import.
        group_mappings:  ``{attribute: {value: group_id}}`` assignment rules.
        application_ids: Applications granted to every created user.
    """
    # Stage 1: Import
    imported = import_rows(directory, rows, activate=activate, notify=notify,
                           default_groups=default_groups)
    logger.info("onboarding_import_done", succeeded=len(imported.successes),
                failed=len(imported.failures))

    keys = imported.succeeded_keys()
    if not keys:
        logger.warning("onboarding_skipped_downstream", rows=imported.total)
        return WorkflowReport(
            imported,
            StageResult(GROUP_ASSIGNMENT, configured=bool(group_mappings)),
            StageResult(PROVISIONING, configured=bool(application_ids)),
            skipped_downstream=True,
        )

    # Stage 2: Group assignment
    grouped = None
    if group_mappings:
        grouped = assign_groups(directory, keys, group_mappings)
        logger.info("onboarding_groups_done", succeeded=len(grouped.successes),
                    failed=len(grouped.failures))

    # Stage 3: Provisioning
    provisioned = None
    if application_ids:
        provisioned = provision_applications(directory, keys, application_ids)
        logger.info("onboarding_provisioning_done", succeeded=len(provisioned.successes),
                    failed=len(provisioned.failures))

    return WorkflowReport(imported, grouped, provisioned)
