"""Outcome records and text rendering for the onboarding stages.

Each stage produces a :class:`StageResult` -- a pair of append-only outcome
lists (successes, failures).  :class:`WorkflowReport` composes the three
stage results and derives the summary counts.
"""

from typing import Any, Dict, List, Optional

IMPORT = "import"
GROUP_ASSIGNMENT = "group_assignment"
PROVISIONING = "provisioning"

STAGE_TITLES = {
    IMPORT: "User Import",
    GROUP_ASSIGNMENT: "Group Assignment",
    PROVISIONING: "Application Provisioning",
}


class StageOutcome:
    """Result for one entity in one stage.

    Attributes:
        entity_key:  Directory id, or the row's contact identifier / row
                     number when no entity exists.
        status:      ``SUCCESS`` or ``FAILURE``.
        detail:      Status label or failure reason.
        label:       Human-facing identifier (contact identifier) when known.
        groups:      Groups assigned (group-assignment stage only).
        sub_results: Per-application ``{"targetId", "status", "reason"?}``
                     entries (provisioning stage only).
    """

    SUCCESS = "success"
    FAILURE = "failure"

    def __init__(
        self,
        entity_key: str,
        status: str,
        detail: str = "",
        label: str = "",
        groups: Optional[List[str]] = None,
        sub_results: Optional[List[Dict[str, str]]] = None,
    ):
        self.entity_key = entity_key
        self.status = status
        self.detail = detail
        self.label = label
        self.groups = groups
        self.sub_results = sub_results

    @property
    def display_name(self) -> str:
        return self.label or self.entity_key

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON output.  Omits empty fields."""
        d: Dict[str, Any] = {
            "entityKey": self.entity_key,
            "status": self.status,
        }
        if self.detail:
            d["detail"] = self.detail
        if self.label:
            d["label"] = self.label
        if self.groups is not None:
            d["groups"] = list(self.groups)
        if self.sub_results is not None:
            d["subResults"] = [dict(s) for s in self.sub_results]
        return d


class StageResult:
    """Successes and failures of one stage, in input order."""

    def __init__(self, stage: str, configured: bool = True):
        self.stage = stage
        self.configured = configured
        self.successes: List[StageOutcome] = []
        self.failures: List[StageOutcome] = []

    def record(self, outcome: StageOutcome):
        if outcome.status == StageOutcome.SUCCESS:
            self.successes.append(outcome)
        else:
            self.failures.append(outcome)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    def succeeded_keys(self) -> List[str]:
        return [o.entity_key for o in self.successes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "configured": self.configured,
            "success": [o.to_dict() for o in self.successes],
            "failed": [o.to_dict() for o in self.failures],
        }


class WorkflowReport:
    """The three stage results of one onboarding run plus derived counts.

    ``skipped_downstream`` is set when the import produced no entities and the
    later stages never ran.
    """

    def __init__(self, import_outcomes: StageResult,
                 group_assignment_outcomes: Optional[StageResult] = None,
                 provisioning_outcomes: Optional[StageResult] = None,
                 skipped_downstream: bool = False):
        self.import_outcomes = import_outcomes
        self.group_assignment_outcomes = group_assignment_outcomes or StageResult(
            GROUP_ASSIGNMENT, configured=False)
        self.provisioning_outcomes = provisioning_outcomes or StageResult(
            PROVISIONING, configured=False)
        self.skipped_downstream = skipped_downstream

    def summary(self) -> Dict[str, int]:
        groups = self.group_assignment_outcomes
        apps = self.provisioning_outcomes
        return {
            "total_processed": self.import_outcomes.total,
            "successfully_onboarded": len(self.import_outcomes.successes),
            "failed_import": len(self.import_outcomes.failures),
            "failed_group_assignment": len(groups.failures),
            "failed_provisioning": len(apps.failures),
            "groups_assigned": sum(len(o.groups or []) for o in groups.successes + groups.failures),
            "applications_provisioned": sum(
                1
                for o in apps.successes + apps.failures
                for s in (o.sub_results or [])
                if s.get("status") == StageOutcome.SUCCESS
            ),
        }

    @property
    def has_failures(self) -> bool:
        return any(
            stage.failures
            for stage in (self.import_outcomes, self.group_assignment_outcomes,
                          self.provisioning_outcomes)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userImport": self.import_outcomes.to_dict(),
            "groupAssignment": self.group_assignment_outcomes.to_dict(),
            "applicationProvisioning": self.provisioning_outcomes.to_dict(),
            "skippedDownstream": self.skipped_downstream,
            "hasFailures": self.has_failures,
            "summary": self.summary(),
        }


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------

def format_import(result: StageResult) -> str:
    """Render the import stage as a numbered success/failure listing."""
    lines = [
        f"Processed {result.total} users from CSV data:",
        f"- Successfully created: {len(result.successes)}",
        f"- Failed: {len(result.failures)}",
    ]
    if result.successes:
        lines.append("")
        lines.append("Successfully created users:")
        for i, o in enumerate(result.successes, 1):
            lines.append(f"{i}. {o.display_name} (ID: {o.entity_key}, Status: {o.detail})")
    if result.failures:
        lines.append("")
        lines.append("Failed users:")
        for i, o in enumerate(result.failures, 1):
            lines.append(f"{i}. {o.display_name} - {o.detail}")
    return "\n".join(lines)


def format_group_assignment(result: StageResult) -> str:
    lines = [
        f"Processed group assignments for {result.total} users:",
        f"- Successful assignments: {len(result.successes)}",
        f"- Failed assignments: {len(result.failures)}",
    ]
    if result.successes:
        lines.append("")
        lines.append("Successfully assigned users:")
        for i, o in enumerate(result.successes, 1):
            if o.groups:
                info = f"assigned to {len(o.groups)} group(s): {', '.join(o.groups)}"
            else:
                info = o.detail or "no matching groups"
            lines.append(f"{i}. {o.display_name} ({info})")
    if result.failures:
        lines.append("")
        lines.append("Failed assignments:")
        for i, o in enumerate(result.failures, 1):
            lines.append(f"{i}. User ID: {o.entity_key} - {o.detail}")
    return "\n".join(lines)


def format_provisioning(result: StageResult, application_count: int) -> str:
    lines = [
        f"Processed application provisioning for {result.total} users "
        f"across {application_count} applications:",
        f"- Successful provisioning: {len(result.successes)} users",
        f"- Failed provisioning: {len(result.failures)} users",
    ]
    if result.successes:
        lines.append("")
        lines.append("Successfully provisioned users:")
        for i, o in enumerate(result.successes, 1):
            lines.append(f"{i}. {o.display_name} (provisioned {len(o.sub_results or [])} applications)")
    if result.failures:
        lines.append("")
        lines.append("Failed provisioning:")
        for i, o in enumerate(result.failures, 1):
            lines.append(f"{i}. {o.display_name} - {o.detail}")
            for sub in o.sub_results or []:
                if sub.get("status") == StageOutcome.FAILURE:
                    lines.append(f"   - {sub['targetId']}: {sub.get('reason', 'failed')}")
    return "\n".join(lines)


def format_workflow(report: WorkflowReport) -> str:
    """Render the full workflow summary."""
    s = report.summary()
    if report.skipped_downstream:
        return "\n".join([
            "Onboarding Workflow Complete:",
            "",
            f"- {STAGE_TITLES[IMPORT]}:",
            f"  - Processed {s['total_processed']} users",
            "  - Successfully created: 0",
            f"  - Failed: {s['failed_import']}",
            "",
            "No users were successfully created, so no entities were available "
            "for group assignment or application provisioning.",
        ])

    groups = report.group_assignment_outcomes
    apps = report.provisioning_outcomes
    lines = [
        "Onboarding Workflow Complete:",
        "",
        f"- {STAGE_TITLES[IMPORT]}:",
        f"  - Processed {s['total_processed']} users",
        f"  - Successfully created: {s['successfully_onboarded']}",
        f"  - Failed: {s['failed_import']}",
        "",
    ]
    if groups.configured:
        lines.extend([
            f"- {STAGE_TITLES[GROUP_ASSIGNMENT]}:",
            f"  - Users assigned to groups: {len(groups.successes)}",
            f"  - Group memberships added: {s['groups_assigned']}",
            f"  - Failed group assignments: {s['failed_group_assignment']}",
        ])
    else:
        lines.append(f"- {STAGE_TITLES[GROUP_ASSIGNMENT]}: Not configured")
    lines.append("")
    if apps.configured:
        lines.extend([
            f"- {STAGE_TITLES[PROVISIONING]}:",
            f"  - Users provisioned with applications: {len(apps.successes)}",
            f"  - Application grants made: {s['applications_provisioned']}",
            f"  - Failed application provisioning: {s['failed_provisioning']}",
        ])
    else:
        lines.append(f"- {STAGE_TITLES[PROVISIONING]}: Not configured")

    lines.append("")
    lines.append(
        f"Overall, successfully onboarded {s['successfully_onboarded']} out of "
        f"{s['total_processed']} users."
    )
    return "\n".join(lines)
