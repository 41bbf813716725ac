"""Onboarding commands: each stage on its own, and the full workflow."""

import json
from typing import Any, Dict, List

from ..dispatcher import Command, InvocationResult
from ..onboarding.report import (
    WorkflowReport,
    format_group_assignment,
    format_import,
    format_provisioning,
    format_workflow,
)
from ..onboarding.runner import run_onboarding_workflow
from ..onboarding.stages import assign_groups, import_rows, provision_applications
from ..onboarding.tabular import parse_rows
from ..validator import field

NO_ROWS_MESSAGE = "No valid users found in CSV data."


def _with_json(text: str, data: Dict[str, Any]) -> InvocationResult:
    return InvocationResult.text(text, json.dumps(data, indent=2))


def bulk_user_import(directory, args: Dict[str, Any]):
    rows = parse_rows(args["csvData"])
    if not rows:
        return InvocationResult.error(NO_ROWS_MESSAGE)
    result = import_rows(
        directory, rows,
        activate=args["activateUsers"],
        notify=args["sendEmail"],
        default_groups=args["defaultGroups"],
    )
    return _with_json(format_import(result), result.to_dict())


def assign_users_to_groups(directory, args: Dict[str, Any]):
    result = assign_groups(directory, args["userIds"], args["attributeMapping"])
    return _with_json(format_group_assignment(result), result.to_dict())


def provision_applications_command(directory, args: Dict[str, Any]):
    app_ids = args["applicationIds"]
    result = provision_applications(directory, args["userIds"], app_ids)
    return _with_json(format_provisioning(result, len(app_ids)), result.to_dict())


def run_onboarding_workflow_command(directory, args: Dict[str, Any]):
    rows = parse_rows(args["csvData"])
    if not rows:
        return InvocationResult.error(NO_ROWS_MESSAGE)
    report: WorkflowReport = run_onboarding_workflow(
        directory, rows,
        activate=args["activateUsers"],
        notify=args["sendWelcomeEmail"],
        default_groups=args["defaultGroups"],
        group_mappings=args["groupMappings"],
        application_ids=args["applicationIds"],
    )
    return _with_json(format_workflow(report), report.to_dict())


_CSV = field("csvData", "string", required=True, min_length=1,
             description="CSV string with user information (header row required; "
                         "email, firstName and lastName columns are required)")
_DEFAULT_GROUPS = field("defaultGroups", "array", default=[], items=field("groupId", "string"),
                        description="Default group IDs to assign all imported users to")
_USER_IDS = field("userIds", "array", required=True, items=field("userId", "string"),
                  description="List of user IDs")
_MAPPING_VALUES = field("valueMap", "object", values=field("groupId", "string"))

COMMANDS: List[Command] = [
    Command(
        "bulk_user_import",
        "Import multiple users from a CSV string",
        [
            _CSV,
            field("activateUsers", "boolean", default=False,
                  description="Whether to activate users immediately (default: false)"),
            field("sendEmail", "boolean", default=True,
                  description="Whether to send activation emails (default: true)"),
            _DEFAULT_GROUPS,
        ],
        bulk_user_import,
    ),
    Command(
        "assign_users_to_groups",
        "Assign multiple users to groups based on attributes",
        [
            _USER_IDS,
            field("attributeMapping", "object", required=True, values=_MAPPING_VALUES,
                  description='Mapping of user attributes to group IDs (e.g., '
                              '{"department": {"Engineering": "group1Id", "Sales": "group2Id"}})'),
        ],
        assign_users_to_groups,
    ),
    Command(
        "provision_applications",
        "Provision application access for multiple users",
        [
            _USER_IDS,
            field("applicationIds", "array", required=True, items=field("appId", "string"),
                  description="Application IDs to provision"),
        ],
        provision_applications_command,
    ),
    Command(
        "run_onboarding_workflow",
        "Run a complete onboarding workflow for multiple users from CSV data",
        [
            _CSV,
            field("activateUsers", "boolean", default=True,
                  description="Whether to activate users immediately (default: true)"),
            _DEFAULT_GROUPS,
            field("groupMappings", "object", default={}, values=_MAPPING_VALUES,
                  description='Mapping of user attributes to group IDs (e.g., '
                              '{"department": {"Engineering": "group1Id"}})'),
            field("applicationIds", "array", default=[], items=field("appId", "string"),
                  description="Application IDs to provision for all users"),
            field("sendWelcomeEmail", "boolean", default=True,
                  description="Whether to send welcome emails (default: true)"),
        ],
        run_onboarding_workflow_command,
    ),
]
