"""Tests for the onboarding stages, the workflow runner, and the report."""

import pytest
from directory_ops.errors import NotFound, TransportFailure
from directory_ops.onboarding.report import (
    StageOutcome,
    format_group_assignment,
    format_import,
    format_provisioning,
    format_workflow,
)
from directory_ops.onboarding.runner import run_onboarding_workflow
from directory_ops.onboarding.stages import (
    MISSING_FIELDS_REASON,
    PROFILE_UNAVAILABLE_REASON,
    assign_groups,
    import_rows,
    mapping_key,
    provision_applications,
    target_groups,
)
from directory_ops.onboarding.tabular import parse_rows
from tests.fake_directory import FakeDirectory

CSV = """email,firstName,lastName,department
ann@x.com,Ann,Lee,Engineering
bob@x.com,Bob,,Sales
cat@x.com,Cat,Kim,Sales
"""


@pytest.fixture
def directory():
    return FakeDirectory()


# -- CSV -----------------------------------------------------------------------

def test_parse_rows_strips_and_skips_blank_lines():
    rows = parse_rows(" email , firstName ,lastName\n\n a@x.com , A ,B \n\n")
    assert rows == [{"email": "a@x.com", "firstName": "A", "lastName": "B"}]


def test_parse_rows_drops_empty_cells():
    rows = parse_rows(CSV)
    assert len(rows) == 3
    assert "lastName" not in rows[1]
    assert rows[2]["department"] == "Sales"


def test_parse_rows_empty_input():
    assert parse_rows("") == []
    assert parse_rows("email,firstName,lastName\n") == []


# -- Stage 1: Import -----------------------------------------------------------

def test_import_isolates_row_missing_required_field(directory):
    result = import_rows(directory, parse_rows(CSV))
    assert len(result.successes) == 2
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.entity_key == "bob@x.com"
    assert failure.detail.startswith(MISSING_FIELDS_REASON)
    assert "lastName" in failure.detail
    # Only two create calls: the invalid row never reached the directory
    assert [args[0] for args in directory.called("create")] == ["ann@x.com", "cat@x.com"]


def test_import_sets_login_and_extra_attributes(directory):
    result = import_rows(directory, parse_rows(CSV))
    created = directory.users[result.successes[0].entity_key]
    assert created["profile"]["login"] == "ann@x.com"
    assert created["profile"]["department"] == "Engineering"
    assert result.successes[0].detail == "STAGED"
    assert result.successes[0].label == "ann@x.com"


def test_import_activation_and_default_groups(directory):
    result = import_rows(directory, parse_rows(CSV), activate=True, notify=False,
                         default_groups=["gAll"])
    keys = result.succeeded_keys()
    assert [o.detail for o in result.successes] == ["ACTIVE", "ACTIVE"]
    assert directory.called("set_activation") == [(k, False) for k in keys]
    assert directory.memberships["gAll"] == keys


def test_import_create_failure_does_not_stop_batch(directory):
    directory.fail("create", TransportFailure("POST /users failed (400): Api validation failed: login"),
                   when="ann@x.com")
    result = import_rows(directory, parse_rows(CSV))
    assert [o.label for o in result.successes] == ["cat@x.com"]
    assert [o.entity_key for o in result.failures] == ["ann@x.com", "bob@x.com"]
    assert "Api validation failed" in result.failures[0].detail


def test_import_activation_failure_keeps_created_key(directory):
    directory.fail("set_activation", TransportFailure("activation refused"))
    result = import_rows(directory, parse_rows("email,firstName,lastName\na@x.com,A,B\n"),
                         activate=True)
    assert result.successes == []
    created_key = next(iter(directory.users))
    assert created_key in result.failures[0].detail
    assert "activation refused" in result.failures[0].detail


def test_import_default_group_failure_is_row_failure(directory):
    directory.fail("assign_to_group", TransportFailure("group locked"), when="gBad")
    rows = parse_rows("email,firstName,lastName\na@x.com,A,B\nb@x.com,C,D\n")
    result = import_rows(directory, rows, default_groups=["gOk", "gBad"])
    assert result.successes == []
    assert len(result.failures) == 2
    assert all("group locked" in o.detail for o in result.failures)


# -- Stage 2: Group assignment -------------------------------------------------

def test_target_groups_single_rule():
    mapping = {"department": {"Engineering": "G1"}}
    assert target_groups({"department": "Engineering"}, mapping) == ["G1"]


def test_target_groups_boolean_attribute():
    mapping = {"isContractor": {"true": "G1", "false": "G2"}}
    assert target_groups({"isContractor": True}, mapping) == ["G1"]
    assert target_groups({"isContractor": False}, mapping) == ["G2"]


@pytest.mark.parametrize("value,expected", [
    (True, "true"),
    (False, "false"),
    (5.0, "5"),
    (2.5, "2.5"),
    (7, "7"),
    (["a", "b"], "a,b"),
    ("Engineering", "Engineering"),
])
def test_mapping_key(value, expected):
    assert mapping_key(value) == expected


def test_target_groups_deduplicated():
    mapping = {"department": {"Engineering": "G1"}, "title": {"Engineer": "G1"}}
    assert target_groups({"department": "Engineering", "title": "Engineer"}, mapping) == ["G1"]


def test_target_groups_ignores_absent_attributes():
    mapping = {"department": {"Engineering": "G1"}, "location": {"Berlin": "G2"}}
    assert target_groups({"department": "Sales"}, mapping) == []


def test_assign_groups(directory):
    u1 = directory.seed({"login": "a@x.com", "department": "Engineering", "title": "Lead"})
    u2 = directory.seed({"login": "b@x.com", "department": "Sales"})
    mapping = {"department": {"Engineering": "G1"}, "title": {"Lead": "G2"}}
    result = assign_groups(directory, [u1, u2], mapping)

    assert [o.entity_key for o in result.successes] == [u1, u2]
    assert result.successes[0].groups == ["G1", "G2"]
    # No rule matched: success with an empty group list
    assert result.successes[1].groups == []
    assert result.failures == []
    assert directory.memberships == {"G1": [u1], "G2": [u1]}


def test_assign_groups_partial_failure_keeps_earlier_groups(directory):
    u1 = directory.seed({"department": "Engineering", "title": "Lead"})
    u2 = directory.seed({"department": "Engineering"})
    directory.fail("assign_to_group", TransportFailure("group G2 is read-only"), when="G2")
    mapping = {"department": {"Engineering": "G1"}, "title": {"Lead": "G2"}}
    result = assign_groups(directory, [u1, u2], mapping)

    assert [o.entity_key for o in result.failures] == [u1]
    assert result.failures[0].groups == ["G1"]
    assert "G2" in result.failures[0].detail
    assert [o.entity_key for o in result.successes] == [u2]
    assert directory.memberships["G1"] == [u1, u2]


def test_assign_groups_missing_user(directory):
    result = assign_groups(directory, ["ghost"], {"department": {"Engineering": "G1"}})
    assert result.failures[0].entity_key == "ghost"
    assert "not found" in result.failures[0].detail


def test_assign_groups_record_vanished_isolated(directory):
    u1 = directory.seed({"login": "a@x.com", "department": "Engineering"})
    u2 = directory.seed({"login": "b@x.com", "department": "Engineering"})
    directory.fail("get", NotFound("gone"), when=u1)
    result = assign_groups(directory, [u1, u2], {"department": {"Engineering": "G1"}})
    assert [o.entity_key for o in result.failures] == [u1]
    assert [o.entity_key for o in result.successes] == [u2]
    assert directory.memberships["G1"] == [u2]


def test_assign_groups_record_without_profile_is_failure(directory):
    u1 = directory.seed({"login": "a@x.com", "department": "Engineering"})
    del directory.users[u1]["profile"]
    result = assign_groups(directory, [u1], {"department": {"Engineering": "G1"}})
    assert result.successes == []
    assert result.failures[0].detail == PROFILE_UNAVAILABLE_REASON
    assert directory.called("assign_to_group") == []


def test_assign_groups_boolean_attribute(directory):
    key = directory.seed({"login": "c@x.com", "isContractor": True})
    result = assign_groups(directory, [key], {"isContractor": {"true": "G1"}})
    assert result.successes[0].groups == ["G1"]
    assert directory.memberships == {"G1": [key]}


# -- Stage 3: Provisioning -----------------------------------------------------

def test_provisioning_one_failed_grant_keeps_all_sub_results(directory):
    directory.fail("grant_application", TransportFailure("app2 is inactive"), when="app2")
    result = provision_applications(directory, ["u1"], ["app1", "app2"])

    assert result.successes == []
    outcome = result.failures[0]
    assert outcome.status == StageOutcome.FAILURE
    assert outcome.sub_results == [
        {"targetId": "app1", "status": "success"},
        {"targetId": "app2", "status": "failure", "reason": "app2 is inactive"},
    ]


def test_provisioning_failure_isolated_per_entity(directory):
    directory.fail("grant_application", TransportFailure("no seat left"), when="u1")
    result = provision_applications(directory, ["u1", "u2"], ["app1"])
    assert [o.entity_key for o in result.failures] == ["u1"]
    assert [o.entity_key for o in result.successes] == ["u2"]
    assert directory.grants == {"app1": ["u2"]}


# -- Workflow ------------------------------------------------------------------

def test_workflow_downstream_sees_only_imported_keys(directory):
    report = run_onboarding_workflow(
        directory, parse_rows(CSV),
        group_mappings={"department": {"Engineering": "G1", "Sales": "G2"}},
        application_ids=["app1"],
    )
    imported = report.import_outcomes.succeeded_keys()
    assert len(imported) == 2
    assert [o.entity_key for o in report.group_assignment_outcomes.successes] == imported
    assert [args[1] for args in directory.called("grant_application")] == imported

    summary = report.summary()
    assert summary == {
        "total_processed": 3,
        "successfully_onboarded": 2,
        "failed_import": 1,
        "failed_group_assignment": 0,
        "failed_provisioning": 0,
        "groups_assigned": 2,
        "applications_provisioned": 2,
    }


def test_workflow_stages_are_independent(directory):
    directory.fail("assign_to_group", TransportFailure("groups unavailable"))
    report = run_onboarding_workflow(
        directory, parse_rows("email,firstName,lastName,department\na@x.com,A,B,Ops\n"),
        activate=False,
        group_mappings={"department": {"Ops": "G1"}},
        application_ids=["app1", "app2"],
    )
    assert len(report.group_assignment_outcomes.failures) == 1
    assert len(report.provisioning_outcomes.successes) == 1
    assert report.summary()["applications_provisioned"] == 2
    assert report.has_failures


def test_workflow_unconfigured_stages_not_run(directory):
    report = run_onboarding_workflow(directory, parse_rows(CSV))
    assert not report.group_assignment_outcomes.configured
    assert not report.provisioning_outcomes.configured
    assert directory.called("get") == []
    text = format_workflow(report)
    assert "- Group Assignment: Not configured" in text
    assert "- Application Provisioning: Not configured" in text
    assert "successfully onboarded 2 out of 3 users" in text


def test_workflow_skips_downstream_when_nothing_imported(directory):
    directory.fail("create", TransportFailure("directory read-only"))
    report = run_onboarding_workflow(
        directory, parse_rows(CSV),
        group_mappings={"department": {"Engineering": "G1"}},
        application_ids=["app1"],
    )
    assert report.skipped_downstream
    assert report.group_assignment_outcomes.total == 0
    assert report.provisioning_outcomes.total == 0
    assert directory.called("assign_to_group") == []
    assert directory.called("grant_application") == []
    assert "no entities were available" in format_workflow(report)
    data = report.to_dict()
    assert data["skippedDownstream"] is True
    assert data["groupAssignment"]["configured"] is True
    assert data["applicationProvisioning"]["configured"] is True
    assert data["hasFailures"] is True


def test_workflow_skipped_without_configuration_stays_unconfigured(directory):
    directory.fail("create", TransportFailure("directory read-only"))
    data = run_onboarding_workflow(directory, parse_rows(CSV)).to_dict()
    assert data["skippedDownstream"] is True
    assert data["groupAssignment"]["configured"] is False
    assert data["applicationProvisioning"]["configured"] is False


# -- Rendering -----------------------------------------------------------------

def test_stage_text_reports(directory):
    imported = import_rows(directory, parse_rows(CSV))
    text = format_import(imported)
    assert "Processed 3 users from CSV data:" in text
    assert "- Successfully created: 2" in text
    assert "bob@x.com - missing required fields" in text

    grouped = assign_groups(directory, imported.succeeded_keys(), {"department": {"Sales": "G2"}})
    text = format_group_assignment(grouped)
    assert "assigned to 1 group(s): G2" in text

    directory.fail("grant_application", TransportFailure("denied"), when="app2")
    provisioned = provision_applications(directory, imported.succeeded_keys(), ["app1", "app2"])
    text = format_provisioning(provisioned, 2)
    assert "across 2 applications" in text
    assert "   - app2: denied" in text


def test_outcome_to_dict_omits_empty_fields():
    outcome = StageOutcome("u1", StageOutcome.SUCCESS)
    assert outcome.to_dict() == {"entityKey": "u1", "status": "success"}
