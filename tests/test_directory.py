"""Integration tests for DirectoryClient against the mock directory server.

Checks the endpoint mapping and how HTTP outcomes become NotFound,
CapabilityUnsupported, and TransportFailure.
"""

import pytest
from directory_ops.directory import DirectoryClient
from directory_ops.errors import CapabilityUnsupported, NotFound, TransportFailure
from directory_ops.http_client import DirectoryHTTPClient
from directory_ops.search import CONTAINS, EQUALS, TIER_FREE_TEXT, TIER_NATIVE, SearchCriterion, SearchSelector
from tests.mock_directory_server import MockDirectoryServer


def _directory(server):
    return DirectoryClient(DirectoryHTTPClient(server.base_url, token="t"))


@pytest.fixture
def server():
    with MockDirectoryServer() as s:
        yield s


@pytest.fixture
def directory(server):
    return _directory(server)


def _record(login, **extra):
    profile = {"login": login, "email": login, "firstName": "F", "lastName": "L"}
    profile.update(extra)
    return {"profile": profile}


# -- Users -------------------------------------------------------------------

def test_create_get_and_lifecycle(directory, server):
    user = directory.create(_record("a@x.com"))
    assert user["status"] == "STAGED"

    directory.set_activation(user["id"], notify=False)
    assert directory.get(user["id"])["status"] == "ACTIVE"
    assert server.server.activation_emails == [(user["id"], False)]

    directory.suspend(user["id"])
    assert directory.get(user["id"])["status"] == "SUSPENDED"
    directory.unsuspend(user["id"])
    directory.deactivate(user["id"])
    assert directory.get(user["id"])["status"] == "DEPROVISIONED"

    directory.delete(user["id"])
    with pytest.raises(NotFound):
        directory.get(user["id"])


def test_create_with_activation(directory):
    assert directory.create(_record("b@x.com"), activate=True)["status"] == "ACTIVE"


def test_get_missing_user_raises_not_found(directory):
    with pytest.raises(NotFound) as exc:
        directory.get("00umissing")
    assert exc.value.status == 404


def test_delete_active_user_is_transport_failure(directory, server):
    user = server.add_user({"login": "c@x.com"})
    with pytest.raises(TransportFailure) as exc:
        directory.delete(user["id"])
    assert exc.value.status == 403
    assert "deactivated before deletion" in exc.value.message


def test_duplicate_login_error_includes_causes(directory):
    directory.create(_record("d@x.com"))
    with pytest.raises(TransportFailure) as exc:
        directory.create(_record("d@x.com"))
    assert exc.value.status == 400
    assert "Api validation failed: login" in exc.value.message
    assert "already exists" in exc.value.message


def test_list_pagination(directory, server):
    ids = [server.add_user({"login": f"u{i}@x.com"})["id"] for i in range(5)]
    page = directory.list_users(limit=2)
    assert [u["id"] for u in page] == ids[:2]
    page2 = directory.list_users(limit=2, after=page[-1]["id"])
    assert [u["id"] for u in page2] == ids[2:4]


def test_list_filtered_and_free_text(directory, server):
    eng = server.add_user({"login": "ann@x.com", "firstName": "Ann", "department": "Engineering"})
    server.add_user({"login": "bob@x.com", "firstName": "Bob", "department": "Sales"})
    assert [u["id"] for u in directory.list_filtered('profile.department eq "Engineering"', 10)] == [eng["id"]]
    assert [u["id"] for u in directory.list_free_text("ann", 10)] == [eng["id"]]
    assert len(directory.list_all(10)) == 2


def test_rejected_operator_is_capability_unsupported():
    with MockDirectoryServer(non_conformances={"reject_search_operators": ["co"]}) as server:
        directory = _directory(server)
        with pytest.raises(CapabilityUnsupported) as exc:
            directory.list_filtered('profile.department co "eng"', 10)
        assert exc.value.operator == "co"
        assert exc.value.status == 400


def test_unparseable_search_is_capability_unsupported(directory):
    with pytest.raises(CapabilityUnsupported):
        directory.list_filtered("profile.department like 'x'", 10)


def test_server_error_is_transport_failure():
    with MockDirectoryServer(non_conformances={"reject_free_text": True}) as server:
        with pytest.raises(TransportFailure) as exc:
            _directory(server).list_free_text("x", 10)
        assert exc.value.status == 500


def test_network_error_is_transport_failure():
    # Nothing listens on port 9 on the loopback interface
    directory = DirectoryClient(DirectoryHTTPClient("http://127.0.0.1:9", timeout=2))
    with pytest.raises(TransportFailure):
        directory.get("00u1")


# -- Groups and applications --------------------------------------------------

def test_group_operations(directory, server):
    user = server.add_user({"login": "e@x.com"})
    group = directory.create_group("Engineering", "All engineers")
    assert directory.get_group(group["id"])["profile"]["description"] == "All engineers"
    assert [g["id"] for g in directory.list_groups()] == [group["id"]]

    directory.assign_to_group(group["id"], user["id"])
    assert [u["id"] for u in directory.list_group_users(group["id"])] == [user["id"]]
    directory.remove_from_group(group["id"], user["id"])
    assert directory.list_group_users(group["id"]) == []

    directory.delete_group(group["id"])
    with pytest.raises(NotFound):
        directory.get_group(group["id"])


def test_failing_group_membership():
    with MockDirectoryServer(non_conformances={"fail_group_ids": ["gX"]}) as server:
        user = server.add_user({"login": "f@x.com"})
        with pytest.raises(TransportFailure):
            _directory(server).assign_to_group("gX", user["id"])


def test_grant_application(directory, server):
    user = server.add_user({"login": "g@x.com"})
    directory.grant_application("0oa1", user["id"])
    assert server.grants == {"0oa1": [user["id"]]}


def test_failing_application_grant():
    with MockDirectoryServer(non_conformances={"fail_app_ids": ["0oaBad"]}) as server:
        user = server.add_user({"login": "h@x.com"})
        with pytest.raises(TransportFailure):
            _directory(server).grant_application("0oaBad", user["id"])


def test_system_events_most_recent_first(directory, server):
    server.add_event({"published": "2026-10-01T10:00:00.000Z", "eventType": "user.session.start",
                      "target": [{"id": "00u1"}]})
    server.add_event({"published": "2026-10-02T10:00:00.000Z", "eventType": "user.authentication.sso",
                      "target": [{"id": "00u1"}]})
    server.add_event({"published": "2026-10-03T10:00:00.000Z", "eventType": "user.session.start",
                      "target": [{"id": "00u2"}]})
    events = directory.list_system_events(filter='target.id eq "00u1"', limit=1)
    assert [e["eventType"] for e in events] == ["user.authentication.sso"]


# -- Search end to end ---------------------------------------------------------

def test_search_native_tier_against_server(directory, server):
    eng = server.add_user({"login": "ann@x.com", "department": "Engineering"})
    server.add_user({"login": "bob@x.com", "department": "Sales"})
    outcome = SearchSelector(directory).search(SearchCriterion("department", EQUALS, "Engineering"))
    assert outcome.tier == TIER_NATIVE
    assert [r["id"] for r in outcome.matches] == [eng["id"]]


def test_search_falls_back_when_operator_rejected():
    with MockDirectoryServer(non_conformances={"reject_search_operators": ["co"]}) as server:
        ann = server.add_user({"login": "ann@x.com", "firstName": "Ann", "title": "Annual planner"})
        server.add_user({"login": "annie@x.com", "firstName": "Annie", "title": "Engineer"})
        outcome = SearchSelector(_directory(server)).search(SearchCriterion("title", CONTAINS, "ann"))
        assert outcome.tier == TIER_FREE_TEXT
        assert [r["id"] for r in outcome.matches] == [ann["id"]]
