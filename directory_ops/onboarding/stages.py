"""The three onboarding stages.

Every stage walks its input in order, one entity at a time, and catches
failures per row / entity / application so that one bad record never stops
the batch.  Nothing is rolled back: work done before a failure stays done.
"""

from typing import Any, Dict, List, Optional

from ..errors import DirectoryError, NotFound
from ..log import get_logger
from .report import GROUP_ASSIGNMENT, IMPORT, PROVISIONING, StageOutcome, StageResult
from .tabular import CONTACT_COLUMN, missing_required, row_profile

logger = get_logger(__name__)

STATUS_ACTIVE = "ACTIVE"
STATUS_STAGED = "STAGED"

MISSING_FIELDS_REASON = "missing required fields"
PROFILE_UNAVAILABLE_REASON = "user not found or profile unavailable"


def _reason(exc: Exception) -> str:
    if isinstance(exc, DirectoryError):
        return exc.message
    return str(exc) or type(exc).__name__


# ---------------------------------------------------------------------------
# Stage 1: Import
# ---------------------------------------------------------------------------

def import_rows(
    directory: Any,
    rows: List[Dict[str, str]],
    activate: bool = False,
    notify: bool = True,
    default_groups: Optional[List[str]] = None,
) -> StageResult:
    """Create one user per row, then optionally activate and add default groups.

    Args:
        directory:      Directory client.
        rows:           Parsed CSV rows (see ``tabular.parse_rows``).
        activate:       Activate each user right after creation.
        notify:         Send the activation notification when activating.
        default_groups: Group ids every created user joins.
    """
    result = StageResult(IMPORT)
    default_groups = default_groups or []

    for index, row in enumerate(rows, 1):
        contact = row.get(CONTACT_COLUMN, "")
        missing = missing_required(row)
        if missing:
            result.record(StageOutcome(
                contact or f"row {index}", StageOutcome.FAILURE,
                detail=f"{MISSING_FIELDS_REASON} ({', '.join(missing)})",
                label=contact or f"row {index}",
            ))
            continue

        try:
            created = directory.create({"profile": row_profile(row)}, activate=False)
        except Exception as exc:
            logger.warning("import_create_failed", row=index, error=_reason(exc))
            result.record(StageOutcome(contact, StageOutcome.FAILURE,
                                       detail=_reason(exc), label=contact))
            continue

        entity_key = (created or {}).get("id")
        if not entity_key:
            result.record(StageOutcome(contact, StageOutcome.FAILURE,
                                       detail="directory returned no id for created user",
                                       label=contact))
            continue

        # Created: later failures keep the id in the detail for cleanup
        try:
            if activate:
                directory.set_activation(entity_key, notify=notify)
            for group_id in default_groups:
                directory.assign_to_group(group_id, entity_key)
        except Exception as exc:
            logger.warning("import_followup_failed", row=index, entity=entity_key,
                           error=_reason(exc))
            result.record(StageOutcome(
                contact, StageOutcome.FAILURE,
                detail=f"{_reason(exc)} (user {entity_key} was created)",
                label=contact,
            ))
            continue

        result.record(StageOutcome(
            entity_key, StageOutcome.SUCCESS,
            detail=STATUS_ACTIVE if activate else STATUS_STAGED,
            label=contact,
        ))

    return result


# ---------------------------------------------------------------------------
# Stage 2: Group assignment
# ---------------------------------------------------------------------------

def mapping_key(value: Any) -> str:
    """Spell an attribute value the way mapping tables key it.

    Booleans become ``true``/``false``, integral floats drop the fraction
    (``5.0`` -> ``5``) and lists join with commas.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(mapping_key(v) for v in value)
    return str(value)


def target_groups(profile: Dict[str, Any], mapping: Dict[str, Dict[str, str]]) -> List[str]:
    """Deduplicated group ids selected by ``mapping`` for a profile, in rule order.

    ``mapping`` is ``{attribute: {value: group_id}}``; a rule fires when the
    profile's current value for ``attribute`` is a key of its value map.
    """
    groups: List[str] = []
    for attribute, value_map in mapping.items():
        value = profile.get(attribute)
        if value is None or value == "":
            continue
        group_id = value_map.get(mapping_key(value))
        if group_id and group_id not in groups:
            groups.append(group_id)
    return groups


def assign_groups(
    directory: Any,
    entity_keys: List[str],
    mapping: Dict[str, Dict[str, str]],
) -> StageResult:
    """Add each entity to the groups its profile attributes map to.

    A missing record or profile is a failure.  A profile matching no rule is
    a success with no groups.  The first failed assignment ends that
    entity's stage as a failure; groups already added are kept and listed.
    """
    result = StageResult(GROUP_ASSIGNMENT)

    for entity_key in entity_keys:
        try:
            record = directory.get(entity_key)
        except NotFound:
            result.record(StageOutcome(entity_key, StageOutcome.FAILURE,
                                       detail=PROFILE_UNAVAILABLE_REASON, groups=[]))
            continue
        except Exception as exc:
            result.record(StageOutcome(entity_key, StageOutcome.FAILURE,
                                       detail=_reason(exc), groups=[]))
            continue

        profile = (record or {}).get("profile")
        if not isinstance(profile, dict):
            result.record(StageOutcome(entity_key, StageOutcome.FAILURE,
                                       detail=PROFILE_UNAVAILABLE_REASON, groups=[]))
            continue
        label = profile.get("email") or profile.get("login") or ""
        wanted = target_groups(profile, mapping)
        if not wanted:
            result.record(StageOutcome(entity_key, StageOutcome.SUCCESS, label=label, groups=[],
                                       detail="No group mappings matched user attributes"))
            continue

        assigned: List[str] = []
        try:
            for group_id in wanted:
                directory.assign_to_group(group_id, entity_key)
                assigned.append(group_id)
        except Exception as exc:
            failed_group = wanted[len(assigned)]
            logger.warning("group_assignment_failed", entity=entity_key, group=failed_group,
                           error=_reason(exc))
            result.record(StageOutcome(
                entity_key, StageOutcome.FAILURE, label=label, groups=assigned,
                detail=(f"assignment to group {failed_group} failed after "
                        f"{len(assigned)} of {len(wanted)} groups: {_reason(exc)}"),
            ))
            continue

        result.record(StageOutcome(entity_key, StageOutcome.SUCCESS, label=label, groups=assigned))

    return result


# ---------------------------------------------------------------------------
# Stage 3: Provisioning
# ---------------------------------------------------------------------------

def provision_applications(
    directory: Any,
    entity_keys: List[str],
    application_ids: List[str],
) -> StageResult:
    """Grant every application to every entity, recording each grant.

    An entity with at least one failed grant is a failure; all per-application
    sub-results are kept either way.
    """
    result = StageResult(PROVISIONING)

    for entity_key in entity_keys:
        sub_results: List[Dict[str, str]] = []
        for app_id in application_ids:
            try:
                directory.grant_application(app_id, entity_key)
            except Exception as exc:
                logger.warning("application_grant_failed", entity=entity_key, app=app_id,
                               error=_reason(exc))
                sub_results.append({"targetId": app_id, "status": StageOutcome.FAILURE,
                                    "reason": _reason(exc)})
            else:
                sub_results.append({"targetId": app_id, "status": StageOutcome.SUCCESS})

        failed = [s for s in sub_results if s["status"] == StageOutcome.FAILURE]
        if failed:
            result.record(StageOutcome(
                entity_key, StageOutcome.FAILURE, sub_results=sub_results,
                detail=f"{len(failed)} of {len(sub_results)} applications failed",
            ))
        else:
            result.record(StageOutcome(entity_key, StageOutcome.SUCCESS, sub_results=sub_results,
                                       detail=f"{len(sub_results)} applications granted"))

    return result
