"""Attribute search with a degrading strategy.

The directory's native search honors an unpredictable subset of operators,
so :class:`SearchSelector` tries three tiers in a fixed order, each at most
once, and only ever demotes:

1. ``native_filter``     -- server-side search expression built from the
                            criterion.  Trusted for attribute correctness.
2. ``free_text``         -- free-text query on the value alone.  Best effort.
3. ``client_side_scan``  -- unfiltered listing capped at ``SCAN_CAP`` entities.

Tier 2 and tier 3 candidates are verified one by one: the full record is
fetched and the attribute is compared case-insensitively with the requested
operator.  Verification stops once ``limit`` matches are found.  The
inactive-status rule is applied to every tier.
"""

from typing import Any, Dict, List, Optional

from .errors import CapabilityUnsupported, DirectoryError, NotFound
from .log import get_logger

logger = get_logger(__name__)

# Operators
EQUALS = "equals"
STARTS_WITH = "starts_with"
ENDS_WITH = "ends_with"
CONTAINS = "contains"
PRESENT = "present"

OPERATORS = [EQUALS, STARTS_WITH, ENDS_WITH, CONTAINS, PRESENT]

# Operator -> directory search-expression keyword
_EXPRESSION_OPERATORS = {
    EQUALS: "eq",
    STARTS_WITH: "sw",
    ENDS_WITH: "ew",
    CONTAINS: "co",
    PRESENT: "pr",
}

# Tiers, in fallback order
TIER_NATIVE = "native_filter"
TIER_FREE_TEXT = "free_text"
TIER_SCAN = "client_side_scan"

TIER_LABELS = {
    TIER_NATIVE: "native search filter",
    TIER_FREE_TEXT: "free-text search with attribute verification",
    TIER_SCAN: "client-side scan with attribute verification",
}

# Upper bound on entities pulled by the client-side scan
SCAN_CAP = 200

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

# Top-level record fields; everything else lives under ``profile``
_RECORD_FIELDS = frozenset({
    "id", "status", "created", "activated", "statusChanged",
    "lastLogin", "lastUpdated", "passwordChanged", "type",
})

# Statuses hidden unless includeInactive is set
INACTIVE_STATUSES = frozenset({"DEPROVISIONED"})

# Attributes whose echoed search value is masked in reports
PII_ATTRIBUTES = frozenset({
    "login",
    "email",
    "secondEmail",
    "firstName",
    "lastName",
    "middleName",
    "displayName",
    "nickName",
    "mobilePhone",
    "primaryPhone",
    "streetAddress",
    "managerId",
    "manager",
})


class SearchCriterion:
    """What to look for.

    Attributes:
        attribute:        Profile attribute (``department``) or record field (``status``).
        operator:         One of ``OPERATORS``.
        value:            Comparison value; ignored for ``present``.
        limit:            Maximum matches to return (1-200).
        include_inactive: Keep entities in ``INACTIVE_STATUSES``.
    """

    def __init__(self, attribute: str, operator: str, value: str = "",
                 limit: int = DEFAULT_LIMIT, include_inactive: bool = False):
        if operator not in OPERATORS:
            raise ValueError(f"Unknown operator: {operator}")
        self.attribute = attribute
        self.operator = operator
        self.value = value or ""
        self.limit = limit
        self.include_inactive = include_inactive


class SearchOutcome:
    """Result of one search: the tier that served it and the verified matches."""

    def __init__(self, criterion: SearchCriterion, tier: str, matches: List[Dict[str, Any]],
                 candidates_considered: int, demotions: Optional[List[str]] = None,
                 scan_cap: int = SCAN_CAP):
        self.criterion = criterion
        self.tier = tier
        self.matches = matches
        self.candidates_considered = candidates_considered
        self.demotions = list(demotions or [])
        self.scan_cap = scan_cap

    @property
    def scan_capped(self) -> bool:
        return self.tier == TIER_SCAN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier,
            "attribute": self.criterion.attribute,
            "operator": self.criterion.operator,
            "value": echo_value(self.criterion.attribute, self.criterion.value),
            "candidatesConsidered": self.candidates_considered,
            "matches": [m.get("id") for m in self.matches],
            "demotions": self.demotions,
        }


# ---------------------------------------------------------------------------
# Attribute helpers
# ---------------------------------------------------------------------------

def attribute_value(record: Dict[str, Any], attribute: str) -> Any:
    """Look up an attribute on an entity record by name.

    ``profile.x`` and bare ``x`` both resolve into the profile, except for
    the fixed top-level record fields.
    """
    if attribute.startswith("profile."):
        return (record.get("profile") or {}).get(attribute[len("profile."):])
    if attribute in _RECORD_FIELDS:
        return record.get(attribute)
    return (record.get("profile") or {}).get(attribute)


def matches_criterion(record: Dict[str, Any], criterion: SearchCriterion) -> bool:
    """Case-insensitive operator check of one record's attribute."""
    actual = attribute_value(record, criterion.attribute)
    if criterion.operator == PRESENT:
        return actual is not None and str(actual).strip() != ""
    if actual is None:
        return False
    actual_text = str(actual).lower()
    wanted = criterion.value.lower()
    if criterion.operator == EQUALS:
        return actual_text == wanted
    if criterion.operator == STARTS_WITH:
        return actual_text.startswith(wanted)
    if criterion.operator == ENDS_WITH:
        return actual_text.endswith(wanted)
    return wanted in actual_text


def is_visible(record: Dict[str, Any], include_inactive: bool) -> bool:
    """Status rule: inactive entities are hidden unless asked for."""
    if include_inactive:
        return True
    return str(record.get("status") or "").upper() not in INACTIVE_STATUSES


def build_expression(criterion: SearchCriterion) -> str:
    """Render a criterion as a directory search expression.

    ``department`` becomes ``profile.department``; ``present`` omits the value.
    """
    attribute = criterion.attribute
    if not attribute.startswith("profile.") and attribute not in _RECORD_FIELDS:
        attribute = f"profile.{attribute}"
    keyword = _EXPRESSION_OPERATORS[criterion.operator]
    if criterion.operator == PRESENT:
        return f"{attribute} {keyword}"
    escaped = criterion.value.replace("\\", "\\\\").replace('"', '\\"')
    return f'{attribute} {keyword} "{escaped}"'


def mask_value(value: str) -> str:
    """Mask a value for display: ``ab`` -> ``***``, ``alice`` -> ``a***e``."""
    if len(value) <= 3:
        return "***"
    return value[0] + "*" * (len(value) - 2) + value[-1]


def _is_pii(attribute: str) -> bool:
    name = attribute[len("profile."):] if attribute.startswith("profile.") else attribute
    return name in PII_ATTRIBUTES


def echo_value(attribute: str, value: str) -> str:
    """The search value as it may appear in reports."""
    if value and _is_pii(attribute):
        return mask_value(value)
    return value


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------

class SearchSelector:
    """Resolves a :class:`SearchCriterion` against the directory.

    Args:
        directory: Object providing ``get``, ``list_filtered``,
                   ``list_free_text`` and ``list_all``.
        scan_cap:  Entities fetched by the client-side scan.
    """

    def __init__(self, directory: Any, scan_cap: int = SCAN_CAP):
        self.directory = directory
        self.scan_cap = scan_cap

    def search(self, criterion: SearchCriterion) -> SearchOutcome:
        """Run the tiers in order and return the first one that answers."""
        demotions: List[str] = []

        # Tier 1: native filter
        expression = build_expression(criterion)
        try:
            candidates = self.directory.list_filtered(expression, criterion.limit)
        except CapabilityUnsupported as exc:
            demotions.append(f"{TIER_NATIVE}: operator not supported ({exc.message})")
            logger.info("search_demoted", tier=TIER_NATIVE, cause="capability",
                        operator=criterion.operator)
        except DirectoryError as exc:
            demotions.append(f"{TIER_NATIVE}: {exc.message}")
            logger.warning("search_demoted", tier=TIER_NATIVE, cause=type(exc).__name__)
        else:
            matches = [
                record for record in candidates
                if is_visible(record, criterion.include_inactive)
            ][:criterion.limit]
            return SearchOutcome(criterion, TIER_NATIVE, matches, len(candidates), demotions)

        # Tier 2: free text
        if criterion.operator != PRESENT and criterion.value:
            try:
                candidates = self.directory.list_free_text(criterion.value, criterion.limit)
            except DirectoryError as exc:
                demotions.append(f"{TIER_FREE_TEXT}: {exc.message}")
                logger.warning("search_demoted", tier=TIER_FREE_TEXT, cause=type(exc).__name__)
            else:
                matches = self._verify(candidates, criterion)
                return SearchOutcome(criterion, TIER_FREE_TEXT, matches, len(candidates), demotions)
        else:
            demotions.append(f"{TIER_FREE_TEXT}: no value to search for")

        # Tier 3: bounded client-side scan; failures here propagate to the dispatcher
        candidates = self.directory.list_all(self.scan_cap)
        matches = self._verify(candidates, criterion)
        return SearchOutcome(criterion, TIER_SCAN, matches, len(candidates), demotions,
                             scan_cap=self.scan_cap)

    def _verify(self, candidates: List[Dict[str, Any]], criterion: SearchCriterion) -> List[Dict[str, Any]]:
        """Fetch each candidate's full record and keep verified matches, in input order."""
        matches: List[Dict[str, Any]] = []
        for candidate in candidates:
            if len(matches) >= criterion.limit:
                break
            key = candidate.get("id")
            if not key:
                continue
            try:
                record = self.directory.get(key)
            except NotFound:
                logger.info("search_candidate_vanished", entity=key)
                continue
            except DirectoryError as exc:
                logger.warning("search_candidate_unreadable", entity=key, error=exc.message)
                continue
            if not is_visible(record, criterion.include_inactive):
                continue
            if matches_criterion(record, criterion):
                matches.append(record)
        return matches


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

def format_outcome(outcome: SearchOutcome) -> str:
    """Narrate a search outcome as plain text."""
    criterion = outcome.criterion
    shown_value = echo_value(criterion.attribute, criterion.value)
    if criterion.operator == PRESENT:
        query = f"{criterion.attribute} is present"
    else:
        query = f'{criterion.attribute} {criterion.operator} "{shown_value}"'

    lines = [f"Search: {query}", f"Strategy: {TIER_LABELS[outcome.tier]}"]
    for demotion in outcome.demotions:
        lines.append(f"  - fell back after {demotion}")
    if outcome.scan_capped:
        lines.append(
            f"Warning: only the first {outcome.scan_cap} users in the directory were considered; "
            f"matches beyond them are not reported."
        )
    if not criterion.include_inactive:
        lines.append("Deactivated users excluded (set includeInactive to include them).")

    if not outcome.matches:
        lines.append("")
        lines.append("No users matched.")
        return "\n".join(lines)

    lines.append("")
    lines.append(f"Matched {len(outcome.matches)} user(s):")
    for idx, record in enumerate(outcome.matches, 1):
        profile = record.get("profile") or {}
        name = f"{profile.get('firstName', '')} {profile.get('lastName', '')}".strip() or "Unnamed"
        lines.append(f"{idx}. {name} ({profile.get('login') or profile.get('email') or 'no login'})")
        lines.append(f"   - ID: {record.get('id')}")
        lines.append(f"   - Status: {record.get('status') or 'Unknown'}")
        if not _is_pii(criterion.attribute):
            matched = attribute_value(record, criterion.attribute)
            if matched is not None:
                lines.append(f"   - {criterion.attribute}: {matched}")
    if len(outcome.matches) >= criterion.limit:
        lines.append("")
        lines.append(f"Result limit of {criterion.limit} reached; narrow the search for more.")
    return "\n".join(lines)
