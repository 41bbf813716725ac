"""User commands: lookup, listing, lifecycle, last login location, attribute search."""

import datetime
import json
from typing import Any, Dict, List

from ..dispatcher import Command, InvocationResult
from ..errors import DirectoryError, NotFound, ValidationError
from ..search import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    OPERATORS,
    PRESENT,
    SearchCriterion,
    SearchSelector,
    format_outcome,
)
from ..validator import field
from .formatting import format_date, pagination_footer, profile_value, user_line

# Login-like events in the system log
LOGIN_EVENT_TYPES = (
    "user.session.start",
    "user.authentication.auth_via_mfa",
    "user.authentication.sso",
)

LOCATION_LOOKBACK_DAYS = 90

SORT_ORDERS = ["asc", "desc"]


def _user_id_field(description: str = "The unique identifier of the directory user"):
    return field("userId", "string", required=True, min_length=1, description=description)


# -- Lookup ------------------------------------------------------------------

def get_user(directory, args: Dict[str, Any]):
    user_id = args["userId"]
    try:
        user = directory.get(user_id)
    except NotFound:
        return f"User with ID {user_id} not found."

    p = user.get("profile") or {}
    return f"""• User Details:
  ID: {user.get('id')}
  Status: {user.get('status')}

- Account Dates:
  Created: {format_date(user.get('created'))}
  Activated: {format_date(user.get('activated'))}
  Last Login: {format_date(user.get('lastLogin'))}
  Last Updated: {format_date(user.get('lastUpdated'))}
  Status Changed: {format_date(user.get('statusChanged'))}
  Password Changed: {format_date(user.get('passwordChanged'))}

- Personal Information:
  Login: {profile_value(p.get('login'))}
  Email: {profile_value(p.get('email'))}
  Secondary Email: {profile_value(p.get('secondEmail'))}
  First Name: {profile_value(p.get('firstName'))}
  Last Name: {profile_value(p.get('lastName'))}
  Display Name: {profile_value(p.get('displayName'))}
  Nickname: {profile_value(p.get('nickName'))}

- Employment Details:
  Organization: {profile_value(p.get('organization'))}
  Title: {profile_value(p.get('title'))}
  Division: {profile_value(p.get('division'))}
  Department: {profile_value(p.get('department'))}
  Employee Number: {profile_value(p.get('employeeNumber'))}
  User Type: {profile_value(p.get('userType'))}
  Cost Center: {profile_value(p.get('costCenter'))}

- Contact Information:
  Mobile Phone: {profile_value(p.get('mobilePhone'))}
  Primary Phone: {profile_value(p.get('primaryPhone'))}

- Address:
  Street: {profile_value(p.get('streetAddress'))}
  City: {profile_value(p.get('city'))}
  State: {profile_value(p.get('state'))}
  Zip Code: {profile_value(p.get('zipCode'))}
  Country: {profile_value(p.get('countryCode'))}

- Preferences:
  Preferred Language: {profile_value(p.get('preferredLanguage'))}
  Profile URL: {profile_value(p.get('profileUrl'))}"""


def list_users(directory, args: Dict[str, Any]):
    sort_by = args.get("sortBy")
    users = directory.list_users(
        limit=args["limit"],
        filter=args.get("filter"),
        search=args.get("search"),
        after=args.get("after"),
        sort_by=sort_by,
        sort_order=args["sortOrder"] if sort_by else None,
    )
    users = [u for u in users if u and u.get("id")]
    if not users:
        return "No users found matching your criteria."

    entries = [user_line(i, u) for i, u in enumerate(users, 1)]
    return "Users:\n\n" + "\n\n".join(entries) + "\n\n" + pagination_footer(
        users, args["limit"], "users"
    )


# -- Lifecycle ---------------------------------------------------------------

def create_user(directory, args: Dict[str, Any]):
    profile = {
        "firstName": args["firstName"],
        "lastName": args["lastName"],
        "email": args["email"],
        "login": args.get("login") or args["email"],
    }
    user = directory.create({"profile": profile}, activate=args["activate"])
    created = (user or {}).get("profile") or {}
    return (
        "User created successfully:\n"
        f"ID: {user.get('id')}\n"
        f"Login: {created.get('login', profile['login'])}\n"
        f"Status: {user.get('status')}\n"
        f"Created: {format_date(user.get('created'))}"
    )


def activate_user(directory, args: Dict[str, Any]):
    user_id = args["userId"]
    directory.set_activation(user_id, notify=args["sendEmail"])
    note = " An activation email has been sent." if args["sendEmail"] else ""
    return f"User with ID {user_id} has been activated successfully.{note}"


def suspend_user(directory, args: Dict[str, Any]):
    directory.suspend(args["userId"])
    return f"User with ID {args['userId']} has been suspended."


def unsuspend_user(directory, args: Dict[str, Any]):
    directory.unsuspend(args["userId"])
    return f"User with ID {args['userId']} has been unsuspended and is now active."


def deactivate_user(directory, args: Dict[str, Any]):
    directory.deactivate(args["userId"])
    return f"User with ID {args['userId']} has been deactivated."


def delete_user(directory, args: Dict[str, Any]):
    user_id = args["userId"]
    try:
        directory.delete(user_id)
    except DirectoryError as exc:
        return InvocationResult.error(
            f"Failed to delete user: {exc.message}. "
            "Note: Users must be deactivated before they can be deleted."
        )
    return f"User with ID {user_id} has been permanently deleted."


# -- Last login location -----------------------------------------------------

def login_events_filter(user_id: str) -> str:
    """System-log filter selecting login events that target ``user_id``."""
    escaped = user_id.replace('"', '\\"')
    events = " or ".join(f'eventType eq "{t}"' for t in LOGIN_EVENT_TYPES)
    return f'target.id eq "{escaped}" and ({events})'


def get_user_last_location(directory, args: Dict[str, Any]):
    user_id = args["userId"]
    try:
        user = directory.get(user_id)
    except NotFound:
        return f"User with ID {user_id} not found."
    login = (user.get("profile") or {}).get("login") or user_id

    since = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=LOCATION_LOOKBACK_DAYS)
    events = directory.list_system_events(
        filter=login_events_filter(user_id),
        since=since.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
        limit=1,
    )
    if not events:
        return (
            f"No login events found for user {login} in the last {LOCATION_LOOKBACK_DAYS} days. "
            "This might mean the user hasn't logged in recently or the events are not "
            "being captured in the system logs."
        )

    event = events[0]
    client = event.get("client") or {}
    geo = client.get("geographicalContext") or {}
    user_agent = client.get("userAgent")
    if isinstance(user_agent, dict):
        user_agent = user_agent.get("rawUserAgent")
    return "\n".join([
        f"• Last Login Information for User {login}:",
        f"  Time: {format_date(event.get('published'))}",
        f"  Event Type: {event.get('eventType') or 'N/A'}",
        f"  IP Address: {client.get('ipAddress') or 'N/A'}",
        f"  City: {geo.get('city') or 'N/A'}",
        f"  State: {geo.get('state') or 'N/A'}",
        f"  Country: {geo.get('country') or 'N/A'}",
        f"  Device: {client.get('device') or 'N/A'}",
        f"  User Agent: {user_agent or 'N/A'}",
    ])


# -- Search ------------------------------------------------------------------

def search_users(directory, args: Dict[str, Any]):
    operator = args["operator"]
    value = args.get("value") or ""
    if operator != PRESENT and not value:
        err = ValidationError(f"Missing required field: 'value' (required for operator '{operator}')",
                              path="value")
        return InvocationResult.error(f"Invalid arguments for search_users: {err}")

    criterion = SearchCriterion(
        attribute=args["attribute"],
        operator=operator,
        value=value,
        limit=args["limit"],
        include_inactive=args["includeInactive"],
    )
    outcome = SearchSelector(directory).search(criterion)
    return InvocationResult.text(format_outcome(outcome), json.dumps(outcome.to_dict(), indent=2))


COMMANDS: List[Command] = [
    Command(
        "get_user",
        "Retrieve detailed user information from the directory by user ID",
        [_user_id_field()],
        get_user,
    ),
    Command(
        "list_users",
        "List users from the directory with optional filtering and pagination",
        [
            field("limit", "integer", default=DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT,
                  description="Maximum number of users to return (default: 50, max: 200)"),
            field("filter", "string", description="Filter expression to filter users"),
            field("search", "string", description="Search expression across profile attributes"),
            field("after", "string", description="Cursor for pagination, obtained from previous response"),
            field("sortBy", "string", description="Field to sort results by"),
            field("sortOrder", "string", default="asc", enum=SORT_ORDERS,
                  description="Sort order (asc or desc, default: asc)"),
        ],
        list_users,
    ),
    Command(
        "create_user",
        "Create a new user in the directory",
        [
            field("firstName", "string", required=True, min_length=1, description="User's first name"),
            field("lastName", "string", required=True, min_length=1, description="User's last name"),
            field("email", "string", required=True, format="email", description="User's email address"),
            field("login", "string", description="User's login (defaults to email if not provided)"),
            field("activate", "boolean", default=False,
                  description="Whether to activate the user immediately (default: false)"),
        ],
        create_user,
    ),
    Command(
        "activate_user",
        "Activate a user in the directory",
        [
            _user_id_field(),
            field("sendEmail", "boolean", default=True,
                  description="Whether to send an activation email (default: true)"),
        ],
        activate_user,
    ),
    Command("suspend_user", "Suspend a user in the directory", [_user_id_field()], suspend_user),
    Command("unsuspend_user", "Unsuspend a user in the directory", [_user_id_field()], unsuspend_user),
    Command("deactivate_user", "Deactivate a user in the directory", [_user_id_field()], deactivate_user),
    Command(
        "delete_user",
        "Delete a user from the directory (must be deactivated first)",
        [_user_id_field()],
        delete_user,
    ),
    Command(
        "get_user_last_location",
        "Get the location and time of a user's most recent login from the system log",
        [_user_id_field()],
        get_user_last_location,
    ),
    Command(
        "search_users",
        "Find users whose attribute matches a value, falling back to verified "
        "free-text search or a bounded scan when the directory cannot filter natively",
        [
            field("attribute", "string", required=True, min_length=1,
                  description="Profile attribute to match (e.g. department, title, login)"),
            field("operator", "string", required=True, enum=OPERATORS,
                  description="Comparison operator"),
            field("value", "string", description="Value to compare against (not used with 'present')"),
            field("limit", "integer", default=DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT,
                  description="Maximum number of matches to return (default: 50, max: 200)"),
            field("includeInactive", "boolean", default=False,
                  description="Include deactivated users (default: false)"),
        ],
        search_users,
    ),
]
