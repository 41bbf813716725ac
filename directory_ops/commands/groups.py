"""Group commands."""

from typing import Any, Dict, List

from ..dispatcher import Command
from ..errors import NotFound
from ..search import DEFAULT_LIMIT, MAX_LIMIT
from ..validator import field
from .formatting import format_date, format_list, pagination_footer, profile_value, user_line
from .users import SORT_ORDERS


def _group_id_field(description: str = "ID of the group"):
    return field("groupId", "string", required=True, min_length=1, description=description)


def list_groups(directory, args: Dict[str, Any]):
    sort_by = args.get("sortBy")
    groups = directory.list_groups(
        limit=args["limit"],
        filter=args.get("filter"),
        search=args.get("search"),
        after=args.get("after"),
        sort_by=sort_by,
        sort_order=args["sortOrder"] if sort_by else None,
    )
    groups = [g for g in groups if g and g.get("id")]
    if not groups:
        return "No groups found matching your criteria."

    entries = []
    for i, group in enumerate(groups, 1):
        profile = group.get("profile") or {}
        entries.append("\n".join([
            f"{i}. {profile.get('name') or 'Unnamed Group'}",
            f"   - ID: {group.get('id')}",
            f"   - Type: {group.get('type') or 'Unknown'}",
            f"   - Object Class: {format_list(group.get('objectClass'))}",
            f"   - Description: {profile.get('description') or 'No description'}",
            f"   - Created: {format_date(group.get('created'))}",
            f"   - Last Updated: {format_date(group.get('lastUpdated'))}",
            f"   - Last Membership Updated: {format_date(group.get('lastMembershipUpdated'))}",
        ]))
    return "Groups:\n\n" + "\n\n".join(entries) + "\n\n" + pagination_footer(
        groups, args["limit"], "groups"
    )


def create_group(directory, args: Dict[str, Any]):
    group = directory.create_group(args["name"], args.get("description") or "")
    profile = group.get("profile") or {}
    return (
        "Group created successfully:\n"
        f"ID: {group.get('id')}\n"
        f"Name: {profile.get('name', args['name'])}\n"
        f"Type: {group.get('type') or 'OKTA_GROUP'}\n"
        f"Created: {format_date(group.get('created'))}"
    )


def get_group(directory, args: Dict[str, Any]):
    group_id = args["groupId"]
    try:
        group = directory.get_group(group_id)
    except NotFound:
        return f"No group found with ID: {group_id}"

    profile = group.get("profile") or {}
    return "\n".join([
        "Group Details:",
        f"- ID: {group.get('id')}",
        f"- Name: {profile_value(profile.get('name'))}",
        f"- Description: {profile_value(profile.get('description'))}",
        f"- Type: {group.get('type') or 'Unknown'}",
        f"- Object Class: {format_list(group.get('objectClass'))}",
        f"- Created: {format_date(group.get('created'))}",
        f"- Last Updated: {format_date(group.get('lastUpdated'))}",
        f"- Last Membership Updated: {format_date(group.get('lastMembershipUpdated'))}",
    ])


def delete_group(directory, args: Dict[str, Any]):
    directory.delete_group(args["groupId"])
    return f"Group with ID {args['groupId']} has been successfully deleted."


def assign_user_to_group(directory, args: Dict[str, Any]):
    directory.assign_to_group(args["groupId"], args["userId"])
    return (f"User with ID {args['userId']} has been successfully assigned "
            f"to group with ID {args['groupId']}.")


def remove_user_from_group(directory, args: Dict[str, Any]):
    directory.remove_from_group(args["groupId"], args["userId"])
    return (f"User with ID {args['userId']} has been successfully removed "
            f"from group with ID {args['groupId']}.")


def list_group_users(directory, args: Dict[str, Any]):
    group_id = args["groupId"]
    users = directory.list_group_users(group_id, limit=args["limit"], after=args.get("after"))
    users = [u for u in users if u and u.get("id")]
    if not users:
        return "No users found in this group."

    entries = [user_line(i, u) for i, u in enumerate(users, 1)]
    return f"Users in Group (ID: {group_id}):\n\n" + "\n\n".join(entries) + "\n\n" + pagination_footer(
        users, args["limit"], "users", total_label="Total users in group"
    )


_LIMIT = field("limit", "integer", default=DEFAULT_LIMIT, minimum=1, maximum=MAX_LIMIT,
               description="Maximum number of results to return (default: 50, max: 200)")
_AFTER = field("after", "string", description="Cursor for pagination, obtained from previous response")
_MEMBER = field("userId", "string", required=True, min_length=1, description="ID of the user")

COMMANDS: List[Command] = [
    Command(
        "list_groups",
        "List groups from the directory with optional filtering and pagination",
        [
            _LIMIT,
            field("filter", "string", description="Filter expression for groups"),
            field("search", "string", description="Search expression across group fields"),
            _AFTER,
            field("sortBy", "string", description="Field to sort results by"),
            field("sortOrder", "string", default="asc", enum=SORT_ORDERS,
                  description="Sort order (asc or desc, default: asc)"),
        ],
        list_groups,
    ),
    Command(
        "create_group",
        "Create a new group in the directory",
        [
            field("name", "string", required=True, min_length=1, description="Name of the group"),
            field("description", "string", description="Description of the group (optional)"),
        ],
        create_group,
    ),
    Command(
        "get_group",
        "Get detailed information about a specific group",
        [_group_id_field("ID of the group to retrieve")],
        get_group,
    ),
    Command(
        "delete_group",
        "Delete a group from the directory",
        [_group_id_field("ID of the group to delete")],
        delete_group,
    ),
    Command(
        "assign_user_to_group",
        "Assign a user to a group",
        [_group_id_field(), _MEMBER],
        assign_user_to_group,
    ),
    Command(
        "remove_user_from_group",
        "Remove a user from a group",
        [_group_id_field(), _MEMBER],
        remove_user_from_group,
    ),
    Command(
        "list_group_users",
        "List all users in a specific group",
        [_group_id_field(), _LIMIT, _AFTER],
        list_group_users,
    ),
]
