"""
Capability resolver.

Maps an (actor, action, resource) triple to allow/deny. Services ask for a
capability by action name and never look at role strings themselves.
"""
from typing import Any, Dict, Optional, Tuple

from ..config import settings
from ..errors import PermissionDeniedError
from ..schemas.auth import Actor


# action -> (role group or None, owner field on the resource or None)
# Either side passing grants the capability; (None, None) means any signed-in user.
CAPABILITIES: Dict[str, Tuple[Optional[str], Optional[str]]] = {
    "od:create": ("student", None),
    "od:view": ("staff", "applicant_id"),
    "od:decide_department": ("department_head", None),
    "od:decide_institution": ("institution_head", None),
    "od:edit": (None, "applicant_id"),
    "od:letter": ("staff", "applicant_id"),
    "lost_item:report": (None, None),
    "lost_item:update_status": (None, "reporter_id"),
    "pin:add": (None, None),
    "pin:vote": (None, None),
    "pin:comment": (None, None),
    "query:create": (None, None),
    "query:view": ("staff", "author_id"),
    "query:post": ("staff", "author_id"),
    "query:set_status": ("staff", None),
    "announcement:create": ("staff", None),
    "announcement:delete": ("admin", "created_by"),
    "presence:update": ("admin", "user_id"),
    "chat:post": (None, None),
    "audit:view": ("admin", None),
}


def _group_roles(group: str) -> set:
    if group == "staff":
        return set(settings.staff_roles)
    if group == "department_head":
        return set(settings.department_head_roles)
    if group == "institution_head":
        return set(settings.institution_head_roles)
    if group == "student":
        return set(settings.student_roles)
    if group == "admin":
        return {"admin"}
    raise ValueError(f"Unknown role group: {group}")


def is_admin(actor: Actor) -> bool:
    return "admin" in actor.roles


def in_group(actor: Actor, group: str) -> bool:
    """Role-group membership. Admin counts as a member of every staff group, never as a student."""
    if is_admin(actor) and group != "student":
        return True
    return bool(_group_roles(group) & set(actor.roles))


def is_staff(actor: Actor) -> bool:
    return in_group(actor, "staff")


def _field(resource: Any, name: str) -> Any:
    if isinstance(resource, dict):
        return resource.get(name)
    return getattr(resource, name, None)


def is_owner(actor: Actor, resource: Any, field: str) -> bool:
    if resource is None:
        return False
    owner = _field(resource, field)
    return owner is not None and str(owner) == str(actor.id)


def has_capability(actor: Actor, action: str, resource: Any = None) -> bool:
    if action not in CAPABILITIES:
        raise ValueError(f"Unknown action: {action}")
    group, owner_field = CAPABILITIES[action]
    if group is None and owner_field is None:
        return True
    if group is not None and in_group(actor, group):
        return True
    if owner_field is not None and is_owner(actor, resource, owner_field):
        return True
    return False


def require_capability(actor: Actor, action: str, resource: Any = None) -> None:
    if not has_capability(actor, action, resource):
        raise PermissionDeniedError(f"Not allowed: {action}", action=action)
