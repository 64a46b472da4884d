"""
Role-based permission engine.

Implements:
- Permission checks over a user's active roles with condition evaluation
  (ownership, allowed states, allowed types)
- Merged (effective) permission listing
- Bootstrap seeding of the default role set
- The legacy user_type -> role compatibility path

The manager holds no state between calls; every check re-reads role data
through the injected repository.
"""
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from app.features.permissions.constants import (
    Action,
    DEFAULT_ROLES,
    LEGACY_USER_TYPE_ROLES,
    Resource,
)
from app.features.permissions.repository import RoleRepository
from app.features.permissions.schemas import (
    PermissionConditions,
    PermissionContext,
    PermissionEntry,
)
from app.utils import get_logger


log = get_logger(__name__)


KNOWN_CONDITIONS = {"owner", "states", "types"}


class InvalidPermissionArgument(ValueError):
    """Resource or action outside the closed enumerations."""


def _coerce(enum_cls, value, kind: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidPermissionArgument(f"Unknown {kind}: {value!r}") from None


# ============================================================================
# Condition Evaluation
# ============================================================================

def evaluate_conditions(
    conditions: Union[PermissionConditions, Mapping[str, Any], None],
    context: Optional[PermissionContext],
    user_id: str,
) -> bool:
    """
    Evaluate a permission entry's conditions against the target entity.

    Args:
        conditions: Entry conditions, e.g. {"owner": true, "states": ["activo"]}
        context: Attributes of the target entity, may be None
        user_id: Acting user

    Returns:
        True if every present condition holds. A present condition whose
        context value is missing fails, and so do unknown condition keys.
    """
    if isinstance(conditions, PermissionConditions):
        if conditions.is_empty():
            return True
        conditions = conditions.model_dump()

    if not conditions:
        return True

    if not isinstance(conditions, Mapping):
        log.warning(f"Conditions must be a mapping, got {type(conditions).__name__}")
        return False

    unknown = set(conditions) - KNOWN_CONDITIONS
    if unknown:
        log.warning(f"Unknown condition type(s): {', '.join(sorted(map(str, unknown)))}")
        return False

    for condition_key, condition_value in conditions.items():
        if not condition_value:
            continue

        if condition_key == "owner":
            owner_id = context.owner_id if context else None
            if owner_id is None or owner_id != user_id:
                log.debug(f"Owner condition failed: owner={owner_id} user={user_id}")
                return False

        elif condition_key == "states":
            state = context.state if context else None
            if state is None or not isinstance(condition_value, list) or state not in condition_value:
                log.debug(f"State condition failed: {state} not in {condition_value}")
                return False

        elif condition_key == "types":
            entity_type = context.type if context else None
            if entity_type is None or not isinstance(condition_value, list) or entity_type not in condition_value:
                log.debug(f"Type condition failed: {entity_type} not in {condition_value}")
                return False

    return True


# ============================================================================
# Permission Manager
# ============================================================================

class PermissionManager:
    """Evaluates permissions for users through a RoleRepository."""

    def __init__(self, repository: RoleRepository):
        self.repository = repository

    async def has_permission(
        self,
        user_id: str,
        resource: Union[Resource, str],
        action: Union[Action, str],
        context: Union[PermissionContext, Mapping[str, Any], None] = None,
    ) -> bool:
        """
        Check whether a user may perform `action` on `resource`.

        The first active role holding a matching entry whose conditions pass
        grants. Everything else denies, including a missing user, storage
        failures and a malformed context.

        Raises:
            InvalidPermissionArgument: resource or action is not a known value
        """
        resource = _coerce(Resource, resource, "resource")
        action = _coerce(Action, action, "action")

        try:
            ctx = self._parse_context(context)
        except ValidationError as e:
            log.warning(f"Malformed permission context for user {user_id}: {e.errors()}")
            return False

        try:
            roles = await self._load_roles(user_id)
        except Exception:
            log.exception(f"Failed to load roles for user {user_id}; denying {action.value} on {resource.value}")
            return False

        try:
            for role in roles:
                if not role.is_active:
                    continue

                for entry in self._entries_for(role, resource):
                    if action not in entry.actions:
                        continue
                    if evaluate_conditions(entry.conditions, ctx, user_id):
                        log.debug(
                            f"User {user_id} granted {action.value} on {resource.value} via role '{role.name}'"
                        )
                        return True
        except Exception:
            log.exception(f"Failed to evaluate roles for user {user_id}; denying {action.value} on {resource.value}")
            return False

        log.debug(f"User {user_id} denied {action.value} on {resource.value}")
        return False

    async def effective_permissions(self, user_id: str) -> List[PermissionEntry]:
        """
        Merge a user's active roles into one entry per resource.

        Actions are unioned in first-seen order. The first condition set seen
        for a resource is kept as is; has_permission still evaluates each
        role's own conditions.
        """
        try:
            roles = await self._load_roles(user_id)
        except Exception:
            log.exception(f"Failed to load roles for user {user_id}")
            return []

        merged: Dict[str, Dict[str, Any]] = {}
        for role in roles:
            if not role.is_active:
                continue
            for entry in role.permissions or []:
                if not isinstance(entry, Mapping):
                    log.warning(f"Skipping non-mapping permission entry in role '{role.name}'")
                    continue
                resource = entry.get("resource")
                actions = entry.get("actions") or []
                if resource not in merged:
                    merged[resource] = {
                        "resource": resource,
                        "actions": list(actions),
                        "conditions": entry.get("conditions"),
                    }
                    continue
                for action in actions:
                    if action not in merged[resource]["actions"]:
                        merged[resource]["actions"].append(action)

        permissions = []
        for item in merged.values():
            try:
                permissions.append(PermissionEntry.model_validate(item))
            except ValidationError:
                log.warning(f"Skipping malformed permission entry for user {user_id}: {item}")
        return permissions

    async def seed_default_roles(self) -> int:
        """
        Insert the default roles when no role exists yet.

        Returns:
            Number of roles inserted, 0 when roles were already present
        """
        existing = await self.repository.count_roles()
        if existing > 0:
            log.info(f"Skipping default role seed: {existing} role(s) already exist")
            return 0

        created = await self.repository.add_roles(DEFAULT_ROLES)
        log.info(f"Seeded {len(created)} default roles")
        return len(created)

    async def resolve_legacy_role(self, user_type: Optional[str]):
        """
        Resolve the role standing in for a legacy user_type.

        The user type is mapped through LEGACY_USER_TYPE_ROLES (falling back
        to the user type itself) and matched exactly, ignoring case, against
        active role names.
        """
        if not user_type:
            return None

        key = str(getattr(user_type, "value", user_type))
        role_name = LEGACY_USER_TYPE_ROLES.get(key.lower(), key)
        role = await self.repository.find_role_by_name(role_name)

        if role:
            log.warning(f"Using legacy role '{role.name}' for user type '{key}'")
        else:
            log.warning(f"No active role matches legacy user type '{key}'")
        return role

    # ------------------------------------------------------------------------

    async def _load_roles(self, user_id: str) -> List[Any]:
        record = await self.repository.find_user_roles(user_id)
        if record is None:
            log.debug(f"User {user_id} not found")
            return []

        if record.roles:
            return list(record.roles)

        legacy_role = await self.resolve_legacy_role(record.user_type)
        return [legacy_role] if legacy_role else []

    @staticmethod
    def _parse_context(context) -> Optional[PermissionContext]:
        if context is None or isinstance(context, PermissionContext):
            return context
        return PermissionContext.model_validate(context)

    @staticmethod
    def _entries_for(role, resource: Resource) -> List[PermissionEntry]:
        entries = []
        for raw in role.permissions or []:
            if not isinstance(raw, Mapping):
                log.warning(f"Role '{role.name}' holds a non-mapping permission entry: {raw!r}")
                continue
            if raw.get("resource") != resource.value:
                continue
            try:
                entries.append(PermissionEntry.model_validate(raw))
            except ValidationError:
                log.warning(f"Skipping malformed permission entry in role '{role.name}': {raw}")

        if len(entries) > 1:
            log.warning(
                f"Role '{role.name}' has {len(entries)} entries for {resource.value}; evaluating all of them"
            )
        return entries
