"""API tests for roles, role assignment, permission checks and the audit trail."""

import pytest
from httpx import AsyncClient

from app.features.permissions.constants import DEFAULT_ROLES
from app.features.users.models import UserType


def _role_payload(name: str = "Auditor Externo", **overrides) -> dict:
    payload = {
        "name": name,
        "description": "Revisión externa de documentos y reportes",
        "permissions": [
            {"resource": "documentos", "actions": ["leer"]},
            {"resource": "reportes", "actions": ["leer", "exportar"]},
        ],
    }
    payload.update(overrides)
    return payload


async def _role_id(client: AsyncClient, headers: dict, name: str) -> str:
    response = await client.get("/permissions/roles", headers=headers)
    return next(r["id"] for r in response.json() if r["name"] == name)


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


async def test_list_roles_sorted_by_name(client: AsyncClient, super_admin, auth_headers) -> None:
    response = await client.get("/permissions/roles", headers=auth_headers(super_admin))
    assert response.status_code == 200
    names = [r["name"] for r in response.json()]
    assert names == sorted(r["name"] for r in DEFAULT_ROLES)


async def test_non_admin_cannot_manage_roles(client: AsyncClient, contractor, auth_headers) -> None:
    headers = auth_headers(contractor)
    assert (await client.get("/permissions/roles", headers=headers)).status_code == 403
    response = await client.post("/permissions/roles", json=_role_payload(), headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin privileges required"


async def test_create_role_and_audit_entry(client: AsyncClient, super_admin, auth_headers) -> None:
    headers = auth_headers(super_admin)
    response = await client.post("/permissions/roles", json=_role_payload(), headers=headers)
    assert response.status_code == 201
    role = response.json()
    assert role["is_active"] is True
    assert role["permissions"][1]["actions"] == ["leer", "exportar"]

    logs = await client.get(
        "/permissions/audit-logs", params={"resource_type": "role"}, headers=headers
    )
    assert logs.status_code == 200
    entry = logs.json()["items"][0]
    assert entry["action"] == "create"
    assert entry["resource_id"] == role["id"]
    assert entry["user_id"] == super_admin.id


async def test_create_role_rejects_duplicate_name_ignoring_case(
    client: AsyncClient, super_admin, auth_headers
) -> None:
    response = await client.post(
        "/permissions/roles", json=_role_payload(name="contratista"), headers=auth_headers(super_admin)
    )
    assert response.status_code == 400


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "ab"},
        {"description": "corta"},
        {"permissions": []},
        {"permissions": [{"resource": "clientes", "actions": ["leer"]}]},
        {"permissions": [{"resource": "reportes", "actions": ["borrar"]}]},
        {"permissions": [{"resource": "reportes", "actions": []}]},
        {"permissions": [{"resource": "reportes", "actions": ["leer"], "conditions": {"ip_range": ["10.0.0.1"]}}]},
        {
            "permissions": [
                {"resource": "reportes", "actions": ["leer"]},
                {"resource": "reportes", "actions": ["exportar"]},
            ]
        },
    ],
)
async def test_create_role_validation(client: AsyncClient, super_admin, auth_headers, overrides) -> None:
    response = await client.post(
        "/permissions/roles", json=_role_payload(**overrides), headers=auth_headers(super_admin)
    )
    assert response.status_code == 400


async def test_update_role_permissions(client: AsyncClient, super_admin, auth_headers) -> None:
    headers = auth_headers(super_admin)
    created = (await client.post("/permissions/roles", json=_role_payload(), headers=headers)).json()

    response = await client.put(
        f"/permissions/roles/{created['id']}",
        json={
            "permissions": [
                {"resource": "proyectos", "actions": ["leer"], "conditions": {"states": ["en_ejecucion"]}}
            ]
        },
        headers=headers,
    )
    assert response.status_code == 200
    (entry,) = response.json()["permissions"]
    assert entry["resource"] == "proyectos"
    assert entry["conditions"]["states"] == ["en_ejecucion"]
    assert response.json()["name"] == "Auditor Externo"


async def test_update_role_rejects_taken_name(client: AsyncClient, super_admin, auth_headers) -> None:
    headers = auth_headers(super_admin)
    created = (await client.post("/permissions/roles", json=_role_payload(), headers=headers)).json()
    response = await client.put(
        f"/permissions/roles/{created['id']}", json={"name": "SUPERVISOR"}, headers=headers
    )
    assert response.status_code == 400


async def test_get_unknown_role_returns_404(client: AsyncClient, super_admin, auth_headers) -> None:
    response = await client.get("/permissions/roles/does-not-exist", headers=auth_headers(super_admin))
    assert response.status_code == 404


async def test_delete_role(client: AsyncClient, super_admin, auth_headers) -> None:
    headers = auth_headers(super_admin)
    created = (await client.post("/permissions/roles", json=_role_payload(), headers=headers)).json()

    response = await client.delete(f"/permissions/roles/{created['id']}", headers=headers)
    assert response.status_code == 204
    assert (await client.get(f"/permissions/roles/{created['id']}", headers=headers)).status_code == 404


async def test_delete_role_held_by_users_is_refused(
    client: AsyncClient, super_admin, contractor, auth_headers
) -> None:
    headers = auth_headers(super_admin)
    role_id = await _role_id(client, headers, "Contratista")
    response = await client.delete(f"/permissions/roles/{role_id}", headers=headers)
    assert response.status_code == 400


async def test_list_roles_filters_inactive(client: AsyncClient, super_admin, auth_headers) -> None:
    headers = auth_headers(super_admin)
    role_id = await _role_id(client, headers, "Supervisor")
    await client.put(f"/permissions/roles/{role_id}", json={"is_active": False}, headers=headers)

    response = await client.get("/permissions/roles", params={"is_active": False}, headers=headers)
    assert [r["name"] for r in response.json()] == ["Supervisor"]


async def test_resources_lists_closed_enumerations(client: AsyncClient, contractor, auth_headers) -> None:
    response = await client.get("/permissions/resources", headers=auth_headers(contractor))
    assert response.status_code == 200
    data = response.json()
    assert [r["id"] for r in data["resources"]] == [
        "usuarios", "proyectos", "documentos", "reportes", "configuracion"
    ]
    assert "configurar" in data["actions"]


# ---------------------------------------------------------------------------
# Effective permissions and assignment
# ---------------------------------------------------------------------------


async def test_my_permissions(client: AsyncClient, contractor, auth_headers) -> None:
    response = await client.get("/permissions/me", headers=auth_headers(contractor))
    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == contractor.id
    assert [r["name"] for r in data["roles"]] == ["Contratista"]
    projects = next(p for p in data["permissions"] if p["resource"] == "proyectos")
    assert projects["conditions"]["owner"] is True


async def test_other_users_permissions_need_admin(
    client: AsyncClient, contractor, create_user, auth_headers
) -> None:
    other = await create_user()
    response = await client.get(f"/permissions/users/{other.id}", headers=auth_headers(contractor))
    assert response.status_code == 403


async def test_assign_roles_replaces_the_set(
    client: AsyncClient, super_admin, contractor, auth_headers
) -> None:
    headers = auth_headers(super_admin)
    interventor_id = await _role_id(client, headers, "Interventor")
    supervisor_id = await _role_id(client, headers, "Supervisor")

    response = await client.put(
        f"/permissions/users/{contractor.id}/roles",
        json={"role_ids": [supervisor_id, interventor_id, supervisor_id]},
        headers=headers,
    )
    assert response.status_code == 200
    assert sorted(r["name"] for r in response.json()["roles"]) == ["Interventor", "Supervisor"]

    check = await client.post(
        f"/permissions/users/{contractor.id}/check",
        json={"resource": "reportes", "action": "exportar"},
        headers=headers,
    )
    assert check.json()["has_permission"] is True

    logs = await client.get(
        "/permissions/audit-logs", params={"action": "assign"}, headers=headers
    )
    assert logs.json()["total"] == 1
    assert logs.json()["items"][0]["resource_type"] == "user_roles"


async def test_assign_unknown_or_inactive_roles_is_refused(
    client: AsyncClient, super_admin, contractor, auth_headers
) -> None:
    headers = auth_headers(super_admin)
    missing = await client.put(
        f"/permissions/users/{contractor.id}/roles", json={"role_ids": ["nope"]}, headers=headers
    )
    assert missing.status_code == 400

    role_id = await _role_id(client, headers, "Supervisor")
    await client.put(f"/permissions/roles/{role_id}", json={"is_active": False}, headers=headers)
    inactive = await client.put(
        f"/permissions/users/{contractor.id}/roles", json={"role_ids": [role_id]}, headers=headers
    )
    assert inactive.status_code == 400


async def test_assign_roles_to_unknown_user(client: AsyncClient, super_admin, auth_headers) -> None:
    response = await client.put(
        "/permissions/users/unknown/roles", json={"role_ids": []}, headers=auth_headers(super_admin)
    )
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------


async def test_check_own_permission_with_owner_context(
    client: AsyncClient, contractor, create_user, auth_headers
) -> None:
    headers = auth_headers(contractor)
    url = f"/permissions/users/{contractor.id}/check"

    own = await client.post(
        url,
        json={"resource": "proyectos", "action": "actualizar", "context": {"owner_id": contractor.id}},
        headers=headers,
    )
    other = await client.post(
        url,
        json={"resource": "proyectos", "action": "actualizar", "context": {"owner_id": "someone-else"}},
        headers=headers,
    )
    assert own.json()["has_permission"] is True
    assert other.json()["has_permission"] is False


async def test_administrador_role_cannot_delete_users(client: AsyncClient, admin, auth_headers) -> None:
    url = f"/permissions/users/{admin.id}/check"
    headers = auth_headers(admin)

    delete = await client.post(url, json={"resource": "usuarios", "action": "eliminar"}, headers=headers)
    read = await client.post(url, json={"resource": "usuarios", "action": "leer"}, headers=headers)
    assert delete.json()["has_permission"] is False
    assert read.json()["has_permission"] is True


async def test_check_unknown_resource_is_bad_request(client: AsyncClient, contractor, auth_headers) -> None:
    response = await client.post(
        f"/permissions/users/{contractor.id}/check",
        json={"resource": "clientes", "action": "leer"},
        headers=auth_headers(contractor),
    )
    assert response.status_code == 400


async def test_user_type_alone_does_not_pass_admin_gate(
    client: AsyncClient, create_user, auth_headers
) -> None:
    # Without roles the Administrador role stands in, and it holds no configuracion entry
    legacy_admin = await create_user(UserType.ADMINISTRADOR)
    response = await client.get("/permissions/roles", headers=auth_headers(legacy_admin))
    assert response.status_code == 403


async def test_administrator_user_type_with_other_roles_is_not_admin(
    client: AsyncClient, create_user, auth_headers
) -> None:
    user = await create_user(UserType.ADMINISTRADOR, roles=("Contratista",))
    response = await client.get("/permissions/roles", headers=auth_headers(user))
    assert response.status_code == 403


async def test_administrador_role_holder_cannot_escalate(
    client: AsyncClient, super_admin, create_user, auth_headers
) -> None:
    user = await create_user(UserType.CONTRATISTA, roles=("Administrador",))
    headers = auth_headers(user)

    assert (await client.get("/permissions/roles", headers=headers)).status_code == 403

    promoted = await client.put(f"/users/{user.id}", json={"user_type": "administrador"}, headers=headers)
    assert promoted.status_code == 403
    assert (await client.get(f"/users/{user.id}", headers=headers)).json()["user_type"] == "contratista"

    super_role_id = await _role_id(client, auth_headers(super_admin), "Super Administrador")
    self_assigned = await client.put(
        f"/permissions/users/{user.id}/roles", json={"role_ids": [super_role_id]}, headers=headers
    )
    assert self_assigned.status_code == 403
    roles = await client.get("/permissions/me", headers=headers)
    assert [r["name"] for r in roles.json()["roles"]] == ["Administrador"]


async def test_configure_permission_grants_admin_routes(
    client: AsyncClient, super_admin, create_user, auth_headers
) -> None:
    configurator = await create_user(UserType.INTERVENTOR)
    headers = auth_headers(super_admin)
    created = await client.post(
        "/permissions/roles",
        json=_role_payload(
            name="Configurador",
            permissions=[{"resource": "configuracion", "actions": ["configurar"]}],
        ),
        headers=headers,
    )
    await client.put(
        f"/permissions/users/{configurator.id}/roles",
        json={"role_ids": [created.json()["id"]]},
        headers=headers,
    )

    response = await client.get("/permissions/audit-logs", headers=auth_headers(configurator))
    assert response.status_code == 200
    assert response.json()["total"] >= 2
