"""API tests for user management."""

from httpx import AsyncClient

from app.features.users.models import UserStatus, UserType


def _user_payload(**overrides) -> dict:
    payload = {
        "first_name": " Laura ",
        "last_name": "Gómez",
        "email": "Laura.Gomez@Example.com",
        "national_id": "52123456",
        "user_type": "interventor",
        "password": "Segura2024",
    }
    payload.update(overrides)
    return payload


async def test_admin_creates_user(client: AsyncClient, admin, auth_headers) -> None:
    response = await client.post("/users", json=_user_payload(), headers=auth_headers(admin))
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "laura.gomez@example.com"
    assert data["first_name"] == "Laura"
    assert data["full_name"] == "Laura Gómez"
    assert data["status"] == "activo"
    assert data["roles"] == []
    assert "password" not in data and "password_hash" not in data


async def test_new_user_can_log_in(client: AsyncClient, admin, auth_headers) -> None:
    await client.post("/users", json=_user_payload(), headers=auth_headers(admin))
    response = await client.post(
        "/auth/login", json={"email": "laura.gomez@example.com", "password": "Segura2024"}
    )
    assert response.status_code == 200


async def test_create_user_requires_permission(client: AsyncClient, contractor, auth_headers) -> None:
    response = await client.post("/users", json=_user_payload(), headers=auth_headers(contractor))
    assert response.status_code == 403
    assert response.json()["detail"] == "Permission denied: crear on usuarios"


async def test_create_user_rejects_weak_password_and_bad_id(client: AsyncClient, admin, auth_headers) -> None:
    headers = auth_headers(admin)
    weak = await client.post("/users", json=_user_payload(password="solominusculas"), headers=headers)
    assert weak.status_code == 400
    assert "password" in weak.json()

    bad_id = await client.post("/users", json=_user_payload(national_id="12ab"), headers=headers)
    assert bad_id.status_code == 400


async def test_create_user_rejects_duplicates(client: AsyncClient, admin, contractor, auth_headers) -> None:
    headers = auth_headers(admin)
    same_email = await client.post("/users", json=_user_payload(email=contractor.email), headers=headers)
    assert same_email.status_code == 400
    assert "email" in same_email.json()["detail"]

    same_id = await client.post(
        "/users", json=_user_payload(national_id=contractor.national_id), headers=headers
    )
    assert same_id.status_code == 400
    assert "national ID" in same_id.json()["detail"]


async def test_list_users_paginates_and_filters(client: AsyncClient, admin, create_user, auth_headers) -> None:
    for _ in range(3):
        await create_user(UserType.SUPERVISOR)

    headers = auth_headers(admin)
    response = await client.get("/users", params={"limit": 2}, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["pagination"] == {"current": 1, "total": 2, "count": 2, "total_records": 4}

    supervisors = await client.get("/users", params={"user_type": "supervisor"}, headers=headers)
    assert supervisors.json()["pagination"]["total_records"] == 3

    search = await client.get("/users", params={"search": admin.last_name}, headers=headers)
    assert [u["id"] for u in search.json()["items"]] == [admin.id]


async def test_contractor_may_read_users(client: AsyncClient, contractor, auth_headers) -> None:
    response = await client.get("/users", headers=auth_headers(contractor))
    assert response.status_code == 200


async def test_legacy_user_type_grants_read(client: AsyncClient, create_user, auth_headers) -> None:
    # No roles: the Contratista role stands in for the user type
    user = await create_user(UserType.CONTRATISTA)
    other = await create_user(UserType.CONTRATISTA)
    assert (await client.get(f"/users/{other.id}", headers=auth_headers(user))).status_code == 200


async def test_user_without_read_permission_sees_only_self(
    client: AsyncClient, super_admin, create_user, auth_headers
) -> None:
    user = await create_user(UserType.SUPERVISOR)
    other = await create_user(UserType.SUPERVISOR)
    admin_headers = auth_headers(super_admin)
    role = await client.post(
        "/permissions/roles",
        json={
            "name": "Solo Reportes",
            "description": "Consulta de reportes sin acceso a usuarios",
            "permissions": [{"resource": "reportes", "actions": ["leer"]}],
        },
        headers=admin_headers,
    )
    await client.put(
        f"/permissions/users/{user.id}/roles", json={"role_ids": [role.json()["id"]]}, headers=admin_headers
    )

    headers = auth_headers(user)
    assert (await client.get(f"/users/{user.id}", headers=headers)).status_code == 200
    assert (await client.get(f"/users/{other.id}", headers=headers)).status_code == 403


async def test_get_unknown_user_returns_404(client: AsyncClient, admin, auth_headers) -> None:
    response = await client.get("/users/unknown", headers=auth_headers(admin))
    assert response.status_code == 404


async def test_update_user(client: AsyncClient, admin, contractor, auth_headers) -> None:
    response = await client.put(
        f"/users/{contractor.id}",
        json={"profession": "Ingeniera Civil", "certifications": ["PMP"]},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["profession"] == "Ingeniera Civil"
    assert response.json()["certifications"] == ["PMP"]


async def test_update_user_email_must_stay_unique(
    client: AsyncClient, admin, contractor, auth_headers
) -> None:
    response = await client.put(
        f"/users/{contractor.id}", json={"email": admin.email}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


async def test_suspended_user_loses_access(client: AsyncClient, admin, contractor, auth_headers) -> None:
    response = await client.patch(
        f"/users/{contractor.id}/status", json={"status": "suspendido"}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["status"] == UserStatus.SUSPENDIDO.value

    me = await client.get("/auth/me", headers=auth_headers(contractor))
    assert me.status_code == 401


async def test_administrador_role_cannot_delete(client: AsyncClient, admin, contractor, auth_headers) -> None:
    response = await client.delete(f"/users/{contractor.id}", headers=auth_headers(admin))
    assert response.status_code == 403


async def test_super_admin_deletes_user(client: AsyncClient, super_admin, contractor, auth_headers) -> None:
    headers = auth_headers(super_admin)
    response = await client.delete(f"/users/{contractor.id}", headers=headers)
    assert response.status_code == 200
    assert (await client.get(f"/users/{contractor.id}", headers=headers)).status_code == 404


async def test_cannot_delete_self(client: AsyncClient, super_admin, auth_headers) -> None:
    response = await client.delete(f"/users/{super_admin.id}", headers=auth_headers(super_admin))
    assert response.status_code == 400


async def test_user_stats(client: AsyncClient, admin, contractor, create_user, auth_headers) -> None:
    await create_user(UserType.SUPERVISOR, status=UserStatus.INACTIVO)

    response = await client.get("/users/stats", headers=auth_headers(admin))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["by_status"] == {"activo": 2, "inactivo": 1, "suspendido": 0}
    assert data["by_type"]["administrador"] == 1
    assert data["by_type"]["interventor"] == 0
    assert sum(day["count"] for day in data["registrations_last_30_days"]) == 3


async def test_changing_user_type_takes_an_administrator(
    client: AsyncClient, super_admin, admin, contractor, auth_headers
) -> None:
    url = f"/users/{contractor.id}"
    refused = await client.put(url, json={"user_type": "interventor"}, headers=auth_headers(admin))
    assert refused.status_code == 403

    unchanged = await client.put(
        url, json={"user_type": "contratista", "phone": "3001234567"}, headers=auth_headers(admin)
    )
    assert unchanged.status_code == 200
    assert unchanged.json()["phone"] == "3001234567"

    changed = await client.put(url, json={"user_type": "interventor"}, headers=auth_headers(super_admin))
    assert changed.status_code == 200
    assert changed.json()["user_type"] == "interventor"


async def test_explicit_nulls_leave_user_fields_unchanged(
    client: AsyncClient, admin, contractor, auth_headers
) -> None:
    response = await client.put(
        f"/users/{contractor.id}",
        json={"first_name": None, "email": None, "user_type": None, "certifications": None},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["first_name"] == contractor.first_name
    assert data["email"] == contractor.email
    assert data["user_type"] == "contratista"


async def test_user_referenced_by_a_project_is_not_deleted(
    client: AsyncClient, super_admin, admin, contractor, auth_headers
) -> None:
    project = await client.post(
        "/projects",
        json={
            "code": "INT-2024-010",
            "name": "Interventoría acueducto",
            "description": "Interventoría de la ampliación del acueducto municipal",
            "project_type": "infraestructura",
            "start_date": "2024-01-15",
            "planned_end_date": "2024-12-15",
            "location": {"address": "Cra 5 # 10-20", "city": "Tunja", "department": "Boyacá"},
            "contractor_id": contractor.id,
            "client_contact": {"name": "Luis Mora", "title": "Gerente de Acueducto"},
            "budget": {"total": 800000000, "approved_at": "2023-12-01"},
        },
        headers=auth_headers(admin),
    )
    assert project.status_code == 201

    headers = auth_headers(super_admin)
    refused = await client.delete(f"/users/{contractor.id}", headers=headers)
    assert refused.status_code == 400
    assert "projects" in refused.json()["detail"]
    assert (await client.get(f"/users/{contractor.id}", headers=headers)).status_code == 200

    deactivated = await client.patch(
        f"/users/{contractor.id}/status", json={"status": "inactivo"}, headers=headers
    )
    assert deactivated.status_code == 200


async def test_user_who_created_filings_is_not_deleted(
    client: AsyncClient, super_admin, contractor, auth_headers
) -> None:
    filing = await client.post(
        "/filings",
        json={
            "letter_date": "2024-05-02",
            "subject": "Entrega de informe",
            "summary": "Se remite el informe semanal",
            "recipient": "Carlos Pérez",
            "category": "seguimiento",
        },
        headers=auth_headers(contractor),
    )
    assert filing.status_code == 201

    response = await client.delete(f"/users/{contractor.id}", headers=auth_headers(super_admin))
    assert response.status_code == 400
    assert "filings" in response.json()["detail"]
