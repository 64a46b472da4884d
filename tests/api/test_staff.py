"""API tests for staff (personal) records and their project assignment."""

import pytest
from httpx import AsyncClient

from app.features.users.models import UserType


def _staff_payload(**overrides) -> dict:
    payload = {
        "first_name": " Andrés ",
        "last_name": "Rincón",
        "national_id": "80123456",
        "email": "Andres.Rincon@Example.com",
        "phone": "3109876543",
        "position": "Inspector de obra",
        "contract_type": "obra_labor",
        "hire_date": "2024-02-01",
        "salary": 4200000,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def project(client: AsyncClient, admin, contractor, auth_headers) -> dict:
    response = await client.post(
        "/projects",
        json={
            "code": "INT-2024-100",
            "name": "Interventoría vía terciaria",
            "description": "Interventoría del mejoramiento de la vía terciaria",
            "project_type": "infraestructura",
            "start_date": "2024-01-15",
            "planned_end_date": "2024-12-15",
            "location": {"address": "Vereda El Salitre", "city": "Sogamoso", "department": "Boyacá"},
            "contractor_id": contractor.id,
            "client_contact": {"name": "Rosa Díaz", "title": "Secretaria de Infraestructura"},
            "budget": {"total": 950000000, "approved_at": "2023-12-01"},
        },
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def member(client: AsyncClient, admin, auth_headers) -> dict:
    response = await client.post("/staff", json=_staff_payload(), headers=auth_headers(admin))
    assert response.status_code == 201
    return response.json()


async def test_register_staff_member(member, admin) -> None:
    assert member["first_name"] == "Andrés"
    assert member["full_name"] == "Andrés Rincón"
    assert member["email"] == "andres.rincon@example.com"
    assert member["status"] == "activo"
    assert member["contract_type"] == "obra_labor"
    assert member["project"] is None
    assert member["created_by_id"] == admin.id


async def test_contract_type_defaults_to_indefinido(client: AsyncClient, admin, auth_headers) -> None:
    payload = _staff_payload()
    del payload["contract_type"]
    response = await client.post("/staff", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.json()["contract_type"] == "indefinido"


async def test_national_id_is_unique(client: AsyncClient, member, admin, auth_headers) -> None:
    response = await client.post(
        "/staff", json=_staff_payload(first_name="Otra", email=None), headers=auth_headers(admin)
    )
    assert response.status_code == 400
    assert "national ID" in response.json()["detail"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"termination_date": "2024-01-01"},
        {"salary": -1},
        {"first_name": "A"},
        {"contract_type": "temporal"},
        {"email": "no-es-un-correo"},
    ],
)
async def test_register_validation(client: AsyncClient, admin, auth_headers, overrides) -> None:
    response = await client.post("/staff", json=_staff_payload(**overrides), headers=auth_headers(admin))
    assert response.status_code == 400


async def test_contractor_reads_but_cannot_register(
    client: AsyncClient, member, contractor, auth_headers
) -> None:
    headers = auth_headers(contractor)
    assert (await client.get("/staff", headers=headers)).status_code == 200
    assert (await client.get(f"/staff/{member['id']}", headers=headers)).status_code == 200

    response = await client.post("/staff", json=_staff_payload(national_id="1"), headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Permission denied: crear on usuarios"


async def test_list_filters(client: AsyncClient, member, project, admin, auth_headers) -> None:
    headers = auth_headers(admin)
    await client.post(
        "/staff",
        json=_staff_payload(
            first_name="Paola",
            last_name="Suárez",
            national_id="52987654",
            position="Residente ambiental",
            status="inactivo",
            project_id=project["id"],
        ),
        headers=headers,
    )

    everything = await client.get("/staff", headers=headers)
    assert everything.json()["pagination"]["total_records"] == 2

    inactive = await client.get("/staff", params={"status": "inactivo"}, headers=headers)
    assert [s["first_name"] for s in inactive.json()["items"]] == ["Paola"]

    assigned = await client.get("/staff", params={"project_id": project["id"]}, headers=headers)
    assert assigned.json()["items"][0]["project"]["code"] == project["code"]

    search = await client.get("/staff", params={"search": "inspector"}, headers=headers)
    assert [s["id"] for s in search.json()["items"]] == [member["id"]]


async def test_update_staff_member(client: AsyncClient, member, admin, auth_headers) -> None:
    headers = auth_headers(admin)
    response = await client.put(
        f"/staff/{member['id']}",
        json={"position": "Director de interventoría", "status": "suspendido", "last_name": None},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["position"] == "Director de interventoría"
    assert data["status"] == "suspendido"
    assert data["last_name"] == "Rincón"

    bad_dates = await client.put(
        f"/staff/{member['id']}", json={"termination_date": "2024-01-31"}, headers=headers
    )
    assert bad_dates.status_code == 400


async def test_update_rejects_taken_national_id(client: AsyncClient, member, admin, auth_headers) -> None:
    headers = auth_headers(admin)
    other = await client.post(
        "/staff", json=_staff_payload(national_id="1098765432", email=None), headers=headers
    )
    response = await client.put(
        f"/staff/{other.json()['id']}", json={"national_id": member["national_id"]}, headers=headers
    )
    assert response.status_code == 400


async def test_assign_and_unassign_project(client: AsyncClient, member, project, admin, auth_headers) -> None:
    headers = auth_headers(admin)
    url = f"/staff/{member['id']}/project"

    assigned = await client.put(url, json={"project_id": project["id"]}, headers=headers)
    assert assigned.status_code == 200
    assert assigned.json()["project"] == {
        "id": project["id"], "code": project["code"], "name": project["name"]
    }

    unassigned = await client.put(url, json={"project_id": None}, headers=headers)
    assert unassigned.status_code == 200
    assert unassigned.json()["project_id"] is None
    assert unassigned.json()["project"] is None


async def test_assign_to_unknown_project(client: AsyncClient, member, admin, auth_headers) -> None:
    response = await client.put(
        f"/staff/{member['id']}/project", json={"project_id": "missing"}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


async def test_assignment_needs_project_update_permission(
    client: AsyncClient, super_admin, member, project, create_user, auth_headers
) -> None:
    admin_headers = auth_headers(super_admin)
    role = await client.post(
        "/permissions/roles",
        json={
            "name": "Talento Humano",
            "description": "Gestión del personal sin acceso a proyectos",
            "permissions": [{"resource": "usuarios", "actions": ["leer", "actualizar"]}],
        },
        headers=admin_headers,
    )
    recruiter = await create_user(UserType.SUPERVISOR)
    await client.put(
        f"/permissions/users/{recruiter.id}/roles", json={"role_ids": [role.json()["id"]]}, headers=admin_headers
    )

    headers = auth_headers(recruiter)
    assert (await client.put(f"/staff/{member['id']}", json={"phone": "3000000000"}, headers=headers)).status_code == 200

    response = await client.put(
        f"/staff/{member['id']}/project", json={"project_id": project["id"]}, headers=headers
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Permission denied: actualizar on proyectos"


async def test_delete_staff_member(client: AsyncClient, member, super_admin, admin, auth_headers) -> None:
    # Administrador has no usuarios:eliminar
    refused = await client.delete(f"/staff/{member['id']}", headers=auth_headers(admin))
    assert refused.status_code == 403

    headers = auth_headers(super_admin)
    deleted = await client.delete(f"/staff/{member['id']}", headers=headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/staff/{member['id']}", headers=headers)).status_code == 404


async def test_user_who_registered_staff_is_not_deleted(
    client: AsyncClient, member, super_admin, admin, auth_headers
) -> None:
    response = await client.delete(f"/users/{admin.id}", headers=auth_headers(super_admin))
    assert response.status_code == 400
    assert "staff" in response.json()["detail"]
