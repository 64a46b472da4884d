"""
Closed enumerations for the permission model and the default role set.

Enum values are the stored/wire values and stay in Spanish, as the data they
describe does.
"""
import enum


class Resource(str, enum.Enum):
    """Kinds of resource a permission entry can target."""
    USERS = "usuarios"
    PROJECTS = "proyectos"
    DOCUMENTS = "documentos"
    REPORTS = "reportes"
    CONFIGURATION = "configuracion"


class Action(str, enum.Enum):
    """Actions a permission entry can grant on a resource."""
    CREATE = "crear"
    READ = "leer"
    UPDATE = "actualizar"
    DELETE = "eliminar"
    APPROVE = "aprobar"
    EXPORT = "exportar"
    CONFIGURE = "configurar"


ALL_ACTIONS = [action.value for action in Action]

RESOURCE_LABELS = {
    Resource.USERS: "Usuarios",
    Resource.PROJECTS: "Proyectos",
    Resource.DOCUMENTS: "Documentos",
    Resource.REPORTS: "Reportes",
    Resource.CONFIGURATION: "Configuración",
}


def _entry(resource: Resource, actions: list, **conditions) -> dict:
    entry = {
        "resource": resource.value,
        "actions": [a if isinstance(a, str) else a.value for a in actions],
    }
    if conditions:
        entry["conditions"] = conditions
    return entry


# Inserted by PermissionManager.seed_default_roles when no role exists yet.
DEFAULT_ROLES = [
    {
        "name": "Super Administrador",
        "description": "Acceso completo a todas las funcionalidades del sistema",
        "permissions": [_entry(resource, ALL_ACTIONS) for resource in Resource],
    },
    {
        "name": "Administrador",
        "description": "Gestión completa de usuarios y proyectos",
        "permissions": [
            _entry(Resource.USERS, [Action.CREATE, Action.READ, Action.UPDATE]),
            _entry(Resource.PROJECTS, ALL_ACTIONS),
            _entry(Resource.DOCUMENTS, [Action.READ, Action.CREATE, Action.UPDATE, Action.APPROVE]),
            _entry(Resource.REPORTS, [Action.READ, Action.CREATE, Action.EXPORT]),
        ],
    },
    {
        "name": "Interventor",
        "description": "Supervisión y control de proyectos, gestión de documentos y reportes",
        "permissions": [
            _entry(Resource.USERS, [Action.READ]),
            _entry(Resource.PROJECTS, [Action.READ, Action.UPDATE], owner=True),
            _entry(Resource.DOCUMENTS, [Action.READ, Action.CREATE, Action.UPDATE, Action.APPROVE]),
            _entry(Resource.REPORTS, [Action.READ, Action.CREATE, Action.UPDATE, Action.EXPORT]),
        ],
    },
    {
        "name": "Contratista",
        "description": "Acceso a proyectos asignados, carga de documentos y reportes de avance",
        "permissions": [
            _entry(Resource.USERS, [Action.READ]),
            _entry(Resource.PROJECTS, [Action.READ, Action.UPDATE], owner=True),
            _entry(Resource.DOCUMENTS, [Action.READ, Action.CREATE]),
            _entry(Resource.REPORTS, [Action.READ, Action.CREATE]),
        ],
    },
    {
        "name": "Supervisor",
        "description": "Supervisión de proyectos específicos y revisión de documentos",
        "permissions": [
            _entry(Resource.USERS, [Action.READ]),
            _entry(Resource.PROJECTS, [Action.READ], owner=True),
            _entry(Resource.DOCUMENTS, [Action.READ, Action.CREATE]),
            _entry(Resource.REPORTS, [Action.READ, Action.CREATE]),
        ],
    },
]


# Legacy user_type -> role name used when a user has no roles assigned.
LEGACY_USER_TYPE_ROLES = {
    "administrador": "Administrador",
    "interventor": "Interventor",
    "contratista": "Contratista",
    "supervisor": "Supervisor",
}
