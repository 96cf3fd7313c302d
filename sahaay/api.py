import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    HTTPException,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.middleware.cors import CORSMiddleware

from sahaay import config, dispatch
from sahaay.database import DuplicatePhoneError, get_db, load_sample_data
from sahaay.errors import register_exception_handlers
from sahaay.events import Event, get_broadcaster
from sahaay.models import (
    AssignResourceRequest,
    AssignVolunteerRequest,
    AvailabilityUpdate,
    IncidentCreate,
    IncidentDetail,
    IncidentUpdate,
    Resource,
    ResourceCreate,
    ResourceRecommendation,
    ResourceUpdate,
    User,
    UserCreate,
    UserUpdate,
)
from sahaay.permissions import Permission, require_permission

logger = logging.getLogger(__name__)

router = APIRouter()
incidents_router = APIRouter(prefix="/api/incidents", tags=["Incidents"])
resources_router = APIRouter(prefix="/api/resources", tags=["Resources"])
users_router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.websocket("/ws")
async def event_stream(websocket: WebSocket) -> None:
    """
    Live dashboard feed. Pushes incidentCreated, incidentUpdated and
    resourceUpdated events; answers a "ping" text message with a pong.
    """
    broadcaster = get_broadcaster()
    await broadcaster.connect(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        logger.debug("Dashboard socket closed by client")
    finally:
        await broadcaster.disconnect(websocket)


# Incidents


@incidents_router.post(
    "",
    response_model=IncidentDetail,
    status_code=status.HTTP_201_CREATED,
)
async def create_incident(payload: IncidentCreate) -> IncidentDetail:
    """
    Report an incident. Available resources in the required domains are
    dispatched to it immediately.
    """
    return await dispatch.submit_incident(get_db(), get_broadcaster(), payload)


@incidents_router.get("", response_model=list[IncidentDetail])
async def list_incidents() -> list[IncidentDetail]:
    db = get_db()
    return [db.populate_incident(i) for i in db.list_incidents()]


@incidents_router.get("/{incident_id}", response_model=IncidentDetail)
async def get_incident(incident_id: str) -> IncidentDetail:
    db = get_db()
    incident = db.incidents.get(incident_id)
    if incident is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Incident not found",
        )
    return db.populate_incident(incident)


@incidents_router.patch(
    "/{incident_id}",
    response_model=IncidentDetail,
    dependencies=[Depends(require_permission(Permission.DISPATCH_RESOURCES))],
)
async def update_incident(
    incident_id: str, payload: IncidentUpdate
) -> IncidentDetail:
    return await dispatch.update_incident(
        get_db(), get_broadcaster(), incident_id, payload
    )


@incidents_router.patch(
    "/{incident_id}/assign-volunteer",
    response_model=IncidentDetail,
)
async def assign_volunteer(
    incident_id: str, payload: AssignVolunteerRequest
) -> IncidentDetail:
    """
    Attach a volunteer to an incident. Open to every role: coordinators
    assign volunteers and volunteers opt themselves in.
    """
    return await dispatch.assign_volunteer(
        get_db(), get_broadcaster(), incident_id, payload.volunteer_id
    )


@incidents_router.post(
    "/{incident_id}/assign-resource",
    response_model=IncidentDetail,
    dependencies=[Depends(require_permission(Permission.DISPATCH_RESOURCES))],
)
async def assign_resource(
    incident_id: str, payload: AssignResourceRequest
) -> IncidentDetail:
    return await dispatch.assign_resource(
        get_db(), get_broadcaster(), incident_id, payload.resource_id
    )


@incidents_router.post(
    "/{incident_id}/resolve",
    response_model=IncidentDetail,
    dependencies=[Depends(require_permission(Permission.RESOLVE_INCIDENTS))],
)
async def resolve_incident(incident_id: str) -> IncidentDetail:
    return await dispatch.resolve_incident(
        get_db(), get_broadcaster(), incident_id
    )


@incidents_router.post(
    "/{incident_id}/recommend-resources",
    response_model=ResourceRecommendation,
)
async def recommend_resources(incident_id: str) -> ResourceRecommendation:
    return dispatch.recommend_resources(get_db(), incident_id)


# Resources


@resources_router.get("", response_model=list[Resource])
async def list_resources() -> list[Resource]:
    return get_db().resources.all()


@resources_router.post(
    "",
    response_model=Resource,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permission(Permission.MANAGE_RESOURCES))],
)
async def create_resource(payload: ResourceCreate) -> Resource:
    resource = Resource(**payload.model_dump())
    get_db().resources.put(resource.id, resource)
    logger.info("Resource %s added (%s)", resource.id, resource.domain)
    await get_broadcaster().broadcast(Event.RESOURCE_UPDATED, resource)
    return resource


@resources_router.api_route(
    "/{resource_id}",
    methods=["PUT", "PATCH"],
    response_model=Resource,
    dependencies=[Depends(require_permission(Permission.MANAGE_RESOURCES))],
)
async def update_resource(resource_id: str, payload: ResourceUpdate) -> Resource:
    db = get_db()
    resource = db.resources.get(resource_id)
    if resource is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Resource not found",
        )

    changed = []
    for field in sorted(payload.model_fields_set):
        value = getattr(payload, field)
        if value is not None:
            setattr(resource, field, value)
            changed.append(field)
    db.resources.put(resource.id, resource)
    logger.info("Resource %s updated: %s", resource.id, changed)

    await get_broadcaster().broadcast(Event.RESOURCE_UPDATED, resource)
    return resource


# Users


@users_router.post(
    "", response_model=User, status_code=status.HTTP_201_CREATED
)
async def create_user(payload: UserCreate) -> User:
    user = User(**payload.model_dump())
    try:
        get_db().add_user(user)
    except DuplicatePhoneError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)
        ) from e
    logger.info("Registered %s user %s", user.role, user.id)
    return user


@users_router.get(
    "",
    response_model=list[User],
    dependencies=[Depends(require_permission(Permission.VIEW_USERS))],
)
async def list_users() -> list[User]:
    return get_db().users.all()


@users_router.get(
    "/role/{role}",
    response_model=list[User],
    dependencies=[Depends(require_permission(Permission.VIEW_USERS))],
)
async def list_users_by_role(role: str) -> list[User]:
    return get_db().get_users_by_role(role)


@users_router.patch(
    "/volunteer/availability",
    response_model=User,
    dependencies=[
        Depends(require_permission(Permission.UPDATE_VOLUNTEER_STATUS))
    ],
)
async def update_volunteer_availability(payload: AvailabilityUpdate) -> User:
    db = get_db()
    volunteer = db.get_volunteer(payload.user_id)
    if volunteer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Volunteer not found",
        )

    volunteer.volunteer.is_available = payload.is_available
    volunteer.updated_at = datetime.now(UTC)
    db.users.put(volunteer.id, volunteer)
    return volunteer


@users_router.patch("/{user_id}", response_model=User)
async def update_user(user_id: str, payload: UserUpdate) -> User:
    db = get_db()
    user = db.users.get(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    if payload.name is not None:
        user.name = payload.name
    if payload.location is not None:
        user.location = payload.location
    if payload.skills is not None:
        if user.volunteer is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only volunteers have skills",
            )
        user.volunteer.skills = payload.skills
    if payload.donor is not None:
        user.donor = payload.donor
    user.updated_at = datetime.now(UTC)
    db.users.put(user.id, user)
    return user


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.SEED_SAMPLE_DATA:
        load_sample_data()
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Sahaay API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(router)
    app.include_router(incidents_router)
    app.include_router(resources_router)
    app.include_router(users_router)
    return app
