"""
Incident intake, automatic dispatch and responder assignment.

Each operation writes the incident and the resources or volunteers it
touches as separate documents. Resource and volunteer claims are atomic
compare-and-swaps in the store, so nothing is assigned twice, but a failure
after a claim is not rolled back.
"""

import logging
from datetime import UTC, datetime

from fastapi import HTTPException, status

from sahaay import config
from sahaay.database import Database
from sahaay.events import Event, EventBroadcaster
from sahaay.models import (
    Incident,
    IncidentCreate,
    IncidentDetail,
    IncidentStatus,
    IncidentUpdate,
    ResourceRecommendation,
)
from sahaay.rules import is_forward_transition, required_domains

logger = logging.getLogger(__name__)


def _get_incident_or_404(db: Database, incident_id: str) -> Incident:
    incident = db.incidents.get(incident_id)
    if incident is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Incident not found",
        )
    return incident


def _ensure_open(incident: Incident) -> None:
    if incident.status == IncidentStatus.RESOLVED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incident already resolved",
        )


async def submit_incident(
    db: Database, broadcaster: EventBroadcaster, payload: IncidentCreate
) -> IncidentDetail:
    """
    Record a new incident and attach available resources to it.

    Up to ``AUTO_DISPATCH_LIMIT`` available resources in the category's
    required domains are claimed in store order. If any are found the
    incident moves to Responding.
    """
    incident = Incident(**payload.model_dump())
    db.incidents.put(incident.id, incident)

    domains = required_domains(incident.category)
    claimed = db.claim_available_resources(
        domains, config.AUTO_DISPATCH_LIMIT
    )

    if claimed:
        incident.assigned_resources = [r.id for r in claimed]
        incident.status = IncidentStatus.RESPONDING
        db.incidents.put(incident.id, incident)
        logger.info(
            "Incident %s (%s) dispatched %d resource(s)",
            incident.id,
            incident.category,
            len(claimed),
        )
    else:
        logger.info(
            "Incident %s (%s) reported, no available resources in %s",
            incident.id,
            incident.category,
            domains,
        )

    for resource in claimed:
        await broadcaster.broadcast(Event.RESOURCE_UPDATED, resource)

    detail = db.populate_incident(incident)
    await broadcaster.broadcast(Event.INCIDENT_CREATED, detail)
    return detail


async def assign_volunteer(
    db: Database,
    broadcaster: EventBroadcaster,
    incident_id: str,
    volunteer_id: str,
) -> IncidentDetail:
    incident = _get_incident_or_404(db, incident_id)

    volunteer = db.get_volunteer(volunteer_id)
    if volunteer is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Volunteer not found",
        )

    _ensure_open(incident)

    if not db.claim_volunteer(volunteer.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Volunteer not available",
        )

    incident.assigned_volunteers.append(volunteer.id)
    incident.status = IncidentStatus.RESPONDING
    db.incidents.put(incident.id, incident)
    logger.info("Volunteer %s assigned to incident %s", volunteer.id, incident.id)

    detail = db.populate_incident(incident)
    await broadcaster.broadcast(Event.INCIDENT_UPDATED, detail)
    return detail


async def assign_resource(
    db: Database,
    broadcaster: EventBroadcaster,
    incident_id: str,
    resource_id: str,
) -> IncidentDetail:
    incident = _get_incident_or_404(db, incident_id)

    if db.resources.get(resource_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Resource not found",
        )

    _ensure_open(incident)

    resource = db.claim_resource(resource_id)
    if resource is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Resource not available",
        )

    incident.assigned_resources.append(resource.id)
    incident.status = IncidentStatus.RESPONDING
    db.incidents.put(incident.id, incident)
    logger.info("Resource %s assigned to incident %s", resource.id, incident.id)

    await broadcaster.broadcast(Event.RESOURCE_UPDATED, resource)
    detail = db.populate_incident(incident)
    await broadcaster.broadcast(Event.INCIDENT_UPDATED, detail)
    return detail


async def resolve_incident(
    db: Database, broadcaster: EventBroadcaster, incident_id: str
) -> IncidentDetail:
    """
    Close an incident and hand its resources and volunteers back.

    Resources still Deployed return to Available; assigned volunteers are
    made available again.
    """
    incident = _get_incident_or_404(db, incident_id)
    _ensure_open(incident)

    incident.status = IncidentStatus.RESOLVED
    incident.resolved_at = datetime.now(UTC)
    db.incidents.put(incident.id, incident)

    released = []
    for resource_id in incident.assigned_resources:
        resource = db.release_resource(resource_id)
        if resource is not None:
            released.append(resource)

    for user_id in incident.assigned_volunteers:
        volunteer = db.get_volunteer(user_id)
        if volunteer is not None and volunteer.volunteer is not None:
            volunteer.volunteer.is_available = True
            volunteer.updated_at = datetime.now(UTC)
            db.users.put(volunteer.id, volunteer)

    logger.info(
        "Incident %s resolved, released %d resource(s)",
        incident.id,
        len(released),
    )

    for resource in released:
        await broadcaster.broadcast(Event.RESOURCE_UPDATED, resource)
    detail = db.populate_incident(incident)
    await broadcaster.broadcast(Event.INCIDENT_UPDATED, detail)
    return detail


async def update_incident(
    db: Database,
    broadcaster: EventBroadcaster,
    incident_id: str,
    payload: IncidentUpdate,
) -> IncidentDetail:
    """Edit incident details. Status may only move forward."""
    incident = _get_incident_or_404(db, incident_id)

    target = payload.status
    if target is not None and not is_forward_transition(
        incident.status, target
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot move incident from {incident.status} to {target}",
        )

    changes = payload.model_dump(exclude_unset=True, exclude={"status"})
    for field, value in changes.items():
        if value is not None:
            setattr(incident, field, value)
    db.incidents.put(incident.id, incident)

    if target == IncidentStatus.RESOLVED and incident.status != target:
        return await resolve_incident(db, broadcaster, incident.id)

    if target is not None:
        incident.status = target
        db.incidents.put(incident.id, incident)

    detail = db.populate_incident(incident)
    await broadcaster.broadcast(Event.INCIDENT_UPDATED, detail)
    return detail


def recommend_resources(
    db: Database, incident_id: str
) -> ResourceRecommendation:
    """All available resources in the incident's required domains. Read only."""
    incident = _get_incident_or_404(db, incident_id)
    domains = required_domains(incident.category)
    return ResourceRecommendation(
        required_domains=domains,
        recommended_resources=db.find_available_resources(domains),
    )
