from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ztask.audit import write_audit
from ztask.config import settings
from ztask.deps import get_current_user, get_db
from ztask.models import Invitation, User
from ztask.notifications.events import notify_email_inapp, notify_inapp
from ztask.routers.user_data import load_user_data
from ztask.schemas import InvitationAnswerIn, InvitationCreateIn, InvitationCreateOut, InvitationOut, InvitationPreviewOut
from ztask.security import invitation_token_hash, invitation_token_new

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invitations"])


def _aware(dt: datetime) -> datetime:
  # SQLite hands back naive datetimes.
  return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _invitation_out(inv: Invitation) -> InvitationOut:
  return InvitationOut(
    id=inv.id,
    projectId=inv.project_id,
    projectName=inv.project_name,
    inviterId=inv.inviter_id,
    email=inv.email,
    permissions=list(inv.permissions or []),
    status=inv.status,
    createdAt=_aware(inv.created_at),
    expiresAt=_aware(inv.expires_at),
    respondedAt=_aware(inv.responded_at) if inv.responded_at else None,
  )


def _invitation_link(token: str) -> str:
  return f"{settings.frontend_url.rstrip('/')}?invite={token}"


async def _invitation_by_token(db: AsyncSession, token: str) -> Invitation:
  res = await db.execute(select(Invitation).where(Invitation.token_hash == invitation_token_hash(token)))
  inv = res.scalar_one_or_none()
  if not inv:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired invitation")
  return inv


@router.post("/api/projects/{project_id}/invite", response_model=InvitationCreateOut)
async def invite_to_project(
  project_id: str,
  payload: InvitationCreateIn,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InvitationCreateOut:
  email = payload.email.strip().lower()
  if "@" not in email:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
  if email == actor.email.strip().lower():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot invite yourself")

  data = await load_user_data(db, actor.id)
  project = data.find_project(project_id) if data else None
  if project is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found or access denied")

  res = await db.execute(
    select(Invitation).where(
      Invitation.project_id == project_id,
      Invitation.inviter_id == actor.id,
      func.lower(Invitation.email) == email,
      Invitation.status == "pending",
    )
  )
  if res.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation already sent to this email")

  token = invitation_token_new()
  now = datetime.now(timezone.utc)
  inv = Invitation(
    project_id=project_id,
    project_name=project.name,
    inviter_id=actor.id,
    email=email,
    permissions=sorted(set(payload.permissions)) or ["view"],
    token_hash=invitation_token_hash(token),
    status="pending",
    created_at=now,
    expires_at=now + timedelta(days=max(1, int(settings.invitation_ttl_days))),
  )
  db.add(inv)
  await db.flush()

  await notify_email_inapp(
    db,
    email=email,
    level="info",
    title="Project Invitation",
    body=f'{actor.name} invited you to collaborate on "{project.name}"',
    event_type="project.invited",
    entity_type="Invitation",
    entity_id=inv.id,
    dedupe_key=f"invite:{project_id}:{actor.id}",
  )
  await write_audit(
    db,
    event_type="invitation.created",
    entity_type="Invitation",
    entity_id=inv.id,
    actor_id=actor.id,
    payload={"projectId": project_id, "email": email, "permissions": inv.permissions},
  )
  await db.commit()
  logger.info("invitation %s created for project %s", inv.id, project_id)
  return InvitationCreateOut(invitation=_invitation_out(inv), invitationToken=token, invitationLink=_invitation_link(token))


@router.get("/api/invitations/{token}", response_model=InvitationPreviewOut)
async def preview_invitation(token: str, db: AsyncSession = Depends(get_db)) -> InvitationPreviewOut:
  inv = await _invitation_by_token(db, token)
  if inv.status != "pending":
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired invitation")
  if _aware(inv.expires_at) < datetime.now(timezone.utc):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation has expired")
  ires = await db.execute(select(User).where(User.id == inv.inviter_id))
  inviter = ires.scalar_one_or_none()
  return InvitationPreviewOut(
    projectName=inv.project_name,
    inviterName=inviter.name if inviter else "",
    inviteeEmail=inv.email,
    expiresAt=_aware(inv.expires_at),
  )


async def _answer(db: AsyncSession, *, actor: User, token: str, outcome: Literal["accepted", "declined"]) -> InvitationOut:
  inv = await _invitation_by_token(db, token)
  if inv.status != "pending":
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Invitation already {inv.status}")
  if actor.email.strip().lower() != inv.email.strip().lower():
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This invitation is not for your account")
  now = datetime.now(timezone.utc)
  if _aware(inv.expires_at) < now:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation has expired")

  inv.status = outcome
  inv.responded_at = now
  await notify_inapp(
    db,
    user_id=inv.inviter_id,
    level="ok" if outcome == "accepted" else "info",
    title=f"Invitation {outcome}",
    body=f'{actor.name} {outcome} your invitation to "{inv.project_name}"',
    event_type=f"invitation.{outcome}",
    entity_type="Invitation",
    entity_id=inv.id,
  )
  await write_audit(
    db,
    event_type=f"invitation.{outcome}",
    entity_type="Invitation",
    entity_id=inv.id,
    actor_id=actor.id,
    payload={"projectId": inv.project_id},
  )
  await db.commit()
  return _invitation_out(inv)


@router.post("/api/invitations/accept", response_model=InvitationOut)
async def accept_invitation(
  payload: InvitationAnswerIn,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InvitationOut:
  return await _answer(db, actor=actor, token=payload.invitationToken, outcome="accepted")


@router.post("/api/invitations/decline", response_model=InvitationOut)
async def decline_invitation(
  payload: InvitationAnswerIn,
  actor: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InvitationOut:
  return await _answer(db, actor=actor, token=payload.invitationToken, outcome="declined")
