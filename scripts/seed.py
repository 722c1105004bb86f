import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from agency_crm.auth.tokens import now_utc
from agency_crm.db import SessionLocal
from agency_crm.errors import CircularDependencyError
from agency_crm.models.campaign import Campaign
from agency_crm.models.client import Client
from agency_crm.models.enums import CampaignStatus, DependencyType, Role
from agency_crm.models.task import Task
from agency_crm.models.user import User
from agency_crm.tasks import graph

@dataclass
class SeedResult:
    users: dict[Role, str] = field(default_factory=dict)
    client_id: uuid.UUID | None = None
    campaign_id: uuid.UUID | None = None
    task_ids: list[uuid.UUID] = field(default_factory=list)

def get_or_create_user(db: Session, email: str, role: Role, name: str | None = None) -> User:
    email = email.lower().strip()
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(email=email, name=name, role=role)
        db.add(u)
        db.flush()
    elif u.role != role:
        u.role = role
        db.flush()
    return u

def get_or_create_client(db: Session, name: str, owner_id: uuid.UUID) -> Client:
    c = db.scalar(select(Client).where(Client.name == name, Client.deleted_at.is_(None)))
    if c is None:
        c = Client(name=name, company=name, owner_id=owner_id)
        db.add(c)
        db.flush()
    return c

def get_or_create_campaign(db: Session, client_id: uuid.UUID, name: str, created_by_id: uuid.UUID) -> Campaign:
    c = db.scalar(select(Campaign).where(Campaign.client_id == client_id, Campaign.name == name))
    if c is None:
        c = Campaign(
            client_id=client_id,
            name=name,
            type="social",
            status=CampaignStatus.active,
            created_by_id=created_by_id,
        )
        db.add(c)
        db.flush()
    return c

def get_or_create_task(
    db: Session,
    campaign_id: uuid.UUID,
    title: str,
    created_by_id: uuid.UUID,
    assigned_to_id: uuid.UUID | None,
    offset_days: int,
) -> Task:
    t = db.scalar(select(Task).where(Task.campaign_id == campaign_id, Task.title == title))
    if t is None:
        start = now_utc() + timedelta(days=offset_days)
        t = Task(
            campaign_id=campaign_id,
            title=title,
            start_date=start,
            due_date=start + timedelta(days=3),
            created_by_id=created_by_id,
            assigned_to_id=assigned_to_id,
        )
        db.add(t)
        db.flush()
    elif t.assigned_to_id != assigned_to_id:
        # keep it stable if you re-run seed
        t.assigned_to_id = assigned_to_id
        db.flush()
    return t

def seed() -> SeedResult:
    result = SeedResult()
    db = SessionLocal()
    try:
        users = {role: get_or_create_user(db, f"{role.value}@example.com", role, role.value) for role in Role}
        result.users = {role: u.email for role, u in users.items()}

        manager = users[Role.manager]
        member = users[Role.team_member]

        client = get_or_create_client(db, "Northwind", manager.id)
        campaign = get_or_create_campaign(db, client.id, "spring launch", manager.id)

        titles = ["creative brief", "design assets", "copy review", "go live"]
        tasks = [
            get_or_create_task(db, campaign.id, title, manager.id, member.id, offset_days=i * 3)
            for i, title in enumerate(titles)
        ]
        db.commit()

        result.client_id = client.id
        result.campaign_id = campaign.id
        result.task_ids = [t.id for t in tasks]
    finally:
        db.close()

    # brief -> design -> review -> go live, each waiting on the previous step
    with SessionLocal() as db:
        for prev, nxt in zip(result.task_ids, result.task_ids[1:]):
            try:
                graph.add_dependency(db, nxt, prev, DependencyType.finish_to_start)
            except CircularDependencyError:
                db.rollback()

    return result

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"client_id={r.client_id}")
    print(f"campaign_id={r.campaign_id}")
    print("task_ids:")
    for task_id in r.task_ids:
        print(f"  {task_id}")
    print("users:")
    for role, email in r.users.items():
        print(f"  {role.value:<14}{email}")
