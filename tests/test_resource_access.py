import uuid
from datetime import datetime, timezone

import pytest

from agency_crm.errors import InsufficientPermissionsError, NotFoundError
from agency_crm.models import Campaign, Expense, Invoice
from agency_crm.models.enums import Action, Resource, Role
from agency_crm.rbac.engine import AccessDecision, AuthorizationEngine, authz
from agency_crm.rbac.ownership import OWNERSHIP_RESOLVERS, OwnershipResolver

from conftest import make_client, make_task, make_user

def _invoice(db, creator, client) -> Invoice:
    inv = Invoice(
        client_id=client.id,
        invoice_number=f"INV-T-{uuid.uuid4().hex[:6]}",
        subtotal=100,
        total=100,
        created_by_id=creator.id,
    )
    db.add(inv)
    db.commit()
    return inv

@pytest.mark.parametrize("resource", list(Resource))
@pytest.mark.parametrize("action", list(Action))
def test_admin_is_allowed_even_for_unknown_ids(db_session, admin, resource, action):
    decision = authz.check_resource_access(db_session, admin.id, resource, uuid.uuid4(), action)
    assert decision is AccessDecision.allowed

def test_missing_user_is_denied(db_session):
    decision = authz.check_resource_access(
        db_session, uuid.uuid4(), Resource.tasks, uuid.uuid4(), Action.read
    )
    assert decision is AccessDecision.denied

def test_team_member_ownership_boundary(db_session):
    creator = make_user(db_session)
    assignee = make_user(db_session)
    stranger = make_user(db_session)
    t = make_task(db_session, creator, assigned_to_id=assignee.id)

    for user in (creator, assignee):
        assert authz.check_resource_access(
            db_session, user.id, Resource.tasks, t.id, Action.update
        ) is AccessDecision.allowed

    assert authz.check_resource_access(
        db_session, stranger.id, Resource.tasks, t.id, Action.update
    ) is AccessDecision.denied

def test_role_table_is_checked_before_ownership(db_session):
    viewer = make_user(db_session, Role.client_viewer)
    t = make_task(db_session, viewer)
    # created it, but client_viewer has no task permissions at all
    assert authz.check_resource_access(
        db_session, viewer.id, Resource.tasks, t.id, Action.read
    ) is AccessDecision.denied

def test_manager_sees_every_task_and_client(db_session):
    manager = make_user(db_session, Role.manager)
    owner = make_user(db_session)
    t = make_task(db_session, owner)
    c = make_client(db_session, owner)

    assert authz.check_resource_access(
        db_session, manager.id, Resource.tasks, t.id, Action.delete
    ) is AccessDecision.allowed
    assert authz.check_resource_access(
        db_session, manager.id, Resource.clients, c.id, Action.update
    ) is AccessDecision.allowed

def test_client_owner_boundary(db_session):
    owner = make_user(db_session)
    other = make_user(db_session)
    c = make_client(db_session, owner)

    assert authz.check_resource_access(
        db_session, owner.id, Resource.clients, c.id, Action.read
    ) is AccessDecision.allowed
    assert authz.check_resource_access(
        db_session, other.id, Resource.clients, c.id, Action.read
    ) is AccessDecision.denied

def test_campaign_assignee_may_read(db_session, admin):
    member = make_user(db_session)
    c = make_client(db_session, admin)
    campaign = Campaign(client_id=c.id, name="q3", created_by_id=admin.id, assigned_to_id=member.id)
    db_session.add(campaign)
    db_session.commit()

    assert authz.check_resource_access(
        db_session, member.id, Resource.campaigns, campaign.id, Action.read
    ) is AccessDecision.allowed
    # team_member only reads campaigns
    assert authz.check_resource_access(
        db_session, member.id, Resource.campaigns, campaign.id, Action.update
    ) is AccessDecision.denied

def test_finance_sees_every_invoice(db_session, admin):
    finance = make_user(db_session, Role.finance)
    manager = make_user(db_session, Role.manager)
    c = make_client(db_session, admin)
    inv = _invoice(db_session, admin, c)

    assert authz.check_resource_access(
        db_session, finance.id, Resource.invoices, inv.id, Action.update
    ) is AccessDecision.allowed
    # managers hold invoices:read, but only for invoices they created
    assert authz.check_resource_access(
        db_session, manager.id, Resource.invoices, inv.id, Action.read
    ) is AccessDecision.denied

def test_missing_and_deleted_resources_are_not_found(db_session):
    member = make_user(db_session)
    assert authz.check_resource_access(
        db_session, member.id, Resource.tasks, uuid.uuid4(), Action.read
    ) is AccessDecision.not_found

    t = make_task(db_session, member)
    t.deleted_at = datetime.now(timezone.utc)
    db_session.commit()
    assert authz.check_resource_access(
        db_session, member.id, Resource.tasks, t.id, Action.read
    ) is AccessDecision.not_found

def test_resource_without_resolver_uses_role_table(db_session):
    manager = make_user(db_session, Role.manager)
    assert authz.check_resource_access(
        db_session, manager.id, Resource.reports, uuid.uuid4(), Action.update
    ) is AccessDecision.allowed

def test_require_resource_access_raises(db_session):
    owner = make_user(db_session)
    stranger = make_user(db_session)
    t = make_task(db_session, owner)

    with pytest.raises(InsufficientPermissionsError):
        authz.require_resource_access(db_session, stranger.id, Resource.tasks, t.id, Action.read)
    with pytest.raises(NotFoundError) as exc:
        authz.require_resource_access(db_session, stranger.id, Resource.tasks, uuid.uuid4(), Action.read)
    assert exc.value.kind == "task"

def test_injected_resolvers(db_session):
    owner = make_user(db_session)
    stranger = make_user(db_session)
    t = make_task(db_session, owner)

    # without a task resolver the role table alone decides
    resolvers = {k: v for k, v in OWNERSHIP_RESOLVERS.items() if k != Resource.tasks}
    engine = AuthorizationEngine(resolvers=resolvers)
    assert engine.check_resource_access(
        db_session, stranger.id, Resource.tasks, t.id, Action.update
    ) is AccessDecision.allowed
    assert engine.sees_all(Role.team_member, Resource.tasks)

def test_sees_all():
    assert authz.sees_all(Role.admin, Resource.invoices)
    assert authz.sees_all(Role.finance, Resource.invoices)
    assert authz.sees_all(Role.manager, Resource.tasks)
    assert not authz.sees_all(Role.team_member, Resource.tasks)
    assert not authz.sees_all(Role.manager, Resource.invoices)

def test_ownership_resolver_is_abstract():
    with pytest.raises(TypeError):
        OwnershipResolver()

    class NoOwnerCheck(OwnershipResolver):
        model = Campaign
        kind = "campaign"

    with pytest.raises(TypeError):
        NoOwnerCheck()

@pytest.mark.parametrize(
    "resource, kind",
    [
        (Resource.clients, "client"),
        (Resource.campaigns, "campaign"),
        (Resource.tasks, "task"),
        (Resource.invoices, "invoice"),
        (Resource.expenses, "expense"),
    ],
)
def test_not_found_names_the_resource_kind(db_session, resource, kind):
    finance = make_user(db_session, Role.finance)
    manager = make_user(db_session, Role.manager)
    # each role holds read on the resources it is checked against
    user = finance if resource in (Resource.invoices, Resource.expenses) else manager
    with pytest.raises(NotFoundError) as exc:
        authz.require_resource_access(db_session, user.id, resource, uuid.uuid4(), Action.read)
    assert exc.value.kind == kind

def test_expense_owner_and_finance(db_session):
    creator = make_user(db_session, Role.finance)
    other_finance = make_user(db_session, Role.finance)
    e = Expense(description="taxi", amount=12, expense_date=datetime.now(timezone.utc), created_by_id=creator.id)
    db_session.add(e)
    db_session.commit()

    for user in (creator, other_finance):
        assert authz.check_resource_access(
            db_session, user.id, Resource.expenses, e.id, Action.update
        ) is AccessDecision.allowed

    # managers may read expenses, but only their own
    manager = make_user(db_session, Role.manager)
    assert authz.check_resource_access(
        db_session, manager.id, Resource.expenses, e.id, Action.read
    ) is AccessDecision.denied
    assert not authz.sees_all(Role.manager, Resource.expenses)
