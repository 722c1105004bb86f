from enum import Enum

class Role(str, Enum):
    admin = "admin"
    manager = "manager"
    team_member = "team_member"
    finance = "finance"
    client_viewer = "client_viewer"

class Resource(str, Enum):
    users = "users"
    clients = "clients"
    campaigns = "campaigns"
    tasks = "tasks"
    invoices = "invoices"
    expenses = "expenses"
    reports = "reports"
    analytics = "analytics"

class Action(str, Enum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"
    manage = "manage"

class TaskStatus(str, Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    under_review = "under_review"
    completed = "completed"
    blocked = "blocked"
    cancelled = "cancelled"

class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"

class DependencyType(str, Enum):
    finish_to_start = "finish_to_start"
    start_to_start = "start_to_start"
    finish_to_finish = "finish_to_finish"
    start_to_finish = "start_to_finish"

class CampaignStatus(str, Enum):
    planning = "planning"
    active = "active"
    paused = "paused"
    completed = "completed"
    cancelled = "cancelled"

class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"

class ActivityType(str, Enum):
    client_created = "client_created"
    client_updated = "client_updated"
    campaign_created = "campaign_created"
    campaign_updated = "campaign_updated"
    task_created = "task_created"
    task_updated = "task_updated"
    task_completed = "task_completed"
    invoice_created = "invoice_created"
    invoice_updated = "invoice_updated"
    invoice_sent = "invoice_sent"
    payment_received = "payment_received"
    expense_created = "expense_created"
    expense_updated = "expense_updated"

class PaymentStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"
    overdue = "overdue"
    refunded = "refunded"

class ExpenseStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

class NotificationType(str, Enum):
    task_assigned = "task_assigned"
    task_updated = "task_updated"
    campaign_update = "campaign_update"
    invoice_sent = "invoice_sent"
    payment_received = "payment_received"
    expense_reviewed = "expense_reviewed"
