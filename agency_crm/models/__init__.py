from agency_crm.models.base import Base
from agency_crm.models.activity import Activity
from agency_crm.models.auth_magic_link import AuthMagicLink
from agency_crm.models.campaign import Campaign
from agency_crm.models.client import Client
from agency_crm.models.client_contact import ClientContact
from agency_crm.models.expense import Expense
from agency_crm.models.invoice import Invoice
from agency_crm.models.notification import Notification, NotificationPreference
from agency_crm.models.task import Task
from agency_crm.models.task_dependency import TaskDependency
from agency_crm.models.user import User

__all__ = [
    "Base",
    "User",
    "Client",
    "ClientContact",
    "Campaign",
    "Task",
    "TaskDependency",
    "Invoice",
    "Expense",
    "Activity",
    "Notification",
    "NotificationPreference",
    "AuthMagicLink",
]
