from .auth import User, SessionToken
from .stores import Store
from .applications import Application
from .inspections import Inspection, InspectionPhoto
from .certificates import Certificate
from .audit import AuditLogEntry
from .documents import Document
from .feedback import Feedback

__all__ = [
    'User', 'SessionToken',
    'Store',
    'Application',
    'Inspection', 'InspectionPhoto',
    'Certificate',
    'AuditLogEntry',
    'Document',
    'Feedback',
]
