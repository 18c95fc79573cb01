# Import all the models, so that Base has them before being
# imported by init_models() or metadata-driven tooling
from stripe_assistant.db.base_class import Base  # noqa
from stripe_assistant.models.organization import Organization  # noqa
from stripe_assistant.models.user import User  # noqa
from stripe_assistant.models.chat import ChatSession, ChatMessage  # noqa
from stripe_assistant.core.audit import AuditLog  # noqa
