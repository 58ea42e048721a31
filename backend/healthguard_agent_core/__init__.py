from .audit import AuditSink, AuditTrail, InMemoryAuditSink
from .config import HealthGuardSettings
from .consent import WITHHELD_SENTINELS, ConsentFilter
from .context import ContextAssembler
from .dispatcher import DispatchOutcome, ToolCallDispatcher
from .errors import MalformedToolArgumentsError, NotConfiguredError, NotStartedError, RemoteTransportError
from .model_client import GeminiModelClient, ModelClient
from .models import (
    Attachment,
    AuditEvent,
    ConsentPolicy,
    ConversationTurn,
    ExecutionContext,
    GroundingSource,
    HealthRecord,
    Location,
    ModelReply,
    Profile,
    Reminder,
    ToolCallRequest,
    ToolCallResult,
    TurnResult,
)
from .orchestrator import FALLBACK_TEXT, HealthGuardOrchestrator
from .registry import ToolDefinition, ToolRegistry
from .session import ChatSessionManager

__all__ = [
    "FALLBACK_TEXT",
    "WITHHELD_SENTINELS",
    "Attachment",
    "AuditEvent",
    "AuditSink",
    "AuditTrail",
    "ChatSessionManager",
    "ConsentFilter",
    "ConsentPolicy",
    "ContextAssembler",
    "ConversationTurn",
    "DispatchOutcome",
    "ExecutionContext",
    "GeminiModelClient",
    "GroundingSource",
    "HealthGuardOrchestrator",
    "HealthGuardSettings",
    "HealthRecord",
    "InMemoryAuditSink",
    "Location",
    "MalformedToolArgumentsError",
    "ModelClient",
    "ModelReply",
    "NotConfiguredError",
    "NotStartedError",
    "Profile",
    "Reminder",
    "RemoteTransportError",
    "ToolCallDispatcher",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDefinition",
    "ToolRegistry",
    "TurnResult",
]
