from .db import DEFAULT_DB_FILE, initialize_schema, open_database
from .history import DEFAULT_MAX_STORED_RESPONSE_CHARS, ConversationStore
from .ledger import UsageLedger
from .models import ConversationTurn, ModelStats, UsageEvent, utcnow

__all__ = [
    "DEFAULT_DB_FILE",
    "DEFAULT_MAX_STORED_RESPONSE_CHARS",
    "initialize_schema",
    "open_database",
    "ConversationStore",
    "UsageLedger",
    "ConversationTurn",
    "ModelStats",
    "UsageEvent",
    "utcnow",
]
