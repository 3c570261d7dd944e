# Database models and API schemas
from newsdebate.models.records import (
    SummaryInput,
    SummaryOutput,
    DebateInput,
    DebateOutput,
)
from newsdebate.models.schemas import (
    SummarizeRequest,
    SummarizeResponse,
    DebateRequest,
    DebateTexts,
    BatchDebateResponse,
    ErrorResponse,
)

__all__ = [
    "SummaryInput",
    "SummaryOutput",
    "DebateInput",
    "DebateOutput",
    "SummarizeRequest",
    "SummarizeResponse",
    "DebateRequest",
    "DebateTexts",
    "BatchDebateResponse",
    "ErrorResponse",
]
