# Client-side helpers
from agileflow.client.api_client import AgileFlowAPIClient, APIResponse
from agileflow.client.optimistic import MessageComposer, MessageEntry, OptimisticMessageList

__all__ = [
    "AgileFlowAPIClient",
    "APIResponse",
    "MessageComposer",
    "MessageEntry",
    "OptimisticMessageList",
]
