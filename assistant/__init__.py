from .assistant import Assistant, build_assistant, build_llm
from .errors import AssistantError, BackendDispatchError, GuardrailRejection, StartupResourceError

__all__ = [
    "Assistant",
    "AssistantError",
    "BackendDispatchError",
    "GuardrailRejection",
    "StartupResourceError",
    "build_assistant",
    "build_llm",
]
