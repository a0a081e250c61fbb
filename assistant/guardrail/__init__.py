from .safe_input import SENSITIVE_CONTENT_REASON, GuardrailVerdict, SafeInputGuardrail, read_word_file

__all__ = ["SENSITIVE_CONTENT_REASON", "GuardrailVerdict", "SafeInputGuardrail", "read_word_file"]
