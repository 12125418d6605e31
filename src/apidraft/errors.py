from __future__ import annotations


class ApidraftError(Exception):
    """Base class for every error raised by apidraft."""


class DirectoryNotFound(ApidraftError):
    def __init__(self, path: str):
        super().__init__(f"Directory not found: {path}")
        self.path = path


class MissingCredentials(ApidraftError):
    """LLM enhancement was requested but no API key is configured."""


class HandlerNotFound(ApidraftError):
    def __init__(self, name: str):
        super().__init__(f"Handler definition not found: {name}")
        self.name = name


class SchemaParseError(ApidraftError):
    """An in-source schema annotation is not valid JSON."""


class LlmError(ApidraftError):
    pass


class LlmCallFailed(LlmError):
    """The completion call raised or timed out."""


class LlmJsonInvalid(LlmError):
    pass


class NoJsonFound(LlmJsonInvalid):
    pass


class JsonParseFailed(LlmJsonInvalid):
    """Neither strict nor lenient parsing produced a JSON object."""


class RetriesExhausted(LlmError):
    def __init__(self, attempts: int, last_error: Exception | None):
        super().__init__(f"LLM enhancement failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class CacheLoadFailed(ApidraftError):
    pass


class CacheWriteFailed(ApidraftError):
    pass
