"""Error taxonomy for the chat pipeline."""


class ChatStudioError(Exception):
    """Base class for all errors raised by the chat pipeline."""


class MissingCredential(ChatStudioError):
    """No usable API key exists for a provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            f"API key for {provider} is required. "
            "Please add your API key in settings or ensure a host key is configured."
        )


class UnknownModel(ChatStudioError):
    """The requested model name is not in the model catalog."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown model: {name}")


class ProviderError(ChatStudioError):
    """Transport or API failure reported by a provider."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} API error: {detail}")


class ToolExecutionError(ChatStudioError):
    """A tool could not complete. Converted to a textual tool result, never propagated."""

    def __init__(self, tool: str, detail: str):
        self.tool = tool
        self.detail = detail
        super().__init__(detail)


class UnsupportedProvider(ChatStudioError):
    """A provider value has no adapter. Indicates a configuration bug."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"No adapter implemented for provider: {provider}")


class ThreadNotFound(ChatStudioError):
    """Thread does not exist."""

    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__(f"Thread not found: {thread_id}")


class MessageNotFound(ChatStudioError):
    """Message does not exist."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"Message not found: {message_id}")


class Unauthorized(ChatStudioError):
    """Caller does not own the requested thread."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(detail)
