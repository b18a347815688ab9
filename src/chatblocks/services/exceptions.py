"""Custom exceptions for chatblocks."""


class ChatBlocksError(Exception):
    """Base class for chatblocks errors."""


class BlockNotFoundError(ChatBlocksError):
    """Raised when a block ID (or cursor offset) matches no block in the document.

    Attributes:
        block_id: The ID that was looked up
    """

    def __init__(self, block_id: str):
        self.block_id = block_id
        super().__init__(f"Block not found: {block_id}")


class ModelNotFoundError(ChatBlocksError):
    """Raised when a model ID or alias is not in the model registry."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model {model_id} not found")


class ProviderNotFoundError(ChatBlocksError):
    """Raised when a provider ID is not in the model registry."""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id} not found")


class RuleNotFoundError(ChatBlocksError):
    """Raised when a text processing rule ID is not in the rule set."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} not found")


class NoActiveBlocksError(ChatBlocksError):
    """Raised when a request is attempted with no active, non-note blocks."""

    def __init__(self, message: str = "No active chat blocks to send"):
        super().__init__(message)


class LLMRequestError(ChatBlocksError):
    """Raised when the LLM service returns an error response.

    Attributes:
        error: Error text reported by the service
    """

    def __init__(self, error: str):
        self.error = error
        super().__init__(f"Request failed: {error}")


class FileModifiedError(ChatBlocksError):
    """Raised when a file is modified during an atomic write operation.

    This exception indicates that the file changed between the initial
    read and the final write, which could lead to data loss if the write
    were to proceed.

    Attributes:
        path: Path to the file that was modified
        message: Human-readable error message
    """

    def __init__(self, path: str, message: str = "File was modified during write operation"):
        """Initialize FileModifiedError.

        Args:
            path: Path to the file that was modified
            message: Human-readable error message
        """
        self.path = path
        self.message = message
        super().__init__(f"{message}: {path}")
