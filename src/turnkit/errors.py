"""Application-level exception types for turnkit."""

from __future__ import annotations


class TurnkitError(Exception):
    """Base exception for turnkit."""


class ConfigurationError(TurnkitError):
    """Raised when the application is configured in an unusable way."""


class SelectorError(TurnkitError):
    """Raised when a route selector fails while resolving a turn."""


class PromptError(TurnkitError):
    """Raised when a prompt template cannot be found or rendered."""


class PlannerError(TurnkitError):
    """Raised when the planner fails or returns a malformed plan."""


class ModerationError(TurnkitError):
    """Raised when a moderator review call fails."""


class CommandError(TurnkitError):
    """Base exception for failures scoped to one plan command."""


class UnknownActionError(CommandError):
    """Raised when a DO command names an action that was never registered."""

    def __init__(self, action: str) -> None:
        super().__init__(f"unknown action: {action}")
        self.action = action


class InvalidEntitiesError(CommandError):
    """Raised when DO entities still hold unresolved template placeholders."""

    def __init__(self, action: str, keys: list[str]) -> None:
        super().__init__(f"unresolved entities for action {action}: {', '.join(keys)}")
        self.action = action
        self.keys = keys


class ActionError(CommandError):
    """Raised when an action handler fails."""

    def __init__(self, action: str, cause: Exception) -> None:
        super().__init__(f"action {action} failed: {cause!s}")
        self.action = action


class StepBudgetExhausted(TurnkitError):
    """Raised when the AI loop reaches its step limit without a SAY."""

    def __init__(self, max_steps: int) -> None:
        super().__init__(f"max_steps_reached={max_steps}")
        self.max_steps = max_steps
