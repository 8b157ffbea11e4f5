"""AI plan loop and its collaborator contracts."""

from turnkit.ai.actions import ActionHandler, ActionRegistry
from turnkit.ai.ai import (
    AI,
    FLAGGED_INPUT_ACTION,
    FLAGGED_OUTPUT_ACTION,
    PLAN_READY_ACTION,
    STOP,
    AIOptions,
    ChainResult,
)
from turnkit.ai.history import HISTORY_KEY, ConversationHistory, HistoryEntry
from turnkit.ai.moderator import DefaultModerator, Moderator
from turnkit.ai.plan import DoCommand, Plan, SayCommand, parse_plan, plan_from_response
from turnkit.ai.planner import CompletionPlanner, Planner
from turnkit.ai.prompts import DEFAULT_PROMPT, PromptManager, PromptTemplate, RenderedPrompt

__all__ = [
    "AI",
    "DEFAULT_PROMPT",
    "FLAGGED_INPUT_ACTION",
    "FLAGGED_OUTPUT_ACTION",
    "HISTORY_KEY",
    "PLAN_READY_ACTION",
    "STOP",
    "AIOptions",
    "ActionHandler",
    "ActionRegistry",
    "ChainResult",
    "CompletionPlanner",
    "ConversationHistory",
    "DefaultModerator",
    "DoCommand",
    "HistoryEntry",
    "Moderator",
    "Plan",
    "Planner",
    "PromptManager",
    "PromptTemplate",
    "RenderedPrompt",
    "SayCommand",
    "parse_plan",
    "plan_from_response",
]
