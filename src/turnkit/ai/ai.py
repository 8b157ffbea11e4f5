"""AI plan loop: render, moderate, plan, moderate, execute, repeat."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

from turnkit.ai.actions import ActionHandler, ActionRegistry
from turnkit.ai.history import ConversationHistory
from turnkit.ai.moderator import DefaultModerator, Moderator
from turnkit.ai.plan import DoCommand, Plan, SayCommand, coerce_plan
from turnkit.ai.planner import Planner
from turnkit.ai.prompts import DEFAULT_PROMPT, PromptManager, PromptTemplate
from turnkit.errors import (
    ActionError,
    CommandError,
    InvalidEntitiesError,
    ModerationError,
    PlannerError,
    PromptError,
    StepBudgetExhausted,
    TurnkitError,
    UnknownActionError,
)

if TYPE_CHECKING:
    from turnkit.context import TurnContext
    from turnkit.state import TurnState

STOP = "___STOP___"
FLAGGED_INPUT_ACTION = "___FlaggedInput___"
FLAGGED_OUTPUT_ACTION = "___FlaggedOutput___"
PLAN_READY_ACTION = "___PlanReady___"

PLACEHOLDER_RE = re.compile(r"\{\{.*?\}\}")

type ChainStatus = Literal["completed", "stopped", "redirected", "aborted", "failed", "exhausted"]


@dataclass
class AIOptions:
    """Collaborators and limits for the AI loop."""

    planner: Planner
    moderator: Moderator = field(default_factory=DefaultModerator)
    prompts: PromptManager = field(default_factory=PromptManager)
    prompt: PromptTemplate | str = DEFAULT_PROMPT
    max_steps: int = 5
    track_history: bool = True
    max_history_entries: int = 10
    stop_on_command_error: bool = False
    fallback_response: str | None = None
    error_message: str | None = "Sorry, something went wrong while handling your request."
    incomplete_message: str | None = "Sorry, I wasn't able to finish that request."
    flagged_input_message: str | None = None
    flagged_output_message: str | None = None


@dataclass(frozen=True)
class ChainResult:
    """Outcome of one AI chain for one input."""

    status: ChainStatus
    steps: int
    planner_calls: int
    response: str | None = None
    redirected: bool = False
    actions: tuple[str, ...] = ()
    error: TurnkitError | None = None
    command_errors: tuple[CommandError, ...] = ()


class _PlanOutcome(StrEnum):
    SAID = "said"
    STOPPED = "stopped"
    ABORTED = "aborted"
    CONTINUE = "continue"


@dataclass
class _ChainState:
    step: int = 0
    planner_calls: int = 0
    response: str | None = None
    redirected: bool = False
    prompt_redirected: bool = False
    actions: list[str] = field(default_factory=list)
    command_errors: list[CommandError] = field(default_factory=list)
    error: TurnkitError | None = None


class AI:
    """Runs the plan loop for turns no route handled."""

    STOP = STOP

    def __init__(self, options: AIOptions) -> None:
        if options.max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self._options = options
        self._actions = ActionRegistry()
        self._register_default_actions()

    @property
    def options(self) -> AIOptions:
        return self._options

    @property
    def prompts(self) -> PromptManager:
        return self._options.prompts

    @property
    def actions(self) -> ActionRegistry:
        return self._actions

    def register_action(self, name: str, handler: ActionHandler, *, allow_overrides: bool = False) -> AI:
        self._actions.register(name, handler, allow_overrides=allow_overrides)
        return self

    def action(self, name: str, *, allow_overrides: bool = False) -> Callable[[ActionHandler], ActionHandler]:
        def decorator(handler: ActionHandler) -> ActionHandler:
            self.register_action(name, handler, allow_overrides=allow_overrides)
            return handler

        return decorator

    async def do_action(
        self,
        context: TurnContext,
        state: TurnState,
        action: str,
        entities: dict[str, Any] | None = None,
    ) -> Any:
        return await self._actions.execute(action, context, state, dict(entities or {}))

    async def chain(
        self,
        context: TurnContext,
        state: TurnState,
        prompt: PromptTemplate | str | None = None,
    ) -> ChainResult:
        """Plan and execute until a SAY, a stop, an error or the step limit."""

        options = self._options
        template = prompt or options.prompt
        user_input = context.activity.text or ""
        state.temp.set("input", user_input)
        state.temp.set("output", None)
        if options.track_history:
            ConversationHistory.add_entry(state, "user", user_input, options.max_history_entries)

        run = _ChainState()
        outcome = _PlanOutcome.CONTINUE
        while run.step < options.max_steps:
            run.step += 1
            logger.info("ai.chain.step step={} max_steps={}", run.step, options.max_steps)
            state.temp.set("history", ConversationHistory.to_text(state, max_entries=options.max_history_entries))
            try:
                plan = await self._next_plan(context, state, template, run)
            except (PromptError, PlannerError, ModerationError) as exc:
                logger.opt(exception=exc).error("ai.chain.error step={} error={}", run.step, exc)
                run.error = exc
                await self._say_best_effort(context, options.error_message)
                return self._result("failed", run)

            outcome = await self._execute_plan(context, state, plan, run)
            if outcome is not _PlanOutcome.CONTINUE or run.prompt_redirected:
                break

        if outcome is _PlanOutcome.SAID:
            return self._result("completed", run)
        if outcome is _PlanOutcome.ABORTED:
            return self._result("aborted", run)
        if outcome is _PlanOutcome.STOPPED:
            return self._result("stopped", run)
        if run.prompt_redirected:
            return self._result("redirected", run)

        run.error = StepBudgetExhausted(options.max_steps)
        logger.warning("ai.chain.max_steps max_steps={} actions={}", options.max_steps, run.actions)
        await self._say_best_effort(context, options.incomplete_message)
        return self._result("exhausted", run)

    async def _next_plan(
        self,
        context: TurnContext,
        state: TurnState,
        template: PromptTemplate | str,
        run: _ChainState,
    ) -> Plan:
        options = self._options
        try:
            rendered = await options.prompts.render_prompt(context, state, template)
        except Exception as exc:
            raise PromptError(f"prompt render failed: {exc!r}") from exc

        try:
            redirect = await options.moderator.review_prompt(context, state, rendered, options)
        except Exception as exc:
            raise ModerationError(f"review_prompt failed: {exc!s}") from exc

        if redirect is not None:
            plan = self._moderated_plan(redirect, stage="review_prompt")
            logger.warning("ai.moderation.redirect stage=prompt plan={}", plan.describe())
            run.redirected = True
            run.prompt_redirected = True
        else:
            run.planner_calls += 1
            try:
                planned = await options.planner.complete_prompt(context, state, rendered, options)
            except PlannerError:
                raise
            except Exception as exc:
                raise PlannerError(f"planner call failed: {exc!s}") from exc
            plan = coerce_plan(planned)
            logger.info("ai.planner.plan step={} plan={}", run.step, plan.describe())

        try:
            reviewed = await options.moderator.review_plan(context, state, plan)
        except Exception as exc:
            raise ModerationError(f"review_plan failed: {exc!s}") from exc
        reviewed = self._moderated_plan(reviewed, stage="review_plan")
        if reviewed != plan:
            logger.warning("ai.moderation.redirect stage=plan plan={}", reviewed.describe())
            run.redirected = True
        return reviewed

    @staticmethod
    def _moderated_plan(value: Any, *, stage: str) -> Plan:
        try:
            return coerce_plan(value)
        except PlannerError as exc:
            raise ModerationError(f"{stage} returned an invalid plan: {exc!s}") from exc

    async def _execute_plan(
        self,
        context: TurnContext,
        state: TurnState,
        plan: Plan,
        run: _ChainState,
    ) -> _PlanOutcome:
        try:
            ready = await self._actions.execute(PLAN_READY_ACTION, context, state, {"plan": plan})
        except CommandError as exc:
            run.command_errors.append(exc)
            run.error = exc
            return _PlanOutcome.ABORTED
        if _is_stop(ready):
            logger.info("ai.plan.stopped step={} reason=plan_ready", run.step)
            return _PlanOutcome.STOPPED

        for command in plan.commands:
            if isinstance(command, SayCommand):
                await self._say(context, state, command.response)
                run.response = command.response
                return _PlanOutcome.SAID

            try:
                output = await self._do(context, state, command)
            except UnknownActionError as exc:
                logger.warning("ai.plan.unknown_action step={} action={}", run.step, exc.action)
                run.command_errors.append(exc)
                run.error = exc
                if self._options.fallback_response:
                    await self._say(context, state, self._options.fallback_response)
                    run.response = self._options.fallback_response
                return _PlanOutcome.ABORTED
            except (InvalidEntitiesError, ActionError) as exc:
                logger.warning("ai.plan.command_failed step={} action={} error={}", run.step, command.action, exc)
                run.command_errors.append(exc)
                if self._options.stop_on_command_error:
                    run.error = exc
                    return _PlanOutcome.ABORTED
                continue

            run.actions.append(command.action)
            if _is_stop(output):
                return _PlanOutcome.STOPPED
            state.temp.set("output", output)

        return _PlanOutcome.CONTINUE

    async def _do(self, context: TurnContext, state: TurnState, command: DoCommand) -> Any:
        unresolved = [
            key
            for key, value in command.entities.items()
            if isinstance(value, str) and PLACEHOLDER_RE.search(value) is not None
        ]
        if unresolved:
            raise InvalidEntitiesError(command.action, unresolved)
        return await self._actions.execute(command.action, context, state, dict(command.entities))

    async def _say(self, context: TurnContext, state: TurnState, response: str) -> None:
        await context.send_activity(response)
        if self._options.track_history:
            ConversationHistory.add_entry(state, "assistant", response, self._options.max_history_entries)

    @staticmethod
    async def _say_best_effort(context: TurnContext, text: str | None) -> None:
        if not text:
            return
        try:
            await context.send_activity(text)
        except Exception:
            logger.exception("ai.chain.notify_failed")

    @staticmethod
    def _result(status: ChainStatus, run: _ChainState) -> ChainResult:
        logger.info(
            "ai.chain.finish status={} steps={} planner_calls={} redirected={}",
            status,
            run.step,
            run.planner_calls,
            run.redirected,
        )
        return ChainResult(
            status=status,
            steps=run.step,
            planner_calls=run.planner_calls,
            response=run.response,
            redirected=run.redirected,
            actions=tuple(run.actions),
            error=run.error,
            command_errors=tuple(run.command_errors),
        )

    def _register_default_actions(self) -> None:
        options = self._options

        async def flagged_input(context: TurnContext, state: TurnState, entities: dict[str, Any]) -> str:
            logger.warning("ai.flagged_input conversation={}", context.activity.conversation_id)
            if options.flagged_input_message:
                await context.send_activity(options.flagged_input_message)
            return STOP

        async def flagged_output(context: TurnContext, state: TurnState, entities: dict[str, Any]) -> str:
            logger.warning("ai.flagged_output conversation={}", context.activity.conversation_id)
            if options.flagged_output_message:
                await context.send_activity(options.flagged_output_message)
            return STOP

        def plan_ready(context: TurnContext, state: TurnState, entities: dict[str, Any]) -> Any:
            plan = entities.get("plan")
            if isinstance(plan, Plan) and not plan.commands:
                return STOP
            return True

        self._actions.register(FLAGGED_INPUT_ACTION, flagged_input, allow_overrides=True)
        self._actions.register(FLAGGED_OUTPUT_ACTION, flagged_output, allow_overrides=True)
        self._actions.register(PLAN_READY_ACTION, plan_ready, allow_overrides=True)


def _is_stop(value: Any) -> bool:
    return isinstance(value, str) and value == STOP
