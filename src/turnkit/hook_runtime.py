"""Plugin hook execution with per-plugin fault isolation."""

from __future__ import annotations

import inspect
from typing import Any

import pluggy
from loguru import logger

from turnkit.activity import Activity


class HookRuntime:
    """Safe wrapper around pluggy hook execution."""

    def __init__(self, plugin_manager: pluggy.PluginManager) -> None:
        self._plugin_manager = plugin_manager

    async def call_many(self, hook_name: str, **kwargs: Any) -> list[Any]:
        """Run all implementations in registration order and collect successful return values."""

        results: list[Any] = []
        for impl in self._iter_hookimpls(hook_name):
            call_kwargs = self._kwargs_for_impl(impl, kwargs)
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as error:
                await self.notify_error(
                    stage=f"{hook_name}:{impl.plugin_name or '<unknown>'}",
                    error=error,
                    activity=_activity_from_kwargs(kwargs),
                )
                continue
            results.append(value)
        return results

    def call_first_sync(self, hook_name: str, **kwargs: Any) -> Any:
        """Return the first non-None value of a synchronous bootstrap hook."""

        for impl in self._iter_hookimpls(hook_name):
            call_kwargs = self._kwargs_for_impl(impl, kwargs)
            try:
                value = impl.function(**call_kwargs)
            except Exception:
                logger.opt(exception=True).warning(
                    "hook.call_failed hook={} plugin={}",
                    hook_name,
                    impl.plugin_name or "<unknown>",
                )
                continue
            if inspect.isawaitable(value):
                logger.warning(
                    "hook.async_not_supported hook={} plugin={}",
                    hook_name,
                    impl.plugin_name or "<unknown>",
                )
                continue
            if value is not None:
                return value
        return None

    async def notify_error(self, *, stage: str, error: Exception, activity: Activity | None) -> None:
        """Call on_error hooks, swallowing observer failures."""

        for impl in self._iter_hookimpls("on_error"):
            call_kwargs = self._kwargs_for_impl(impl, {"stage": stage, "error": error, "activity": activity})
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    await value
            except Exception:
                logger.opt(exception=True).warning(
                    "hook.on_error_failed stage={} plugin={}",
                    stage,
                    impl.plugin_name or "<unknown>",
                )

    def hook_report(self) -> dict[str, list[str]]:
        """Build a hook->plugins mapping for diagnostics."""

        report: dict[str, list[str]] = {}
        for hook_name, hook_caller in sorted(self._plugin_manager.hook.__dict__.items()):
            if hook_name.startswith("_") or not hasattr(hook_caller, "get_hookimpls"):
                continue
            plugin_names = [impl.plugin_name for impl in hook_caller.get_hookimpls()]
            if plugin_names:
                report[hook_name] = plugin_names
        return report

    def _iter_hookimpls(self, hook_name: str) -> list[Any]:
        hook = getattr(self._plugin_manager.hook, hook_name, None)
        if hook is None or not hasattr(hook, "get_hookimpls"):
            return []
        return list(hook.get_hookimpls())

    @staticmethod
    def _kwargs_for_impl(impl: Any, kwargs: dict[str, Any]) -> dict[str, Any]:
        return {name: kwargs[name] for name in impl.argnames if name in kwargs}


def _activity_from_kwargs(kwargs: dict[str, Any]) -> Activity | None:
    activity = kwargs.get("activity")
    if isinstance(activity, Activity):
        return activity
    context = kwargs.get("context")
    return getattr(context, "activity", None)
