"""End-to-end tool calls: router -> tool -> persistence -> PostgreSQL."""

from __future__ import annotations

import pytest

from ctxstore.gateway.dispatch import ToolRouter
from ctxstore.storage.persistence import PersistenceManager
from ctxstore.tools.builtins import register_builtins
from ctxstore.tools.registry import ToolRegistry

pytestmark = pytest.mark.integration


@pytest.fixture
def router(store: PersistenceManager) -> ToolRouter:
    registry = ToolRegistry()
    register_builtins(registry, store)
    return ToolRouter(registry)


class TestToolFlow:
    async def test_store_then_get_context(self, router: ToolRouter) -> None:
        stored = await router.dispatch(
            "store_context",
            {"projectName": "demo", "contextType": "architecture", "content": "hexagonal"},
        )
        fetched = await router.dispatch("get_context", {"projectName": "demo"})

        assert stored.is_error is False
        assert "Type: architecture" in fetched.text
        assert "Content: hexagonal" in fetched.text

    async def test_sensitive_value_masked_when_included(self, router: ToolRouter) -> None:
        await router.dispatch(
            "store_environment_config",
            {
                "projectName": "demo",
                "environmentName": "prod",
                "configKey": "TOKEN",
                "configValue": "abc123",
                "isSensitive": True,
            },
        )

        hidden = await router.dispatch("get_environment_configs", {"projectName": "demo"})
        shown = await router.dispatch(
            "get_environment_configs", {"projectName": "demo", "includeSensitive": True}
        )

        assert hidden.text == 'No environment configs found for project "demo"'
        assert "[SENSITIVE]" in shown.text
        assert "abc123" not in shown.text

    async def test_update_missing_build_is_error_result(self, router: ToolRouter) -> None:
        result = await router.dispatch(
            "update_build_status",
            {"projectName": "demo", "buildNumber": "404", "status": "success"},
        )

        assert result.is_error is True
        assert result.text.startswith("Error updating build status:")

    async def test_file_versions_reported(self, router: ToolRouter) -> None:
        args = {"projectName": "demo", "filePath": "main.py", "content": "print()", "author": "ann"}
        first = await router.dispatch("store_file_history", args)
        second = await router.dispatch("store_file_history", args)

        assert "version 1" in first.text
        assert "version 2" in second.text
