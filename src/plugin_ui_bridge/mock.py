"""Transport-free stand-in for ``PluginUi``.

Lets application UI code be exercised without a host: config calls work
against an in-memory store, host commands are no-ops, and ``ready`` fires as
soon as the mock is created.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from .bus import EventBus, Listener
from .forms import FormSession
from .ids import IdGenerator

MOCK_PLUGIN: dict[str, Any] = {
    "name": "homebridge-test",
    "description": "description sample text",
    "verifiedPlugin": False,
    "installPath": "/path/to/plugin",
    "latestVersion": "v1.0.0",
    "installedVersion": "v1.0.0",
    "updateAvailable": False,
    "globalInstall": True,
    "settingsSchema": True,
    "publicPackage": True,
    "links": [],
    "funding": [],
}


def mock_server_env() -> dict[str, Any]:
    return {
        "env": {
            "ableToConfigureSelf": True,
            "enableAccessories": True,
            "enableTerminalAccess": True,
            "homebridgeInstanceName": "Homebridge 1B77",
            "nodeVersion": "v14.15.0",
            "packageName": "homebridge-config-ui-x",
            "packageVersion": "4.32.1",
            "platform": "darwin",
            "runningInDocker": False,
            "runningInLinux": False,
            "dockerOfflineUpdate": False,
            "serviceMode": True,
            "temperatureUnits": "c",
            "lang": None,
            "instanceId": "eca2e929f20e8a1292893a2852cba6c10d5efb1a77e20238ce9fe2da8da75b88",
        },
        "formAuth": True,
        "theme": "auto",
        "serverTimestamp": datetime.now(UTC).isoformat(),
    }


class MockToastHelper:
    async def success(self, message: str, title: str | None = None) -> None:
        pass

    async def error(self, message: str, title: str | None = None) -> None:
        pass

    async def warning(self, message: str, title: str | None = None) -> None:
        pass

    async def info(self, message: str, title: str | None = None) -> None:
        pass


class MockPluginUi:
    """Mock with the same surface as ``PluginUi``.

    Forms are real ``FormSession`` objects on the mock bus whose host messages
    are discarded, so tests drive them by emitting on the form id.
    """

    def __init__(self) -> None:
        self.bus = EventBus()
        self.toast = MockToastHelper()
        self.plugin: dict[str, Any] = dict(MOCK_PLUGIN)
        self.server_env: dict[str, Any] = mock_server_env()
        self.mock_plugin_config: list[dict[str, Any]] = []
        self.mock_plugin_schema: dict[str, Any] = {
            "pluginAlias": "HomebridgeTest",
            "pluginType": "platform",
        }
        self._new_form_id = IdGenerator()
        self.is_ready = True
        self.bus.emit("ready", None)

    def add_event_listener(self, event: str, listener: Listener) -> None:
        self.bus.add_listener(event, listener)

    def remove_event_listener(self, event: str, listener: Listener) -> None:
        self.bus.remove_listener(event, listener)

    def once(self, event: str, listener: Listener) -> Listener:
        return self.bus.once(event, listener)

    async def wait_ready(self) -> None:
        pass

    async def fix_scroll_height(self) -> None:
        pass

    async def close_settings(self) -> None:
        pass

    async def show_spinner(self) -> None:
        pass

    async def hide_spinner(self) -> None:
        pass

    async def show_schema_form(self) -> None:
        pass

    async def hide_schema_form(self) -> None:
        pass

    async def create_form(
        self,
        schema: Any,
        data: Any,
        submit_label: str | None = None,
        cancel_label: str | None = None,
    ) -> FormSession:
        form = FormSession(
            self._new_form_id(),
            self.bus,
            self._discard,
            schema=schema,
            data=data,
            submit_label=submit_label,
            cancel_label=cancel_label,
        )
        return await form.open()

    async def end_form(self) -> None:
        pass

    async def _discard(self, message: dict[str, Any]) -> None:
        pass

    async def get_plugin_config(self) -> list[dict[str, Any]]:
        return self.mock_plugin_config

    async def update_plugin_config(self, plugin_config: list[dict[str, Any]]) -> list[dict[str, Any]]:
        self.mock_plugin_config = plugin_config
        return self.mock_plugin_config

    async def save_plugin_config(self) -> None:
        pass

    async def get_plugin_config_schema(self) -> dict[str, Any]:
        return self.mock_plugin_schema

    async def request(self, path: str, body: Any = None) -> Any:
        return {}

    async def i18n_current_lang(self) -> str:
        return "en"

    async def i18n_get_translation(self) -> dict[str, str]:
        return {}
