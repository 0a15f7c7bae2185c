from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from pagedesk.app.record_edit_controller import DEFAULT_PAGE_STATUS

_LOGGER = logging.getLogger("pagedesk.settings")

_APP_SETTINGS_DIRNAME = "pagedesk"
_SETTINGS_PATH_ENV = "PAGEDESK_SETTINGS"
_STORE_BACKEND_KEY = "storeBackend"
_WORDPRESS_URL_KEY = "wordpressUrl"
_WORDPRESS_USERNAME_KEY = "wordpressUsername"
_WORDPRESS_APP_PASSWORD_KEY = "wordpressApplicationPassword"
_WORDPRESS_TIMEOUT_KEY = "wordpressTimeoutSeconds"
_PAGES_PER_PAGE_KEY = "pagesPerPage"
_DEFAULT_PAGE_STATUS_KEY = "defaultPageStatus"
_CONFIRM_DELETE_KEY = "confirmDelete"

STORE_BACKEND_MEMORY = "memory"
STORE_BACKEND_WORDPRESS = "wordpress"
SUPPORTED_STORE_BACKENDS: tuple[str, ...] = (STORE_BACKEND_MEMORY, STORE_BACKEND_WORDPRESS)
DEFAULT_STORE_BACKEND = STORE_BACKEND_MEMORY
DEFAULT_PAGES_PER_PAGE = 10
SUPPORTED_PAGE_STATUSES: tuple[str, ...] = ("publish", "draft", "pending", "private")
DEFAULT_WORDPRESS_TIMEOUT_SECONDS = 10.0


def _resolve_settings_path() -> Path:
    env = os.environ
    override = str(env.get(_SETTINGS_PATH_ENV, "") or "").strip()
    if override:
        return Path(override).expanduser()
    if os.name == "nt":
        appdata = str(env.get("APPDATA", "") or "").strip()
        if appdata:
            return Path(appdata) / _APP_SETTINGS_DIRNAME / "settings.json"
        localappdata = str(env.get("LOCALAPPDATA", "") or "").strip()
        if localappdata:
            return Path(localappdata) / _APP_SETTINGS_DIRNAME / "settings.json"
    else:
        xdg_config_home = str(env.get("XDG_CONFIG_HOME", "") or "").strip()
        if xdg_config_home:
            return Path(xdg_config_home) / _APP_SETTINGS_DIRNAME / "settings.json"
    return Path.home() / ".config" / _APP_SETTINGS_DIRNAME / "settings.json"


@dataclass(frozen=True, slots=True)
class WordPressSettings:
    url: str = ""
    username: str = ""
    application_password: str = ""
    timeout_seconds: float = DEFAULT_WORDPRESS_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def to_mapping(self, *, redact_password: bool = False) -> dict[str, Any]:
        password = self.application_password
        if redact_password and password:
            password = "********"
        return {
            "url": self.url,
            "username": self.username,
            "application_password": password,
            "timeout_seconds": self.timeout_seconds,
        }


@dataclass(frozen=True, slots=True)
class PanelSettings:
    store_backend: str = DEFAULT_STORE_BACKEND
    wordpress: WordPressSettings = field(default_factory=WordPressSettings)
    pages_per_page: int = DEFAULT_PAGES_PER_PAGE
    default_page_status: str = DEFAULT_PAGE_STATUS
    confirm_delete: bool = True


def settings_path() -> Path:
    return _resolve_settings_path()


def load_settings() -> dict[str, Any]:
    path = settings_path()
    if not path.exists():
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def save_settings(settings: dict[str, Any]) -> None:
    path = settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings, indent=2), encoding="utf-8")


def normalize_store_backend(value: str | None, *, default: str = DEFAULT_STORE_BACKEND) -> str:
    fallback = str(default or DEFAULT_STORE_BACKEND).strip().lower()
    if fallback not in SUPPORTED_STORE_BACKENDS:
        fallback = DEFAULT_STORE_BACKEND
    normalized = str(value or "").strip().lower()
    if normalized in SUPPORTED_STORE_BACKENDS:
        return normalized
    return fallback


def normalize_page_status(value: str | None, *, default: str = DEFAULT_PAGE_STATUS) -> str:
    normalized = str(value or "").strip().lower()
    if normalized in SUPPORTED_PAGE_STATUSES:
        return normalized
    return default


def normalize_pages_per_page(value: Any, *, default: int = DEFAULT_PAGES_PER_PAGE) -> int:
    if isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return min(100, max(1, parsed))


def normalize_wordpress_settings(value: WordPressSettings | Mapping[str, Any] | None) -> WordPressSettings:
    if isinstance(value, WordPressSettings):
        raw: Mapping[str, Any] = value.to_mapping()
    elif isinstance(value, Mapping):
        raw = value
    else:
        raw = {}

    url = str(raw.get("url", "") or "").strip().rstrip("/")
    username = str(raw.get("username", "") or "").strip()
    application_password = str(raw.get("application_password", "") or "").strip()
    try:
        timeout_seconds = float(raw.get("timeout_seconds", DEFAULT_WORDPRESS_TIMEOUT_SECONDS))
    except (TypeError, ValueError):
        timeout_seconds = DEFAULT_WORDPRESS_TIMEOUT_SECONDS
    return WordPressSettings(
        url=url,
        username=username,
        application_password=application_password,
        timeout_seconds=max(1.0, timeout_seconds),
    )


def load_panel_settings(default: PanelSettings | None = None) -> PanelSettings:
    fallback = default or PanelSettings()
    settings = load_settings()
    backend_value = settings.get(_STORE_BACKEND_KEY)
    confirm_value = settings.get(_CONFIRM_DELETE_KEY, fallback.confirm_delete)
    status_value = settings.get(_DEFAULT_PAGE_STATUS_KEY)
    return PanelSettings(
        store_backend=normalize_store_backend(
            backend_value if isinstance(backend_value, str) else None,
            default=fallback.store_backend,
        ),
        wordpress=normalize_wordpress_settings(
            {
                "url": settings.get(_WORDPRESS_URL_KEY, fallback.wordpress.url),
                "username": settings.get(_WORDPRESS_USERNAME_KEY, fallback.wordpress.username),
                "application_password": settings.get(
                    _WORDPRESS_APP_PASSWORD_KEY,
                    fallback.wordpress.application_password,
                ),
                "timeout_seconds": settings.get(_WORDPRESS_TIMEOUT_KEY, fallback.wordpress.timeout_seconds),
            }
        ),
        pages_per_page=normalize_pages_per_page(
            settings.get(_PAGES_PER_PAGE_KEY),
            default=fallback.pages_per_page,
        ),
        default_page_status=normalize_page_status(
            status_value if isinstance(status_value, str) else None,
            default=fallback.default_page_status,
        ),
        confirm_delete=confirm_value if isinstance(confirm_value, bool) else fallback.confirm_delete,
    )


def save_panel_settings(value: PanelSettings) -> PanelSettings:
    normalized = PanelSettings(
        store_backend=normalize_store_backend(value.store_backend),
        wordpress=normalize_wordpress_settings(value.wordpress),
        pages_per_page=normalize_pages_per_page(value.pages_per_page),
        default_page_status=normalize_page_status(value.default_page_status),
        confirm_delete=bool(value.confirm_delete),
    )
    settings = load_settings()
    settings[_STORE_BACKEND_KEY] = normalized.store_backend
    settings[_WORDPRESS_URL_KEY] = normalized.wordpress.url
    settings[_WORDPRESS_USERNAME_KEY] = normalized.wordpress.username
    settings[_WORDPRESS_APP_PASSWORD_KEY] = normalized.wordpress.application_password
    settings[_WORDPRESS_TIMEOUT_KEY] = normalized.wordpress.timeout_seconds
    settings[_PAGES_PER_PAGE_KEY] = normalized.pages_per_page
    settings[_DEFAULT_PAGE_STATUS_KEY] = normalized.default_page_status
    settings[_CONFIRM_DELETE_KEY] = normalized.confirm_delete
    save_settings(settings)
    return normalized
