from __future__ import annotations

APP_NAME = "pagedesk"
APP_VERSION = "0.1.0"

__all__ = ["APP_NAME", "APP_VERSION"]
