"""
配置加载模块：支持 .env、CERTMGR_ 前缀环境变量、工作目录 certmgr.json（或 CERTMGR_CONFIG_FILE 指定）多来源合并。
公开接口：
- Config: 读取配置的设置类
- config: Config 的单例实例
内部方法：
- Config.settings_customise_sources: 自定义配置来源顺序
- Config.parse_skew: 允许用 "30s" / "5m" 形式书写时钟偏差
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Tuple

from loguru import logger
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smh]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600}


class Config(BaseSettings):
    # 校验证书有效期时允许的时钟偏差（秒）
    verify_clock_skew_seconds: int = 0
    # CA 文档未指定 profile 时使用的默认值
    default_profile: str = ""

    model_config = SettingsConfigDict(
        env_prefix="CERTMGR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("verify_clock_skew_seconds", mode="before")
    @classmethod
    def parse_skew(cls, value: Any) -> Any:
        """支持整数秒，或带 s/m/h 单位的字符串。"""
        if isinstance(value, str):
            match = _DURATION_RE.match(value)
            if match is None:
                raise ValueError(f"无法解析的时钟偏差: {value!r}")
            return int(match.group(1)) * _DURATION_UNITS[match.group(2)]
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """自定义配置来源顺序：入参 > 环境变量 > .env > certmgr.json > secrets。"""

        class JsonFileSettingsSource(PydanticBaseSettingsSource):
            """从 certmgr.json（或 CERTMGR_CONFIG_FILE 指定路径）加载配置。"""

            def __init__(self, settings_cls):
                super().__init__(settings_cls)
                self._data: Dict[str, Any] | None = None

            def _load(self) -> None:
                if self._data is not None:
                    return
                cfg_path = os.environ.get("CERTMGR_CONFIG_FILE")
                path = Path(cfg_path) if cfg_path else Path.cwd() / "certmgr.json"
                if not path.exists():
                    self._data = {}
                    return
                try:
                    data = json.loads(path.read_text(encoding="utf-8"))
                except (OSError, ValueError) as e:
                    logger.warning(f"读取配置文件 {path} 失败，忽略该来源: {e}")
                    self._data = {}
                    return
                self._data = data if isinstance(data, dict) else {}

            def __call__(self) -> Dict[str, Any]:
                self._load()
                return dict(self._data or {})

            def get_field_value(self, field, field_name):  # type: ignore[override]
                self._load()
                data = self._data or {}
                if field_name in data:
                    return data[field_name], field_name, False
                return None, field_name, False

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonFileSettingsSource(settings_cls),
            file_secret_settings,
        )


config = Config()
