# -*- coding: utf-8 -*-
"""StateFlow設定.

このモジュールは、StateFlowストアの設定を管理します。

使用例:
    ```python
    from stateflow.config import get_settings

    settings = get_settings()
    print(settings.persistence_backend)  # "memory"
    print(settings.max_history)  # 100
    ```

環境変数:
    - STATEFLOW_LOG_LEVEL: ログレベル（DEBUG/INFO/WARNING/ERROR）
    - STATEFLOW_LOG_FORMAT: ログ形式（json/text）
    - STATEFLOW_MAX_HISTORY: アクション履歴の最大件数
    - STATEFLOW_PERSISTENCE_BACKEND: 永続化バックエンド（memory/file）
    - STATEFLOW_PERSISTENCE_DIR: ファイルバックエンドの保存先
    - STATEFLOW_PERSISTENCE_NAMESPACE: 永続化キーの名前空間
    - STATEFLOW_MIRROR_ENABLED: 外部ミラー（デバッグツール）を有効化
    - STATEFLOW_MIRROR_URL: HTTP ミラーのエンドポイント
    - STATEFLOW_MIRROR_TIMEOUT: ミラー呼び出しのタイムアウト（秒）
"""

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stateflow.observability.logging import LogLevel, setup_logging


class StateFlowSettings(BaseSettings):
    """StateFlow設定.

    環境変数または.envファイルから設定を読み込みます。

    Attributes:
        log_level: ログレベル
        log_format: ログ形式
        max_history: アクション履歴の最大件数
        persistence_backend: 永続化バックエンド
        persistence_dir: ファイルバックエンドの保存先
        persistence_namespace: 永続化キーの名前空間
        mirror_enabled: 外部ミラーを有効化
        mirror_url: HTTP ミラーのエンドポイント
        mirror_timeout: ミラー呼び出しのタイムアウト
    """

    # ログ設定
    log_level: str = Field(default="INFO", description="ログレベル")
    log_format: str = Field(default="text", description="ログ形式（json/text）")

    # 診断
    max_history: int = Field(default=100, ge=0, description="アクション履歴の最大件数")

    # 永続化設定
    persistence_backend: str = Field(
        default="memory", description="永続化バックエンド（memory/file）"
    )
    persistence_dir: str | None = Field(default=None, description="ファイルバックエンドの保存先")
    persistence_namespace: str = Field(default="stateflow", description="永続化キーの名前空間")

    # 外部ミラー設定（デフォルト無効）
    mirror_enabled: bool = Field(default=False, description="外部ミラーを有効化")
    mirror_url: str | None = Field(default=None, description="HTTP ミラーのエンドポイント")
    mirror_timeout: float = Field(default=2.0, gt=0, description="ミラー呼び出しのタイムアウト（秒）")

    # Pydantic設定
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STATEFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    def configure_logging(self) -> None:
        """ログ設定を適用."""
        setup_logging(
            level=LogLevel(self.log_level.upper()),
            format=self.log_format,
        )

    def get_persistence_config(self) -> dict[str, Any]:
        """永続化設定を取得.

        Returns:
            永続化設定辞書
        """
        return {
            "backend": self.persistence_backend,
            "directory": self.persistence_dir,
            "namespace": self.persistence_namespace,
        }

    def get_mirror_config(self) -> dict[str, Any]:
        """ミラー設定を取得.

        Returns:
            ミラー設定辞書
        """
        return {
            "enabled": self.mirror_enabled,
            "url": self.mirror_url,
            "timeout": self.mirror_timeout,
        }


@lru_cache
def get_settings() -> StateFlowSettings:
    """設定シングルトンを取得.

    この関数は設定をキャッシュし、アプリケーション全体で同じインスタンスを返します。

    Returns:
        StateFlow設定
    """
    return StateFlowSettings()
