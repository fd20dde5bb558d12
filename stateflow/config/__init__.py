"""設定管理モジュール.

このモジュールは、StateFlowストアの設定管理を提供します。
"""

from stateflow.config.settings import StateFlowSettings, get_settings


__all__ = ["StateFlowSettings", "get_settings"]
