# -*- coding: utf-8 -*-
"""設定・構造化ログモジュールのテスト."""

import json
import logging

import pytest

from stateflow.config.settings import StateFlowSettings
from stateflow.core.types import DispatchResult, DispatchStatus
from stateflow.observability import (
    JSONFormatter,
    LogLevel,
    TextFormatter,
    get_context,
    log_context,
    setup_logging,
)
from stateflow.pipeline import DispatchContext, LoggingBehavior
from stateflow.state.actions import Action
from stateflow.state.handlers import FunctionHandler, HandlerBinding
from stateflow.state.models import State


class DummyState(State):
    """テスト用状態."""


class Ping(Action):
    """テスト用アクション."""


def make_record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="stateflow.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStateFlowSettings:
    """StateFlowSettings テストクラス."""

    def test_defaults(self) -> None:
        """既定値が設定されること."""
        settings = StateFlowSettings(_env_file=None)

        assert settings.log_level == "INFO"
        assert settings.max_history == 100
        assert settings.persistence_backend == "memory"
        assert settings.persistence_namespace == "stateflow"
        assert settings.mirror_enabled is False
        assert settings.mirror_timeout == 2.0

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """STATEFLOW_ 接頭辞の環境変数を読み込むこと."""
        monkeypatch.setenv("STATEFLOW_MAX_HISTORY", "5")
        monkeypatch.setenv("STATEFLOW_MIRROR_ENABLED", "true")
        monkeypatch.setenv("STATEFLOW_PERSISTENCE_NAMESPACE", "app")

        settings = StateFlowSettings(_env_file=None)

        assert settings.max_history == 5
        assert settings.mirror_enabled is True
        assert settings.persistence_namespace == "app"

    def test_invalid_timeout(self) -> None:
        """不正なタイムアウトを拒否すること."""
        with pytest.raises(ValueError):
            StateFlowSettings(_env_file=None, mirror_timeout=0)

    def test_config_helpers(self) -> None:
        """設定辞書ヘルパーが値を返すこと."""
        settings = StateFlowSettings(
            _env_file=None,
            persistence_backend="file",
            persistence_dir="/tmp/stateflow",
            mirror_url="http://localhost:8765",
        )

        assert settings.get_persistence_config() == {
            "backend": "file",
            "directory": "/tmp/stateflow",
            "namespace": "stateflow",
        }
        assert settings.get_mirror_config() == {
            "enabled": False,
            "url": "http://localhost:8765",
            "timeout": 2.0,
        }


class TestJSONFormatter:
    """JSONFormatter テストクラス."""

    def test_basic_fields(self) -> None:
        """基本フィールドが出力されること."""
        data = json.loads(JSONFormatter(include_timestamp=False).format(make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "hello"
        assert data["logger"] == "stateflow.test"
        assert "timestamp" not in data

    def test_extra_fields_are_included_and_masked(self) -> None:
        """extra フィールドが出力され、機密情報がマスクされること."""
        record = make_record(action="IncrementCount", api_key="sk-123")

        data = json.loads(JSONFormatter().format(record))

        assert data["action"] == "IncrementCount"
        assert data["api_key"] == "***MASKED***"

    def test_context_is_attached(self) -> None:
        """ログコンテキストが付加されること."""
        with log_context(dispatch_id="dispatch-1", auth_token="abc"):
            data = json.loads(JSONFormatter().format(make_record()))

        assert data["context"] == {"dispatch_id": "dispatch-1", "auth_token": "***MASKED***"}

    def test_caller_info(self) -> None:
        """呼び出し元情報を出力できること."""
        data = json.loads(JSONFormatter(include_caller=True).format(make_record()))

        assert data["caller"]["line"] == 1


class TestTextFormatter:
    """TextFormatter テストクラス."""

    def test_format_without_timestamp(self) -> None:
        """タイムスタンプなしで整形できること."""
        text = TextFormatter(include_timestamp=False).format(make_record("hi"))

        assert text == "[INFO] stateflow.test: hi"


class TestLogContext:
    """log_context テストクラス."""

    def test_nested_context(self) -> None:
        """入れ子のコンテキストがマージされ、終了時に戻ること."""
        with log_context(a=1):
            with log_context(b=2):
                assert get_context() == {"a": 1, "b": 2}
            assert get_context() == {"a": 1}

        assert get_context() == {}


class TestSetupLogging:
    """setup_logging テストクラス."""

    def test_handler_is_replaced(self) -> None:
        """パッケージロガーのハンドラーが置き換えられること."""
        package_logger = logging.getLogger("stateflow")
        try:
            first = setup_logging(LogLevel.DEBUG, format="json")
            second = setup_logging(LogLevel.WARNING, format="text")

            assert package_logger.handlers == [second]
            assert first not in package_logger.handlers
            assert isinstance(second.formatter, TextFormatter)
            assert package_logger.level == logging.WARNING
        finally:
            for handler in list(package_logger.handlers):
                package_logger.removeHandler(handler)
                handler.close()
            package_logger.setLevel(logging.NOTSET)

    def test_file_output(self, tmp_path) -> None:
        """ファイルに JSON ログを出力できること."""
        package_logger = logging.getLogger("stateflow")
        path = tmp_path / "stateflow.log"
        try:
            handler = setup_logging(LogLevel.INFO, format="json", output=str(path))
            logging.getLogger("stateflow.test").info("written")
            handler.flush()

            line = path.read_text(encoding="utf-8").strip()
            assert json.loads(line)["message"] == "written"
        finally:
            for handler in list(package_logger.handlers):
                package_logger.removeHandler(handler)
                handler.close()
            package_logger.setLevel(logging.NOTSET)


class TestLoggingBehavior:
    """LoggingBehavior テストクラス."""

    def make_context(self) -> DispatchContext:
        binding = HandlerBinding(
            action_type=Ping,
            handler=FunctionHandler(lambda a, s: None),
            state_type=DummyState,
        )
        return DispatchContext(action=Ping(), binding=binding)

    @pytest.mark.asyncio
    async def test_success_is_logged_with_duration(self, caplog) -> None:
        """成功時に DEBUG で記録し、所要時間を設定すること."""
        ctx = self.make_context()
        seen: list[dict] = []

        async def next_() -> DispatchResult:
            seen.append(get_context())
            return ctx.result

        with caplog.at_level(logging.DEBUG, logger="stateflow.pipeline.logging_behavior"):
            result = await LoggingBehavior().process(ctx, next_)

        assert result.duration_ms >= 0
        assert seen[0]["action"] == "Ping"
        assert seen[0]["dispatch_id"] == result.id
        finished = [r for r in caplog.records if getattr(r, "status", None) == "succeeded"]
        assert len(finished) == 1
        assert finished[0].levelno == logging.DEBUG

    @pytest.mark.asyncio
    async def test_failure_is_logged_as_warning(self, caplog) -> None:
        """失敗結果が WARNING で記録されること."""
        ctx = self.make_context()

        async def next_() -> DispatchResult:
            ctx.result.status = DispatchStatus.FAILED
            return ctx.result

        with caplog.at_level(logging.DEBUG, logger="stateflow.pipeline.logging_behavior"):
            await LoggingBehavior().process(ctx, next_)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].status == "failed"

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self, caplog) -> None:
        """予期しない例外が記録され、再送出されること."""
        ctx = self.make_context()

        async def next_() -> DispatchResult:
            raise RuntimeError("boom")

        with caplog.at_level(logging.DEBUG, logger="stateflow.pipeline.logging_behavior"):
            with pytest.raises(RuntimeError):
                await LoggingBehavior().process(ctx, next_)

        assert any(r.levelno == logging.ERROR for r in caplog.records)
