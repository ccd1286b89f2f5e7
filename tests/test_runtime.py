"""Tests for the shared ffmpeg runtime handle."""

import threading
from unittest.mock import patch

import pytest

from gifforge.errors import EngineInitError
from gifforge.runtime import FFmpegRuntime


class TestEnsureReady:
    @patch("gifforge.runtime.ffutil.check_ffmpeg")
    def test_initializes_once(self, mock_check, tmp_path):
        runtime = FFmpegRuntime(tmp_path / "work")
        assert not runtime.ready
        runtime.ensure_ready()
        runtime.ensure_ready()
        assert runtime.ready
        mock_check.assert_called_once()
        assert (tmp_path / "work").is_dir()

    @patch("gifforge.runtime.ffutil.check_ffmpeg", side_effect=EngineInitError("ffmpeg not found on PATH"))
    def test_failure_is_sticky(self, mock_check):
        runtime = FFmpegRuntime()
        with pytest.raises(EngineInitError):
            runtime.ensure_ready()
        with pytest.raises(EngineInitError, match="not found"):
            runtime.ensure_ready()
        mock_check.assert_called_once()
        assert not runtime.ready

    @patch("gifforge.runtime.ffutil.check_ffmpeg")
    def test_unwritable_work_dir(self, mock_check, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        runtime = FFmpegRuntime(blocker / "work")
        with pytest.raises(EngineInitError, match="work dir"):
            runtime.ensure_ready()


class TestSession:
    @patch("gifforge.runtime.ffutil.check_ffmpeg")
    def test_scratch_removed_on_exit(self, mock_check, tmp_path):
        runtime = FFmpegRuntime(tmp_path)
        with runtime.session() as scratch:
            assert scratch.parent == tmp_path
            (scratch / "palette.png").write_bytes(b"x")
        assert not scratch.exists()

    @patch("gifforge.runtime.ffutil.check_ffmpeg")
    def test_scratch_removed_on_error(self, mock_check, tmp_path):
        runtime = FFmpegRuntime(tmp_path)
        with pytest.raises(RuntimeError):
            with runtime.session() as scratch:
                (scratch / "out.gif").write_bytes(b"partial")
                raise RuntimeError("encode died")
        assert list(tmp_path.iterdir()) == []
        assert not runtime.busy

    @patch("gifforge.runtime.ffutil.check_ffmpeg")
    def test_busy_while_held(self, mock_check, tmp_path):
        runtime = FFmpegRuntime(tmp_path)
        entered = threading.Event()
        release = threading.Event()

        def hold():
            with runtime.session():
                entered.set()
                release.wait(timeout=5)

        t = threading.Thread(target=hold)
        t.start()
        assert entered.wait(timeout=5)
        assert runtime.busy
        release.set()
        t.join(timeout=5)
        assert not runtime.busy
