"""
Tests for AudioPlayer
"""

import asyncio
import threading

from wake_engine.config import AudioSettings
from wake_engine.player import AudioPlayer, clamp_volume
from wake_engine.sounds import SoundResolver

from conftest import FakeEngine


def _player(engine, timeout_s=0.05):
    return AudioPlayer(engine, SoundResolver(AudioSettings()), play_start_timeout_s=timeout_s)


class TestAudioPlayer:
    """Test playback handle management"""

    def test_play_reports_start(self):
        engine = FakeEngine()
        player = _player(engine)

        assert asyncio.run(player.play("birds", 40)) is True

        handle = engine.handles[0]
        assert handle.src.endswith("birds.mp3")
        assert handle.volume == 0.4
        assert handle.calls == ["seek:0", "play"]
        assert player.active_sounds() == ["birds"]

    def test_handle_play_runs_off_the_event_loop(self):
        """Loading a source must not block the loop thread"""
        engine = FakeEngine()
        player = _player(engine)

        async def scenario():
            started = await player.play("custom_song.mp3", 80)
            return started, threading.get_ident()

        started, loop_thread = asyncio.run(scenario())

        assert started is True
        assert engine.handles[0].play_thread is not None
        assert engine.handles[0].play_thread != loop_thread

    def test_replay_reuses_handle_and_restarts(self):
        """Playing the same sound again stops the running handle first"""
        engine = FakeEngine()
        player = _player(engine)

        async def scenario():
            await player.play("birds", 20)
            await player.play("birds", 60)

        asyncio.run(scenario())

        assert len(engine.handles) == 1
        assert engine.handles[0].calls == ["seek:0", "play", "stop", "seek:0", "play"]
        assert player.get_volume() == 60

    def test_distinct_sounds_get_distinct_handles(self):
        engine = FakeEngine()
        player = _player(engine)

        async def scenario():
            await player.play("birds_gentle", 20)
            await player.play("birds_morning", 40)

        asyncio.run(scenario())
        assert len(engine.handles) == 2

    def test_engine_error_returns_false(self):
        player = _player(FakeEngine(fail=True))
        assert asyncio.run(player.play("birds", 50)) is False

    def test_no_start_event_times_out(self):
        player = _player(FakeEngine(silent=True), timeout_s=0.01)
        assert asyncio.run(player.play("birds", 50)) is False

    def test_stop_all_and_volume(self):
        engine = FakeEngine()
        player = _player(engine)

        async def scenario():
            await player.play("birds", 20)
            await player.play("waves", 20)

        asyncio.run(scenario())
        player.set_volume(150)
        player.stop_all()

        assert player.get_volume() == 100
        assert all(h.volume == 1.0 for h in engine.handles)
        assert all(h.calls[-1] == "stop" for h in engine.handles)
        assert player.active_sounds() == []

    def test_stop_all_without_handles(self):
        _player(FakeEngine()).stop_all()

    def test_clamp_volume(self):
        assert clamp_volume(-5) == 0
        assert clamp_volume(42.6) == 43
        assert clamp_volume(250) == 100
