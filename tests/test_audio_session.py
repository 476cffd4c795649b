import numpy as np
import soundfile as sf

from mobile.parrot.audio import session as session_mod
from mobile.parrot.audio.session import AudioSessionController
from mobile.parrot.store.settings_store import SettingsStore


def make_controller(tmp_path, logger, **kwargs):
    return AudioSessionController(tmp_path / "scratch", logger, **kwargs)


def test_recording_writes_mono_24k_file(tmp_path, fake_sd, logger):
    controller = make_controller(tmp_path, logger)
    handle = controller.start_recording()
    assert handle is not None
    assert controller.is_recording is True

    stream = fake_sd.inputs[-1]
    assert stream.kwargs["samplerate"] == 24_000
    assert stream.kwargs["channels"] == 1
    assert stream.active
    stream.push(np.full(2400, 1000, dtype=np.int16))
    stream.push(np.full(2400, -1000, dtype=np.int16))

    path = controller.stop_recording()
    assert path == handle.path
    assert controller.is_recording is False
    assert stream.closed
    info = sf.info(str(path))
    assert info.samplerate == 24_000
    assert info.channels == 1
    assert info.frames == 4800


def test_start_while_recording_keeps_single_capture(tmp_path, fake_sd, logger):
    controller = make_controller(tmp_path, logger)
    first = controller.start_recording()
    second = controller.start_recording()

    assert first is not None and second is not None
    assert first.path != second.path
    assert len(fake_sd.inputs) == 2
    assert fake_sd.inputs[0].closed and not fake_sd.inputs[0].active
    assert [stream.active for stream in fake_sd.inputs] == [False, True]
    assert not first.path.exists()

    assert controller.stop_recording() == second.path
    assert controller.stop_recording() is None


def test_new_recording_discards_previous_scratch_file(tmp_path, fake_sd, logger):
    controller = make_controller(tmp_path, logger)
    controller.start_recording()
    previous = controller.stop_recording()
    assert previous.exists()

    controller.start_recording()
    assert not previous.exists()


def test_stop_without_recording_returns_none(tmp_path, fake_sd, logger):
    controller = make_controller(tmp_path, logger)
    assert controller.stop_recording() is None
    assert controller.is_recording is False


def test_missing_audio_backend_is_logged_not_raised(tmp_path, monkeypatch, logger):
    monkeypatch.setattr(session_mod.AudioSessionController, "_try_import_sounddevice", lambda self: None)
    controller = make_controller(tmp_path, logger)

    assert controller.start_recording() is None
    assert controller.is_recording is False
    assert any("Could not start recording" in line for line in logger.get())
    assert controller.play(tmp_path / "missing.wav") is None
    assert controller.is_playing is False


def test_device_busy_leaves_no_scratch_file(tmp_path, fake_sd, logger):
    fake_sd.input_error = RuntimeError("device busy")
    controller = make_controller(tmp_path, logger)

    assert controller.start_recording() is None
    assert controller.is_recording is False
    assert list((tmp_path / "scratch").glob("*.wav")) == []
    assert any("device busy" in line for line in logger.get())


def test_playback_completion_clears_flag(tmp_path, fake_sd, logger, make_wav):
    controller = make_controller(tmp_path, logger)
    audio = make_wav("a.wav", seconds=0.1)
    finished = []

    handle = controller.play(audio, on_finished=finished.append)
    assert handle is not None
    assert controller.is_playing is True

    stream = fake_sd.outputs[-1]
    assert stream.kwargs["samplerate"] == 24_000
    stream.run_to_end()

    assert controller.is_playing is False
    assert handle.done
    assert finished == [handle]
    assert not stream.closed
    played = np.concatenate(stream.played)[:, 0]
    expected, _ = sf.read(str(audio), dtype="float32")
    np.testing.assert_allclose(played[: len(expected)], expected)
    assert not played[len(expected):].any()

    controller.close()
    assert stream.closed


def test_switching_playback_stops_previous_and_stays_playing(tmp_path, fake_sd, logger, make_wav):
    controller = make_controller(tmp_path, logger)
    first = controller.play(make_wav("a.wav"))
    second = controller.play(make_wav("b.wav"))

    old_stream, new_stream = fake_sd.outputs
    assert old_stream.aborted and old_stream.closed
    assert first.stopped and first.done
    assert controller.is_playing is True
    assert controller.current_playback is second

    # A late completion from the old stream must not end the new playback.
    old_stream.finished_callback()
    assert controller.is_playing is True

    new_stream.run_to_end()
    assert controller.is_playing is False


def test_completion_is_marshalled_through_dispatch(tmp_path, fake_sd, logger, make_wav):
    pending = []
    controller = make_controller(tmp_path, logger, dispatch=pending.append)
    controller.play(make_wav())

    fake_sd.outputs[-1].run_to_end()
    assert controller.is_playing is True
    assert len(pending) == 1

    pending.pop()()
    assert controller.is_playing is False
    assert fake_sd.outputs[-1].closed


def test_undecodable_file_does_not_start_playback(tmp_path, fake_sd, logger):
    broken = tmp_path / "broken.wav"
    broken.write_bytes(b"not audio at all")
    controller = make_controller(tmp_path, logger)

    assert controller.play(broken) is None
    assert controller.is_playing is False
    assert fake_sd.outputs == []
    assert any("Could not play broken.wav" in line for line in logger.get())


def test_stop_playback_is_idempotent(tmp_path, fake_sd, logger, make_wav):
    controller = make_controller(tmp_path, logger)
    controller.stop_playback()
    assert controller.is_playing is False

    controller.play(make_wav())
    controller.stop_playback()
    controller.stop_playback()
    assert controller.is_playing is False
    assert fake_sd.outputs[-1].aborted


def test_failed_start_keeps_previous_take(tmp_path, fake_sd, logger):
    controller = make_controller(tmp_path, logger)
    controller.start_recording()
    take = controller.stop_recording()

    fake_sd.input_error = RuntimeError("device busy")
    assert controller.start_recording() is None
    assert take.exists()

    fake_sd.input_error = None
    assert controller.start_recording() is not None
    assert not take.exists()


def test_inline_completion_closes_stream_on_next_play(tmp_path, fake_sd, logger, make_wav):
    controller = make_controller(tmp_path, logger)
    controller.play(make_wav("a.wav"))
    first = fake_sd.outputs[-1]
    first.run_to_end()
    assert controller.is_playing is False
    assert not first.closed

    controller.play(make_wav("b.wav"))
    assert first.closed
    assert not first.aborted


def test_saved_input_device_is_used_for_next_capture(tmp_path, fake_sd, logger):
    settings = SettingsStore(tmp_path / "settings.json")
    controller = make_controller(tmp_path, logger, input_device=settings.input_device())
    controller.start_recording()
    controller.stop_recording()
    assert fake_sd.inputs[-1].kwargs["device"] is None

    settings.update(input_device="3")
    controller.set_input_device(settings.input_device())
    controller.start_recording()
    assert fake_sd.inputs[-1].kwargs["device"] == 3
