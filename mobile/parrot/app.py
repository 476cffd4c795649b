"""Kivy entrypoint for the Parrot speech client."""

from __future__ import annotations

import threading
from pathlib import Path

from kivy.clock import Clock
from kivy.factory import Factory
from kivy.lang import Builder
from kivy.properties import BooleanProperty, ListProperty, NumericProperty, ObjectProperty, StringProperty
from kivymd.app import MDApp
from kivymd.uix.screen import MDScreen
from kivymd.uix.snackbar import Snackbar

from .audio.session import AudioSessionController
from .audio.types import ReferenceSample
from .config import CONFIG
from .errors import GenerationError, NotInitializedError, StorageError, ValidationError
from .services.downloader import ModelDownloader
from .services.generator import F5Backend, GenerationTask, SpeechGenerator, relay_progress
from .services.logger import LogBuffer
from .store.reference_store import ReferenceSampleStore
from .store.selection import SelectionSlot
from .store.settings_store import SettingsStore
from .ui.components import load_components
from .ui.theme import ParrotTheme


SCREENS_KV = """
ScreenManager:
    GenerateScreen:
        name: "generate"
    ReferenceScreen:
        name: "references"

<GenerateScreen>:
    PTScaffold:
        spacing: app.theme.spacing.section
        PTToolbar:
            title: "Parrot"
            right_action_items: [["microphone", lambda x: app.switch_screen('references')]]
        ScrollView:
            do_scroll_x: False
            MDBoxLayout:
                orientation: "vertical"
                spacing: app.theme.spacing.section
                size_hint_y: None
                height: self.minimum_height
                PTCard:
                    SectionHeading:
                        text: "Text to speak"
                    RoundedInput:
                        id: text_input
                        text: app.default_text
                        hint_text: "Type something to say"
                    BodyText:
                        text: "Reference: " + (app.selected_text or "bundled voice")
                    GenerationProgress:
                    MDBoxLayout:
                        size_hint_y: None
                        height: "50dp"
                        spacing: app.theme.spacing.grid
                        PrimaryButton:
                            text: "Generate Speech"
                            icon: "waveform"
                            disabled: app.is_generating or not app.model_ready or not text_input.text.strip()
                            on_press: app.generate(text_input.text)
                        SecondaryButton:
                            text: "Cancel" if app.is_generating else ("Stop" if app.is_playing else "Play")
                            icon: "close" if app.is_generating else ("stop" if app.is_playing else "play")
                            on_press: app.cancel_generation() if app.is_generating else app.toggle_output_playback()
                    TimingInfo:
                PTCard:
                    SectionHeading:
                        text: "Settings"
                    MDTextField:
                        id: device_input
                        text: app.input_device
                        hint_text: "Microphone (index or name, blank for default)"
                        mode: "rectangle"
                        multiline: False
                    PrimaryButton:
                        text: "Save Settings"
                        icon: "content-save-cog"
                        on_press: app.save_settings(text_input.text, device_input.text)
                InfoBanner:
                    message: app.status_text
                ActivityLog:

<ReferenceScreen>:
    PTScaffold:
        spacing: app.theme.spacing.section
        PTToolbar:
            title: "Reference Audio"
            left_action_items: [["arrow-left", lambda x: app.switch_screen('generate')]]
            right_action_items: [["refresh", lambda x: app.reload_references()]]
        ScrollView:
            do_scroll_x: False
            MDBoxLayout:
                orientation: "vertical"
                spacing: app.theme.spacing.section
                size_hint_y: None
                height: self.minimum_height
                PTCard:
                    SectionHeading:
                        text: "Record Audio Sample"
                    MDBoxLayout:
                        size_hint_y: None
                        height: "64dp"
                        spacing: app.theme.spacing.grid
                        RecordButton:
                        SecondaryButton:
                            text: "Stop" if app.is_playing else "Play"
                            icon: "stop-circle" if app.is_playing else "play-circle"
                            disabled: not app.recorded_path or app.is_recording
                            on_press: app.toggle_recorded_playback()
                PTCard:
                    SectionHeading:
                        text: "Reference Text"
                    RoundedInput:
                        id: reference_input
                        hint_text: "Exactly what you said in the recording"
                    PrimaryButton:
                        text: "Save as Reference"
                        icon: "content-save"
                        disabled: not app.recorded_path or app.is_recording or not reference_input.text.strip()
                        on_press: app.save_reference(reference_input)
                PTCard:
                    SectionHeading:
                        text: "Saved References"
                    BodyText:
                        text: "No references yet" if not app.reference_count else "{} saved".format(app.reference_count)
                    MDBoxLayout:
                        id: reference_list
                        orientation: "vertical"
                        spacing: app.theme.spacing.grid
                        size_hint_y: None
                        height: self.minimum_height
                    MDFlatButton:
                        text: "Clear selection"
                        disabled: not app.selected_text
                        on_press: app.clear_reference()
"""


class GenerateScreen(MDScreen):
    pass


class ReferenceScreen(MDScreen):
    pass


class ParrotApp(MDApp):
    is_recording = BooleanProperty(False)
    is_playing = BooleanProperty(False)
    is_generating = BooleanProperty(False)
    model_ready = BooleanProperty(False)
    generation_progress = NumericProperty(0.0)
    download_progress = NumericProperty(0.0)
    recorded_path = StringProperty("")
    selected_text = StringProperty("")
    default_text = StringProperty(CONFIG.default_text)
    input_device = StringProperty("")
    status_text = StringProperty("Preparing speech model...")
    timing_text = StringProperty("")
    reference_count = NumericProperty(0)
    log_lines = ListProperty([])
    theme = ObjectProperty(ParrotTheme.default())

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.theme = ParrotTheme.default()
        self._task: GenerationTask | None = None
        self._unsubscribe = None

    def build(self):
        load_components()
        self.theme_cls.theme_style = "Dark"
        self.theme_cls.material_style = "M3"
        self.theme_cls.primary_palette = "Teal"
        self.base_dir = Path(self.user_data_dir or Path.home() / ".parrot")
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.settings_store = SettingsStore(self.base_dir / CONFIG.settings_file)
        settings = self.settings_store.get()
        self.default_text = settings.default_text
        self.input_device = settings.input_device
        self.logger = LogBuffer(CONFIG.log_history)
        self.audio = AudioSessionController(
            self.base_dir / CONFIG.recordings_dir,
            self.logger,
            dispatch=self._on_ui_thread,
            input_device=self.settings_store.input_device(),
        )
        self.selection = SelectionSlot()
        self.references = ReferenceSampleStore(
            self.base_dir / CONFIG.references_dir,
            self.audio,
            self.logger,
            self.selection,
        )
        self._unsubscribe = self.selection.subscribe(
            lambda sample: self._on_ui_thread(lambda: self._on_selection_changed(sample))
        )
        self.downloader = ModelDownloader(
            self.base_dir / CONFIG.models_dir,
            settings.model_repo,
            CONFIG.model_files,
            endpoint=settings.hf_endpoint,
        )
        backend = F5Backend(self.downloader, mock=settings.mock_engine)
        self.generator = SpeechGenerator(backend, self.logger)
        self.output_path = self.base_dir / CONFIG.output_file
        return Builder.load_string(SCREENS_KV)

    def on_start(self):
        self.reload_references()
        self.initialize_model()
        Clock.schedule_interval(lambda dt: self._sync_state(), 0.5)

    def on_stop(self):
        if self._task is not None:
            self._task.cancel()
        if self._unsubscribe:
            self._unsubscribe()
        self.audio.close()
        self.downloader.close()

    # Model lifecycle

    def initialize_model(self):
        if self.generator.is_ready:
            return
        self.status_text = "Downloading speech model..."

        def _progress(fraction: float) -> None:
            def _apply():
                self.download_progress = fraction
                self.status_text = "Downloading speech model... {:.0%}".format(fraction)

            self._on_ui_thread(_apply)

        def worker():
            ok = self.generator.initialize(download_progress=_progress)
            self._on_ui_thread(lambda: self._finish_initialize(ok))

        threading.Thread(target=worker, daemon=True).start()

    def _finish_initialize(self, ok: bool) -> None:
        self.model_ready = ok
        if ok:
            mode = "mock engine" if getattr(self.generator.backend, "mock", False) else "F5-TTS"
            self.status_text = f"Speech model ready ({mode})"
        else:
            self.status_text = f"Failed to initialize model: {self.generator.error_message}"
            self._show_snackbar("Model initialization failed")

    # Generation

    def generate(self, text: str):
        try:
            task = self.generator.generate(text, self.selection.value)
        except (NotInitializedError, ValidationError, GenerationError) as exc:
            self._show_snackbar(str(exc))
            return
        self._task = task
        self.is_generating = True
        self.generation_progress = 0.0
        self.timing_text = ""

        def worker():
            outcome = relay_progress(
                task, lambda fraction: self._on_ui_thread(lambda f=fraction: setattr(self, "generation_progress", f))
            )
            save_time = None
            error = outcome.error if outcome else None
            if outcome and outcome.result is not None:
                try:
                    save_time = self.generator.save_audio(outcome.result, self.output_path)
                except (OSError, RuntimeError) as exc:
                    error = StorageError(f"Failed to save generated audio: {exc}")
            self._on_ui_thread(lambda: self._finish_generation(outcome, save_time, error))

        threading.Thread(target=worker, daemon=True).start()

    def save_settings(self, default_text: str, input_device: str):
        self.settings_store.update(default_text=default_text.strip() or CONFIG.default_text, input_device=input_device.strip())
        settings = self.settings_store.get()
        self.default_text = settings.default_text
        self.input_device = settings.input_device
        self.audio.set_input_device(self.settings_store.input_device())
        self.logger.add("Settings saved")
        self._show_snackbar("Settings saved")

    def cancel_generation(self):
        if self._task is not None:
            self._task.cancel()

    def _finish_generation(self, outcome, save_time, error) -> None:
        self.is_generating = False
        self._task = None
        if error is not None:
            self._show_snackbar(f"Failed to generate speech: {error}")
            return
        generation_time = outcome.result.elapsed if outcome and outcome.result else 0.0
        self.timing_text = "Generation: {:.2f}s   Save: {:.2f}s".format(generation_time, save_time or 0.0)
        self.audio.play(self.output_path)
        self._sync_state()

    def toggle_output_playback(self):
        if self.audio.is_playing:
            self.audio.stop_playback()
        elif self.output_path.exists():
            self.audio.play(self.output_path)
        else:
            self._show_snackbar("Nothing generated yet")
        self._sync_state()

    # References

    def reload_references(self):
        self.references.load_reference_samples()
        self._render_references()

    def toggle_recording(self):
        if self.references.is_recording:
            path = self.references.stop_recording()
            self.recorded_path = str(path) if path else ""
        else:
            self.references.stop_playback()
            self.recorded_path = ""
            if self.references.start_recording() is None:
                self._show_snackbar("Microphone unavailable")
        self._sync_state()

    def toggle_recorded_playback(self):
        if self.references.is_playing:
            self.references.stop_playback()
        elif self.recorded_path:
            self.references.play_audio(Path(self.recorded_path))
        self._sync_state()

    def save_reference(self, text_field):
        if not self.recorded_path:
            return
        try:
            self.references.save_reference_audio(Path(self.recorded_path), text_field.text)
        except (ValidationError, StorageError) as exc:
            self._show_snackbar(f"Failed to save reference: {exc}")
            return
        text_field.text = ""
        self._render_references()
        self._show_snackbar("Reference audio and text saved successfully")

    def play_reference(self, index: int):
        sample = self._sample_at(index)
        if sample is not None:
            self.references.play_audio(sample.audio_path)
            self._sync_state()

    def toggle_reference(self, index: int):
        sample = self._sample_at(index)
        if sample is None:
            return
        if self.references.selected_reference == sample:
            self.references.clear_selection()
        else:
            self.references.select_reference(sample)

    def clear_reference(self):
        self.references.clear_selection()

    def _sample_at(self, index: int) -> ReferenceSample | None:
        samples = self.references.samples
        if 0 <= index < len(samples):
            return samples[index]
        return None

    def _on_selection_changed(self, sample: ReferenceSample | None) -> None:
        self.selected_text = sample.name if sample else ""
        self._render_references()

    def _render_references(self) -> None:
        if not self.root:
            return
        container = self.root.get_screen("references").ids.reference_list
        container.clear_widgets()
        selected = self.references.selected_reference
        samples = self.references.samples
        for index, sample in enumerate(samples):
            container.add_widget(
                Factory.ReferenceRow(
                    index=index,
                    filename=sample.audio_path.name,
                    transcript=sample.transcript.strip(),
                    selected=sample == selected,
                )
            )
        self.reference_count = len(samples)

    # Shared plumbing

    def switch_screen(self, name: str):
        if self.root:
            self.root.current = name

    def _sync_state(self):
        self.is_recording = self.audio.is_recording
        self.is_playing = self.audio.is_playing
        self.log_lines = self.logger.get()

    @staticmethod
    def _on_ui_thread(fn) -> None:
        Clock.schedule_once(lambda _dt: fn(), 0)

    def _show_snackbar(self, text: str) -> None:
        def _display(*_):
            Snackbar(
                text=text,
                duration=2.0,
                radius=[14],
                bg_color=self.theme.palette.surface_alt,
            ).open()

        Clock.schedule_once(_display, 0)


def main() -> None:
    ParrotApp().run()


if __name__ == "__main__":
    main()
