#!/usr/bin/env python3
"""Hello Synth TUI - Main Entry Point."""
import os

from textual.app import App
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import Footer, Header, Static

from config_manager import ConfigManager
from midi.device_manager import MIDIDeviceManager
from midi.input_handler import MIDIInputHandler
from modes.config_mode import ConfigMode
from modes.synth_mode import SynthMode
from music.clock import TextualScheduler
from music.synth_engine import SynthEngine


class SynthHelpBar(Static):
    """Two-line cheat sheet under the synth."""

    def render(self) -> str:
        line1 = "z..m / q..i: Play | Esc: Panic | Ctrl+L: Latch | Ctrl+R: Arp | ↑↓: Tempo | ←→: Cutoff | PgUp/PgDn: Q"
        line2 = r"F1/F2: Wave | F3/F4: Octave | F5-F8: LFO | F9/F10: Delay | F11/F12 Ctrl+D/S: Env | \[/\]: Vol | M: MIDI"
        return f"{line1}\n{line2}"


class MainScreen(Screen):
    """Header, synth, help bar, footer."""

    CSS = """
    MainScreen {
        layout: vertical;
    }

    #content-area {
        height: 1fr;
        width: 100%;
    }

    #synth-help-bar {
        width: 100%;
        height: auto;
        text-align: center;
        color: $text-muted;
        border-top: solid $accent;
    }
    """

    def __init__(self, app_context: dict):
        super().__init__()
        self.app_context = app_context

    def compose(self):
        yield Header()
        yield SynthMode(
            self.app_context["midi_handler"],
            self.app_context["synth_engine"],
            self.app_context["config_manager"],
        )
        yield SynthHelpBar(id="synth-help-bar")
        yield Footer()


class HelloSynthApp(App):
    """Polyphonic subtractive synth in the terminal."""

    VERSION = "0.1.0"

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", show=True),
    ]

    def __init__(self):
        super().__init__()
        self.title = f"Hello Synth v{self.VERSION}"
        self.config_manager = ConfigManager()
        self.device_manager = MIDIDeviceManager(self.config_manager)
        self.midi_handler = MIDIInputHandler()
        self.synth_engine = SynthEngine(
            sample_rate=self.config_manager.get_sample_rate(),
            buffer_size=self.config_manager.get_buffer_size(),
            scheduler=TextualScheduler(self),
        )

        selected_device = self.device_manager.get_selected_device()
        if selected_device:
            self.midi_handler.open_device(selected_device)

        self.app_context = {
            "config_manager": self.config_manager,
            "device_manager": self.device_manager,
            "midi_handler": self.midi_handler,
            "synth_engine": self.synth_engine,
        }

    def on_mount(self):
        self.push_screen(MainScreen(self.app_context))
        self.update_sub_title()

    def update_sub_title(self):
        selected = self.device_manager.get_selected_device()
        if selected:
            self.sub_title = f"🎹 MIDI: {selected}"
        else:
            self.sub_title = "Computer keyboard (Shift+M for MIDI settings)"

    def action_midi_settings(self):
        def on_closed(result):
            self.synth_engine.panic()
            self.midi_handler.close_device()
            selected = self.device_manager.get_selected_device()
            if selected:
                self.midi_handler.open_device(selected)
            self.update_sub_title()

        self.push_screen(ConfigMode(self.device_manager), on_closed)

    def on_unmount(self):
        self.midi_handler.close_device()
        self.synth_engine.close()
        os.system('cls' if os.name == 'nt' else 'clear')


def main():
    """Main entry point."""
    app = HelloSynthApp()
    app.run()


if __name__ == "__main__":
    main()
