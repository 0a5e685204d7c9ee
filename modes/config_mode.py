"""MIDI settings screen (Shift+M from the synth)."""
from typing import TYPE_CHECKING

from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import Screen
from textual.widgets import Footer, Header, Label, ListItem, ListView

if TYPE_CHECKING:
    from midi.device_manager import MIDIDeviceManager


class ConfigMode(Screen):
    """Pick the MIDI input port that drives the synth."""

    BINDINGS = [
        Binding("escape", "dismiss", "Close", show=True),
        Binding("r", "refresh_devices", "Refresh", show=True),
        Binding("space", "select_and_close", "Select", show=True),
        Binding("n", "select_none", "No MIDI", show=True),
    ]

    CSS = """
    ConfigMode {
        align: center middle;
    }

    #config-container {
        width: 70;
        height: auto;
        border: thick #7fdbca;
        background: #1a1a1a;
        padding: 1 2;
    }

    #title {
        width: 100%;
        content-align: center middle;
        text-style: bold;
        color: #7fdbca;
    }

    #device-list {
        width: 100%;
        height: 12;
        border: solid #7fdbca;
        margin: 1 0;
    }

    #selected-device {
        width: 100%;
        content-align: center middle;
        color: #00ff00;
    }
    """

    def __init__(self, device_manager: 'MIDIDeviceManager'):
        super().__init__()
        self.device_manager = device_manager
        self.devices = []

    def compose(self):
        yield Header()
        with Vertical(id="config-container"):
            yield Label("MIDI Settings", id="title")
            yield ListView(id="device-list")
            yield Label("", id="selected-device")
        yield Footer()

    def on_mount(self):
        self.refresh_device_list()
        list_view = self.query_one("#device-list", ListView)
        if self.devices:
            list_view.index = 0

    def refresh_device_list(self):
        list_view = self.query_one("#device-list", ListView)
        list_view.clear()
        self.devices = self.device_manager.get_input_devices()
        selected = self.device_manager.get_selected_device()

        if not self.devices:
            message = self.device_manager.last_error or "No MIDI devices found"
            list_view.append(ListItem(Label(message)))
        else:
            for device in self.devices:
                box = "☑" if device == selected else "☐"
                list_view.append(ListItem(Label(f"{box} {device}")))

        label = self.query_one("#selected-device", Label)
        label.update(f"Active: {selected}" if selected else "No device selected")

    def action_refresh_devices(self):
        self.refresh_device_list()
        self.app.notify("Device list refreshed")

    def action_select_and_close(self):
        list_view = self.query_one("#device-list", ListView)
        if list_view.index is None or not (0 <= list_view.index < len(self.devices)):
            return
        device = self.devices[list_view.index]
        if self.device_manager.select_device(device):
            self.app.notify(f"Selected: {device}")
            self.dismiss(device)
        else:
            self.app.notify(f"Failed to select: {device}")

    def action_select_none(self):
        self.device_manager.select_device(None)
        self.dismiss(None)
