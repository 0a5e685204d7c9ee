"""MIDI input port discovery and the remembered selection."""
import os
from contextlib import contextmanager, redirect_stderr
from typing import List, Optional, TYPE_CHECKING

import mido

if TYPE_CHECKING:
    from config_manager import ConfigManager

ALSA_HINT = "ALSA sequencer not available. Run: sudo modprobe snd-seq"


@contextmanager
def _quiet_stderr():
    # The ALSA backend prints probe noise straight over the TUI.
    with open(os.devnull, 'w') as devnull, redirect_stderr(devnull):
        yield


def _describe_error(error: Exception) -> str:
    text = str(error).lower()
    if "no such file" in text and "snd/seq" in text:
        return ALSA_HINT
    return f"Error: {error}"


class MIDIDeviceManager:
    """Lists input ports and persists the chosen one in the config file.

    A saved port that is no longer plugged in is ignored at startup but
    left in the config, so it is picked up again next time it is present.
    """

    def __init__(self, config_manager: 'ConfigManager' = None):
        self.config_manager = config_manager
        self.selected_device: Optional[str] = None
        self.last_error: Optional[str] = None

        saved = config_manager.get_selected_device() if config_manager else None
        if saved and self.is_present(saved):
            self.selected_device = saved

    def get_input_devices(self) -> List[str]:
        """Current input port names; empty (with ``last_error`` set) on failure."""
        try:
            with _quiet_stderr():
                names = mido.get_input_names()
        except Exception as e:
            self.last_error = _describe_error(e)
            return []
        self.last_error = None
        return names

    def is_present(self, device_name: str) -> bool:
        return device_name in self.get_input_devices()

    def select_device(self, device_name: Optional[str]) -> bool:
        """Select a port, or None for keyboard-only play. False if the port is gone."""
        if device_name is not None and not self.is_present(device_name):
            return False
        self.selected_device = device_name
        if self.config_manager:
            self.config_manager.set_selected_device(device_name)
        return True

    def get_selected_device(self) -> Optional[str]:
        return self.selected_device
