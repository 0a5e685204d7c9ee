"""Configuration file management."""
import json
from pathlib import Path
from typing import Optional


class ConfigManager:
    """Device and runtime settings kept in a small JSON file.

    Synth patches are deliberately not stored here; every session starts
    from the engine defaults.
    """

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or Path(__file__).parent / "config.json"
        self.config = self._load_config()

    def _load_config(self) -> dict:
        config = self._default_config()
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    config.update(json.load(f))
            except Exception as e:
                print(f"Error reading config, using defaults: {e}")
        return config

    def _default_config(self) -> dict:
        return {
            "selected_midi_device": None,
            "key_hold_seconds": 0.35,
            "sample_rate": 48000,
            "buffer_size": 256,
        }

    def save_config(self):
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=2)
        except Exception as e:
            print(f"Error saving config: {e}")

    # ── MIDI device ──────────────────────────────────────────────

    def get_selected_device(self) -> Optional[str]:
        return self.config.get("selected_midi_device")

    def set_selected_device(self, device_name: Optional[str]):
        self.config["selected_midi_device"] = device_name
        self.save_config()

    # ── Audio / input ────────────────────────────────────────────

    def get_key_hold_seconds(self) -> float:
        """How long a terminal key counts as held without a repeat (no key-up events)."""
        return max(0.05, float(self.config.get("key_hold_seconds", 0.35)))

    def get_sample_rate(self) -> int:
        return int(self.config.get("sample_rate", 48000))

    def get_buffer_size(self) -> int:
        return int(self.config.get("buffer_size", 256))
