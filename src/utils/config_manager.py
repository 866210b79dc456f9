"""
Configuration Manager

This module handles persistent storage and retrieval of user preferences and settings.
Settings are stored in a JSON file in the user's application data directory.

Inputs:
    - User preferences (last opened path, theme, gesture tuning, export defaults, etc.)

Outputs:
    - Loaded configuration values
    - Saved configuration file
    - GestureSettings built from the stored gesture tuning

Requirements:
    - json module (standard library)
    - pathlib module (standard library)
    - os module (standard library)
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from tools.gesture_interpreter import GestureSettings, Tool


class ConfigManager:
    """
    Manages application configuration and user preferences.

    Handles loading and saving of settings including:
    - Last opened file/folder path and last export directory
    - Theme preference (dark/light) and window geometry
    - Gesture thresholds and sensitivities
    - Measurement colors
    - Export defaults
    """

    def __init__(self, config_filename: str = "stack_viewer_config.json",
                 config_dir: Optional[Path] = None):
        """
        Initialize the configuration manager.

        Args:
            config_filename: Name of the configuration file to use
            config_dir: Optional directory override (defaults to the user's app data directory)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        elif os.name == 'nt':  # Windows
            app_data = os.getenv('APPDATA', os.path.expanduser('~'))
            self.config_dir = Path(app_data) / "StackViewer"
        else:  # Mac/Linux
            self.config_dir = Path.home() / ".config" / "StackViewer"

        # Create config directory if it doesn't exist
        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Full path to config file
        self.config_path = self.config_dir / config_filename

        # Default configuration values
        self.default_config = {
            "last_path": "",
            "last_export_path": "",  # Last directory used for exporting images
            "theme": "dark",
            "window_width": 1200,
            "window_height": 800,
            "default_tool": Tool.WINDOW_LEVEL.value,
            # Gesture tuning: drag stack-scroll and wheel navigation are tuned independently
            "stack_scroll_threshold": 30,  # Drag pixels per stack-scroll step
            "wheel_threshold": 150,  # Accumulated wheel delta per navigation step
            "wheel_cooldown_ms": 30,  # Wheel navigation lockout after a step
            "window_width_sensitivity": 2.0,
            "window_center_sensitivity": 1.0,
            "zoom_sensitivity": 0.01,
            "zoom_min": 0.1,
            "zoom_max": 10.0,
            # Measurement colors (green line, amber label when spacing is estimated)
            "measurement_line_color_r": 0,
            "measurement_line_color_g": 255,
            "measurement_line_color_b": 0,
            "measurement_estimated_color_r": 255,
            "measurement_estimated_color_g": 204,
            "measurement_estimated_color_b": 0,
            # Export defaults
            "export_width": 1024,
            "export_height": 1024,
            "export_format": "jpg",  # jpg or png
            "export_filename": "Image",
            "export_include_annotations": True,
            "export_include_warning": True,
        }

        # Load configuration
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from file, or return defaults if file doesn't exist.

        Returns:
            Dictionary containing configuration values
        """
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded_config = json.load(f)
                    # Merge with defaults to ensure all keys exist
                    config = self.default_config.copy()
                    config.update(loaded_config)
                    return config
            except (json.JSONDecodeError, IOError) as e:
                # If file is corrupted, use defaults
                print(f"Warning: Could not load config file: {e}")
                return self.default_config.copy()
        else:
            return self.default_config.copy()

    def save_config(self) -> bool:
        """
        Save current configuration to file.

        Returns:
            True if save was successful, False otherwise
        """
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, ensure_ascii=False)
            return True
        except IOError as e:
            print(f"Error saving config file: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key to retrieve
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key to set
            value: Value to set
        """
        self.config[key] = value

    def get_last_path(self) -> str:
        """Get the last opened file or folder path."""
        return self.config.get("last_path", "")

    def set_last_path(self, path: str) -> None:
        """Set the last opened file or folder path."""
        self.config["last_path"] = path
        self.save_config()

    def get_last_export_path(self) -> str:
        """Get the last export directory path."""
        return self.config.get("last_export_path", "")

    def set_last_export_path(self, path: str) -> None:
        """Set the last export directory path."""
        self.config["last_export_path"] = path
        self.save_config()

    def get_theme(self) -> str:
        """
        Get the current theme preference.

        Returns:
            Theme name ("dark" or "light")
        """
        return self.config.get("theme", "dark")

    def set_theme(self, theme: str) -> None:
        """
        Set the theme preference.

        Args:
            theme: Theme name ("dark" or "light")
        """
        if theme in ["dark", "light"]:
            self.config["theme"] = theme
            self.save_config()

    def get_default_tool(self) -> Tool:
        """
        Get the tool that is active when the viewer starts.

        Returns:
            Tool value; falls back to window/level for unknown or one-shot names
        """
        try:
            tool = Tool.from_name(self.config.get("default_tool", Tool.WINDOW_LEVEL.value))
        except ValueError:
            return Tool.WINDOW_LEVEL
        if tool.is_one_shot:
            return Tool.WINDOW_LEVEL
        return tool

    def set_default_tool(self, tool: Tool) -> None:
        """Set the tool that is active when the viewer starts."""
        if not tool.is_one_shot:
            self.config["default_tool"] = tool.value
            self.save_config()

    def get_gesture_settings(self) -> GestureSettings:
        """
        Build gesture tuning from the stored configuration.

        The drag stack-scroll threshold and the wheel threshold/cooldown are kept
        as separate keys so each input device can be tuned on its own.

        Returns:
            GestureSettings instance
        """
        defaults = GestureSettings()
        try:
            return GestureSettings(
                stack_scroll_threshold=float(self.config.get("stack_scroll_threshold", defaults.stack_scroll_threshold)),
                wheel_threshold=float(self.config.get("wheel_threshold", defaults.wheel_threshold)),
                wheel_cooldown=float(self.config.get("wheel_cooldown_ms", defaults.wheel_cooldown * 1000.0)) / 1000.0,
                window_width_sensitivity=float(self.config.get("window_width_sensitivity", defaults.window_width_sensitivity)),
                window_center_sensitivity=float(self.config.get("window_center_sensitivity", defaults.window_center_sensitivity)),
                zoom_sensitivity=float(self.config.get("zoom_sensitivity", defaults.zoom_sensitivity)),
                min_scale=float(self.config.get("zoom_min", defaults.min_scale)),
                max_scale=float(self.config.get("zoom_max", defaults.max_scale)),
            )
        except (TypeError, ValueError) as e:
            print(f"Warning: Invalid gesture settings in config, using defaults: {e}")
            return defaults

    def set_stack_scroll_threshold(self, threshold: float) -> None:
        """Set the drag distance per stack-scroll step."""
        if threshold > 0:
            self.config["stack_scroll_threshold"] = threshold
            self.save_config()

    def set_wheel_threshold(self, threshold: float) -> None:
        """Set the accumulated wheel delta per navigation step."""
        if threshold > 0:
            self.config["wheel_threshold"] = threshold
            self.save_config()

    def set_wheel_cooldown_ms(self, cooldown_ms: float) -> None:
        """Set the wheel navigation lockout after a step, in milliseconds."""
        if cooldown_ms >= 0:
            self.config["wheel_cooldown_ms"] = cooldown_ms
            self.save_config()

    def get_measurement_line_color(self) -> tuple:
        """Get measurement line color as RGB tuple."""
        r = self.config.get("measurement_line_color_r", 0)
        g = self.config.get("measurement_line_color_g", 255)
        b = self.config.get("measurement_line_color_b", 0)
        return (r, g, b)

    def set_measurement_line_color(self, r: int, g: int, b: int) -> None:
        """Set measurement line color."""
        if 0 <= r <= 255 and 0 <= g <= 255 and 0 <= b <= 255:
            self.config["measurement_line_color_r"] = r
            self.config["measurement_line_color_g"] = g
            self.config["measurement_line_color_b"] = b
            self.save_config()

    def get_measurement_estimated_color(self) -> tuple:
        """Get the label color used when pixel spacing is estimated."""
        r = self.config.get("measurement_estimated_color_r", 255)
        g = self.config.get("measurement_estimated_color_g", 204)
        b = self.config.get("measurement_estimated_color_b", 0)
        return (r, g, b)

    def get_export_settings(self) -> Dict[str, Any]:
        """
        Get export dialog defaults.

        Returns:
            Dictionary with width, height, format, filename, include_annotations, include_warning
        """
        export_format = str(self.config.get("export_format", "jpg")).lower()
        if export_format not in ("jpg", "png"):
            export_format = "jpg"
        return {
            "width": int(self.config.get("export_width", 1024)),
            "height": int(self.config.get("export_height", 1024)),
            "format": export_format,
            "filename": self.config.get("export_filename", "Image") or "Image",
            "include_annotations": bool(self.config.get("export_include_annotations", True)),
            "include_warning": bool(self.config.get("export_include_warning", True)),
        }

    def set_export_settings(self, settings: Dict[str, Any]) -> None:
        """
        Remember export dialog choices.

        Args:
            settings: Dictionary with any of the keys returned by get_export_settings()
        """
        key_map = {
            "width": "export_width",
            "height": "export_height",
            "format": "export_format",
            "filename": "export_filename",
            "include_annotations": "export_include_annotations",
            "include_warning": "export_include_warning",
        }
        for key, config_key in key_map.items():
            if key in settings:
                self.config[config_key] = settings[key]
        self.save_config()
