import json
import logging
import threading

logger = logging.getLogger(__name__)

class ConfigManager:
    _instance = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if not cls._instance:
            with cls._lock:
                if not cls._instance:
                    cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def __init__(self, config_path='config.json'):
        if not hasattr(self, 'initialized'):
            self.config_path = config_path
            self.config = None
            self.load_config()
            self.initialized = True

    def load_config(self):
        """Loads the configuration from the specified JSON file."""
        with self._lock:
            try:
                with open(self.config_path, 'r') as f:
                    self.config = json.load(f)
                logger.debug(f"Configuration loaded from {self.config_path}")
            except FileNotFoundError:
                logger.error(f"Config file not found at {self.config_path}")
                raise
            except json.JSONDecodeError:
                logger.error(f"Error decoding JSON from {self.config_path}")
                raise

    def save_config(self):
        """Saves the current configuration to the JSON file."""
        with self._lock:
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(self.config, f, indent=4)
                logger.debug(f"Configuration saved to {self.config_path}")
            except IOError as e:
                logger.error(f"Could not write to config file {self.config_path}: {e}")

    def get_config(self):
        """Returns the entire configuration dictionary."""
        return self.config

    def update_room_config(self, room, key, value):
        """
        Sets a per-room override under "rooms" and saves the config.
        Unknown rooms are created on demand.
        """
        if not self.config:
            self.load_config()

        rooms = self.config.setdefault('rooms', {})
        entry = rooms.setdefault(str(room), {})
        if entry.get(key) == value:
            logger.debug(f"No change needed for room {room}, key '{key}'.")
            return

        entry[key] = value
        logger.info(f"Updated config for room {room}: set '{key}' to '{value}'.")
        self.save_config()
