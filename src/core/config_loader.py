import json
import logging
from pathlib import Path

from core.models.config_data import AssistantConfig, ServerConfig, SimulatorConfig, configData

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and manages backend configuration from JSON file."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigLoader, cls).__new__(cls)
            cls._instance._config = configData()
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = self._get_default_config()
            self.load_config()
            self._initialized = True

    @staticmethod
    def get_config_path() -> Path:
        """Get the path to the device_config.json file."""
        # Config file should be in the project root/config directory
        config_path = Path(__file__).parent.parent.parent / "config" / "device_config.json"
        return config_path

    def load_config(self, config_path: Path = None):
        """Load configuration from JSON file."""
        config_path = config_path or self.get_config_path()

        # Start from defaults so missing sections keep sane values
        self._config = self._get_default_config()

        if not config_path.exists():
            logger.error(f"Configuration file not found: {config_path}")
            return

        try:
            with open(config_path, 'r') as f:
                json_data = json.load(f)

            server_cfg = json_data.get("server", {})
            defaults = ServerConfig()
            self._config.server = ServerConfig(
                host=server_cfg.get("host", defaults.host),
                port=int(server_cfg.get("port", defaults.port)),
                cors_origin=server_cfg.get("cors_origin", defaults.cors_origin),
            )

            sim_cfg = json_data.get("simulator", {})
            defaults = SimulatorConfig()
            self._config.simulator = SimulatorConfig(
                interval=float(sim_cfg.get("interval", defaults.interval)),
                heart_rate_base=float(sim_cfg.get("heart_rate_base", defaults.heart_rate_base)),
                temperature_base=float(sim_cfg.get("temperature_base", defaults.temperature_base)),
                stress_base=float(sim_cfg.get("stress_base", defaults.stress_base)),
                chatter_every=int(sim_cfg.get("chatter_every", defaults.chatter_every)),
                chatter_message=sim_cfg.get("chatter_message", defaults.chatter_message),
            )

            ai_cfg = json_data.get("assistant", {})
            defaults = AssistantConfig()
            self._config.assistant = AssistantConfig(
                url=ai_cfg.get("url", defaults.url),
                model=ai_cfg.get("model", defaults.model),
                timeout=float(ai_cfg.get("timeout", defaults.timeout)),
            )
            logger.info(f"Configuration loaded from {config_path}")

        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse configuration file: {e}")
            self._config = self._get_default_config()

        except Exception as e:
            logger.error(f"Unexpected error loading configuration: {e}")
            self._config = self._get_default_config()

    @staticmethod
    def _get_default_config() -> configData:
        """Return default configuration."""
        return configData(
            server=ServerConfig(),
            simulator=SimulatorConfig(),
            assistant=AssistantConfig(),
        )

    def get_server_config(self) -> ServerConfig:
        return self._config.server

    def get_simulator_config(self) -> SimulatorConfig:
        """Get the demo-mode simulator parameters."""
        return self._config.simulator

    def get_assistant_config(self) -> AssistantConfig:
        """Get the Ollama connection settings."""
        return self._config.assistant

    def reload_config(self):
        """Reload configuration from file."""
        self.load_config()
        logger.info("Configuration reloaded")


# Global singleton instance
config_loader = ConfigLoader()
