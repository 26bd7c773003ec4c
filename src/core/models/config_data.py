from dataclasses import dataclass, field


@dataclass
class SimulatorConfig:
    interval: float = 1.0  # seconds between ticks
    heart_rate_base: float = 75.0
    temperature_base: float = 36.5
    stress_base: float = 1.0
    chatter_every: int = 30  # ticks between synthetic status messages
    chatter_message: str = "System check: All sensors nominal"


@dataclass
class AssistantConfig:
    url: str = "http://localhost:11434"
    model: str = "qwen2:latest"
    timeout: float = 30.0


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origin: str = "http://localhost:5173"


@dataclass
class configData:
    server: ServerConfig = field(default_factory=ServerConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)
    assistant: AssistantConfig = field(default_factory=AssistantConfig)
