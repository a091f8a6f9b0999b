import os
from dataclasses import dataclass, field
from typing import Any, Optional

from pyaml_env import parse_config


@dataclass(frozen=True)
class DemoDefinition:
    id: str
    name: str
    description: str
    type: str = "clustering"
    default_params: dict[str, Any] = field(default_factory=dict)


class CanvasConfig:
    @dataclass
    class App:
        server_port: int = 8000
        log_level: str = "INFO"
        log_buffer_size: int = 500

        def __post_init__(self):
            # values substituted from the environment arrive as strings
            self.server_port = int(self.server_port)
            self.log_buffer_size = int(self.log_buffer_size)
            self.log_level = str(self.log_level).upper()

    @dataclass
    class Clustering:
        default_k: int = 3
        processing_delay_seconds: float = 2.0
        seed: Optional[int] = None

        def __post_init__(self):
            self.default_k = int(self.default_k)
            self.processing_delay_seconds = float(self.processing_delay_seconds)
            if self.seed is not None:
                self.seed = int(self.seed)
            if self.default_k <= 0:
                raise ValueError(f"default_k must be positive, got {self.default_k}")
            if self.processing_delay_seconds < 0:
                raise ValueError("processing_delay_seconds cannot be negative")

    def __init__(self, version, app=None, clustering=None, demos=None):
        self.version = version
        self.app = CanvasConfig.App(**(app or {}))
        self.clustering = CanvasConfig.Clustering(**(clustering or {}))
        self.demos = [DemoDefinition(**demo) for demo in (demos or [])]

    def find_demo(self, demo_id: str) -> Optional[DemoDefinition]:
        return next((demo for demo in self.demos if demo.id == demo_id), None)


current_dir = os.path.dirname(os.path.abspath(__file__))
config_path = os.path.join(current_dir, '..', 'config.yaml')
config = CanvasConfig(**parse_config(path=config_path))
