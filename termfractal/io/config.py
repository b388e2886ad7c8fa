"""
Configuration management.

Configuration files are JSON documents with ``display``, ``fractal``,
``performance`` and ``controls`` sections. Missing keys take defaults and
unknown keys are ignored, so old files keep loading.
"""

import json
import logging
import math
import os
import random
from dataclasses import asdict, dataclass, field, fields
from numbers import Integral, Real
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..api import EngineConfig
from ..core.errors import ConfigError
from ..core.quality import QualityPolicy
from ..core.viewport import Viewport, auto_explore_step

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TERMFRACTAL_CONFIG"


@dataclass
class DisplayConfig:
    use_colors: bool = True
    use_unicode: bool = True
    default_width: int = 80
    default_height: int = 40
    quality_mode: bool = True
    super_sampling: bool = False


@dataclass
class FractalConfig:
    default_zoom: float = 1.0
    default_center_x: float = -0.5
    default_center_y: float = 0.0
    default_max_iterations: int = 100
    auto_generation_interval_ms: int = 2000
    zoom_step: float = 1.5
    pan_step: float = 0.1


@dataclass
class PerformanceConfig:
    use_parallel_processing: bool = True
    thread_count: Optional[int] = None
    enable_caching: bool = True
    max_cache_size: int = 100
    performance_mode: bool = False
    adaptive_sampling: bool = True


@dataclass
class ControlsConfig:
    pan_speed: float = 1.0
    zoom_speed: float = 1.0
    iteration_step: int = 10


def _section_from_dict(section_class: type, data: Any, section: str):
    if data is None:
        return section_class()
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{section}' must be an object")
    known = {f.name for f in fields(section_class)}
    unknown = set(data) - known
    if unknown:
        logger.debug(f"Ignoring unknown keys in '{section}': {', '.join(sorted(unknown))}")
    return section_class(**{k: v for k, v in data.items() if k in known})


def _check_types(section: str, values: Any) -> None:
    """Raise ConfigError for any field whose value does not match its annotation."""
    for f in fields(values):
        value = getattr(values, f.name)
        expected = f.type
        if expected == Optional[int]:
            if value is None:
                continue
            expected = int

        if expected is bool:
            valid = isinstance(value, bool)
        elif expected is int:
            valid = isinstance(value, Integral) and not isinstance(value, bool)
        elif expected is float:
            valid = (isinstance(value, Real) and not isinstance(value, bool)
                     and math.isfinite(value))
        else:
            valid = isinstance(value, expected)

        if not valid:
            name = getattr(expected, '__name__', str(expected))
            raise ConfigError(f"'{section}.{f.name}' must be of type {name}, got {value!r}")


@dataclass
class Config:
    """Complete application configuration."""

    display: DisplayConfig = field(default_factory=DisplayConfig)
    fractal: FractalConfig = field(default_factory=FractalConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    controls: ControlsConfig = field(default_factory=ControlsConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create configuration from a dictionary."""
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")
        return cls(
            display=_section_from_dict(DisplayConfig, data.get('display'), 'display'),
            fractal=_section_from_dict(FractalConfig, data.get('fractal'), 'fractal'),
            performance=_section_from_dict(PerformanceConfig, data.get('performance'), 'performance'),
            controls=_section_from_dict(ControlsConfig, data.get('controls'), 'controls'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigError: On the first invalid value found
        """
        _check_types('display', self.display)
        _check_types('fractal', self.fractal)
        _check_types('performance', self.performance)
        _check_types('controls', self.controls)

        if self.display.default_width <= 0 or self.display.default_height <= 0:
            raise ConfigError("Display dimensions must be greater than 0")

        if self.fractal.default_max_iterations <= 0:
            raise ConfigError("Max iterations must be greater than 0")

        if self.fractal.default_zoom <= 0:
            raise ConfigError("Default zoom must be positive")

        if self.fractal.zoom_step <= 0:
            raise ConfigError("Zoom step must be positive")

        if self.fractal.pan_step <= 0:
            raise ConfigError("Pan step must be positive")

        if self.fractal.auto_generation_interval_ms <= 0:
            raise ConfigError("Auto generation interval must be greater than 0")

        if self.performance.thread_count is not None and self.performance.thread_count <= 0:
            raise ConfigError("Thread count must be greater than 0")

        if self.performance.max_cache_size < 1:
            raise ConfigError("Max cache size must be at least 1")

        if self.controls.pan_speed <= 0 or self.controls.zoom_speed <= 0:
            raise ConfigError("Pan and zoom speeds must be positive")

        if self.controls.iteration_step < 1:
            raise ConfigError("Iteration step must be at least 1")

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> 'Config':
        """
        Load and validate a configuration file.

        Raises:
            ConfigError: If the file cannot be read, parsed or validated
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e

        try:
            config = cls.from_dict(data)
        except TypeError as e:
            raise ConfigError(f"Invalid config file {path}: {e}") from e
        config.validate()
        logger.debug(f"Loaded configuration from {path}")
        return config

    def save_to_file(self, path: Union[str, Path]) -> None:
        """Save configuration as pretty-printed JSON."""
        path = Path(path)
        path.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
        logger.info(f"Saved configuration to {path}")

    @classmethod
    def load_or_default(cls, path: Union[str, Path]) -> 'Config':
        """Load a configuration file, falling back to defaults on any error."""
        try:
            return cls.load_from_file(path)
        except ConfigError as e:
            logger.warning(f"{e}; using default configuration")
            return cls()

    # Navigation with the configured step sizes

    @property
    def home_center(self) -> complex:
        return complex(self.fractal.default_center_x, self.fractal.default_center_y)

    def zoom_in(self, viewport: Viewport) -> Viewport:
        """Zoom in by ``zoom_step`` raised to ``zoom_speed``."""
        return viewport.zoomed(self.fractal.zoom_step ** self.controls.zoom_speed)

    def zoom_out(self, viewport: Viewport) -> Viewport:
        return viewport.zoomed(1.0 / self.fractal.zoom_step ** self.controls.zoom_speed)

    def pan(self, viewport: Viewport, dx: float, dy: float) -> Viewport:
        """
        Pan by whole steps.

        Args:
            viewport: Current view
            dx, dy: Step counts to the right and upwards; each step is
                ``pan_step * pan_speed`` at zoom 1
        """
        step = self.fractal.pan_step * self.controls.pan_speed
        return viewport.panned(dx * step, dy * step)

    def increase_iterations(self, viewport: Viewport) -> Viewport:
        return viewport.adjust_iterations(self.controls.iteration_step)

    def decrease_iterations(self, viewport: Viewport) -> Viewport:
        return viewport.adjust_iterations(-self.controls.iteration_step)

    def auto_explore(self, viewport: Viewport, rng: random.Random) -> Viewport:
        """Take one auto-explore step, resetting to the configured centre."""
        return auto_explore_step(viewport, rng, self.home_center)

    # Conversions into engine values

    def to_viewport(self, width: Optional[int] = None, height: Optional[int] = None) -> Viewport:
        """Build the initial viewport."""
        return Viewport(
            width=self.display.default_width if width is None else width,
            height=self.display.default_height if height is None else height,
            center=self.home_center,
            zoom=self.fractal.default_zoom,
            max_iterations=self.fractal.default_max_iterations,
        )

    def to_quality_policy(self) -> QualityPolicy:
        """Build the initial quality policy."""
        return QualityPolicy(
            performance_mode=self.performance.performance_mode,
            quality_mode=self.display.quality_mode,
            adaptive_sampling=self.performance.adaptive_sampling,
            supersample_factor=2 if self.display.super_sampling else 1,
        )

    def to_engine_config(self) -> EngineConfig:
        """Build the engine configuration."""
        return EngineConfig(
            enable_caching=self.performance.enable_caching,
            cache_capacity=self.performance.max_cache_size,
            use_parallel_processing=self.performance.use_parallel_processing,
            num_workers=self.performance.thread_count,
        )


def load_config_from_args(config_file: Optional[Union[str, Path]] = None) -> Config:
    """
    Resolve the configuration for a command-line invocation.

    An explicit path must load; a path from the TERMFRACTAL_CONFIG
    environment variable falls back to defaults when it cannot be read.
    """
    if config_file:
        return Config.load_from_file(config_file)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Config.load_or_default(env_path)

    return Config()
