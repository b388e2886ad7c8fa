"""
Fractal descriptor definitions and equation parsing.

This module defines the closed set of escape-time fractals the engine can
evaluate. Descriptors are immutable values: they are hashed into cache
fingerprints and shared freely between worker threads.
"""

import cmath
import re
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from numbers import Integral, Number
from typing import Dict, Tuple

from .errors import InvalidDescriptor

logger = logging.getLogger(__name__)

# Kernel dispatch codes, shared with the JIT kernels
MANDELBROT = 0
JULIA = 1
BURNING_SHIP = 2
TRICORN = 3
MULTIBROT = 4

MIN_POWER = 2
MAX_POWER = 10


class FractalDescriptor(ABC):
    """Abstract base for the escape-time fractal variants."""

    name: str = "fractal"
    kind: int = -1

    @abstractmethod
    def get_description(self) -> str:
        """Get the recurrence as human-readable text."""

    @abstractmethod
    def to_equation(self) -> str:
        """Get an equation string that parses back to this descriptor."""

    def kernel_args(self) -> Tuple[int, float, float, int]:
        """
        Get the flat argument tuple consumed by the JIT kernels.

        Returns:
            Tuple of (kind, c_real, c_imag, power)
        """
        return self.kind, 0.0, 0.0, 2


@dataclass(frozen=True)
class Mandelbrot(FractalDescriptor):
    """Mandelbrot set: z starts at 0, c is the coordinate."""

    name = "mandelbrot"
    kind = MANDELBROT

    def get_description(self) -> str:
        return "Mandelbrot set: z_{n+1} = z_n^2 + c, z_0 = 0"

    def to_equation(self) -> str:
        return "z^2 + c"


@dataclass(frozen=True)
class Julia(FractalDescriptor):
    """Julia set: z starts at the coordinate, c is fixed."""

    c: complex = complex(-0.75, 0.1)

    name = "julia"
    kind = JULIA

    def __post_init__(self):
        if isinstance(self.c, bool) or not isinstance(self.c, Number):
            raise InvalidDescriptor(f"Julia parameter must be a complex number, got {self.c!r}")
        try:
            value = complex(self.c)
        except (TypeError, ValueError) as e:
            raise InvalidDescriptor(f"Julia parameter must be a complex number: {e}") from e
        if not cmath.isfinite(value):
            raise InvalidDescriptor(f"Julia parameter must be finite, got {value}")
        object.__setattr__(self, "c", value)

    def get_description(self) -> str:
        return f"Julia set: z_{{n+1}} = z_n^2 + c, where c = {self.c} and z_0 is the coordinate"

    def to_equation(self) -> str:
        return f"julia({self.c.real!r}, {self.c.imag!r})"

    def kernel_args(self) -> Tuple[int, float, float, int]:
        return self.kind, self.c.real, self.c.imag, 2


@dataclass(frozen=True)
class BurningShip(FractalDescriptor):
    """Burning Ship fractal."""

    name = "burning_ship"
    kind = BURNING_SHIP

    def get_description(self) -> str:
        return "Burning Ship: z_{n+1} = (|Re(z_n)| + i|Im(z_n)|)^2 + c"

    def to_equation(self) -> str:
        return "(|re(z)| + i|im(z)|)^2 + c"


@dataclass(frozen=True)
class Tricorn(FractalDescriptor):
    """Tricorn (Mandelbar) fractal."""

    name = "tricorn"
    kind = TRICORN

    def get_description(self) -> str:
        return "Tricorn: z_{n+1} = conj(z_n)^2 + c"

    def to_equation(self) -> str:
        return "conj(z)^2 + c"


@dataclass(frozen=True)
class Multibrot(FractalDescriptor):
    """Multibrot fractal with an integer power."""

    power: int = 3

    name = "multibrot"
    kind = MULTIBROT

    def __post_init__(self):
        if isinstance(self.power, bool) or not isinstance(self.power, Integral):
            raise InvalidDescriptor(f"Multibrot power must be an integer, got {self.power!r}")
        if not MIN_POWER <= self.power <= MAX_POWER:
            raise InvalidDescriptor(
                f"Multibrot power must be between {MIN_POWER} and {MAX_POWER}, got {self.power}"
            )
        object.__setattr__(self, "power", int(self.power))

    def get_description(self) -> str:
        return f"Multibrot: z_{{n+1}} = z_n^{self.power} + c"

    def to_equation(self) -> str:
        return f"z^{self.power} + c"

    def kernel_args(self) -> Tuple[int, float, float, int]:
        return self.kind, 0.0, 0.0, self.power


# Predefined interesting Julia set constants
JULIA_PRESETS: Dict[str, complex] = {
    'dragon': complex(-0.75, 0.1),
    'spiral': complex(-0.4, 0.6),
    'dendrite': complex(-0.235125, 0.827215),
    'lightning': complex(-0.8, 0.156),
    'rabbit': complex(-0.123, 0.745),
    'airplane': complex(-1.25, 0.0),
    'san_marco': complex(-0.75, 0.0),
    'siegel_disk': complex(-0.391, -0.587),
}


class FractalRegistry:
    """Registry for the available fractal descriptor types."""

    _fractals: Dict[str, type] = {
        'mandelbrot': Mandelbrot,
        'julia': Julia,
        'burning_ship': BurningShip,
        'tricorn': Tricorn,
        'multibrot': Multibrot,
    }

    @classmethod
    def register(cls, name: str, descriptor_class: type) -> None:
        """
        Register a new descriptor type.

        Args:
            name: Unique identifier for the fractal
            descriptor_class: Class implementing FractalDescriptor
        """
        if not issubclass(descriptor_class, FractalDescriptor):
            raise ValueError("Descriptor class must inherit from FractalDescriptor")
        cls._fractals[name.lower()] = descriptor_class
        logger.info(f"Registered fractal type: {name}")

    @classmethod
    def get(cls, name: str) -> type:
        """Get a descriptor class by name."""
        descriptor_class = cls._fractals.get(name.lower())
        if descriptor_class is None:
            available = ', '.join(cls._fractals.keys())
            raise InvalidDescriptor(f"Unknown fractal type '{name}'. Available: {available}")
        return descriptor_class

    @classmethod
    def list_fractals(cls) -> Dict[str, str]:
        """Get a dictionary of available fractals and their descriptions."""
        return {name: fractal_class().get_description()
                for name, fractal_class in cls._fractals.items()}

    @classmethod
    def create(cls, name: str, **kwargs) -> FractalDescriptor:
        """
        Create a descriptor instance with the given parameters.

        Args:
            name: Fractal type name
            **kwargs: Parameters for the descriptor (c for Julia, power for Multibrot)

        Returns:
            Validated descriptor
        """
        descriptor_class = cls.get(name)
        try:
            return descriptor_class(**kwargs)
        except TypeError as e:
            raise InvalidDescriptor(f"Invalid parameters for {name}: {e}") from e


_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:e[-+]?\d+)?"
_POWER_RE = re.compile(r"^z\^(\d+)\+c$")
_JULIA_RE = re.compile(rf"^julia\(({_NUMBER}),({_NUMBER})\)$")
_JULIA_PRESET_RE = re.compile(r"^julia:([a-z_]+)$")
_NAME_ALIASES = {
    'burningship': 'burning_ship',
    'burning-ship': 'burning_ship',
    'mandelbar': 'tricorn',
}
_TRICORN_FORMS = {"conj(z)^2+c", "conj(z^2)+c"}
_BURNING_SHIP_FORMS = {"(|re(z)|+i|im(z)|)^2+c", "(|re(z)|+|im(z)|i)^2+c"}

ACCEPTED_FORMS = (
    "z^n + c (n from 2 to 10), julia(re, im), julia:<preset>, "
    "conj(z)^2 + c, (|re(z)| + i|im(z)|)^2 + c, or a fractal name"
)


def parse_equation(text: str) -> FractalDescriptor:
    """
    Parse equation text from the equation editor into a descriptor.

    Args:
        text: Free-form equation, e.g. "z^3 + c" or "julia(-0.7, 0.27)"

    Returns:
        Validated FractalDescriptor

    Raises:
        InvalidDescriptor: If the text is not one of the accepted forms
    """
    compact = re.sub(r"\s+", "", text or "").lower().replace("**", "^")
    if not compact:
        raise InvalidDescriptor(f"Empty equation. Expected {ACCEPTED_FORMS}")

    match = _POWER_RE.match(compact)
    if match:
        power = int(match.group(1))
        if power == 2:
            return Mandelbrot()
        return Multibrot(power=power)

    match = _JULIA_RE.match(compact)
    if match:
        return Julia(c=complex(float(match.group(1)), float(match.group(2))))

    match = _JULIA_PRESET_RE.match(compact)
    if match:
        preset = match.group(1)
        if preset not in JULIA_PRESETS:
            available = ', '.join(JULIA_PRESETS)
            raise InvalidDescriptor(f"Unknown Julia preset '{preset}'. Available: {available}")
        return Julia(c=JULIA_PRESETS[preset])

    if compact in _TRICORN_FORMS:
        return Tricorn()
    if compact in _BURNING_SHIP_FORMS:
        return BurningShip()

    name = _NAME_ALIASES.get(compact, compact)
    if name in FractalRegistry._fractals:
        return FractalRegistry.create(name)

    raise InvalidDescriptor(f"Cannot parse equation '{text}'. Expected {ACCEPTED_FORMS}")
