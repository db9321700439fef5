"""
architecture.py
~~~~~~~~~~~~~~~

Validation of layer-width sequences.
"""

import logging
import numbers
from typing import Iterable, List, Tuple

from neuraldeep.errors import InvalidArchitectureError

logger = logging.getLogger(__name__)

MIN_LAYERS = 3


class ArchitectureSpec:
    """
    An accepted, immutable sequence of layer widths.

    The first width is the input layer, the last one the output layer and
    everything in between is a hidden layer. Build instances through
    :meth:`validate`.
    """

    __slots__ = ('_widths',)

    def __init__(self, widths: Tuple[int, ...]):
        self._widths = widths

    @classmethod
    def validate(cls, layer_widths: Iterable[int]) -> 'ArchitectureSpec':
        """
        Check a sequence of layer widths and wrap it.

        Args:
            layer_widths: Ordered layer widths, input first

        Returns:
            ArchitectureSpec: The accepted architecture

        Raises:
            InvalidArchitectureError: If fewer than three widths are given
                or any width is not a positive integer
        """
        if isinstance(layer_widths, ArchitectureSpec):
            return layer_widths

        try:
            widths = list(layer_widths)
        except TypeError:
            raise InvalidArchitectureError(
                f"Architecture must be a sequence of widths, got {layer_widths!r}"
            )

        if len(widths) < MIN_LAYERS:
            raise InvalidArchitectureError(
                f"Architecture needs at least {MIN_LAYERS} layers, "
                f"got {len(widths)}"
            )

        checked: List[int] = []
        for position, width in enumerate(widths):
            if isinstance(width, bool) or not isinstance(width, numbers.Integral):
                raise InvalidArchitectureError(
                    f"Layer {position} width must be an integer, got {width!r}"
                )
            if width <= 0:
                raise InvalidArchitectureError(
                    f"Layer {position} width must be positive, got {width}"
                )
            checked.append(int(width))

        logger.debug(f"Accepted architecture {checked}")
        return cls(tuple(checked))

    @property
    def widths(self) -> Tuple[int, ...]:
        return self._widths

    @property
    def input_width(self) -> int:
        return self._widths[0]

    @property
    def output_width(self) -> int:
        return self._widths[-1]

    def layer_pairs(self) -> List[Tuple[int, int]]:
        """Return (in_width, out_width) for every weight matrix."""
        return list(zip(self._widths[:-1], self._widths[1:]))

    def __len__(self) -> int:
        return len(self._widths)

    def __iter__(self):
        return iter(self._widths)

    def __eq__(self, other) -> bool:
        if isinstance(other, ArchitectureSpec):
            return self._widths == other._widths
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._widths)

    def __repr__(self) -> str:
        return f"ArchitectureSpec({list(self._widths)})"
