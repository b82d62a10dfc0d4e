"""
The objective function accumulator.

The objective is kept in two halves. The invariant half is built once. The variant half
holds every term that depends on parameters updated between solves of a multi-step
simulation and can be rebuilt without touching the invariant half.
"""

from __future__ import annotations

import logging

import gurobipy as gp

from .model import Addend, add_to_expression

logger = logging.getLogger('infraopt')


class ObjectiveFunction:
    """
    Invariant and variant halves of the objective. The total objective is their sum.

    Args:
        sense: 'min' or 'max'.
    """

    def __init__(self, sense: str = 'min'):
        if sense not in ('min', 'max'):
            raise ValueError(f'sense must be "min" or "max", got "{sense}"')
        self.sense = sense
        self._invariant = gp.QuadExpr()
        self._variant = gp.QuadExpr()
        self.synchronized = False

    def add_to_invariant(self, addend: Addend) -> None:
        add_to_expression(self._invariant, addend)
        self.synchronized = False

    def add_to_variant(self, addend: Addend) -> None:
        add_to_expression(self._variant, addend)
        self.synchronized = False

    def get_invariant(self) -> gp.QuadExpr:
        """The live invariant expression. Read it, do not mutate it."""
        return self._invariant

    def get_variant(self) -> gp.QuadExpr:
        """The live variant expression. Read it, do not mutate it."""
        return self._variant

    def reset_variant(self) -> None:
        """Drop all variant terms, e.g. before the parameters of the next step are applied."""
        self._variant = gp.QuadExpr()
        self.synchronized = False

    def total(self) -> gp.QuadExpr:
        """A new expression equal to invariant + variant."""
        total = gp.QuadExpr()
        total.add(self._invariant)
        total.add(self._variant)
        return total

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(sense={self.sense!r}, '
            f'invariant_terms={self._invariant.size() + self._invariant.getLinExpr().size()}, '
            f'variant_terms={self._variant.size() + self._variant.getLinExpr().size()})'
        )
