"""Dataframe library built on top of datarelate.

A dataframe library is a tool designed to handle and manipulate structured data,
typically in the form of tables (i.e., rows and columns).

Analyses rarely involve a single table of data: flights need to be
combined with the airlines that operate them and the airports they land in,
and models need to be fitted on many resamples of the same data to know
how much they can be trusted.

This module exposes the relational capabilities of the
compute engine (joins, set operations and resamples)
through a lazy :class:`Dataframe` object, so that they can
be chained as methods instead of building query plans by hand.
"""

from .dataframe import Dataframe

__all__ = ("Dataframe",)
