"""Shell commands exposing DataRelate functionalities.

This module contains the shell commands that can be used to combine files with DataRelate.

FJoin (file join)
=================

``datarelate-fjoin`` joins two CSV or Parquet files::

    datarelate-fjoin -l flights.csv -r airlines.csv -k carrier --how left

Keys with different names on the two sides are provided as ``LEFT=RIGHT``,
and ``-k`` can be repeated to join on multiple columns::

    datarelate-fjoin -l flights.csv -r airports.csv -k dest=faa

When no ``-k`` option is provided, the files are joined
on all the columns they have in common.

FSetOp (file set operation)
===========================

``datarelate-fsetop`` computes the intersection, union or difference
of the rows of two files with the same columns::

    datarelate-fsetop union sales_2023.csv sales_2024.csv
"""
