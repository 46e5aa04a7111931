"""DataRelate

A small relational engine to combine tables and resample them.

Data analysis rarely involves a single table of data.
DataRelate provides the operations required to combine
multiple tables and to assess models fitted on them:

* Joins, matching the rows of two tables by their key columns
  (inner, left, right, full, semi and anti joins).
* Set operations, treating the rows of two tables as sets
  (intersection, union and difference).
* Resampling, generating bootstrap samples and cross validation
  splits as lightweight views over a table.

The platform is constituted by multiple components, each isolated within its own
package and each self documented in literate programming style.

The primary components are:

* The Compute Engine, in charge of executing the relational operations on the data.
* The Dataframe API, which provides an high level API for the compute engine.
* The command line tools, to combine data files from the shell.

For the user guide and code documentation of each component, refer to the
component itself.
"""

from . import compute

__all__ = ("compute",)
