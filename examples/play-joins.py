import pyarrow as pa

from datarelate.compute import JoinNode, PyArrowTableDataSource
from datarelate.utils.tabulate import tabulate

flights = PyArrowTableDataSource(
    pa.table(
        {
            "year": [2013, 2013, 2013, 2013],
            "tailnum": ["N14228", "N24211", "N619AA", "N000XX"],
            "carrier": ["UA", "UA", "AA", "B6"],
        }
    )
)
planes = PyArrowTableDataSource(
    pa.table(
        {
            "tailnum": ["N14228", "N24211", "N619AA"],
            "year": [1999, 1998, 1990],
            "seats": [149, 149, 178],
        }
    )
)

for how in ("inner", "left", "anti"):
    query = JoinNode("tailnum", how, flights, planes, suffixes=(".x", ".y"))
    for data in query.batches():
        print(f"--- {how} join")
        print(tabulate(data))
