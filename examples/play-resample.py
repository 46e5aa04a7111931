import pyarrow as pa
import pyarrow.compute as pc

from datarelate.compute import bootstrap_samples, cross_validation_splits

data = pa.table({"x": list(range(100)), "y": [v * 1.5 + (v % 7) for v in range(100)]})

# Variability of the mean of y across bootstrap resamples
means = [pc.mean(view.materialize()["y"]).as_py() for view in bootstrap_samples(data, 10, seed=42)]
print("bootstrap means:", [round(m, 2) for m in means])

for train, test in cross_validation_splits(data, 3, holdout_fraction=0.2, seed=42):
    print(f"train={len(train)} test={len(test)} first test rows={test.to_pylist()[:5]}")
