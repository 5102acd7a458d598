"""Write the annotated table as TSV and Parquet with a YAML summary sidecar."""

from datetime import datetime, timezone
from pathlib import Path

import polars as pl
import yaml


def _homolog_statistics(df: pl.DataFrame) -> dict:
    with_homolog = df.filter(pl.col("has_homolog")).height if "has_homolog" in df.columns else 0
    return {
        "total_predictions": df.height,
        "with_homolog": with_homolog,
        "without_homolog": df.height - with_homolog,
    }


def write_annotation_output(
    df: pl.DataFrame,
    output_dir: Path,
    filename_base: str = "annotated_predictions",
) -> dict:
    """
    Write annotated predictions in both formats.

    Rows are ordered by probability (highest first) and then seq_id, so
    two runs on the same input produce identical files. The YAML sidecar
    records when the files were written, the homolog counts and the
    column layout.

    Args:
        df: Annotated frame
        output_dir: Target directory, created when missing
        filename_base: File name without extension

    Returns:
        {"tsv": Path, "parquet": Path, "provenance": Path}
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        "tsv": output_dir / f"{filename_base}.tsv",
        "parquet": output_dir / f"{filename_base}.parquet",
        "provenance": output_dir / f"{filename_base}.provenance.yaml",
    }

    df = df.sort(["probability", "seq_id"], descending=[True, False])
    df.write_csv(paths["tsv"], separator="\t", include_header=True)
    df.write_parquet(paths["parquet"], compression="snappy", use_pyarrow=True)

    sidecar = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "output_files": [paths["tsv"].name, paths["parquet"].name],
        "statistics": _homolog_statistics(df),
        "column_count": len(df.columns),
        "column_names": df.columns,
    }
    with open(paths["provenance"], "w") as f:
        yaml.dump(sidecar, f, default_flow_style=False, sort_keys=False)

    return paths
