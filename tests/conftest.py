"""
Pytest configuration and shared fixtures for the scoring test suites.

This module provides small hand-computable tables and a synthetic
generator for realistic expression/weight tables.
"""

import numpy as np
import pandas as pd
import pytest


def generate_synthetic_tables(
    n_genes: int,
    n_samples: int,
    n_pathways: int = 14,
    footprint_size: int = 100,
    missing_fraction: float = 0.0,
    seed: int = 42,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Generate a contrast table and a sparse footprint weight table.

    Args:
        n_genes: Number of genes in the data table
        n_samples: Number of contrasts (value columns)
        n_pathways: Number of pathways (weight columns)
        footprint_size: Nonzero weights per pathway
        missing_fraction: Fraction of data values replaced with NaN
        seed: Random seed for reproducibility

    Returns:
        (data, weights): both with the gene identifier as first column

    Design:
        - t-statistic-like values (standard normal) per contrast
        - The first contrast gets a planted up-shift on pathway 0's
          footprint genes so that pathway scores high there
        - Weights cover a random footprint per pathway, zero elsewhere,
          mirroring the shape of a top-N footprint model
    """
    rng = np.random.default_rng(seed)
    genes = [f"GENE_{i:05d}" for i in range(n_genes)]

    weights = np.zeros((n_genes, n_pathways))
    footprints = []
    for p in range(n_pathways):
        idx = rng.choice(n_genes, size=min(footprint_size, n_genes), replace=False)
        weights[idx, p] = rng.normal(0, 1, size=len(idx))
        footprints.append(idx)

    values = rng.normal(0, 1, size=(n_genes, n_samples))
    planted = footprints[0]
    values[planted, 0] += 3.0 * np.sign(weights[planted, 0])

    if missing_fraction > 0:
        mask = rng.random(values.shape) < missing_fraction
        values[mask] = np.nan

    data = pd.DataFrame(values, columns=[f"contrast_{j}" for j in range(n_samples)])
    data.insert(0, "gene", genes)

    weight_df = pd.DataFrame(weights, columns=[f"PATHWAY_{p}" for p in range(n_pathways)])
    weight_df.insert(0, "gene", genes)

    return data, weight_df


@pytest.fixture
def toy_data():
    """Three features A, B, C with values 1, 2, 3 in one contrast."""
    return pd.DataFrame({
        "gene": ["A", "B", "C"],
        "contrast": [1.0, 2.0, 3.0],
    })


@pytest.fixture
def toy_weights():
    """One pathway P1 with coefficients A=1, B=0, C=-1."""
    return pd.DataFrame({
        "gene": ["A", "B", "C"],
        "P1": [1.0, 0.0, -1.0],
    })


@pytest.fixture
def toy_orders():
    """Index orders giving permuted values [3,2,1], [2,1,3], [1,3,2]."""
    return [[2, 1, 0], [1, 0, 2], [0, 2, 1]]


@pytest.fixture
def small_tables():
    """Small tables (300 genes x 4 contrasts, 5 pathways) for fast unit tests."""
    return generate_synthetic_tables(
        n_genes=300,
        n_samples=4,
        n_pathways=5,
        footprint_size=60,
        seed=42,
    )


@pytest.fixture
def sparse_tables():
    """Small tables with 10% missing values."""
    return generate_synthetic_tables(
        n_genes=300,
        n_samples=4,
        n_pathways=5,
        footprint_size=60,
        missing_fraction=0.1,
        seed=7,
    )
