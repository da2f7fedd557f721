"""
Pytest configuration and shared fixtures.

Provides synthetic generators for sample designs and FPKM expression
matrices over the eight APOE4 × TBI × dementia groups.
"""

import numpy as np
import pandas as pd
import pytest

from stratadeg.core.expression import ExpressionMatrix
from stratadeg.core.groups import ALL_GROUPS, GroupLabel, SampleDesign


# Group that is the "test" side of both APOE4+ contrasts.
APOE4_POS_TRIPLE = GroupLabel(apoe4=True, tbi=True, dementia=True)
# Group that is the "test" side of both APOE4- contrasts.
APOE4_NEG_TRIPLE = GroupLabel(apoe4=False, tbi=True, dementia=True)


def generate_sample_design(
    n_per_group: int = 4,
    strata: tuple = None,
    skip_groups: tuple = (),
) -> SampleDesign:
    """
    Balanced design with ``n_per_group`` samples in each of the eight groups.

    Args:
        n_per_group: Samples per group (per stratum).
        strata: Stratum keys; None builds an unstratified design.
        skip_groups: Groups left empty (for degenerate designs).

    Sample ids are ``<stratum>_<group index>_<replicate>``.
    """
    groups = {}
    stratum_of = {}
    for stratum in (strata or ("all",)):
        for j, group in enumerate(ALL_GROUPS):
            if group in skip_groups:
                continue
            for rep in range(n_per_group):
                sample = f"{stratum}_{j}_{rep}"
                groups[sample] = group
                stratum_of[sample] = stratum
    return SampleDesign(groups, stratum_of if strata else None)


def generate_expression(
    design: SampleDesign,
    n_genes: int = 50,
    effects: dict = None,
    noise_sd: float = 0.1,
    seed: int = 42,
) -> ExpressionMatrix:
    """
    FPKM matrix whose log2(FPKM + 1) follows the group-means model.

    Args:
        design: Sample design; one column per design sample.
        n_genes: Number of genes, ids ``g0``, ``g1``, ...
        effects: {gene index: {GroupLabel: log2 shift}} added to the
            gene's baseline in the given groups.
        noise_sd: Standard deviation of the log2-scale noise.
        seed: Random seed for reproducibility.
    """
    rng = np.random.default_rng(seed)
    sample_ids = design.sample_ids.tolist()

    baseline = rng.uniform(3.0, 8.0, size=n_genes)
    log_expr = baseline[:, None] + rng.normal(0.0, noise_sd, size=(n_genes, len(sample_ids)))

    for gene, shifts in (effects or {}).items():
        for j, sample in enumerate(sample_ids):
            log_expr[gene, j] += shifts.get(design.group_of(sample), 0.0)

    fpkm = np.maximum(2.0 ** log_expr - 1.0, 0.0)
    return ExpressionMatrix(fpkm, [f"g{i}" for i in range(n_genes)], sample_ids)


# Gene 0 up, gene 1 down in the APOE4+ test group; gene 2 up in the APOE4- test group.
KNOWN_EFFECTS = {
    0: {APOE4_POS_TRIPLE: 2.0},
    1: {APOE4_POS_TRIPLE: -2.0},
    2: {APOE4_NEG_TRIPLE: 2.0},
}


@pytest.fixture
def balanced_design():
    """Unstratified design, 4 samples per group."""
    return generate_sample_design(n_per_group=4)


@pytest.fixture
def expression(balanced_design):
    """50-gene matrix with known effects for genes g0, g1, g2."""
    return generate_expression(balanced_design, n_genes=50, effects=KNOWN_EFFECTS)


@pytest.fixture
def regional_design():
    """Design with two brain-region strata, 3 samples per group each."""
    return generate_sample_design(n_per_group=3, strata=("HIP", "PCx"))


@pytest.fixture
def regional_expression(regional_design):
    return generate_expression(regional_design, n_genes=40, effects=KNOWN_EFFECTS, seed=7)


@pytest.fixture
def design_frame():
    """Clinical-sheet style design table with textual factor encodings."""
    rows = []
    for j, group in enumerate(ALL_GROUPS):
        for rep in range(2):
            rows.append({
                "sample_id": f"S{j}{rep}",
                "apoe4": "Y" if group.apoe4 else "N",
                "tbi": "Y" if group.tbi else "N",
                "dementia": "Dementia" if group.dementia else "No Dementia",
                "region": "HIP" if rep == 0 else "FWM",
            })
    return pd.DataFrame(rows)
