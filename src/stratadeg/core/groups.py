"""
Experimental groups for the APOE4 × TBI × dementia design.

Every sample belongs to exactly one of eight groups formed by three binary
factors:

    APOE4 status     positive / negative
    TBI history      yes / no
    Dementia status  dementia / no dementia

Groups are carried as structured ``GroupLabel`` triples throughout the
analysis. The delimited string form (``"APOE4+_TBI+_Dementia"``) exists only
at serialization boundaries (file columns, output names), which keeps
contrast construction free of string-matching mistakes.

Examples:
    >>> label = GroupLabel(apoe4=True, tbi=True, dementia=False)
    >>> label.to_string()
    'APOE4+_TBI+_NoDementia'
    >>> GroupLabel.from_string('APOE4+_TBI+_NoDementia') == label
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
import numbers
from typing import Iterable, Mapping

import numpy as np
import pandas as pd

from stratadeg.core.errors import DegenerateDesignError

__all__ = ['GroupLabel', 'ALL_GROUPS', 'SampleDesign', 'parse_factor']


_TRUE_TOKENS = frozenset({
    "true", "t", "yes", "y", "1", "positive", "pos", "+",
    "dementia", "demented", "apoe4+", "tbi+",
})
_FALSE_TOKENS = frozenset({
    "false", "f", "no", "n", "0", "negative", "neg", "-",
    "no dementia", "no_dementia", "nodementia", "no-dementia", "control",
    "apoe4-", "tbi-",
})


def parse_factor(value, column: str = "factor") -> bool:
    """
    Interpret one cell of a binary factor column.

    Accepts booleans, 0/1 integers and the common textual encodings used in
    clinical sheets (``Y``/``N``, ``positive``/``negative``,
    ``Dementia``/``No Dementia``). Matching is case-insensitive.

    Raises:
        ValueError: If the value is missing or not a recognised encoding.
    """
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value is None or (isinstance(value, float) and pd.isna(value)):
        raise ValueError(f"Missing value in {column} column")
    if isinstance(value, numbers.Number) and value in (0, 1):
        return bool(value)

    token = str(value).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    raise ValueError(f"Unrecognised {column} value: {value!r}")


@dataclass(frozen=True, order=True)
class GroupLabel:
    """One cell of the 2×2×2 design."""

    apoe4: bool
    tbi: bool
    dementia: bool

    def to_string(self) -> str:
        """Serialize as ``APOE4±_TBI±_Dementia|NoDementia``."""
        return "_".join([
            "APOE4+" if self.apoe4 else "APOE4-",
            "TBI+" if self.tbi else "TBI-",
            "Dementia" if self.dementia else "NoDementia",
        ])

    @classmethod
    def from_string(cls, label: str) -> GroupLabel:
        """Parse the string form produced by :meth:`to_string`."""
        parts = label.strip().split("_")
        if len(parts) != 3:
            raise ValueError(f"Malformed group label: {label!r}")
        apoe4, tbi, dementia = parts
        if apoe4 not in ("APOE4+", "APOE4-") or tbi not in ("TBI+", "TBI-") \
                or dementia not in ("Dementia", "NoDementia"):
            raise ValueError(f"Malformed group label: {label!r}")
        return cls(
            apoe4=apoe4 == "APOE4+",
            tbi=tbi == "TBI+",
            dementia=dementia == "Dementia",
        )

    def __str__(self) -> str:
        return self.to_string()


# Canonical column order for design matrices and contrast vectors.
ALL_GROUPS: tuple[GroupLabel, ...] = tuple(
    GroupLabel(apoe4=a, tbi=t, dementia=d)
    for a, t, d in product((True, False), repeat=3)
)


class SampleDesign:
    """
    Immutable mapping of sample id → GroupLabel, with optional strata.

    Attributes:
        groups: Series indexed by sample id holding GroupLabel values.
        strata: Series indexed by sample id holding stratum keys, or None
            when the whole study is a single stratum.

    Examples:
        >>> design = SampleDesign({"S1": GroupLabel(True, True, True)})
        >>> design.group_of("S1").to_string()
        'APOE4+_TBI+_Dementia'
    """

    def __init__(
        self,
        groups: Mapping[str, GroupLabel] | pd.Series,
        strata: Mapping[str, str] | pd.Series | None = None,
    ):
        groups = pd.Series(groups, dtype=object)
        if not groups.index.is_unique:
            dupes = groups.index[groups.index.duplicated()].unique().tolist()
            raise ValueError(f"Duplicate sample ids in design: {dupes[:5]}")
        bad = [s for s, g in groups.items() if not isinstance(g, GroupLabel)]
        if bad:
            raise TypeError(f"Design values must be GroupLabel, bad samples: {bad[:5]}")
        groups.index = groups.index.astype(str)

        if strata is not None:
            strata = pd.Series(strata, dtype=object)
            strata.index = strata.index.astype(str)
            missing = groups.index.difference(strata.index)
            if len(missing) > 0:
                raise ValueError(
                    f"{len(missing)} sample(s) have no stratum assignment: "
                    f"{missing[:5].tolist()}"
                )
            strata = strata.loc[groups.index].astype(str)

        self._groups = groups
        self._strata = strata

    @classmethod
    def from_frame(
        cls,
        frame: pd.DataFrame,
        apoe4_column: str = "apoe4",
        tbi_column: str = "tbi",
        dementia_column: str = "dementia",
        stratum_column: str | None = None,
        group_column: str | None = None,
    ) -> SampleDesign:
        """
        Build a design from a metadata table indexed by sample id.

        Either three factor columns or a single ``group_column`` holding
        serialized GroupLabel strings must be present.

        Raises:
            ValueError: If a required column is absent or a value cannot be
                interpreted.
        """
        if group_column is not None:
            if group_column not in frame.columns:
                raise ValueError(f"Group column '{group_column}' not in design table")
            groups = {
                str(sample): GroupLabel.from_string(str(label))
                for sample, label in frame[group_column].items()
            }
        else:
            for column in (apoe4_column, tbi_column, dementia_column):
                if column not in frame.columns:
                    raise ValueError(
                        f"Factor column '{column}' not in design table "
                        f"(columns: {list(frame.columns)})"
                    )
            groups = {
                str(sample): GroupLabel(
                    apoe4=parse_factor(row[apoe4_column], apoe4_column),
                    tbi=parse_factor(row[tbi_column], tbi_column),
                    dementia=parse_factor(row[dementia_column], dementia_column),
                )
                for sample, row in frame.iterrows()
            }

        strata = None
        if stratum_column is not None:
            if stratum_column not in frame.columns:
                raise ValueError(f"Stratum column '{stratum_column}' not in design table")
            strata = frame[stratum_column].astype(str)
            strata.index = strata.index.astype(str)

        return cls(groups, strata)

    @property
    def groups(self) -> pd.Series:
        return self._groups.copy()

    @property
    def sample_ids(self) -> pd.Index:
        return self._groups.index

    @property
    def is_stratified(self) -> bool:
        return self._strata is not None

    def group_of(self, sample_id: str) -> GroupLabel:
        return self._groups[sample_id]

    def samples_in(self, group: GroupLabel) -> list[str]:
        """Sample ids assigned to ``group``, in design order."""
        return [s for s, g in self._groups.items() if g == group]

    def group_counts(self) -> dict[GroupLabel, int]:
        """Sample count for each of the eight groups (zero included)."""
        counts = {g: 0 for g in ALL_GROUPS}
        for g in self._groups.values:
            counts[g] += 1
        return counts

    def missing_groups(self) -> list[GroupLabel]:
        return [g for g, n in self.group_counts().items() if n == 0]

    def require_complete(self, stratum: str | None = None) -> None:
        """
        Raise DegenerateDesignError if any of the eight groups is empty.

        Called before any design matrix is assembled.
        """
        missing = self.missing_groups()
        if missing:
            raise DegenerateDesignError([g.to_string() for g in missing], stratum=stratum)

    def subset(self, sample_ids: Iterable[str]) -> SampleDesign:
        """Restrict the design to ``sample_ids`` (order preserved)."""
        sample_ids = [str(s) for s in sample_ids]
        unknown = [s for s in sample_ids if s not in self._groups.index]
        if unknown:
            raise ValueError(f"Samples not in design: {unknown[:5]}")
        strata = self._strata.loc[sample_ids] if self._strata is not None else None
        return SampleDesign(self._groups.loc[sample_ids], strata)

    def strata(self) -> dict[str, list[str]]:
        """
        Map stratum key → sample ids.

        An unstratified design is reported as the single stratum ``"all"``.
        """
        if self._strata is None:
            return {"all": self._groups.index.tolist()}
        return {
            str(key): members.index.tolist()
            for key, members in self._strata.groupby(self._strata, sort=True)
        }

    def to_frame(self) -> pd.DataFrame:
        """Serialize to a table with factor columns and the string label."""
        frame = pd.DataFrame({
            "apoe4": [g.apoe4 for g in self._groups.values],
            "tbi": [g.tbi for g in self._groups.values],
            "dementia": [g.dementia for g in self._groups.values],
            "group": [g.to_string() for g in self._groups.values],
        }, index=self._groups.index)
        if self._strata is not None:
            frame["stratum"] = self._strata.values
        frame.index.name = "sample_id"
        return frame

    def __len__(self) -> int:
        return len(self._groups)

    def __repr__(self) -> str:
        n_strata = len(self.strata())
        return f"SampleDesign({len(self)} samples, {n_strata} stratum/strata)"
