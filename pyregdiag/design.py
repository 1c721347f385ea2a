"""
Design matrix construction.

Turns a tabular dataset plus a model specification into the numeric
design used by the fitter: an intercept column, one column per continuous
covariate, and reference-coded indicator columns for every categorical
factor (R's ``contr.treatment``).
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ._utils import check_array, check_vector
from ._core.qr import qr_decomposition_with_pivoting, describe_dependency
from .exceptions import (
    InsufficientDataError,
    MissingValueError,
    RankDeficientError,
)


INTERCEPT = "Intercept"


@dataclass(frozen=True)
class Factor:
    """
    Categorical predictor.

    Parameters
    ----------
    name : str
        Column name in the dataset
    levels : sequence, optional
        Allowed levels in order. Defaults to the levels observed in the
        retained rows (categorical dtype order, otherwise sorted).
    reference : optional
        Reference level (all-zero indicator row). Defaults to the first level.
    """
    name: str
    levels: Optional[Tuple[Any, ...]] = None
    reference: Any = None

    def __post_init__(self):
        if self.levels is not None:
            levels = tuple(self.levels)
            if len(set(levels)) != len(levels):
                raise ValueError(f"Factor '{self.name}' has duplicate levels")
            if self.reference is not None and self.reference not in levels:
                raise ValueError(
                    f"Reference level {self.reference!r} is not a level of "
                    f"factor '{self.name}'"
                )
            object.__setattr__(self, 'levels', levels)


@dataclass(frozen=True)
class ModelSpec:
    """
    Fixed-effects linear model specification.

    Examples
    --------
    >>> spec = ModelSpec(
    ...     response='cognitive_function_scores',
    ...     covariates=['systolic_blood_pressure', 'cholesterol_levels'],
    ...     factors=['education', Factor('income_level', reference='low')],
    ... )
    """
    response: str
    covariates: Tuple[str, ...] = ()
    factors: Tuple[Factor, ...] = ()

    def __post_init__(self):
        covariates = tuple(self.covariates)
        factors = tuple(
            f if isinstance(f, Factor) else Factor(f) for f in self.factors
        )
        object.__setattr__(self, 'covariates', covariates)
        object.__setattr__(self, 'factors', factors)

        names = self.variables
        if len(set(names)) != len(names):
            raise ValueError(f"Variables referenced more than once: {names}")

    @property
    def factor_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.factors)

    @property
    def predictors(self) -> Tuple[str, ...]:
        return self.covariates + self.factor_names

    @property
    def variables(self) -> Tuple[str, ...]:
        """Every column the model reads, response first."""
        return (self.response,) + self.predictors


@dataclass(frozen=True)
class DroppedRow:
    """A dataset row excluded from the design, and why."""
    index: Any
    reason: str
    variables: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DesignMatrix:
    """
    Numeric design for a linear model.

    Attributes
    ----------
    X : ndarray, shape (n, p)
        Design matrix, intercept in column 0
    y : ndarray, shape (n,)
        Response vector
    column_names : tuple of str
        One name per column of X
    terms : dict
        Term name -> column indices of X belonging to it
    row_index : tuple
        Dataset labels of the retained rows, in original order
    dropped : tuple of DroppedRow
        Rows excluded while building

    X and y are stored as read-only copies.
    """
    X: np.ndarray
    y: np.ndarray
    column_names: Tuple[str, ...]
    terms: Dict[str, Tuple[int, ...]]
    row_index: Tuple[Any, ...]
    dropped: Tuple[DroppedRow, ...] = ()
    response_name: str = 'y'
    spec: Optional[ModelSpec] = field(default=None, compare=False)

    def __post_init__(self):
        # Own read-only copies, never views of caller buffers
        for name in ('X', 'y'):
            a = np.array(getattr(self, name), dtype=np.float64, copy=True)
            a.flags.writeable = False
            object.__setattr__(self, name, a)

    @property
    def n(self) -> int:
        return self.X.shape[0]

    @property
    def p(self) -> int:
        return self.X.shape[1]

    @property
    def n_dropped(self) -> int:
        return len(self.dropped)

    @property
    def has_intercept(self) -> bool:
        return INTERCEPT in self.terms

    def term_of(self, column: Union[int, str]) -> str:
        """Name of the term a design column belongs to."""
        if isinstance(column, str):
            column = self.column_names.index(column)
        for term, columns in self.terms.items():
            if column in columns:
                return term
        raise KeyError(column)

    def to_frame(self) -> pd.DataFrame:
        """Design as a DataFrame indexed by the original row labels."""
        return pd.DataFrame(
            self.X,
            columns=list(self.column_names),
            index=list(self.row_index),
        )

    @classmethod
    def from_arrays(
        cls,
        X,
        y,
        column_names: Optional[Sequence[str]] = None,
        add_intercept: bool = True,
    ) -> 'DesignMatrix':
        """
        Wrap raw arrays as a design (every column is its own term).

        No rank check is made here; ``fit`` reports rank deficiency.

        Parameters
        ----------
        X : array, shape (n, k)
            Predictor columns
        y : array, shape (n,)
            Response
        column_names : sequence of str, optional
            Names for the columns of X (default x0, x1, ...)
        add_intercept : bool
            Prepend a column of ones named 'Intercept'
        """
        X = check_array(X, 'X')
        y = check_vector(y, 'y')
        if X.shape[0] != len(y):
            raise ValueError(
                f"X has {X.shape[0]} rows, expected {len(y)} (matching y)"
            )

        names = (
            list(column_names) if column_names is not None
            else [f'x{j}' for j in range(X.shape[1])]
        )
        if len(names) != X.shape[1]:
            raise ValueError(
                f"Got {len(names)} column names for {X.shape[1]} columns"
            )

        if add_intercept:
            X = np.column_stack([np.ones(X.shape[0]), X])
            names = [INTERCEPT] + names

        if X.shape[0] < X.shape[1]:
            raise InsufficientDataError(
                f"{X.shape[0]} observations cannot identify {X.shape[1]} parameters"
            )

        return cls(
            X=X,
            y=y,
            column_names=tuple(names),
            terms={name: (j,) for j, name in enumerate(names)},
            row_index=tuple(range(X.shape[0])),
        )


def _resolve_levels(factor: Factor, values: pd.Series) -> Tuple[Any, ...]:
    if factor.levels is not None:
        return factor.levels
    if isinstance(values.dtype, pd.CategoricalDtype):
        observed = set(values.unique())
        return tuple(c for c in values.cat.categories if c in observed)
    unique = list(pd.unique(values))
    try:
        return tuple(sorted(unique))
    except TypeError:
        return tuple(sorted(unique, key=str))


def build_design(
    dataset,
    spec: ModelSpec,
    tol: Optional[float] = None,
) -> DesignMatrix:
    """
    Build the design matrix for ``spec`` from ``dataset``.

    Parameters
    ----------
    dataset : DataFrame or list of mappings
        One row per observation. Never modified.
    spec : ModelSpec
        Response, continuous covariates and categorical factors
    tol : float, optional
        Relative tolerance for the rank check

    Returns
    -------
    DesignMatrix

    Raises
    ------
    MissingValueError
        A referenced column is absent, or a numeric column is not numeric
    InsufficientDataError
        n <= p after dropping incomplete rows, or a factor has < 2 levels
    RankDeficientError
        Columns of the design are exactly collinear
    """
    data = dataset if isinstance(dataset, pd.DataFrame) else pd.DataFrame(dataset)

    absent = [v for v in spec.variables if v not in data.columns]
    if absent:
        raise MissingValueError(
            f"Variables not found in dataset: {', '.join(absent)}",
            variables=absent,
        )

    numeric = (spec.response,) + spec.covariates
    not_numeric = [
        v for v in numeric if not pd.api.types.is_numeric_dtype(data[v])
    ]
    if not_numeric:
        raise MissingValueError(
            f"Response and covariates must be numeric: {', '.join(not_numeric)}",
            variables=not_numeric,
        )

    frame = data.loc[:, list(spec.variables)]
    variable_names = np.asarray(spec.variables, dtype=object)

    # Rows missing any referenced variable
    missing = frame.isna().to_numpy()
    keep = ~missing.any(axis=1)
    dropped: List[Tuple[int, DroppedRow]] = []
    for pos in np.flatnonzero(~keep):
        variables = tuple(variable_names[missing[pos]])
        dropped.append((pos, DroppedRow(
            index=frame.index[pos],
            reason=f"missing value for {', '.join(variables)}",
            variables=variables,
        )))

    # Rows with levels outside a factor's declared levels
    for factor in spec.factors:
        if factor.levels is None:
            continue
        column = frame[factor.name]
        unknown = keep & ~column.isin(factor.levels).to_numpy()
        for pos in np.flatnonzero(unknown):
            dropped.append((pos, DroppedRow(
                index=frame.index[pos],
                reason=f"unknown level {column.iat[pos]!r} of {factor.name}",
                variables=(factor.name,),
            )))
        keep &= ~unknown

    retained = frame.iloc[np.flatnonzero(keep)]
    n = len(retained)

    columns = [np.ones(n)]
    names = [INTERCEPT]
    terms: Dict[str, Tuple[int, ...]] = {INTERCEPT: (0,)}

    for name in spec.covariates:
        terms[name] = (len(names),)
        columns.append(retained[name].to_numpy(dtype=np.float64))
        names.append(name)

    for factor in spec.factors:
        values = retained[factor.name]
        levels = _resolve_levels(factor, values)
        if len(levels) < 2:
            raise InsufficientDataError(
                f"Factor '{factor.name}' needs at least 2 levels, "
                f"found {len(levels)}"
            )
        reference = factor.reference if factor.reference is not None else levels[0]
        if reference not in levels:
            raise InsufficientDataError(
                f"Reference level {reference!r} of factor '{factor.name}' "
                f"is not observed"
            )

        start = len(names)
        for level in levels:
            if level == reference:
                continue
            columns.append((values == level).to_numpy(dtype=np.float64))
            names.append(f"{factor.name}[T.{level}]")
        terms[factor.name] = tuple(range(start, len(names)))

    X = np.column_stack(columns)
    y = retained[spec.response].to_numpy(dtype=np.float64)
    p = X.shape[1]

    if n <= p:
        raise InsufficientDataError(
            f"{n} usable observations ({len(dropped)} dropped) cannot identify "
            f"{p} parameters; need more than {p}"
        )

    qr = qr_decomposition_with_pivoting(X, tol=tol)
    if qr.rank < p:
        implicated = describe_dependency(qr, names)
        raise RankDeficientError(
            f"Design matrix is rank deficient (rank {qr.rank} < {p} columns); "
            f"linearly dependent columns: {', '.join(implicated)}",
            columns=implicated,
        )

    return DesignMatrix(
        X=X,
        y=y,
        column_names=tuple(names),
        terms=terms,
        row_index=tuple(retained.index),
        dropped=tuple(row for _, row in sorted(dropped, key=lambda d: d[0])),  # row order
        response_name=spec.response,
        spec=spec,
    )
