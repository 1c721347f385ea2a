"""
Multicollinearity diagnostics.

- Pearson correlations of the response with the continuous covariates (linearity)
- Spearman rank correlations among the continuous covariates
- Variance inflation factors per design column, VIF_j = 1 / (1 - R²_j)
- Generalized VIF per term (car::vif), for factors spanning several columns
- Belsley condition indices and variance-decomposition proportions

The VIFs come from one pivoted QR of the centred, unit-scaled predictor
block Z: Z'Z is the predictor correlation matrix and VIF_j is the j-th
diagonal element of its inverse, which equals 1 / (1 - R²_j) of the
auxiliary regression of column j on all the others.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Dict, List, Optional
from scipy import stats
from scipy.linalg import solve_triangular

from ._core.conditioning import belsley_collinearity
from ._core.qr import qr_decomposition_with_pivoting, implicated_columns
from .design import INTERCEPT, DesignMatrix, ModelSpec, build_design
from .exceptions import RankDeficientError
from .thresholds import (
    CONDITION_INDEX_SERIOUS,
    VARIANCE_PROPORTION_HIGH,
    VIF_CONCERN,
    VIF_SERIOUS,
)


@dataclass(frozen=True)
class MulticollinearityReport:
    """
    Attributes
    ----------
    pairwise_correlations : DataFrame
        Spearman correlation matrix of the continuous covariates
    correlation_pvalues : DataFrame
        Two-sided p-values for each pairwise correlation
    vif : dict
        Design column -> variance inflation factor (intercept excluded)
    generalized_vif : DataFrame
        Per term: 'GVIF', 'Df', 'GVIF^(1/(2*Df))'
    condition_indices : Series
        Belsley condition index per singular dimension
    variance_proportions : DataFrame
        Dimension x design column variance-decomposition proportions
    linearity_correlations : DataFrame
        Pearson correlation matrix of the response and the continuous
        covariates, on the retained rows
    """
    pairwise_correlations: pd.DataFrame
    correlation_pvalues: pd.DataFrame
    vif: Dict[str, float]
    generalized_vif: pd.DataFrame
    condition_indices: pd.Series
    variance_proportions: pd.DataFrame
    linearity_correlations: pd.DataFrame

    def flagged(self, threshold: float = VIF_CONCERN) -> List[str]:
        """Columns whose VIF exceeds ``threshold`` (5 by convention, 10 for serious)."""
        return [name for name, v in self.vif.items() if v > threshold]

    @property
    def serious(self) -> List[str]:
        return self.flagged(VIF_SERIOUS)

    @property
    def max_vif(self) -> float:
        return max(self.vif.values()) if self.vif else np.nan

    def collinear_dimensions(
        self,
        index_threshold: float = CONDITION_INDEX_SERIOUS,
        proportion_threshold: float = VARIANCE_PROPORTION_HIGH,
    ) -> Dict[int, List[str]]:
        """
        Belsley's rule: a dimension with a high condition index on which two
        or more coefficients load a high share of their variance.

        Returns
        -------
        dict
            dimension -> columns with proportion above ``proportion_threshold``
        """
        found = {}
        for dim, index in self.condition_indices.items():
            if index <= index_threshold:
                continue
            shares = self.variance_proportions.loc[dim]
            involved = list(shares.index[shares > proportion_threshold])
            if len(involved) >= 2:
                found[dim] = involved
        return found


def pearson_correlations(design: DesignMatrix, covariates) -> pd.DataFrame:
    """
    Pearson correlation matrix of the response and ``covariates``.

    Response first; a weak response-covariate correlation hints that the
    linear term misses the relationship.
    """
    columns = [design.column_names.index(c) for c in covariates]
    frame = pd.DataFrame(design.X[:, columns], columns=list(covariates))
    frame.insert(0, design.response_name, design.y)
    return frame.corr(method='pearson')


def spearman_correlations(design: DesignMatrix, covariates) -> tuple:
    """
    Spearman correlation matrix and pairwise p-values for ``covariates``.

    Ties get average ranks.
    """
    columns = [design.column_names.index(c) for c in covariates]
    frame = pd.DataFrame(design.X[:, columns], columns=list(covariates))
    corr = frame.corr(method='spearman')

    pvalues = pd.DataFrame(
        np.full((len(covariates), len(covariates)), np.nan),
        index=list(covariates),
        columns=list(covariates),
    )
    for i, a in enumerate(covariates):
        for b in covariates[i + 1:]:
            pv = stats.spearmanr(frame[a], frame[b]).pvalue
            pvalues.loc[a, b] = pvalues.loc[b, a] = pv
    return corr, pvalues


def _predictor_block(design: DesignMatrix):
    """Centred, unit-length non-intercept columns and their names."""
    columns = [
        j for j, name in enumerate(design.column_names) if name != INTERCEPT
    ]
    names = [design.column_names[j] for j in columns]
    Z = design.X[:, columns] - design.X[:, columns].mean(axis=0)
    norms = np.linalg.norm(Z, axis=0)

    for j, norm in enumerate(norms):
        if norm == 0 or np.ptp(design.X[:, columns[j]]) == 0:
            raise RankDeficientError(
                f"Auxiliary regression for '{names[j]}' (term "
                f"'{design.term_of(columns[j])}') is not identifiable: the "
                f"column is constant and collinear with the intercept",
                columns=[INTERCEPT, names[j]],
            )
    return Z / norms, names, columns


def variance_inflation_factors(
    design: DesignMatrix,
    tol: Optional[float] = None,
) -> Dict[str, float]:
    """
    VIF for every non-intercept column of ``design``.

    Raises
    ------
    RankDeficientError
        Some auxiliary regression is unidentifiable (exact collinearity);
        the message cites the first failing column in design order
    """
    Z, names, columns = _predictor_block(design)
    k = Z.shape[1]
    if k == 0:
        return {}

    qr = qr_decomposition_with_pivoting(Z, tol=tol)
    if qr.rank < k:
        involved = implicated_columns(qr)
        first = names[involved[0]]
        implicated = [names[j] for j in involved]
        raise RankDeficientError(
            f"Auxiliary regression for '{first}' (term "
            f"'{design.term_of(columns[involved[0]])}') is not identifiable; "
            f"exactly collinear columns: {', '.join(implicated)}",
            columns=implicated,
        )

    # diag((Z'Z)^-1) for pivoted column i = squared norm of row i of R^-1
    R_inv = solve_triangular(qr.R, np.eye(k), lower=False)
    diag = np.einsum('ij,ij->i', R_inv, R_inv)

    vif = {}
    for i, j in enumerate(qr.pivot):
        vif[names[j]] = float(diag[i])
    return {name: vif[name] for name in names}


def _logdet(C: np.ndarray) -> float:
    if C.size == 0:
        return 0.0
    _, logdet = np.linalg.slogdet(C)
    return float(logdet)


def generalized_vif(design: DesignMatrix) -> pd.DataFrame:
    """
    Generalized VIF per term (Fox & Monette), as reported by ``car::vif``.

    GVIF_T = det(C_TT) det(C_-T-T) / det(C) on the predictor correlation
    matrix C; GVIF^(1/(2 Df)) is comparable across terms of different size.
    """
    Z, names, _ = _predictor_block(design)
    C = Z.T @ Z
    logdet_all = _logdet(C)

    rows = {}
    for term, term_columns in design.terms.items():
        if term == INTERCEPT:
            continue
        inside = [names.index(design.column_names[j]) for j in term_columns]
        outside = [i for i in range(len(names)) if i not in inside]
        gvif = np.exp(
            _logdet(C[np.ix_(inside, inside)])
            + _logdet(C[np.ix_(outside, outside)])
            - logdet_all
        )
        df = len(inside)
        rows[term] = (gvif, df, gvif ** (1.0 / (2 * df)))

    return pd.DataFrame.from_dict(
        rows,
        orient='index',
        columns=['GVIF', 'Df', 'GVIF^(1/(2*Df))'],
    )


def analyze_multicollinearity(
    dataset,
    spec: ModelSpec,
    tol: Optional[float] = None,
) -> MulticollinearityReport:
    """
    Correlation, VIF and condition-index diagnostics for ``spec``.

    Parameters
    ----------
    dataset : DataFrame or list of mappings
    spec : ModelSpec
    tol : float, optional
        Relative tolerance for rank checks

    Returns
    -------
    MulticollinearityReport

    Raises
    ------
    RankDeficientError
        The design or an auxiliary regression is not of full rank. No
        partial report is returned.
    """
    design = build_design(dataset, spec, tol=tol)

    corr, pvalues = spearman_correlations(design, spec.covariates)
    linearity = pearson_correlations(design, spec.covariates)
    vif = variance_inflation_factors(design, tol=tol)
    gvif = generalized_vif(design)

    indices, proportions = belsley_collinearity(design.X)
    dimensions = pd.RangeIndex(1, len(indices) + 1, name='dimension')

    return MulticollinearityReport(
        pairwise_correlations=corr,
        correlation_pvalues=pvalues,
        vif=vif,
        generalized_vif=gvif,
        condition_indices=pd.Series(indices, index=dimensions, name='condition index'),
        variance_proportions=pd.DataFrame(
            proportions,
            index=dimensions,
            columns=list(design.column_names),
        ),
        linearity_correlations=linearity,
    )
