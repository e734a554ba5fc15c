"""
Agrégats de ventes calculés à partir des lignes de commande brutes.

Les lignes viennent de `VariantStore.list_order_lines` : une ligne par
(commande, variante) avec `quantity` et `total_price`.
"""

from typing import Any, Dict, List

import pandas as pd

LINE_COLUMNS = ["variant_id", "order_id", "quantity", "total_price"]


def _lines_frame(lines: List[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(lines)
    if df.empty:
        return pd.DataFrame(columns=LINE_COLUMNS)

    for col in LINE_COLUMNS:
        if col not in df.columns:
            df[col] = None
    df["quantity"] = pd.to_numeric(df["quantity"], errors="coerce").fillna(0)
    df["total_price"] = pd.to_numeric(df["total_price"], errors="coerce").fillna(0.0)
    return df


def aggregate_by_variant(lines: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Unités, revenu et nombre de commandes distinctes par variante.

    Retour : {variant_id: {"units": int, "revenue": float, "order_count": int}}
    """
    df = _lines_frame(lines)
    if df.empty:
        return {}

    grouped = df.groupby("variant_id").agg(
        units=("quantity", "sum"),
        revenue=("total_price", "sum"),
        order_count=("order_id", "nunique"),
    )

    return {
        str(variant_id): {
            "units": int(row["units"]),
            "revenue": float(row["revenue"]),
            "order_count": int(row["order_count"]),
        }
        for variant_id, row in grouped.iterrows()
    }


def rank_variants_by_revenue(lines: List[Dict[str, Any]], limit: int) -> List[str]:
    """Variantes triées par revenu décroissant (top `limit`)."""
    df = _lines_frame(lines)
    if df.empty or limit <= 0:
        return []

    revenue = df.groupby("variant_id")["total_price"].sum().sort_values(ascending=False)
    return [str(variant_id) for variant_id in revenue.head(limit).index]


def aggregate_totals(lines: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Totaux sur toutes les lignes : unités, revenu, commandes distinctes."""
    df = _lines_frame(lines)
    if df.empty:
        return {"units": 0, "revenue": 0.0, "order_count": 0}

    return {
        "units": int(df["quantity"].sum()),
        "revenue": float(df["total_price"].sum()),
        "order_count": int(df["order_id"].dropna().nunique()),
    }
