# swipe_ranker/eval.py
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd
from loguru import logger

# ---------- IO helpers ----------

def _parse_path(value) -> List[tuple]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    if isinstance(value, str):
        value = json.loads(value)
    return [(float(p[0]), float(p[1])) for p in (value or [])]


def _parse_context(value) -> List[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return []
    if isinstance(value, str):
        return [w for w in value.split(" ") if w]
    return [str(w) for w in value]


def load_gestures(path: Path) -> pd.DataFrame:
    """
    Read labeled gestures from JSONL or CSV.

    Required columns: ``word`` and ``path`` (list of [x, y], or its JSON
    string in CSV). Optional ``context``: space-separated string or list.
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if path.suffix.lower() in (".jsonl", ".json"):
        df = pd.read_json(path, lines=path.suffix.lower() == ".jsonl")
    else:
        df = pd.read_csv(path, encoding="utf-8")

    missing = {"word", "path"} - set(df.columns)
    if missing:
        raise ValueError(f"Expected columns 'word' and 'path'. Missing: {sorted(missing)}")

    df = df.copy()
    df["path"] = df["path"].map(_parse_path)
    df["context"] = df["context"].map(_parse_context) if "context" in df.columns else [[] for _ in range(len(df))]
    df["word"] = df["word"].astype(str)
    return df


# ---------- metrics ----------

def accuracy_at_k(gold: str, ranked_words: Sequence[str], k: int) -> float:
    return 1.0 if gold in list(ranked_words)[:k] else 0.0


def mean_accuracy_at_k(gold: Dict[str, str], preds: Dict[str, List[str]], k: int) -> float:
    if not gold:
        return 0.0
    total = sum(accuracy_at_k(word, preds.get(key, []), k) for key, word in gold.items())
    return total / float(len(gold))


def evaluate(predictor, df: pd.DataFrame, ks: Sequence[int] = (1, 5)) -> pd.DataFrame:
    """
    Run every gesture through ``predictor`` and return one row per gesture
    with the prediction and an ``acc@k`` column per ``k``.
    """
    max_k = max(ks) if ks else 1
    rows = []
    for idx, row in df.iterrows():
        result = predictor.predict_best_word(row["path"], row["context"])
        ranked = [r.word for r in result.ranked[:max_k]]
        out = {
            "id": idx,
            "word": row["word"],
            "predicted": result.best_word,
            "scorer": result.scorer,
            "n_candidates": len(result.ranked),
        }
        for k in ks:
            out[f"acc@{k}"] = accuracy_at_k(row["word"], ranked, k)
        rows.append(out)
    columns = ["id", "word", "predicted", "scorer", "n_candidates"] + [f"acc@{k}" for k in ks]
    return pd.DataFrame(rows, columns=columns)


# ---------- CLI ----------

def main() -> None:
    parser = argparse.ArgumentParser(description="Offline accuracy of swipe prediction")
    parser.add_argument("--data", type=Path, required=True, help="JSONL/CSV of labeled gestures")
    parser.add_argument("--assets", type=Path, default=None, help="Assets directory (default: config)")
    parser.add_argument("--k", type=int, nargs="+", default=[1, 5])
    parser.add_argument("--out", type=Path, default=None, help="Optional CSV of per-gesture results")
    args = parser.parse_args()

    from .engine import SwipePredictor

    predictor = SwipePredictor.from_assets(args.assets)
    df = load_gestures(args.data)
    logger.info("Evaluating {} gestures", len(df))

    results = evaluate(predictor, df, args.k)
    for k in args.k:
        print(f"accuracy@{k}: {results[f'acc@{k}'].mean():.4f}")

    if args.out is not None:
        results.to_csv(args.out, index=False)
        logger.info("Per-gesture results written to {}", args.out)


if __name__ == "__main__":
    main()
