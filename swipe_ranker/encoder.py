from __future__ import annotations

"""
Gesture encoder: turns a traced path into a fixed-size embedding.

The encoder network takes exactly ``MAX_LENGTH_SWIPE`` points. Longer
paths keep their most recent points; shorter ones are padded with
``SWIPE_PAD_VALUE`` and the padded positions are flagged in the mask.
"""

from pathlib import Path
from typing import Dict, Protocol

import numpy as np
from loguru import logger

from .config import (
    ENCODER_INPUT_NAMES,
    ENCODER_OUTPUT_NAME,
    MAX_LENGTH_SWIPE,
    SWIPE_PAD_VALUE,
)
from .pipeline_types import GesturePath

try:
    import onnxruntime as ort  # type: ignore
except Exception as e:
    ort = None  # type: ignore
    _import_err = e


class GestureEncoder(Protocol):
    def encode(self, path: GesturePath, max_len: int = MAX_LENGTH_SWIPE) -> np.ndarray:
        ...


def prepare_encoder_inputs(
    path: GesturePath,
    max_len: int = MAX_LENGTH_SWIPE,
    pad_value: float = SWIPE_PAD_VALUE,
) -> Dict[str, np.ndarray]:
    """
    Build the ``input`` / ``positions`` / ``mask`` tensors for one path.

    ``mask`` is True on padded positions.
    """
    points = np.asarray(path, dtype="float32").reshape(-1, 2)
    n = points.shape[0]

    mask = np.zeros((max_len,), dtype=bool)
    if n >= max_len:
        points = points[n - max_len:]
    else:
        pad = np.full((max_len - n, 2), pad_value, dtype="float32")
        points = np.concatenate([points, pad], axis=0)
        mask[n:] = True

    input_name, positions_name, mask_name = ENCODER_INPUT_NAMES
    return {
        input_name: points.reshape(1, max_len, 2),
        positions_name: np.arange(max_len, dtype="int64").reshape(1, max_len),
        mask_name: mask.reshape(1, max_len),
    }


class OnnxGestureEncoder:
    """ONNX Runtime session wrapper for the exported swipe encoder."""

    def __init__(self, session):
        self._session = session

    @classmethod
    def load(cls, model_path: Path) -> "OnnxGestureEncoder":
        if ort is None:
            raise RuntimeError(f"onnxruntime is not available: {_import_err}")
        if not Path(model_path).exists():
            raise FileNotFoundError(f"Swipe encoder model not found at {model_path}")

        logger.info("Loading swipe encoder from {}", model_path)
        opts = ort.SessionOptions()
        opts.log_severity_level = 4
        opts.enable_cpu_mem_arena = False
        session = ort.InferenceSession(str(model_path), sess_options=opts, providers=["CPUExecutionProvider"])
        logger.info(
            "Swipe encoder loaded: inputs={} outputs={}",
            [i.name for i in session.get_inputs()],
            [o.name for o in session.get_outputs()],
        )
        return cls(session)

    def encode(self, path: GesturePath, max_len: int = MAX_LENGTH_SWIPE) -> np.ndarray:
        feeds = prepare_encoder_inputs(path, max_len)
        outputs = self._session.run([ENCODER_OUTPUT_NAME], feeds)
        if not outputs:
            raise RuntimeError("Swipe encoder returned no output")
        return np.asarray(outputs[0], dtype="float32").reshape(1, -1)[0]
