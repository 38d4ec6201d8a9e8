from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import FitResult

logger = logging.getLogger(__name__)


def fit_result_path(directory: str | Path, variant: str) -> Path:
    return Path(directory) / f"fit_{variant}.json"


def save_fit_result(result: FitResult, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload: dict[str, Any] = {
        "meta": {
            "saved_at": datetime.now().isoformat(timespec="seconds"),
        },
        "fit": result.to_dict(),
    }

    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info("saved %s fit to %s", result.variant, path)

    return path


def load_fit_result(path: str | Path) -> FitResult:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(path)

    data = json.loads(path.read_text(encoding="utf-8"))
    if "fit" not in data:
        raise ValueError(f"{path} does not contain a fit result")

    result = FitResult.from_dict(data["fit"])
    logger.info("loaded %s fit from %s", result.variant, path)

    return result
