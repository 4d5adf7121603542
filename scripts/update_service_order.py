"""Apply the standard service ordering to every location."""
from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Sequence

from praxis_widget.app import create_app
from praxis_widget.app.services.service_order import (
    DEFAULT_SERVICE_ORDER,
    apply_service_order,
    parse_order_map,
)


def _load_order(path: str | None) -> dict[str, int]:
    if not path:
        return dict(DEFAULT_SERVICE_ORDER)
    return parse_order_map(json.loads(Path(path).read_text(encoding="utf-8")))


def update_service_order(order_path: str | None = None, config_name: str | None = None) -> dict[str, object]:
    app = create_app(config_name or os.getenv("FLASK_ENV"))
    with app.app_context():
        report = apply_service_order(_load_order(order_path))
        return report.as_dict()


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--order", help="JSON file mapping service keys to sort order.")
    parser.add_argument("--config", help="Configuration name (development, testing, production).")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    result = update_service_order(args.order, args.config)
    print(json.dumps(result, indent=2))


if __name__ == "__main__":  # pragma: no cover - manual execution path
    main()
