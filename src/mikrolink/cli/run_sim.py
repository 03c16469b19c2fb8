from __future__ import annotations

import argparse
import logging
from pathlib import Path

from mikrolink.config import load_settings
from mikrolink.sim.server import RouterSimulator


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="RouterOS API simulator.")
    p.add_argument("--config", default="")
    p.add_argument("--profile", default="")
    args = p.parse_args(argv)

    s = load_settings()
    logging.basicConfig(level=s.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    server = RouterSimulator(
        s.sim_host,
        s.sim_port,
        config_path=Path(args.config) if args.config else None,
        fault_profile=args.profile or None,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("[SIM] KeyboardInterrupt -> stopping")
        server.stop()


if __name__ == "__main__":
    main()
