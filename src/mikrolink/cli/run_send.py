from __future__ import annotations

import argparse
import json
import logging
from typing import Dict, List

from mikrolink.client.client import RouterClient
from mikrolink.client.errors import MikrolinkError
from mikrolink.config import load_settings

E_OS = "E_OS"


def _parse_pairs(items: List[str]) -> Dict[str, object]:
    """``["a=1", "id=1", "id=2"]`` -> ``{"a": "1", "id": ["1", "2"]}``."""
    out: Dict[str, object] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise SystemExit(f"expected KEY=VALUE, got {item!r}")
        if key in out:
            prev = out[key]
            out[key] = (prev if isinstance(prev, list) else [prev]) + [value]
        else:
            out[key] = value
    return out


def _fail(code: str, e: BaseException) -> None:
    print(json.dumps({"success": False, "error": code, "message": str(e)}, indent=2))
    raise SystemExit(2)


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Send one RouterOS API command.")
    p.add_argument("path")
    p.add_argument("--body", action="append", default=[])
    p.add_argument("--query", action="append", default=[])
    p.add_argument("--login", action="store_true")
    args = p.parse_args(argv)

    s = load_settings()
    logging.basicConfig(level=s.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        with RouterClient.from_settings(s) as router:
            if args.login:
                res = router.login(s.user or "admin", s.password or "")
                if not res.success:
                    print(json.dumps(res.to_dict(), indent=2))
                    raise SystemExit(1)
            res = router.call(path=args.path, query=_parse_pairs(args.query), body=_parse_pairs(args.body))
    except MikrolinkError as e:
        _fail(e.code, e)
    except OSError as e:
        _fail(E_OS, e)

    print(json.dumps(res.to_dict(), indent=2))
    raise SystemExit(0 if res.success else 1)


if __name__ == "__main__":
    main()
