from __future__ import annotations

import argparse


def main() -> None:
    p = argparse.ArgumentParser(prog="mikrolink", description="RouterOS API client and router simulator")
    sub = p.add_subparsers(dest="cmd", required=True)

    # sim
    p_sim = sub.add_parser("sim", help="Run the TCP router simulator")
    p_sim.add_argument("--config", default="", help="Path to simulator config YAML")
    p_sim.add_argument("--profile", default="", help="Fault profile name")
    p_sim.set_defaults(_entry="mikrolink.cli.run_sim")

    # send
    p_send = sub.add_parser("send", help="Send one command to a router")
    p_send.add_argument("path", help="Command path, e.g. /interface/print")
    p_send.add_argument("--body", action="append", default=[], metavar="KEY=VALUE")
    p_send.add_argument("--query", action="append", default=[], metavar="KEY=VALUE")
    p_send.add_argument("--login", action="store_true", help="Log in with MIKROLINK_USER/MIKROLINK_PASSWORD first")
    p_send.set_defaults(_entry="mikrolink.cli.run_send")

    args = p.parse_args()

    if args._entry == "mikrolink.cli.run_sim":
        from mikrolink.cli.run_sim import main as _m

        argv = []
        if args.config:
            argv += ["--config", args.config]
        if args.profile:
            argv += ["--profile", args.profile]
        _m(argv)
        return

    if args._entry == "mikrolink.cli.run_send":
        from mikrolink.cli.run_send import main as _m

        argv = [args.path]
        for kv in args.body:
            argv += ["--body", kv]
        for kv in args.query:
            argv += ["--query", kv]
        if args.login:
            argv.append("--login")
        _m(argv)
        return

    raise SystemExit(2)
