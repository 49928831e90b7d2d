from __future__ import annotations

# Single-entrypoint runner.
#
#     python -m walkin_queue.app serve --barber b1:"Fade Lab"
#     python -m walkin_queue.app join --barber-id b1 --name Ada --phone +2348000000001
#     python -m walkin_queue.app start --barber-id b1 --entry-id <id>
#     python -m walkin_queue.app complete --barber-id b1 --entry-id <id>
#     python -m walkin_queue.app walk-ins --barber-id b1 off
#     python -m walkin_queue.app available --barber-id b1 on
#     python -m walkin_queue.app watch --barber-id b1 --phone +2348000000001
#
# Each subcommand forwards to the module that owns it.

import argparse

from .mqtt_topics import DEFAULT_NAMESPACE


def main() -> None:
    parser = argparse.ArgumentParser(description="Salon walk-in queue (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_mqtt_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--mqtt-host", default="127.0.0.1")
        p.add_argument("--mqtt-port", type=int, default=1883)
        p.add_argument("--namespace", default=DEFAULT_NAMESPACE)

    p_serve = sub.add_parser("serve", help="Run the queue service")
    add_mqtt_args(p_serve)
    p_serve.add_argument("--barber", action="append", required=True, help="ID:SALON (repeatable)")
    p_serve.add_argument("--closed", action="append", default=[], help="barber ID not taking walk-ins")

    p_join = sub.add_parser("join", help="Join a barber's walk-in queue")
    add_mqtt_args(p_join)
    p_join.add_argument("--barber-id", required=True)
    p_join.add_argument("--name", required=True)
    p_join.add_argument("--phone", required=True)

    for action in ("start", "complete"):
        p = sub.add_parser(action, help=f"(barber) {action} an entry")
        add_mqtt_args(p)
        p.add_argument("--barber-id", required=True)
        p.add_argument("--entry-id", required=True)

    for action, help_text in (
        ("walk-ins", "(barber) open or close the walk-in queue"),
        ("available", "(barber) mark yourself available or away"),
    ):
        p = sub.add_parser(action, help=help_text)
        add_mqtt_args(p)
        p.add_argument("--barber-id", required=True)
        p.add_argument("state", choices=["on", "off"])

    p_watch = sub.add_parser("watch", help="Follow a barber's queue live")
    add_mqtt_args(p_watch)
    p_watch.add_argument("--barber-id", required=True)
    who = p_watch.add_mutually_exclusive_group()
    who.add_argument("--phone", default=None, help="show your own entry by name")
    who.add_argument("--as-barber", action="store_true", help="view as the queue owner (all names)")

    args = parser.parse_args()
    mqtt_args = ["--mqtt-host", args.mqtt_host, "--mqtt-port", str(args.mqtt_port), "--namespace", args.namespace]

    if args.cmd == "serve":
        from .service import main as run

        run_args = list(mqtt_args)
        for b in args.barber:
            run_args += ["--barber", b]
        for b in args.closed:
            run_args += ["--closed", b]
        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "join":
        from .customer import main as run

        run_args = [*mqtt_args, "--barber-id", args.barber_id, "--name", args.name, "--phone", args.phone]
        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd in ("start", "complete"):
        from .barber import main as run

        run_args = [*mqtt_args, "--barber-id", args.barber_id, args.cmd, "--entry-id", args.entry_id]
        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd in ("walk-ins", "available"):
        from .barber import main as run

        _dispatch_to_module_main(run, [*mqtt_args, "--barber-id", args.barber_id, args.cmd, args.state])
        return

    if args.cmd == "watch":
        from .customer import watch_queue
        from .view import Viewer

        viewer = Viewer(user_id=args.barber_id) if args.as_barber else Viewer(phone=args.phone)
        watch_queue(
            mqtt_host=args.mqtt_host,
            mqtt_port=args.mqtt_port,
            namespace=args.namespace,
            barber_id=args.barber_id,
            viewer=viewer,
        )
        return


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    import sys

    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
