import argparse
import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from tripsync.app_config import load_json_config, parse_app_config, resolve_runtime_env
from tripsync.bootstrap import bootstrap_client, bootstrap_server
from tripsync.console import ChatConsole
from tripsync.server.app import run_server


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tripsync", description="Travel-planner chat with a synchronized session ledger")
    parser.add_argument("mode", nargs="?", choices=("chat", "serve"), default="chat")
    return parser.parse_args(argv)


def serve() -> None:
    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    try:
        runtime = bootstrap_server(app, env)
    except ValueError as ex:
        logger.error(str(ex))
        sys.exit(1)
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    run_server(runtime.app, host=app.host, port=app.port)


async def chat() -> None:
    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    try:
        runtime = bootstrap_client(app, env)
    except ValueError as ex:
        logger.error(str(ex))
        sys.exit(1)

    print("tripsync travel planner (type 'exit' to quit, '/help' for commands)")
    print(f"Server: {app.server_url}")
    load = runtime.client.load_cache()
    if not load.ok:
        print("Local chat cache was unreadable and has been ignored.")
    elif load.entries:
        print(f"Cached sessions: {len(load.entries)} (use /session list)")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        await ChatConsole(runtime.client).run()
    finally:
        await runtime.api.close()


def run(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = _parse_args(argv)
    if args.mode == "serve":
        serve()
    else:
        asyncio.run(chat())


if __name__ == "__main__":
    run()
