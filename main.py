#!/usr/bin/env python3
"""Main entry point for the debate rooms server."""

import logging
import os
import sys
from pathlib import Path

from config.settings import AppConfig, get_template_config

CONFIG_FILE = Path("room_config.json")


def setup_logging(level: str = "INFO"):
    """Configure logging for the server process."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Keep provider and access chatter out of room logs
    for noisy in ("openai", "httpx", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def print_usage():
    """Print usage information for local development."""
    print("Debate Rooms")
    print("=" * 40)
    print("🌐 Serve rooms over WebSocket:   python main.py --web [--config PATH]")
    print("⚙️  Write a config template:      python main.py --init-config")
    print()
    print(f"Without --config, {CONFIG_FILE} is read (created from room_config.example.json).")
    print("OPENAI_API_KEY / OPENROUTER_API_KEY override the keys in the config file.")


def option_value(flag: str) -> str | None:
    if flag in sys.argv:
        index = sys.argv.index(flag)
        if index + 1 < len(sys.argv):
            return sys.argv[index + 1]
    return None


def init_config():
    """Write a template room_config.json unless one exists."""
    if CONFIG_FILE.exists():
        print(f"{CONFIG_FILE} already exists; leaving it untouched")
        return
    CONFIG_FILE.write_text(get_template_config().model_dump_json(indent=2), encoding="utf-8")
    print(f"Wrote {CONFIG_FILE}")


def start_web_server(config_path: str | None = None):
    """Start the FastAPI server, optionally with an explicit config file."""
    import uvicorn

    from web import api

    if config_path:
        config = AppConfig.load_from_file(Path(config_path))
        setup_logging(config.system.log_level)
        api.room_engine = api.build_room_engine(config)
    else:
        setup_logging()

    port = int(os.environ.get("PORT", 8000))
    print(f"🎭 Debate rooms listening on port {port}")
    print(f"🔌 WebSocket: ws://localhost:{port}/v1/ws/rooms")

    uvicorn.run(api.app, host="0.0.0.0", port=port, log_level="info", access_log=True)


def main():
    """Main entry point."""
    # Hosted environments set PORT and expect the server to start
    is_production = "PORT" in os.environ or os.environ.get("ENVIRONMENT") == "production"

    if "--init-config" in sys.argv:
        init_config()
    elif is_production or "--web" in sys.argv:
        start_web_server(option_value("--config"))
    else:
        print_usage()


if __name__ == "__main__":
    main()
