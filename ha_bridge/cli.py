from __future__ import annotations

import argparse
import os

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(prog="ha-bridge-server", description="Run the Home Assistant bridge server")
    parser.add_argument("--host", default=os.environ.get("HA_BRIDGE_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("HA_BRIDGE_PORT", "8000")))
    parser.add_argument("--log-level", default=os.environ.get("HA_BRIDGE_LOG_LEVEL", "info").lower())
    args = parser.parse_args()

    # A single worker: the bridge owns exactly one controller socket.
    uvicorn.run(
        "ha_bridge.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        workers=1,
    )


if __name__ == "__main__":
    main()
