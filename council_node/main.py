from __future__ import annotations

import os

import uvicorn

from .config import get_bind_host, get_bind_port, load_config


def main() -> None:
    cfg = load_config(os.getcwd())
    uvicorn.run("council_node.app:app", host=get_bind_host(cfg), port=get_bind_port(cfg))


if __name__ == "__main__":
    main()
