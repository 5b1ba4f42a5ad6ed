from __future__ import annotations

import uvicorn

from .api_main import create_app
from .config import API_HOST, API_PORT


def main() -> None:
    uvicorn.run(create_app(), host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
