import logging

import uvicorn

from audiox.config.settings import load_settings


def main():
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="[%(levelname)s] %(asctime)s %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    print(f"Server running on port {settings.port}", flush=True)
    uvicorn.run(
        "audiox.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
