"""Run the API with uvicorn: ``python -m consciente`` or ``consciente-api``."""

import uvicorn

from consciente.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "consciente.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
