"""
Run the API with uvicorn: ``python -m wedding_api``.
"""

import uvicorn

from wedding_api.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "wedding_api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
