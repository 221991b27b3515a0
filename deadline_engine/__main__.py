"""개발 서버 실행

    python -m deadline_engine
"""

import uvicorn

from . import config


def main():
    uvicorn.run(
        "deadline_engine.api.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        log_level=config.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
