import uvicorn

from kitchen.app import CONFIG, create_app
from kitchen.config import Env


app = create_app()


def main() -> None:
    uvicorn.run(
        "kitchen.main:app",
        host="0.0.0.0" if CONFIG.env != Env.local else "127.0.0.1",
        port=8000,
        reload=CONFIG.env == Env.local,
    )


if __name__ == "__main__":
    main()
