import os

from uvicorn import run

# Import string notation is required for reload to work
APP_IMPORT = "rambley_api.app.main:app"


def main():
    run(
        APP_IMPORT,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENV", "development") == "development",
    )


if __name__ == "__main__":
    main()
