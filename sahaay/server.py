import uvicorn

from sahaay import config


def main() -> None:
    config.configure_logging()
    uvicorn.run(
        "sahaay.api:create_app",
        factory=True,
        host=config.HOST,
        port=config.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
