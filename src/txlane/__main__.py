import uvicorn

from txlane.config import cfg


def main():
    server = cfg["server"]
    uvicorn.run("txlane.app:app", host=server["host"], port=server["port"], lifespan="on")


if __name__ == "__main__":
    main()
