import uvicorn

from adt_bridge.vars import BRIDGE_HOST, BRIDGE_PORT


def main():
    uvicorn.run("adt_bridge.server:app", host=BRIDGE_HOST, port=BRIDGE_PORT)


if __name__ == "__main__":
    main()
