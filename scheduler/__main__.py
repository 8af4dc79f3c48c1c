# scheduler/__main__.py
import asyncio
import sys
from scheduler.scheduler import async_main


def main():
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
