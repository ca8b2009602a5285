"""Entry point for running the swap bot as a module via python -m bots"""

import asyncio

from swapbot import main

if __name__ == "__main__":
    asyncio.run(main())
