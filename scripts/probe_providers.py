"""Try every caption provider against one video, without stopping at the first hit."""
import asyncio
import sys

import dotenv
import httpx

from vidshorts import youtube
from vidshorts.context import RunContext
from vidshorts.normalize import collapse
from vidshorts.providers import default_providers

dotenv.load_dotenv()

video_id = sys.argv[1] if len(sys.argv) > 1 else "R_FQU4KzN7A"


async def probe():
    ctx = RunContext()
    print(f"Probing {youtube.video_url(video_id)}")
    async with httpx.AsyncClient(follow_redirects=True, timeout=30) as client:
        for provider in default_providers(client):
            try:
                text = collapse(await provider.attempt(video_id, ctx))
            except Exception as e:
                print(f"  {provider.name}: error ({type(e).__name__}: {e})")
                continue
            if text:
                print(f"  {provider.name}: {len(text)} chars, {text[:80]!r}")
            else:
                print(f"  {provider.name}: empty")


asyncio.run(probe())
