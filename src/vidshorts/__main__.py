import argparse
import asyncio
import json
import sys
from pathlib import Path

import dotenv
dotenv.load_dotenv()


async def _transcript(url: str, base_dir: Path | None, no_audio: bool) -> int:
    import httpx
    from vidshorts import pipeline
    from vidshorts.audio import AudioDownloader
    from vidshorts.context import RunContext
    from vidshorts.errors import ValidationError, VidShortsError
    from vidshorts.providers import default_providers
    from vidshorts.resolver import TranscriptResolver
    from vidshorts.transcription import AssemblyAITranscriber

    try:
        ref = pipeline.parse(url)
    except ValidationError as exc:
        print(exc, file=sys.stderr)
        return 1

    ctx = RunContext(base_dir=base_dir) if base_dir else RunContext()
    async with httpx.AsyncClient(follow_redirects=True, timeout=30) as client:
        resolver = TranscriptResolver(default_providers(client))
        try:
            if no_audio:
                transcript = await resolver.resolve(ref.video_id, ctx)
            else:
                transcript = await pipeline.resolve_transcript(
                    ref, ctx, resolver, AudioDownloader(), AssemblyAITranscriber(client),
                )
        except VidShortsError as exc:
            print(f"FAILED: {exc}", file=sys.stderr)
            transcript = None

    for attempt in resolver.attempts:
        detail = f" ({attempt.detail})" if attempt.detail else ""
        print(f"  {attempt.provider}: {attempt.outcome.value}{detail}", file=sys.stderr)
    if transcript is None:
        print("No transcript found.", file=sys.stderr)
        return 1
    print(f"[{transcript.source}] {transcript.text}")
    return 0


def main():
    parser = argparse.ArgumentParser(prog="vidshorts")
    parser.add_argument("--temp-dir", type=Path, default=None, help="Base directory for downloaded audio, subtitles and clips")
    sub = parser.add_subparsers(dest="command")

    p_process = sub.add_parser("process", help="Find shorts in a YouTube video")
    p_process.add_argument("url")
    p_process.add_argument("--clips", action="store_true", help="Also cut each short out of the video with ffmpeg")

    p_transcript = sub.add_parser("transcript", help="Resolve a transcript only")
    p_transcript.add_argument("url")
    p_transcript.add_argument("--no-audio", action="store_true", help="Captions only, never download audio")

    p_captions = sub.add_parser("captions", help="Generate captions for a clip from its text")
    p_captions.add_argument("text")
    p_captions.add_argument("--duration", type=float, default=60.0)

    p_serve = sub.add_parser("serve")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=8000)

    sub.add_parser("check", help="Report missing binaries and API keys")

    args = parser.parse_args()

    from vidshorts import runtime

    if args.command == "process":
        runtime.require(needs_ytdlp=True, needs_ffmpeg=args.clips)
        from vidshorts import pipeline
        from vidshorts.clips import ClipExtractor
        from vidshorts.context import RunContext
        ctx = RunContext(base_dir=args.temp_dir) if args.temp_dir else RunContext()
        result = asyncio.run(pipeline.process_video(
            args.url, ctx=ctx, clips=ClipExtractor() if args.clips else None,
        ))
        print(json.dumps(result, indent=2))
        if not result["success"]:
            sys.exit(1)

    elif args.command == "transcript":
        runtime.require(needs_ytdlp=True, needs_assemblyai=not args.no_audio)
        sys.exit(asyncio.run(_transcript(args.url, args.temp_dir, args.no_audio)))

    elif args.command == "captions":
        runtime.require(needs_gemini=True)
        import httpx
        from vidshorts.analyzer import SegmentAnalyzer

        async def _captions():
            async with httpx.AsyncClient(timeout=60) as client:
                return await SegmentAnalyzer(client).generate_captions(args.text, args.duration)

        for c in asyncio.run(_captions()):
            print(f"[{c.start:.1f}-{c.end:.1f}] {c.text}")

    elif args.command == "serve":
        runtime.require(needs_ytdlp=True)
        import uvicorn
        from vidshorts import server
        app = server.create_app(args.temp_dir)
        uvicorn.run(app, host=args.host, port=args.port)

    elif args.command == "check":
        errors = runtime.check(needs_ytdlp=True, needs_ffmpeg=True, needs_assemblyai=True, needs_gemini=True)
        for e in errors:
            print(f"  - {e}")
        if errors:
            sys.exit(1)
        print("All requirements found.")

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
