class VidShortsError(Exception):
    pass


class ValidationError(VidShortsError):
    pass


class Cancelled(VidShortsError):
    pass


class ProviderFailure(VidShortsError):
    def __init__(self, provider: str, detail: str):
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class CommandTimeout(VidShortsError):
    def __init__(self, args: list[str], timeout: float):
        super().__init__(f"{args[0]} timed out after {timeout:.0f}s")
        self.args_ = args
        self.timeout = timeout


class DownloadFailure(VidShortsError):
    def __init__(self, exit_code: int | None, stderr: str):
        super().__init__(f"downloader exited with code {exit_code}: {stderr.strip()}")
        self.exit_code = exit_code
        self.stderr = stderr


class AudioMissing(VidShortsError):
    pass


class TranscriptionError(VidShortsError):
    pass


class TranscriptionAPIFailure(TranscriptionError):
    def __init__(self, stage: str, status_code: int | None, body: str):
        super().__init__(f"AssemblyAI {stage} failed ({status_code}): {body}")
        self.stage = stage
        self.status_code = status_code
        self.body = body


class TranscriptionRejected(TranscriptionAPIFailure):
    """The service finished the job with status "error"."""


class TranscriptionTimeout(TranscriptionError):
    def __init__(self, job_id: str, attempts: int, interval: float):
        super().__init__(
            f"transcript {job_id} not finished after {attempts} polls ({attempts * interval:.0f}s)"
        )
        self.job_id = job_id
        self.attempts = attempts


class AIResponseMalformed(VidShortsError):
    pass
