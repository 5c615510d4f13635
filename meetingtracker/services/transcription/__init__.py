from meetingtracker.services.transcription.base import (
    TranscriptionError,
    TranscriptionProvider,
    TranscriptionResult,
)
from meetingtracker.services.transcription.openai_whisper import (
    OpenAIWhisperConfig,
    OpenAIWhisperProvider,
)


def build_transcription_provider(config: dict) -> TranscriptionProvider:
    """Create the provider named by ``config["transcription"]["provider"]``."""
    settings = config.get("transcription", {})
    provider_name = (settings.get("provider") or "openai").lower()

    if provider_name == "openai":
        return OpenAIWhisperProvider(
            OpenAIWhisperConfig(
                api_key=settings.get("api_key", ""),
                model=settings.get("model") or "whisper-1",
                base_url=settings.get("base_url") or "https://api.openai.com",
                language=settings.get("language") or "en",
            )
        )

    if provider_name == "local":
        # faster-whisper is an optional extra; only import it when selected.
        from meetingtracker.services.transcription.whisper_local import (
            FasterWhisperProvider,
            WhisperConfig,
        )

        return FasterWhisperProvider(
            WhisperConfig(
                model_size=settings.get("model") or "base",
                device=settings.get("device") or "cpu",
                compute_type=settings.get("compute_type") or "int8",
                language=settings.get("language") or None,
            )
        )

    raise ValueError(f"Unknown transcription provider: {provider_name}")


__all__ = [
    "TranscriptionError",
    "TranscriptionProvider",
    "TranscriptionResult",
    "OpenAIWhisperConfig",
    "OpenAIWhisperProvider",
    "build_transcription_provider",
]
