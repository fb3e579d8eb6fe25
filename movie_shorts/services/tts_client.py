"""TTS (Text-to-Speech) client for narration synthesis."""

from pathlib import Path
from typing import Any, Optional

import requests

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import SynthesisError
from movie_shorts.utils.audio_utils import write_silence
from movie_shorts.utils.rate_limiter import get_elevenlabs_limiter

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"


class TTSClient:
    """TTS client supporting ElevenLabs and a silent stub provider."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize TTS client.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.provider = self._detect_provider()
        self.limiter = get_elevenlabs_limiter(max_calls=settings.elevenlabs_rate_limit)

    def _detect_provider(self) -> str:
        """Detect which TTS provider to use based on available credentials."""
        if self.settings.elevenlabs_api_key:
            return "elevenlabs"
        return "stub"

    @property
    def file_suffix(self) -> str:
        return ".mp3" if self.provider == "elevenlabs" else ".wav"

    def generate_speech(
        self,
        text: str,
        output_path: Path,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> Path:
        """
        Generate speech from text and save to file.

        Args:
            text: Text to convert to speech
            output_path: Path to save audio file (suffix is set by the provider)
            voice_id: Optional voice ID override
            model_id: Optional model ID override

        Returns:
            Path of the written audio file

        Raises:
            SynthesisError: If generation fails
        """
        if not text or not text.strip():
            raise SynthesisError("Text cannot be empty")

        output_path = output_path.with_suffix(self.file_suffix)
        self.logger.debug(f"Generating speech using {self.provider} provider for {len(text)} characters...")

        if self.provider == "elevenlabs":
            self._generate_elevenlabs(text, output_path, voice_id, model_id)
        else:
            self._generate_stub(text, output_path)

        return output_path

    def _generate_elevenlabs(
        self,
        text: str,
        output_path: Path,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> None:
        """Generate speech using ElevenLabs API."""
        voice_id = voice_id or self.settings.elevenlabs_voice_id
        url = ELEVENLABS_URL.format(voice_id=voice_id)

        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.settings.elevenlabs_api_key,
        }
        params = {"output_format": "mp3_44100_128"}
        data = {
            "text": text,
            "model_id": model_id or self.settings.elevenlabs_model_id,
        }

        self.limiter.wait_if_needed("elevenlabs")
        try:
            response = requests.post(
                url,
                json=data,
                headers=headers,
                params=params,
                timeout=self.settings.tts_timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise SynthesisError(f"Network error calling ElevenLabs API: {e}") from e

        if response.status_code != 200:
            raise SynthesisError(f"ElevenLabs API returned status {response.status_code}: {response.text[:200]}")
        if not response.content:
            raise SynthesisError("ElevenLabs API returned an empty body")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(response.content)

    def _generate_stub(self, text: str, output_path: Path) -> None:
        """
        Generate stub audio (silence) for runs without a TTS provider.

        Rough estimate: 150 words per minute = 2.5 words per second.
        """
        self.logger.warning("Using stub TTS - generating silent audio placeholder")
        word_count = len(text.split())
        duration_seconds = max(1.0, word_count / 2.5)
        write_silence(output_path, duration_seconds, frame_rate=self.settings.audio_sample_rate)
