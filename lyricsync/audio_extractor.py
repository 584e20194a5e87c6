"""Handles audio extraction from uploaded media using ffmpeg."""

import ffmpeg
import os
import logging
import tempfile
from .exceptions import AudioExtractionError, FileSystemError
from typing import Optional
from .utils import ensure_dir_exists, suffix_for_mime_type

logger = logging.getLogger(__name__)

# Whisper works on 16 kHz mono PCM.
SAMPLE_RATE = 16000

class AudioExtractor:
    """Turns a video or audio file into a WAV track the transcriber can read."""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        logger.info(f"Using ffmpeg command: {self.ffmpeg_cmd}")

    def extract_audio(self, media_path: str, output_audio_path: str) -> str:
        """
        Extracts the audio stream of a media file to a 16 kHz mono WAV file.

        Args:
            media_path: Path to the input video or audio file.
            output_audio_path: Where to write the WAV file. Overwritten if present.

        Returns:
            The path of the extracted audio file.

        Raises:
            FileNotFoundError: If the input media file does not exist.
            AudioExtractionError: If ffmpeg fails to extract the audio.
            FileSystemError: If the output directory cannot be created/accessed.
        """
        logger.info(f"Starting audio extraction for: {media_path}")
        if not os.path.exists(media_path):
            raise FileNotFoundError(f"Input media file not found: {media_path}")

        ensure_dir_exists(os.path.dirname(os.path.abspath(output_audio_path)))

        try:
            (
                ffmpeg
                .input(media_path)
                .output(output_audio_path, acodec='pcm_s16le', ar=SAMPLE_RATE, ac=1)
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
            logger.info(f"Successfully extracted audio to: {output_audio_path}")
            return output_audio_path
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during audio extraction for {media_path}: {stderr_output}")
            self._remove_quietly(output_audio_path)
            raise AudioExtractionError(f"ffmpeg failed: {stderr_output}") from e
        except Exception as e:
            logger.error(f"Unexpected error during audio extraction: {e}", exc_info=True)
            self._remove_quietly(output_audio_path)
            raise AudioExtractionError(f"An unexpected error occurred: {e}") from e

    def extract_audio_from_bytes(self, media_bytes: bytes, mime_type: str, temp_dir: str) -> str:
        """
        Writes in-memory media to a temporary file and extracts its audio.

        The temporary media file is always removed; the returned WAV file is
        the caller's to delete.

        Args:
            media_bytes: The encoded media.
            mime_type: MIME type of the media, used to pick the file suffix ffmpeg probes.
            temp_dir: Directory for the temporary files.

        Returns:
            Path of the extracted WAV file ("*_16k.wav") inside `temp_dir`.

        Raises:
            AudioExtractionError: If the media is empty or ffmpeg fails.
            FileSystemError: If the temporary files cannot be written.
        """
        if not media_bytes:
            raise AudioExtractionError("No media data was provided.")
        ensure_dir_exists(temp_dir)
        media_path = None
        try:
            with tempfile.NamedTemporaryFile(dir=temp_dir, suffix=suffix_for_mime_type(mime_type), delete=False) as f:
                media_path = f.name
                f.write(media_bytes)
        except OSError as e:
            self._remove_quietly(media_path)
            raise FileSystemError(f"Could not write temporary media file in {temp_dir}: {e}") from e

        try:
            return self.extract_audio(media_path, os.path.splitext(media_path)[0] + "_16k.wav")
        finally:
            self._remove_quietly(media_path)

    @staticmethod
    def _remove_quietly(path: str) -> None:
        if path and os.path.exists(path):
            try:
                os.remove(path)
            except OSError:
                logger.warning(f"Could not clean up temporary file: {path}")
