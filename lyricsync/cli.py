"""Command-Line Interface handler for LyricSync."""

import argparse
import logging
import mimetypes
import os
import sys

from .config_loader import ConfigLoader
from .log_setup import setup_logging
from .audio_extractor import AudioExtractor
from .aligner import WhisperSyncCollaborator
from .session import EditingSession
from .subtitle_formats import get_format, read_subtitles, write_subtitles, FORMATS
from .drafts import save_draft
from .utils import export_basename
from .exceptions import LyricSyncError, ConfigurationError

logger = logging.getLogger(__name__) # Get logger for this module

class CLIHandler:
    """Parses arguments and runs one LyricSync command."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            "-c", "--config",
            default="config.yaml",
            help="Path to the configuration YAML file. Defaults are used if it does not exist."
        )
        common.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        common.add_argument(
            "--to",
            dest="output_format",
            default=None, # Default taken from config file
            choices=sorted(FORMATS),
            help="Output subtitle format. Overrides 'output_format' from the config."
        )
        common.add_argument(
            "--save-draft",
            action="store_true",
            help="Also save the result as a draft at the config's 'draft_path'."
        )

        parser = argparse.ArgumentParser(
            description="LyricSync: time lyrics and subtitles against media, and convert between SRT, VTT and LRC.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter # Show defaults in help
        )
        commands = parser.add_subparsers(dest="command", required=True)

        convert = commands.add_parser(
            "convert", parents=[common], formatter_class=argparse.ArgumentDefaultsHelpFormatter,
            help="Convert a subtitle file, optionally shifting its timings."
        )
        convert.add_argument("input", help="Input .srt, .vtt or .lrc file.")
        convert.add_argument("-o", "--output", required=True, help="Output file path.")
        convert.add_argument("--offset", type=int, default=0, help="Shift every entry by this many milliseconds.")
        convert.add_argument("--end-padding", type=int, default=0, help="Extend every entry's end by this many milliseconds.")

        for name, help_text in (("generate", "Create subtitles for a media file, from lyrics or by transcription."),
                                ("refine", "Re-time an existing subtitle file against its media.")):
            command = commands.add_parser(
                name, parents=[common], formatter_class=argparse.ArgumentDefaultsHelpFormatter, help=help_text
            )
            command.add_argument("-m", "--media", required=True, help="Path to the video or audio file.")
            command.add_argument("-o", "--output-dir", default=".", help="Directory to save the subtitle file.")
            command.add_argument(
                "--device",
                default=None, # Default taken from config
                choices=["cuda", "cpu"],
                help="Override the processing device (cuda or cpu) specified in config."
            )
            if name == "generate":
                command.add_argument("-l", "--lyrics", default=None,
                                     help="Text file with one line per subtitle. Omit to transcribe the speech.")
            else:
                command.add_argument("-s", "--subtitles", required=True, help="The .srt, .vtt or .lrc file to refine.")

        return parser

    def run(self, argv=None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the command."""
        args = self.parser.parse_args(argv)

        log_level = getattr(logging, args.log_level.upper(), logging.INFO)
        setup_logging(log_level=log_level, log_dir=None)

        try:
            config = ConfigLoader().load_config(args.config)
        except ConfigurationError as e:
            logger.critical(f"Failed to load configuration from {args.config}: {e}", exc_info=True)
            sys.exit(1)

        setup_logging(log_level=log_level, log_dir=config.get('log_dir'), log_file=config.get('log_file', 'lyricsync.log'))

        if args.output_format:
            logger.info(f"Overriding output_format from config with CLI argument: {args.output_format}")
            config['output_format'] = args.output_format
        if getattr(args, 'device', None):
            logger.info(f"Overriding device from config with CLI argument: {args.device}")
            config['device'] = args.device

        try:
            handler = getattr(self, f"_run_{args.command}")
            session = handler(args, config)
            if args.save_draft:
                save_draft(config['draft_path'], session.to_draft())
            logger.info("LyricSync finished successfully.")
            sys.exit(0)
        except LyricSyncError as e:
            logger.error(f"A LyricSync error occurred: {e}")
            sys.exit(1)
        except FileNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)
        except KeyboardInterrupt:
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            sys.exit(1)
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
            sys.exit(2) # Use a different exit code for unexpected crashes

    def _run_convert(self, args: argparse.Namespace, config: dict) -> EditingSession:
        entries = read_subtitles(args.input)
        session = EditingSession(entries, source_file_name=os.path.basename(args.input),
                                 history_limit=config.get('history_limit'))
        if args.offset:
            session.apply_global_offset(args.offset)
        if args.end_padding:
            session.apply_end_padding(args.end_padding)

        ext = os.path.splitext(args.output)[1]
        fmt = get_format(args.output_format or (ext if ext.lstrip('.').lower() in FORMATS else config['output_format']))
        write_subtitles(session.entries, args.output, fmt)
        return session

    def _run_generate(self, args: argparse.Namespace, config: dict) -> EditingSession:
        lyrics = ""
        if args.lyrics:
            with open(args.lyrics, 'r', encoding='utf-8-sig') as f:
                lyrics = f.read()

        media_bytes, mime_type = self._read_media(args.media)
        session = EditingSession(history_limit=config.get('history_limit'))
        session.generate(self._build_collaborator(config), media_bytes, mime_type, lyrics,
                         source_file_name=os.path.basename(args.media))
        self._write_output(session, args.output_dir, config)
        return session

    def _run_refine(self, args: argparse.Namespace, config: dict) -> EditingSession:
        entries = read_subtitles(args.subtitles)
        media_bytes, mime_type = self._read_media(args.media)
        session = EditingSession(entries, source_file_name=os.path.basename(args.media),
                                 history_limit=config.get('history_limit'))
        session.refine(self._build_collaborator(config), media_bytes, mime_type)
        self._write_output(session, args.output_dir, config)
        return session

    def _read_media(self, media_path: str):
        if not os.path.isfile(media_path):
            raise FileNotFoundError(f"Media file not found or is not a file: {media_path}")
        mime_type = mimetypes.guess_type(media_path)[0] or 'application/octet-stream'
        with open(media_path, 'rb') as f:
            return f.read(), mime_type

    def _build_collaborator(self, config: dict) -> WhisperSyncCollaborator:
        # Whisper pulls in torch; only load it for commands that need it.
        from .transcriber import WhisperTranscriber

        logger.info("Initializing sync components...")
        device = config.get('device', 'cuda')
        transcriber = WhisperTranscriber(
            model_name=config.get('whisper_model', 'base'),
            device=device,
            fp16=config.get('whisper_fp16', True) if device == 'cuda' else False,
            language=config.get('whisper_language')
        )
        return WhisperSyncCollaborator(
            transcriber=transcriber,
            audio_extractor=AudioExtractor(ffmpeg_path=config.get('ffmpeg_path')),
            temp_dir=config.get('temp_dir', 'temp')
        )

    def _write_output(self, session: EditingSession, output_dir: str, config: dict) -> str:
        fmt = get_format(config['output_format'])
        output_path = os.path.join(output_dir, export_basename(session.source_file_name) + fmt.extension)
        return write_subtitles(session.entries, output_path, fmt)


def main() -> None:
    """Console script entry point."""
    CLIHandler().run()
