"""Command-Line Interface handler for Captioner."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .config_loader import ConfigLoader, build_config
from .log_setup import setup_logging
from .audio_extractor import AudioExtractor
from .openai_backend import build_openai_client
from .retry_policy import RetryPolicy
from .transcriber import OpenAITranscriber
from .translator import OpenAITranslator
from .subtitle_generator import SubtitleGenerator
from .video_renderer import VideoRenderer
from .exceptions import CaptionerError, ConfigurationError
from .utils import default_video_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
AUTO_OUTPUT = "__AUTO__"

class CLIHandler:
    """Parses arguments and orchestrates the Captioner process."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="captioner",
            description="Captioner: add translated subtitles (from the spoken audio) to videos using OpenAI.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        parser.add_argument("-i", "--input", required=True, help="Input video file.")
        parser.add_argument(
            "--output-srt",
            default=None,
            help="Output SRT subtitle file (default: alongside input as <name>.<target>.srt)."
        )
        parser.add_argument(
            "--output",
            nargs="?",
            const=AUTO_OUTPUT,
            default=None,
            help="Output video file. Can be passed without a value to use <name>.<target>.mp4."
        )
        parser.add_argument(
            "--burn-in",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Burn subtitles into the video (re-encode). Config default: on."
        )
        parser.add_argument(
            "--bilingual",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Show the translation first and the original line second. Config default: on."
        )
        parser.add_argument(
            "--fallback-marker",
            default=None,
            help="Text shown in place of the translation for untranslated lines ('' to show the source alone)."
        )
        parser.add_argument("--font-dir", default=None, help="Directory containing fonts for burn-in (libass fontsdir).")
        parser.add_argument("--font-name", default=None, help="Font family for burn-in, e.g. 'Noto Sans CJK TC'.")
        parser.add_argument("--font-size", type=int, default=None, help="Font size for burn-in (default 36, 30 when bilingual).")
        parser.add_argument("--transcription-model", default=None, help="Speech-to-text model.")
        parser.add_argument("--chunk-seconds", type=float, default=None, help="Max seconds per audio chunk for transcription.")
        parser.add_argument("--translation-model", default=None, help="Chat model for translation.")
        parser.add_argument("--translate-batch-size", type=int, default=None, help="Max subtitle lines per translation batch.")
        parser.add_argument("--source-language", default=None, help="Spoken language code, e.g. 'ja'.")
        parser.add_argument("--target-language", default=None, help="Subtitle language code, e.g. 'zh-TW'.")
        parser.add_argument(
            "-c", "--config",
            default=DEFAULT_CONFIG_PATH,
            help="Path to the configuration YAML file. Optional when left at the default."
        )
        parser.add_argument(
            "--temp-dir",
            default=None,
            help="Override the temporary directory specified in the config file."
        )
        parser.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )
        return parser

    @staticmethod
    def _overrides(args: argparse.Namespace) -> dict:
        return {
            'burn_in': args.burn_in,
            'bilingual': args.bilingual,
            'fallback_marker': args.fallback_marker,
            'font_dir': args.font_dir,
            'font_name': args.font_name,
            'font_size': args.font_size,
            'transcription_model': args.transcription_model,
            'chunk_seconds': args.chunk_seconds,
            'translation_model': args.translation_model,
            'translate_batch_size': args.translate_batch_size,
            'source_language': args.source_language,
            'target_language': args.target_language,
            'temp_dir': args.temp_dir,
        }

    def load_config(self, args: argparse.Namespace) -> dict:
        """
        Loads the YAML file (optional at its default path) and applies CLI overrides.

        Raises:
            ConfigurationError: If the file is invalid or a value is out of range.
            FileNotFoundError: If an explicitly given config file is missing.
        """
        file_config = {}
        if args.config != DEFAULT_CONFIG_PATH or os.path.exists(args.config):
            file_config = ConfigLoader().load_config(args.config)
        else:
            logger.info(f"No {DEFAULT_CONFIG_PATH} found; using built-in defaults.")
        return build_config(file_config, self._overrides(args))

    def build_generator(self, config: dict) -> SubtitleGenerator:
        client = build_openai_client(config)
        return SubtitleGenerator(
            config=config,
            audio_extractor=AudioExtractor(ffmpeg_path=config.get('ffmpeg_path')),
            transcriber=OpenAITranscriber(
                client,
                model_name=config['transcription_model'],
                retry_policy=RetryPolicy.from_config(config),
            ),
            translator=OpenAITranslator(client, model_name=config['translation_model']),
            video_renderer=VideoRenderer(ffmpeg_path=config.get('ffmpeg_path')),
        )

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the generator."""
        args = self.parser.parse_args(argv)
        load_dotenv()

        log_level = getattr(logging, args.log_level.upper(), logging.INFO)
        setup_logging(log_level=log_level, log_dir='logs', log_file='captioner_init.log')

        try:
            config = self.load_config(args)
        except (ConfigurationError, FileNotFoundError) as e:
            logger.critical(f"Failed to load configuration: {e}")
            sys.exit(1)

        setup_logging(log_level=log_level, log_dir=config['log_dir'], log_file=config['log_file'])
        logger.info("Logging re-configured with settings from config.")

        if not os.path.isfile(args.input):
            logger.critical(f"Input video file not found or is not a file: {args.input}")
            sys.exit(1)
        if not args.input.lower().endswith(".mp4"):
            logger.warning("Input is not .mp4; proceeding anyway.")

        output_video = args.output
        if output_video == AUTO_OUTPUT or output_video == "":
            output_video = default_video_path(args.input, config['target_language'])

        try:
            logger.info("Initializing Captioner components...")
            generator = self.build_generator(config)
            result = generator.generate(args.input, output_srt=args.output_srt, output_video=output_video)
        except CaptionerError as e:
            logger.error(f"A Captioner error occurred: {e}")
            sys.exit(1)
        except FileNotFoundError as e:
            logger.error(f"File not found: {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
            sys.exit(1)
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
            sys.exit(2)

        if result.fallback_count:
            logger.warning(
                f"Finished with {result.fallback_count} untranslated segment(s) "
                f"(entries {', '.join(str(i + 1) for i in result.fallback_indices)})."
            )
        summary = f"Done. SRT: {result.srt_path}"
        if result.video_path:
            summary += f" | Video: {result.video_path}"
        logger.info(summary)
        sys.exit(0)

def main() -> None:
    CLIHandler().run()
