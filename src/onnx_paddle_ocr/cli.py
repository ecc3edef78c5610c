"""
Command Line Interface for ONNX Paddle OCR
"""

import argparse
import json
import sys
from pathlib import Path

from loguru import logger

from .config import OcrConfig
from .models import loader
from .pipeline import OcrPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="onnx-paddle-ocr",
        description="Extract text from images with PaddleOCR ONNX models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print the recognized text of an image
  onnx-paddle-ocr receipt.png

  # Straighten a skewed scan first and print the full result as JSON
  onnx-paddle-ocr scan.jpg --deskew --json

  # Use a local recognition model and dictionary
  onnx-paddle-ocr page.png --rec-model models/rec.onnx --dictionary models/dict.txt

  # Delete downloaded default models
  onnx-paddle-ocr --clear-model-cache
        """
    )

    # Input
    parser.add_argument(
        'image',
        type=str,
        nargs='?',
        help='Input image file path'
    )

    # Output options
    parser.add_argument(
        '--flatten',
        action='store_true',
        help='Return one reading-ordered list of boxes instead of lines (with --json)'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the full result (boxes and confidences) as JSON'
    )

    # Processing options
    parser.add_argument(
        '--deskew',
        action='store_true',
        help='Estimate and correct page skew before detection'
    )
    parser.add_argument(
        '--max-side',
        type=int,
        default=None,
        help='Longest image side fed to the detector (default: 640)'
    )

    # Model options
    parser.add_argument(
        '--det-model',
        type=str,
        default=None,
        help='Detection model path or URL (default: download PP-OCRv5 mobile)'
    )
    parser.add_argument(
        '--rec-model',
        type=str,
        default=None,
        help='Recognition model path or URL (default: download PP-OCRv4 mobile English)'
    )
    parser.add_argument(
        '--dictionary',
        type=str,
        default=None,
        help='Character dictionary path or URL (default: download English dictionary)'
    )
    parser.add_argument(
        '--clear-model-cache',
        action='store_true',
        help='Delete downloaded models and exit'
    )

    # Verbosity
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="INFO" if args.verbose else "WARNING")

    if args.clear_model_cache:
        removed = loader.clear_cache()
        print(f"Removed {len(removed)} cached file(s) from {loader.cache_dir}")
        return 0

    if args.image is None:
        parser.print_usage(sys.stderr)
        print("Error: an input image is required", file=sys.stderr)
        return 1

    # Validate input file
    input_path = Path(args.image)
    if not input_path.is_file():
        print(f"Error: Input file '{args.image}' not found", file=sys.stderr)
        return 1

    overrides = {
        "model": {
            "detection": args.det_model,
            "recognition": args.rec_model,
            "characters_dictionary": args.dictionary,
        },
        "detection": {"auto_deskew": args.deskew},
        "debugging": {"verbose": args.verbose},
    }
    if args.max_side is not None:
        overrides["detection"]["max_side_length"] = args.max_side

    try:
        config = OcrConfig.merged(overrides)
        with OcrPipeline(config) as ocr:
            result = ocr.recognize(input_path.read_bytes(), flatten=args.flatten)

        if args.json:
            print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        else:
            print(result.text)
            if args.verbose:
                print(f"\nConfidence: {result.confidence:.4f}", file=sys.stderr)

        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
