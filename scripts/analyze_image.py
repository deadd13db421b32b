# =============================================================================
# MCP-VL Image Analysis - Manual Smoke Test Script
# =============================================================================
# Runs one pipeline invocation outside of any transport and prints the
# result, for checking credentials, clipboard access and network reachability
# on a developer machine.
#
# Usage:
#   python3 scripts/analyze_image.py                      # clipboard image
#   python3 scripts/analyze_image.py ./shot.png --focus error
#   python3 scripts/analyze_image.py https://example.com/diagram.png
#
# Requires the project to be installed (pip install -e .) and VL_API_KEY (or
# ZHIPUAI_API_KEY) in the environment or a .env file.
# =============================================================================

import argparse
import json
import logging
import sys
import time

from dotenv import load_dotenv

from analysis.pipeline import ImageAnalysisPipeline
from config import Config
from shared.errors import ImageAnalysisError
from shared.schemas import FocusArea


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Analyze one image with the configured model")
    parser.add_argument("image", nargs="?", default=None, help="File path or URL (default: clipboard)")
    parser.add_argument(
        "--focus", choices=[area.value for area in FocusArea], default=FocusArea.CODE.value,
        help="Analysis focus area",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    load_dotenv()

    start = time.time()
    try:
        config = Config.from_env()
        pipeline = ImageAnalysisPipeline.from_config(config)
        result = pipeline.run(image_path=args.image, focus_area=args.focus)
    except ImageAnalysisError as exc:
        print(f"FAILED ({type(exc).__name__}): {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_payload(), indent=2, ensure_ascii=False))
    print(f"\nDone in {time.time() - start:.1f}s", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
