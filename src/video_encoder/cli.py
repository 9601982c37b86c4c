import argparse
import sys

from pydantic import ValidationError

from . import pipeline
from .errors import DocumentError
from .handbrake_runner import check_handbrake
from .models import DEFAULT_PRESET


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--preset", type=str, help=f"HandBrake preset to use for encoding (default: {DEFAULT_PRESET})"
    )
    parser.add_argument(
        "--source", "-s", type=str, help="Directory where VideoEncoder job files are located"
    )
    parser.add_argument(
        "--destination", "-d", type=str, help="Directory to output encoded videos"
    )
    parser.add_argument(
        "--recursive",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Search for job files recursively (default: on)",
    )
    parser.add_argument("--config", "-c", type=str, help="Extra settings YAML file")
    parser.add_argument("--handbrake", type=str, help="HandBrakeCLI executable")


def main():
    parser = argparse.ArgumentParser(
        prog="video-encoder", description="Batch video encoding from VideoEncoder.yaml job files"
    )
    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    # ENCODE
    encode_parser = subparsers.add_parser("encode", help="Encode every out-of-date job")
    _add_common_arguments(encode_parser)
    encode_parser.add_argument(
        "--cache-backend",
        choices=["xattr", "sidecar"],
        help="Where fingerprints are stored",
    )

    # PLAN
    plan_parser = subparsers.add_parser("plan", help="List resolved jobs without encoding")
    _add_common_arguments(plan_parser)

    # SCRIPT
    script_parser = subparsers.add_parser("script", help="Print a shell script per job")
    _add_common_arguments(script_parser)

    # CHECK HANDBRAKE
    check_parser = subparsers.add_parser("check", help="Verify dependencies")
    check_parser.add_argument("--handbrake", type=str, help="HandBrakeCLI executable")

    args = parser.parse_args()
    cli_dict = {k: v for k, v in vars(args).items() if v is not None}

    if args.command == "check":
        print("Checking dependencies...")
        if check_handbrake(cli_dict.get("handbrake", "HandBrakeCLI")):
            print("✅ HandBrakeCLI found.")
        else:
            print("❌ HandBrakeCLI NOT found in PATH.")
            sys.exit(1)
        return

    if args.command not in ("encode", "plan", "script"):
        parser.print_help()
        return

    try:
        if args.command == "encode":
            report = pipeline.run_encode(cli_dict)
            if not report.ok:
                sys.exit(1)
        elif args.command == "plan":
            pipeline.list_jobs(cli_dict)
        else:
            pipeline.emit_scripts(cli_dict)
    except (DocumentError, FileNotFoundError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
