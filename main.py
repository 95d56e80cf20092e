#!/usr/bin/env python3
"""
Invoice Intake System - Main Entry Point.

Processes invoice PDFs and images: text extraction (embedded PDF text or
OCR), field extraction, conversion of the total to EUR, and persistence
to a spreadsheet plus a copy of the document in file storage.

Usage:
    Command Line:
        python main.py --input factura.pdf
        python main.py --input ./facturas/ --backend google
        python main.py --input ./facturas/ --json outputs/report.json
        python main.py --set-rate USD=1.10
        python main.py --sheet-id 1AbC... --folder-id 0XyZ...

    Python:
        from main import run_intake
        documents = run_intake(["factura.pdf"])
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from config import ConfigurationManager, LocalSettings, get_config
from invoice_intake.utils.logger import setup_logger_from_config, get_logger, ROOT_LOGGER_NAME
from invoice_intake.utils.exceptions import InvoiceIntakeError
from invoice_intake.utils.helpers import ensure_directory


def parse_rate(value: str) -> Tuple[str, str]:
    """argparse type for CODE=RATE."""
    code, sep, rate = value.partition('=')
    if not sep or not code.strip() or not rate.strip():
        raise argparse.ArgumentTypeError(f"expected CODE=RATE, got '{value}'")
    return code.strip().upper(), rate.strip()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Intake System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process one invoice into the local workbook:
        python main.py --input factura.pdf

    Process a directory into Google Sheets and Drive:
        GOOGLE_ACCESS_TOKEN=... python main.py --input ./facturas/ --backend google

    Set a manual exchange rate (units of USD per 1 EUR):
        python main.py --set-rate USD=1.10
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        default=None,
        help="Invoice file or directory containing invoices"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--backend", "-b",
        choices=["excel", "google"],
        default=None,
        help="Persistence backend (default: output.backend from settings)"
    )

    # Local overrides
    parser.add_argument(
        "--sheet-id",
        type=str,
        default=None,
        help="Save the Google spreadsheet id override"
    )

    parser.add_argument(
        "--folder-id",
        type=str,
        default=None,
        help="Save the Google Drive folder id override"
    )

    parser.add_argument(
        "--set-rate",
        type=parse_rate,
        action="append",
        default=[],
        metavar="CODE=RATE",
        help="Save a manual exchange rate (foreign units per 1 EUR); repeatable"
    )

    parser.add_argument(
        "--clear-rate",
        type=str,
        action="append",
        default=[],
        metavar="CODE",
        help="Remove a manual exchange rate; repeatable"
    )

    parser.add_argument(
        "--clear-config",
        action="store_true",
        help="Remove the spreadsheet and folder id overrides"
    )

    parser.add_argument(
        "--json",
        type=str,
        default=None,
        metavar="PATH",
        help="Also write a JSON report of the processed documents"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    has_settings_change = (
        args.sheet_id or args.folder_id or args.set_rate or args.clear_rate or args.clear_config
    )
    if not args.input and not has_settings_change:
        parser.error("--input is required unless a settings option is given")

    return args


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)

    logger = setup_logger_from_config()
    if args.debug:
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.DEBUG)
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.setLevel(logging.DEBUG)

    logger.info("=" * 60)
    logger.info("INVOICE INTAKE SYSTEM")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")

    return config


def apply_settings(args: argparse.Namespace, settings: LocalSettings, currency) -> bool:
    """
    Apply the override options to the local settings store.

    Returns:
        True if any setting was changed.
    """
    logger = get_logger(__name__)
    changed = False

    if args.clear_config:
        settings.clear()
        logger.info("Spreadsheet and folder overrides cleared")
        changed = True

    if args.sheet_id:
        settings.save_sheet_id(args.sheet_id)
        logger.info("Spreadsheet id override saved")
        changed = True

    if args.folder_id:
        settings.save_drive_folder_id(args.folder_id)
        logger.info("Drive folder id override saved")
        changed = True

    for code, rate in args.set_rate:
        currency.set_manual_rate(code, rate)
        changed = True

    for code in args.clear_rate:
        currency.clear_manual_rate(code)
        changed = True

    return changed


def collect_inputs(input_path: str, input_handler) -> List[Path]:
    """
    Resolve --input into the list of files to process.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    path = Path(input_path)
    if path.is_dir():
        return input_handler.collect(path)
    if not path.exists():
        raise FileNotFoundError(f"Input path not found: {path}")
    return [path]


def run_intake(
    paths: List[Path],
    backend: Optional[str] = None,
    settings: Optional[LocalSettings] = None,
    currency=None,
    echo: bool = True
):
    """
    Process files and return the documents in their terminal state.

    Args:
        paths: Files to process, in order.
        backend: Persistence backend override.
        settings: Local overrides store.
        currency: Shared currency normalizer.
        echo: Print one line per status update.

    Returns:
        List of UploadedDocument.
    """
    from invoice_intake.pipeline import build_services

    services = build_services(backend=backend, settings=settings, currency=currency)
    if echo:
        services.session.subscribe(
            lambda document, status: print(f"{document.filename}: {status}")
        )

    try:
        return services.session.add_files(paths)
    finally:
        services.close()


def write_report(documents, output_path: str) -> Path:
    """
    Write the terminal state of each document to a JSON file.

    Returns:
        Path of the written report.
    """
    report = [
        {
            'filename': document.filename,
            'stage': document.status.stage.value,
            'error': document.status.error,
            'file_url': document.file_url,
            'record': document.record.to_dict() if document.record else None,
        }
        for document in documents
    ]

    path = Path(output_path)
    ensure_directory(path.parent)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2, ensure_ascii=False)

    get_logger(__name__).info(f"Report saved to: {path}")
    return path


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 when every document completed, 1 otherwise).
    """
    try:
        args = parse_arguments(argv)
        initialize_system(args)
        logger = get_logger(__name__)

        from invoice_intake.input_handler import InputHandler
        from invoice_intake.postprocessor import CurrencyNormalizer

        settings = LocalSettings(get_config("paths.local_settings", "outputs/local_settings.yaml"))
        currency = CurrencyNormalizer(settings=settings)
        apply_settings(args, settings, currency)

        if not args.input:
            return 0

        files = collect_inputs(args.input, InputHandler())
        if not files:
            logger.error("No files to process")
            return 1

        documents = run_intake(files, backend=args.backend, settings=settings, currency=currency)

        completed = sum(1 for d in documents if d.status.stage.value == 'completed')
        failed = len(documents) - completed

        print()
        print(f"Processed {len(documents)} file(s): {completed} completed, {failed} failed")
        for document in documents:
            if document.record is not None and document.status.stage.value == 'completed':
                record = document.record
                print(
                    f"  {document.filename}: {record.numero_factura} | {record.empresa} | "
                    f"{record.fecha} | {record.importe_total} EUR"
                    f"{f' ({record.importe_original} {record.moneda_original})' if record.was_converted else ''}"
                )
            elif document.status.error:
                print(f"  {document.filename}: {document.status.error}")

        if args.json:
            write_report(documents, args.json)

        return 1 if failed else 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except InvoiceIntakeError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
