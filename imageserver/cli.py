"""
Command Line Interface for the image server.
"""

import argparse
import logging
import sys
import time
from typing import List, Optional, Tuple

import urllib3

from .background import BackgroundGenerator
from .image_db import ImageDb
from .image_service import ImageService
from .local_client import LocalClient
from .memory_cache import MemoryCache
from .resize_engine import ResizeEngine
from .s3_client import S3Client
from .settings import Settings


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logging.getLogger('imageserver')


def get_object_store(settings: Settings, logger: logging.Logger):
    """Create the object store selected by STORAGE_BACKEND."""
    if settings.storage_backend == 's3':
        if not settings.s3_verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        client = S3Client(settings, logger)
        client.ensure_bucket()
        logger.info(f"Storage: S3 {settings.s3_endpoint} bucket {settings.s3_bucket}/{settings.s3_prefix}")
        return client

    logger.info(f"Storage: Local filesystem {settings.local_root}")
    return LocalClient(settings.local_root, logger)


def build_service(
    settings: Settings,
    logger: logging.Logger,
    with_background: bool = True
) -> Tuple[ImageService, Optional[BackgroundGenerator]]:
    """Wire the stores, cache and pool into an ImageService."""
    background = BackgroundGenerator(settings.background_workers, logger) if with_background else None
    service = ImageService(
        object_store=get_object_store(settings, logger),
        image_db=ImageDb(settings, logger),
        cache=MemoryCache(size_limit=settings.cache_size_limit, logger=logger),
        resize_engine=ResizeEngine(logger),
        background=background,
        settings=settings,
        logger=logger,
    )
    return service, background


def load_settings(logger: logging.Logger) -> Optional[Settings]:
    try:
        settings = Settings.from_env()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return None
    errors = settings.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return None
    return settings


def wait_for_database(image_db: ImageDb, logger: logging.Logger, retry_seconds: float = 5.0) -> None:
    while image_db.connect() is not True:
        logger.info("Retrying db connection....")
        time.sleep(retry_seconds)


def cmd_serve(args: argparse.Namespace) -> int:
    """Execute serve command."""
    from bottle import run
    from .server import create_app

    logger = setup_logging(args.verbose)
    settings = load_settings(logger)
    if settings is None:
        return 1
    logger.setLevel(logging.DEBUG if args.verbose else logging.getLevelName(settings.log_level))

    service, background = build_service(settings, logger)
    wait_for_database(service.image_db, logger)
    service.image_db.create_tables()

    app = create_app(service, settings)
    logger.info("running server...")
    try:
        run(
            app=app,
            host=args.host,
            port=args.port or settings.port,
            server=args.server or settings.server,
            debug=args.debug or settings.debug_app,
            reloader=False
        )
    finally:
        background.shutdown()
        logger.info("Exiting.")
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    """Execute init-db command."""
    logger = setup_logging(args.verbose)
    settings = load_settings(logger)
    if settings is None:
        return 1

    image_db = ImageDb(settings, logger)
    try:
        image_db.create_tables()
    except Exception as e:
        logger.exception(f"Table creation failed: {e}")
        return 1
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Execute generate command."""
    logger = setup_logging(args.verbose)
    settings = load_settings(logger)
    if settings is None:
        return 1

    try:
        service, _ = build_service(settings, logger, with_background=False)

        if args.all:
            results = service.generate_all_predefined_resolutions(cadence=args.cadence, limit=args.limit)
        else:
            results = []
            for image_id in args.image_id:
                result = service.generate_predefined_resolutions(image_id)
                if result is None:
                    logger.error(f"Image not found: {image_id}")
                    continue
                results.append(result)
                if args.cadence > 0:
                    time.sleep(args.cadence)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Generation failed: {e}")
        return 1

    failed = False
    for result in results:
        print(f"{result.image_id}: generated [{', '.join(result.generated)}]")
        for skipped in result.skipped:
            print(f"  skipped {skipped}")
        failed = failed or bool(result.errors)

    if args.image_id and len(results) < len(args.image_id):
        failed = True
    return 1 if failed else 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='imageserver',
        description='Image upload and on-demand resize server',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration is read from the environment (S3_*, SQL_*, LOCAL_ROOT, ...).

Examples:
  python -m imageserver init-db
  python -m imageserver serve --port 8080
  python -m imageserver generate --all --cadence 0.5
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP server')
    serve_parser.add_argument('--host', default='0.0.0.0', help='Bind address (default: 0.0.0.0)')
    serve_parser.add_argument('-p', '--port', type=int, help='Override PORT')
    serve_parser.add_argument('--server', help='Override SERVER (bottle server adapter)')
    serve_parser.add_argument('--debug', action='store_true', help='Enable bottle debug mode')
    serve_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    init_parser = subparsers.add_parser('init-db', help='Create database tables')
    init_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    gen_parser = subparsers.add_parser('generate', help='Pre-generate catalog resolutions')
    target = gen_parser.add_mutually_exclusive_group(required=True)
    target.add_argument('--image-id', action='append', help='Image id(s) to process')
    target.add_argument('--all', action='store_true', help='Process every stored image')
    gen_parser.add_argument('-c', '--cadence', type=float, default=0.0, help='Seconds between images')
    gen_parser.add_argument('--limit', type=int, metavar='N', help='Limit to N images (with --all)')
    gen_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'serve':
        return cmd_serve(parsed_args)
    elif parsed_args.command == 'init-db':
        return cmd_init_db(parsed_args)
    elif parsed_args.command == 'generate':
        return cmd_generate(parsed_args)

    return 1


if __name__ == '__main__':
    sys.exit(main())
